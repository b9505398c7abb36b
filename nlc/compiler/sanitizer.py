"""Output sanitizer — strips markdown fences from raw model output."""

from __future__ import annotations

import re

FENCE = "```"

# An opening fence may carry a language tag. Any tag running to the end of the
# line is removed; a known JS/TS tag is also removed when code follows it on
# the same line. Otherwise just the backticks go.
_FENCE_RE = re.compile(
    r"```(?:"
    r"[ \t]*[\w+#.-]*[ \t]*(?:\r?\n|\Z)"
    r"|(?i:javascript|jsx|js|typescript|tsx|ts)[ \t]+"
    r")?"
)


def sanitize(raw: str) -> str:
    """Remove every fenced-code-block delimiter, then trim surrounding whitespace.

    Never fails. Removal is repeated until no fence is left, so
    ``sanitize(sanitize(x)) == sanitize(x)``.
    """
    text = raw or ""
    while FENCE in text:
        text = _FENCE_RE.sub("", text)
    return text.strip()
