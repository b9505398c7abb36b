"""Prompt builder — turns a compile request into a fixed-shape conversation.

Two modes:
- FirstGeneration: [system, user]
- Regeneration:    [system, user, assistant (previous code), user (previous error)]

Pure: no I/O, no state. The caller guarantees a non-empty algorithm.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

if TYPE_CHECKING:
    from nlc.schemas import CompileRequest

COMPILED_FUNCTION_NAME = "nlcCompiled"

SYSTEM_PROMPT = f"""You are the NLC (Natural Language Compiler). You convert structured natural-language algorithms into a single executable JavaScript function.

CRITICAL RULES:
1. The function MUST be named exactly: {COMPILED_FUNCTION_NAME}
2. It MUST accept one parameter: an object with named fields
3. It MUST return a plain object (JSON-serializable, no class instances)
4. NO external dependencies: pure JavaScript only
5. Return ONLY raw JavaScript code. No markdown fences. No backticks. No explanation text.

NLC FRAMEWORK:
- Each STEP has a Domain (input types/constraints) and Range (output guarantees)
- You MUST validate Domain assertions with runtime checks (throw Error on violation)
- You MUST ensure Range assertions hold on the output (throw Error on violation)
- If Assert lines are present, enforce each one as an explicit runtime check

CODE QUALITY:
- Use descriptive error messages prefixed with "Domain assertion failed:" or "Range assertion failed:"
- Handle edge cases (empty arrays, zero, negative numbers, etc.)
- Be deterministic: same input, same output, always
- Do NOT use crypto, fetch, require, import, eval, Function, or any async operations
- Do NOT use Date.now() or Math.random() for unique IDs; derive them deterministically from input values"""

USER_SUFFIX = f"""Requirements:
1. Function named '{COMPILED_FUNCTION_NAME}' accepting one object parameter
2. Validate all Domain assertions at runtime
3. Enforce all Range assertions on output
4. Return ONLY the raw JavaScript function: no markdown, no backticks, no explanation"""

FIRST_GENERATION_FRAMING = "Convert this algorithm into an executable JavaScript function:"
REGENERATION_FRAMING = "Convert this algorithm:"
FIX_INSTRUCTION = (
    "Fix the code. Return ONLY the corrected JavaScript function. "
    "No markdown, no explanation."
)

Conversation = tuple[BaseMessage, ...]


@dataclass(frozen=True)
class FirstGeneration:
    algorithm: str


@dataclass(frozen=True)
class Regeneration:
    algorithm: str
    previous_code: str
    previous_error: str


PromptMode = FirstGeneration | Regeneration


def select_mode(request: CompileRequest) -> PromptMode:
    """Pick the conversation shape for a validated request.

    Regeneration needs the ``regenerate`` flag together with both the previous
    code and its error. Anything less is a first generation.
    """
    if request.wants_regeneration:
        return Regeneration(
            algorithm=request.algorithm,
            previous_code=request.previous_code,
            previous_error=request.previous_error,
        )
    return FirstGeneration(algorithm=request.algorithm)


def _user_turn(framing: str, algorithm: str) -> HumanMessage:
    return HumanMessage(content=f"{framing}\n\n{algorithm}\n\n{USER_SUFFIX}")


def build_first_generation(mode: FirstGeneration) -> Conversation:
    return (
        SystemMessage(content=SYSTEM_PROMPT),
        _user_turn(FIRST_GENERATION_FRAMING, mode.algorithm),
    )


def build_regeneration(mode: Regeneration) -> Conversation:
    return (
        SystemMessage(content=SYSTEM_PROMPT),
        _user_turn(REGENERATION_FRAMING, mode.algorithm),
        AIMessage(content=mode.previous_code),
        HumanMessage(
            content=(
                "The code above failed with this error:\n\n"
                f"{mode.previous_error}\n\n{FIX_INSTRUCTION}"
            )
        ),
    )


def build_conversation(mode: PromptMode) -> Conversation:
    """Return the ordered, immutable conversation for ``mode``."""
    match mode:
        case Regeneration():
            return build_regeneration(mode)
        case FirstGeneration():
            return build_first_generation(mode)
        case _:
            raise ValueError(f"Unknown prompt mode: {mode!r}")
