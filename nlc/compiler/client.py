"""Generation client — runs one conversation against the chat-completion backend.

The dispatcher depends on the ``GenerationBackend`` port only. Two
implementations ship here: ``OpenAIGenerationClient`` talks to an
OpenAI-compatible endpoint through LangChain, ``StubGenerationClient``
returns a canned result for offline use.

No retries happen here. Backend outcomes come back as a ``GenerationResult``
instead of being raised.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

import openai
from langchain_openai import ChatOpenAI

from nlc.errors import BackendRejected, BackendUnreachable, CompileError, Unconfigured

if TYPE_CHECKING:
    import httpx

    from nlc.compiler.prompts import Conversation
    from nlc.config import CompilerConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationResult:
    """Either ``code`` (success) or ``error`` (failure), never both."""

    code: str | None = None
    error: CompileError | None = None

    @classmethod
    def success(cls, code: str) -> GenerationResult:
        return cls(code=code)

    @classmethod
    def failure(cls, error: CompileError) -> GenerationResult:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None


class GenerationBackend(Protocol):
    async def generate(self, conversation: Conversation) -> GenerationResult: ...


def _extract_content(content) -> str:
    """Normalize message content — providers may return a list of blocks or a string."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, dict):
                parts.append(block.get("text", ""))
            else:
                parts.append(str(block))
        return "".join(parts)
    return str(content)


def _backend_message(body, status_code: int) -> str:
    """Pull ``error.message`` out of a backend error body, if there is one."""
    if isinstance(body, dict):
        inner = body.get("error", body)
        if isinstance(inner, dict) and inner.get("message"):
            return str(inner["message"])
    return f"backend error: {status_code}"


class OpenAIGenerationClient:
    """Live client for ``POST /chat/completions``."""

    def __init__(
        self,
        api_key: str | None,
        config: CompilerConfig,
        http_async_client: httpx.AsyncClient | None = None,
    ):
        if not api_key:
            raise Unconfigured()
        self.config = config
        self.llm = ChatOpenAI(
            model=config.model,
            temperature=config.temperature,
            api_key=api_key,
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            max_retries=0,
            http_async_client=http_async_client,
        )

    async def generate(self, conversation: Conversation) -> GenerationResult:
        logger.info(
            f"Calling backend: model={self.config.model}, turns={len(conversation)}"
        )
        try:
            response = await self.llm.ainvoke(list(conversation))
        except openai.APIConnectionError as e:
            # APITimeoutError is a subclass and lands here too.
            logger.error(f"Backend unreachable: {e}", exc_info=True)
            return GenerationResult.failure(BackendUnreachable(str(e)))
        except openai.APIStatusError as e:
            message = _backend_message(e.body, e.status_code)
            logger.warning(f"Backend rejected request: status={e.status_code}, error={message}")
            return GenerationResult.failure(BackendRejected(message, status_code=e.status_code))

        return GenerationResult.success(_extract_content(response.content))


@dataclass
class StubGenerationClient:
    """Deterministic backend. Records every conversation it receives."""

    reply: str | GenerationResult = ""
    calls: list[Conversation] = field(default_factory=list)

    async def generate(self, conversation: Conversation) -> GenerationResult:
        self.calls.append(conversation)
        if isinstance(self.reply, GenerationResult):
            return self.reply
        return GenerationResult.success(self.reply)
