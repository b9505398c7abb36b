"""Dispatcher — bridges an inbound HTTP request to the compile pipeline.

Checks method, credential and body, builds the conversation, runs it
through the generation backend and sanitizes the output. Validation
failures are returned before the backend is touched.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from nlc.compiler.client import GenerationBackend, OpenAIGenerationClient
from nlc.compiler.prompts import Regeneration, build_conversation, select_mode
from nlc.compiler.sanitizer import sanitize
from nlc.config import CompilerConfig
from nlc.errors import (
    CompileError,
    InvalidField,
    MalformedRequest,
    MethodNotAllowed,
    MissingField,
    Unconfigured,
)
from nlc.schemas import CompileRequest, CompileResponse, ErrorResponse

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, CompilerConfig], GenerationBackend]

# JSON field name -> (python type, name used in error messages)
_FIELD_TYPES: dict[str, tuple[type, str]] = {
    "algorithm": (str, "string"),
    "previousCode": (str, "string"),
    "error": (str, "string"),
    "regenerate": (bool, "boolean"),
}


@dataclass(frozen=True)
class DispatchOutcome:
    """Status plus JSON body. ``body`` is None only for the 204 preflight."""

    status_code: int
    body: dict[str, Any] | None = None
    kind: str | None = None


def default_client_factory(api_key: str, config: CompilerConfig) -> GenerationBackend:
    return OpenAIGenerationClient(api_key, config)


def parse_request(body: bytes | str | None) -> CompileRequest:
    """Parse and validate a raw request body.

    Raises MalformedRequest when the body is not a JSON object, InvalidField
    on a wrongly typed field, and MissingField when ``algorithm`` is absent
    or blank.
    """
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    try:
        data = json.loads(body or "")
    except json.JSONDecodeError as e:
        raise MalformedRequest(str(e)) from e

    if not isinstance(data, dict):
        raise MalformedRequest(
            f"Request body must be a JSON object, got {type(data).__name__}"
        )

    for name, (expected, label) in _FIELD_TYPES.items():
        value = data.get(name)
        if value is not None and not isinstance(value, expected):
            raise InvalidField(
                f"Field '{name}' must be a {label}, got {type(value).__name__}"
            )

    if not (data.get("algorithm") or "").strip():
        raise MissingField()

    try:
        return CompileRequest.model_validate(data)
    except ValidationError as e:
        raise InvalidField(str(e)) from e


class Dispatcher:
    """Runs one request through the pipeline and shapes the outcome."""

    def __init__(
        self,
        config: CompilerConfig,
        client_factory: ClientFactory = default_client_factory,
        environ: Mapping[str, str] | None = None,
    ):
        self.config = config
        self.client_factory = client_factory
        self.environ = environ

    async def dispatch(self, method: str, body: bytes | str | None) -> DispatchOutcome:
        try:
            return await self._dispatch(method, body)
        except CompileError as e:
            logger.warning(f"Compile request failed: kind={e.kind}, status={e.status_code}")
            return DispatchOutcome(e.status_code, e.to_response(), kind=e.kind)
        except Exception as e:
            logger.error(f"Unexpected compile error: {e}", exc_info=True)
            body = ErrorResponse(error=str(e)).model_dump()
            return DispatchOutcome(500, body, kind="InternalError")

    async def _dispatch(self, method: str, body: bytes | str | None) -> DispatchOutcome:
        method = method.upper()
        if method == "OPTIONS":
            return DispatchOutcome(204)
        if method != "POST":
            raise MethodNotAllowed()

        # Credential is looked up on every invocation.
        api_key = self.config.resolve_api_key(self.environ)
        if not api_key:
            raise Unconfigured()

        request = parse_request(body)
        mode = select_mode(request)
        logger.info(
            f"Compiling: mode={type(mode).__name__}, "
            f"algorithm_chars={len(request.algorithm)}"
        )
        if request.regenerate and not isinstance(mode, Regeneration):
            logger.info("regenerate requested without previous code and error, generating fresh")

        client = self.client_factory(api_key, self.config)
        result = await client.generate(build_conversation(mode))
        if not result.ok:
            raise result.error

        code = sanitize(result.code)
        logger.info(f"Compiled function: chars={len(code)}")
        return DispatchOutcome(200, CompileResponse(code=code).model_dump())
