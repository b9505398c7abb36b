"""Error kinds surfaced by the compile pipeline.

Every kind is terminal for the request. The dispatcher turns them into a
status code plus a ``{"error": message}`` body.

The service contract names six kinds. ``InvalidField`` is an addition: a
field that is present with the wrong JSON type (a numeric ``algorithm``, a
string ``regenerate``) is rejected with 400 instead of being coerced.
"""

from __future__ import annotations

from nlc.schemas import ErrorResponse


class CompileError(Exception):
    """Base class. ``kind`` names the failure class, ``status_code`` its HTTP status."""

    kind = "CompileError"
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_response(self) -> dict[str, str]:
        return ErrorResponse(error=self.message).model_dump()


class MethodNotAllowed(CompileError):
    kind = "MethodNotAllowed"
    status_code = 405

    def __init__(self, message: str = "Method not allowed"):
        super().__init__(message)


class MalformedRequest(CompileError):
    kind = "MalformedRequest"
    status_code = 500


class MissingField(CompileError):
    kind = "MissingField"
    status_code = 400

    def __init__(self, message: str = "Missing algorithm"):
        super().__init__(message)


class InvalidField(CompileError):
    """A field is present but has the wrong JSON type."""

    kind = "InvalidField"
    status_code = 400


class Unconfigured(CompileError):
    kind = "Unconfigured"
    status_code = 500

    def __init__(self, message: str = "Server API key not configured"):
        super().__init__(message)


class BackendUnreachable(CompileError):
    kind = "BackendUnreachable"
    status_code = 500


class BackendRejected(CompileError):
    kind = "BackendRejected"
    # Used only when the backend gave no status of its own.
    status_code = 502
