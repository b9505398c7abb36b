"""Request/response models — the contract between the compiler and clients."""

from pydantic import BaseModel, ConfigDict, Field


class CompileRequest(BaseModel):
    """Incoming request body.

    ``previous_code`` and ``previous_error`` arrive as ``previousCode`` and
    ``error``. ``regenerate`` only matters when both of them are non-empty.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    algorithm: str | None = None
    previous_code: str | None = Field(default=None, alias="previousCode")
    previous_error: str | None = Field(default=None, alias="error")
    regenerate: bool | None = None

    @property
    def wants_regeneration(self) -> bool:
        return bool(self.regenerate and self.previous_code and self.previous_error)


class CompileResponse(BaseModel):
    code: str


class ErrorResponse(BaseModel):
    error: str
