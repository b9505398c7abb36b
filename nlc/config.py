"""Configuration loader — reads config.yaml, validates with Pydantic.

Model and sampling policy live in the file. The backend credential never
does: it is read from the process environment on every request via
``CompilerConfig.resolve_api_key``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, field_validator

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
CONFIG_PATH_ENV = "NLC_CONFIG"


class CompilerConfig(BaseModel):
    """Server-side generation policy. Not caller-configurable."""

    model: str = "gpt-4o"
    temperature: float = 0.15
    timeout_seconds: float = 60.0
    base_url: str | None = None
    api_key_env: str = "OPENAI_API_KEY"
    route: str = "/compile"

    @field_validator("temperature")
    @classmethod
    def must_be_low_temperature(cls, v: float) -> float:
        if not 0 < v <= 0.5:
            raise ValueError(f"temperature must be in (0, 0.5], got {v}")
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {v}")
        return v

    @field_validator("route")
    @classmethod
    def must_be_absolute(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"route must start with '/', got '{v}'")
        return v

    def resolve_api_key(self, environ: Mapping[str, str] | None = None) -> str | None:
        """Return the backend credential, or None when it is unset or blank."""
        env = os.environ if environ is None else environ
        key = env.get(self.api_key_env, "").strip()
        return key or None


# ---------------------------------------------------------------------------
# Module-level config cache
# ---------------------------------------------------------------------------

_config: CompilerConfig | None = None


def load_config(path: str | None = None) -> CompilerConfig:
    """Read config.yaml from disk, validate, and cache.

    A missing file falls back to the built-in defaults.
    """
    global _config
    config_file = Path(path or os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH)).resolve()

    if not config_file.exists():
        logger.warning(f"Config file not found at {config_file}, using defaults")
        _config = CompilerConfig()
        return _config

    raw = yaml.safe_load(config_file.read_text()) or {}
    _config = CompilerConfig(**raw)

    logger.info(
        f"Loaded config from {config_file}: model={_config.model}, "
        f"temperature={_config.temperature}, route={_config.route}"
    )
    return _config


def get_config() -> CompilerConfig:
    """Return cached config, loading it on first access."""
    if _config is None:
        return load_config()
    return _config
