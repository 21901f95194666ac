"""Runtime settings for autocoding.

Precedence: explicit overrides > environment (``AUTOCODING_``) > defaults.
"""

import os
from functools import lru_cache
from typing import Any, Dict, Final, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

ENV_PREFIX: Final[str] = "AUTOCODING_"

_BOOLEAN_TRUE: Final[frozenset] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset] = frozenset({"0", "false", "f", "no", "n", "off"})


class ConfigError(ValueError):
    """Raised when settings cannot be loaded or coerced."""


class CodingSettings(BaseModel):
    """Effective settings for the coder, loader and writer."""
    atomic_writes: bool = True  # default for write(..., atomically=None)
    document_indent: int = Field(2, ge=0, le=16)
    strict_kinds: bool = True  # decode raises TypeMismatchError on kind disagreement
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"

    model_config = ConfigDict(extra="forbid", frozen=True)


def _coerce(field_name: str, raw: str) -> Any:
    annotation = CodingSettings.model_fields[field_name].annotation
    if annotation is bool:
        lowered = raw.strip().lower()
        if lowered in _BOOLEAN_TRUE:
            return True
        if lowered in _BOOLEAN_FALSE:
            return False
        raise ConfigError(f"{ENV_PREFIX}{field_name.upper()} must be a boolean, got {raw!r}")
    if annotation is int:
        try:
            return int(raw.strip())
        except ValueError as err:
            raise ConfigError(
                f"{ENV_PREFIX}{field_name.upper()} must be an integer, got {raw!r}"
            ) from err
    if field_name == "log_level":
        return raw.strip().upper()
    return raw


def _collect_env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for field_name in sorted(CodingSettings.model_fields):
        env_name = f"{ENV_PREFIX}{field_name.upper()}"
        if env_name in environ:
            overrides[field_name] = _coerce(field_name, environ[env_name])
    return overrides


def load_settings(environ: Optional[Mapping[str, str]] = None, **overrides: Any) -> CodingSettings:
    """Load settings with precedence: overrides > env > defaults.

    Args:
        environ: Environment mapping (defaults to ``os.environ``)
        **overrides: Explicit field values, e.g. from the CLI

    Returns:
        Validated, frozen settings

    Raises:
        ConfigError: If a value cannot be coerced or fails validation
    """
    env_map = os.environ if environ is None else environ
    merged = _collect_env_overrides(env_map)
    merged.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return CodingSettings(**merged)
    except ValidationError as err:
        raise ConfigError(f"Invalid autocoding settings: {err}") from err


@lru_cache(maxsize=1)
def get_settings() -> CodingSettings:
    """Process-wide settings, read from the environment once."""
    return load_settings()
