"""Startup configuration for the identity service."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .tokens import DEFAULT_TOKEN_TTL

logger = logging.getLogger("identity.config")

CONFIG_PATH_ENV = "IDENTITY_CONFIG"
SIGNING_KEY_ENV = "IDENTITY_SIGNING_KEY"
TOKEN_TTL_ENV = "IDENTITY_TOKEN_TTL_SECONDS"
RESTRICT_TO_SUBJECT_ENV = "IDENTITY_RESTRICT_TO_SUBJECT"

_MIN_RECOMMENDED_KEY_BYTES = 32
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Values loaded once at startup and handed to the service factory."""

    signing_key: str = field(repr=False)
    token_ttl: timedelta = DEFAULT_TOKEN_TTL
    restrict_to_subject: bool = True

    def __post_init__(self) -> None:
        if not self.signing_key:
            raise ValueError("A signing key must be configured")
        if self.token_ttl <= timedelta(0):
            raise ValueError("Token lifetime must be positive")


def _parse_flag(value: object, *, setting: str) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value for {setting}: {value!r}")


def _parse_ttl(value: object, *, setting: str) -> timedelta:
    try:
        seconds = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid number of seconds for {setting}: {value!r}") from exc
    return timedelta(seconds=seconds)


def _read_config_file(config_path: Path) -> Dict[str, Any]:
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")
    return raw


def resolve_config_path(env_value: Optional[str]) -> Optional[Path]:
    """Resolve the optional YAML configuration file location."""
    if not env_value:
        return None
    return Path(env_value).expanduser().resolve(strict=False)


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build :class:`Settings` from an optional YAML file and the environment.

    Environment variables take precedence over values from the file.
    """
    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get(CONFIG_PATH_ENV))
    raw: Dict[str, Any] = _read_config_file(path) if path is not None else {}

    signing_key = env.get(SIGNING_KEY_ENV) or raw.get("signing_key")
    if not signing_key:
        raise ValueError(
            f"No signing key configured. Set {SIGNING_KEY_ENV} or 'signing_key' in the configuration file."
        )
    signing_key = str(signing_key)
    if len(signing_key.encode("utf-8")) < _MIN_RECOMMENDED_KEY_BYTES:
        logger.warning(
            "Signing key is shorter than %d bytes; tokens are easier to forge",
            _MIN_RECOMMENDED_KEY_BYTES,
        )

    ttl_value = env.get(TOKEN_TTL_ENV, raw.get("token_ttl_seconds"))
    token_ttl = (
        _parse_ttl(ttl_value, setting="token_ttl_seconds")
        if ttl_value is not None
        else DEFAULT_TOKEN_TTL
    )

    restrict_value = env.get(RESTRICT_TO_SUBJECT_ENV, raw.get("restrict_to_subject"))
    restrict_to_subject = (
        _parse_flag(restrict_value, setting="restrict_to_subject")
        if restrict_value is not None
        else True
    )

    return Settings(
        signing_key=signing_key,
        token_ttl=token_ttl,
        restrict_to_subject=restrict_to_subject,
    )


__all__ = ["Settings", "load_settings", "resolve_config_path"]
