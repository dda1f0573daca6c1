"""Core of the identity service: registration, login and bearer tokens."""

from __future__ import annotations

from typing import Any

from .errors import (
    AuthenticationError,
    ConflictError,
    InternalError,
    NotFoundError,
    TokenError,
    TokenErrorKind,
)
from .flow import AuthFlow
from .passwords import CredentialHasher
from .registry import UserRegistry
from .tokens import TokenService


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the FastAPI application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "AuthFlow",
    "AuthenticationError",
    "ConflictError",
    "CredentialHasher",
    "InternalError",
    "NotFoundError",
    "TokenError",
    "TokenErrorKind",
    "TokenService",
    "UserRegistry",
    "create_app",
]
