"""Domain errors raised by the identity components."""

from __future__ import annotations

from enum import Enum


class IdentityError(Exception):
    """Base class for every error raised by the identity core."""


class ConflictError(IdentityError):
    """Raised when a user with the same email is already registered."""


class AuthenticationError(IdentityError):
    """Raised for bad credentials or a bad, missing or expired token."""


class NotFoundError(IdentityError):
    """Raised when an authenticated request targets an unknown user."""


class InternalError(IdentityError):
    """Raised when hashing or signing fails for reasons unrelated to input."""


class TokenErrorKind(str, Enum):
    """Why a bearer token was rejected."""

    MALFORMED = "malformed"
    SIGNATURE_INVALID = "signature_invalid"
    EXPIRED = "expired"


class TokenError(AuthenticationError):
    def __init__(self, kind: TokenErrorKind, detail: str | None = None) -> None:
        self.kind = kind
        self.detail = detail
        super().__init__(detail or kind.value)


__all__ = [
    "AuthenticationError",
    "ConflictError",
    "IdentityError",
    "InternalError",
    "NotFoundError",
    "TokenError",
    "TokenErrorKind",
]
