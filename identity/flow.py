"""Register, login and protected-retrieval use cases.

Each use case returns one of a small set of result dataclasses instead of
raising. Every result carries the HTTP status a transport should use and a
``body()`` ready for JSON serialisation, so callers can handle the variants
exhaustively without knowing which domain error produced them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Union

from .errors import ConflictError, InternalError, TokenError, TokenErrorKind
from .models import PublicUser
from .passwords import CredentialHasher
from .registry import UserRegistry
from .tokens import TokenService

logger = logging.getLogger("identity.flow")

EMAIL_TAKEN_MESSAGE = "E-mail already exists."
INVALID_CREDENTIALS_MESSAGE = "Invalid e-mail or password."
MISSING_TOKEN_MESSAGE = "Missing Authorization token."
MALFORMED_HEADER_MESSAGE = "Malformed Authorization header."
INVALID_TOKEN_MESSAGE = "Invalid or expired token."
SUBJECT_MISMATCH_MESSAGE = "Token subject does not match the requested user."
USER_NOT_FOUND_MESSAGE = "User not found."
INTERNAL_ERROR_MESSAGE = "Internal server error."

_BEARER_SCHEME = "bearer"


@dataclass(frozen=True)
class Created:
    user: PublicUser
    status_code: ClassVar[int] = 201

    def body(self) -> Dict[str, Any]:
        return self.user.to_dict()


@dataclass(frozen=True)
class LoggedIn:
    token: str = field(repr=False)
    status_code: ClassVar[int] = 200

    def body(self) -> Dict[str, Any]:
        return {"token": self.token}


@dataclass(frozen=True)
class Retrieved:
    user: PublicUser
    status_code: ClassVar[int] = 200

    def body(self) -> Dict[str, Any]:
        return self.user.to_dict()


@dataclass(frozen=True)
class _Failure:
    message: str
    status_code: ClassVar[int] = 500

    def body(self) -> Dict[str, Any]:
        return {"message": self.message}


@dataclass(frozen=True)
class Conflict(_Failure):
    status_code: ClassVar[int] = 409


@dataclass(frozen=True)
class Unauthorized(_Failure):
    """Authentication failed.

    ``reason`` is for logs and tests only; it never appears in ``body()`` so
    callers cannot tell a bad signature from an expired token.
    """

    reason: Optional[str] = field(default=None, compare=False)
    status_code: ClassVar[int] = 401


@dataclass(frozen=True)
class Forbidden(_Failure):
    status_code: ClassVar[int] = 403


@dataclass(frozen=True)
class NotFound(_Failure):
    status_code: ClassVar[int] = 404


@dataclass(frozen=True)
class InternalFailure(_Failure):
    status_code: ClassVar[int] = 500


RegisterResult = Union[Created, Conflict, InternalFailure]
LoginResult = Union[LoggedIn, Unauthorized, InternalFailure]
RetrieveResult = Union[Retrieved, Unauthorized, Forbidden, NotFound]


def extract_bearer_token(authorization: str) -> Optional[str]:
    """Return the token from ``Bearer <token>`` or ``None`` if the shape is wrong."""

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != _BEARER_SCHEME:
        return None
    return parts[1]


class AuthFlow:
    """Compose the registry, hasher and token service into the use cases.

    With ``restrict_to_subject`` enabled a token only grants access to the
    user it was issued for; otherwise any valid token may read any user.
    """

    def __init__(
        self,
        registry: UserRegistry,
        hasher: CredentialHasher,
        tokens: TokenService,
        *,
        restrict_to_subject: bool = True,
    ) -> None:
        self._registry = registry
        self._hasher = hasher
        self._tokens = tokens
        self._restrict_to_subject = restrict_to_subject

    @property
    def registry(self) -> UserRegistry:
        return self._registry

    @property
    def restrict_to_subject(self) -> bool:
        return self._restrict_to_subject

    def register(self, email: str, name: str, password: str) -> RegisterResult:
        if self._registry.find_by_email(email) is not None:
            logger.info("Registration rejected: email already in use")
            return Conflict(EMAIL_TAKEN_MESSAGE)

        # Hash outside the registry lock.
        try:
            hashed = self._hasher.hash(password)
        except InternalError:
            logger.exception("Password hashing failed during registration")
            return InternalFailure(INTERNAL_ERROR_MESSAGE)

        try:
            user = self._registry.insert(email=email, name=name, password_hash=hashed)
        except ConflictError:
            logger.info("Registration rejected: email claimed by a concurrent request")
            return Conflict(EMAIL_TAKEN_MESSAGE)

        logger.info("Registered user %s", user.id)
        return Created(user.public())

    def login(self, email: str, password: str) -> LoginResult:
        user = self._registry.find_by_email(email)
        if user is None:
            self._hasher.verify_dummy(password)
            logger.info("Login failed: unknown email")
            return Unauthorized(INVALID_CREDENTIALS_MESSAGE, reason="unknown_email")

        if not self._hasher.verify(password, user.password_hash):
            logger.info("Login failed for user %s: wrong password", user.id)
            return Unauthorized(INVALID_CREDENTIALS_MESSAGE, reason="wrong_password")

        try:
            token = self._tokens.issue(user.id, user.email)
        except InternalError:
            logger.exception("Token signing failed for user %s", user.id)
            return InternalFailure(INTERNAL_ERROR_MESSAGE)

        logger.info("User %s logged in", user.id)
        return LoggedIn(token)

    def retrieve_protected_user(
        self,
        authorization: Optional[str],
        user_id: str,
    ) -> RetrieveResult:
        if authorization is None or not authorization.strip():
            return Unauthorized(MISSING_TOKEN_MESSAGE, reason="missing_header")

        token = extract_bearer_token(authorization)
        if token is None:
            return Unauthorized(MALFORMED_HEADER_MESSAGE, reason="malformed_header")

        try:
            claims = self._tokens.verify(token)
        except TokenError as exc:
            log = logger.warning if exc.kind is TokenErrorKind.SIGNATURE_INVALID else logger.info
            log("Rejected bearer token (%s)", exc.kind.value)
            return Unauthorized(INVALID_TOKEN_MESSAGE, reason=exc.kind.value)

        if self._restrict_to_subject and claims.subject != user_id:
            logger.warning("User %s attempted to read user %s", claims.subject, user_id)
            return Forbidden(SUBJECT_MISMATCH_MESSAGE)

        user = self._registry.find_by_id(user_id)
        if user is None:
            return NotFound(USER_NOT_FOUND_MESSAGE)
        return Retrieved(user.public())


__all__ = [
    "AuthFlow",
    "Conflict",
    "Created",
    "Forbidden",
    "InternalFailure",
    "LoggedIn",
    "LoginResult",
    "NotFound",
    "RegisterResult",
    "Retrieved",
    "RetrieveResult",
    "Unauthorized",
    "extract_bearer_token",
]
