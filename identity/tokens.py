"""Issue and verify signed bearer tokens.

Tokens are HS256 JWTs carrying ``sub``, ``email``, ``iat`` and ``exp``. The
signing key is handed to :class:`TokenService` once at startup and is not
reachable from outside it.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping

import jwt

from .errors import InternalError, TokenError, TokenErrorKind
from .models import TokenClaims

ALGORITHM = "HS256"
DEFAULT_TOKEN_TTL = timedelta(hours=24)

_REQUIRED_CLAIMS = ["sub", "email", "iat", "exp"]
_DECODE_OPTIONS: Dict[str, Any] = {
    "require": _REQUIRED_CLAIMS,
    # Expiry is checked against the service clock once the signature holds.
    "verify_exp": False,
    "verify_iat": False,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _from_timestamp(value: int) -> datetime:
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise TokenError(TokenErrorKind.MALFORMED, "Timestamp claim out of range") from exc


class TokenService:
    """Stateless issuer and verifier of time-limited bearer tokens."""

    def __init__(
        self,
        signing_key: str,
        *,
        ttl: timedelta = DEFAULT_TOKEN_TTL,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not signing_key:
            raise ValueError("A signing key must be provided")
        if ttl <= timedelta(0):
            raise ValueError("Token lifetime must be positive")
        self._key = signing_key
        self._ttl = ttl
        self._clock = clock or _utcnow

    def __repr__(self) -> str:
        return f"{type(self).__name__}(ttl={self._ttl!r})"

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    def issue(self, subject_id: str, email: str) -> str:
        issued_at = int(self._clock().timestamp())
        payload = {
            "sub": subject_id,
            "email": email,
            "iat": issued_at,
            "exp": issued_at + int(self._ttl.total_seconds()),
        }
        try:
            return jwt.encode(payload, self._key, algorithm=ALGORITHM)
        except (jwt.PyJWTError, TypeError, ValueError) as exc:
            raise InternalError("Unable to sign token") from exc

    def verify(self, token: str) -> TokenClaims:
        """Return the trusted claims of ``token`` or raise :class:`TokenError`.

        The signature is verified before any claim is read, and expiry is
        checked only for tokens whose signature holds, so an expired token is
        reported as ``EXPIRED`` rather than ``SIGNATURE_INVALID``.
        """

        if not token or not token.strip():
            raise TokenError(TokenErrorKind.MALFORMED, "Token is empty")

        try:
            payload = jwt.decode(
                token,
                self._key,
                algorithms=[ALGORITHM],
                options=_DECODE_OPTIONS,
            )
        except jwt.InvalidSignatureError as exc:
            raise TokenError(TokenErrorKind.SIGNATURE_INVALID, str(exc)) from exc
        except jwt.InvalidAlgorithmError as exc:
            raise TokenError(TokenErrorKind.SIGNATURE_INVALID, str(exc)) from exc
        except jwt.InvalidTokenError as exc:
            raise TokenError(TokenErrorKind.MALFORMED, str(exc)) from exc

        claims = self._parse_claims(payload)
        if self._clock() >= claims.expires_at:
            raise TokenError(TokenErrorKind.EXPIRED, "Token has expired")
        return claims

    @staticmethod
    def _parse_claims(payload: Mapping[str, Any]) -> TokenClaims:
        subject = payload.get("sub")
        email = payload.get("email")
        issued_at = payload.get("iat")
        expires_at = payload.get("exp")

        if not isinstance(subject, str) or not subject:
            raise TokenError(TokenErrorKind.MALFORMED, "Subject claim must be a non-empty string")
        if not isinstance(email, str):
            raise TokenError(TokenErrorKind.MALFORMED, "Email claim must be a string")
        if not _is_int(issued_at) or not _is_int(expires_at):
            raise TokenError(TokenErrorKind.MALFORMED, "Timestamp claims must be integers")

        return TokenClaims(
            subject=subject,
            email=email,
            issued_at=_from_timestamp(issued_at),
            expires_at=_from_timestamp(expires_at),
        )


__all__ = ["ALGORITHM", "DEFAULT_TOKEN_TTL", "TokenService"]
