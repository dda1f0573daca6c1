"""Password hashing backed by bcrypt (SHA-256 pre-hashed) through passlib."""

from __future__ import annotations

import secrets

from passlib.context import CryptContext

from .errors import InternalError

DEFAULT_ROUNDS = 12


class CredentialHasher:
    """Salted one-way hashing and constant-time verification of passwords.

    Secrets are HMAC-SHA256 digested before bcrypt, so every byte of a long
    password counts and NUL bytes are accepted.

    ``rounds`` is the bcrypt work factor. Production code should keep
    :data:`DEFAULT_ROUNDS`; tests may lower it to the bcrypt minimum of 4.
    """

    def __init__(self, *, rounds: int = DEFAULT_ROUNDS) -> None:
        self._context = CryptContext(
            schemes=["bcrypt_sha256"],
            deprecated="auto",
            bcrypt_sha256__rounds=rounds,
        )
        self._rounds = rounds
        # Used to spend the same verification cost when no stored hash exists.
        self._dummy_hash = self.hash(secrets.token_urlsafe(16))

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, plaintext: str) -> str:
        try:
            return self._context.hash(plaintext)
        except (ValueError, TypeError) as exc:
            raise InternalError("Unable to hash password") from exc

    def verify(self, plaintext: str, hashed: str) -> bool:
        """Return ``True`` if ``plaintext`` matches ``hashed``; never raises."""

        if not hashed:
            return False
        try:
            return self._context.verify(plaintext, hashed)
        except (ValueError, TypeError):
            return False

    def verify_dummy(self, plaintext: str) -> bool:
        """Burn one verification against a throwaway hash and return ``False``."""

        self.verify(plaintext, self._dummy_hash)
        return False


__all__ = ["CredentialHasher", "DEFAULT_ROUNDS"]
