"""Domain models for registered users and decoded token claims."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict


@dataclass(frozen=True)
class PublicUser:
    """Caller-facing view of a user, without the credential."""

    id: str
    email: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "email": self.email, "name": self.name}


@dataclass(frozen=True)
class User:
    """Represents a user account held by the registry."""

    id: str
    email: str
    name: str
    password_hash: str = field(repr=False)
    created_at: datetime

    def public(self) -> PublicUser:
        return PublicUser(id=self.id, email=self.email, name=self.name)


@dataclass(frozen=True)
class TokenClaims:
    """Trusted claim set extracted from a verified bearer token."""

    subject: str
    email: str
    issued_at: datetime
    expires_at: datetime


__all__ = ["PublicUser", "TokenClaims", "User"]
