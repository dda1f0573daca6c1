"""In-memory user registry shared by concurrent request handlers."""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .errors import ConflictError
from .models import User


def normalize_email(email: str) -> str:
    """Emails are compared case-insensitively and without surrounding whitespace."""

    return email.strip().lower()


class UserRegistry:
    """Hold user records keyed by id with a unique email index.

    A durable implementation only has to provide the same ``find_by_email``,
    ``find_by_id`` and ``insert`` methods with the same uniqueness guarantee.
    """

    def __init__(self) -> None:
        self._users: Dict[str, User] = {}
        self._ids_by_email: Dict[str, str] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)

    def find_by_email(self, email: str) -> Optional[User]:
        key = normalize_email(email)
        with self._lock:
            user_id = self._ids_by_email.get(key)
            if user_id is None:
                return None
            return self._users[user_id]

    def find_by_id(self, user_id: str) -> Optional[User]:
        with self._lock:
            return self._users.get(user_id)

    def insert(self, *, email: str, name: str, password_hash: str) -> User:
        """Store a new user, raising :class:`ConflictError` if the email is taken."""

        key = normalize_email(email)
        with self._lock:
            if key in self._ids_by_email:
                raise ConflictError("A user with that email already exists")

            user_id = self._next_id()
            user = User(
                id=user_id,
                email=key,
                name=name,
                password_hash=password_hash,
                created_at=datetime.now(timezone.utc),
            )
            self._users[user_id] = user
            self._ids_by_email[key] = user_id
        return user

    def list_users(self) -> List[User]:
        with self._lock:
            return list(self._users.values())

    def _next_id(self) -> str:
        while True:
            candidate = str(uuid.uuid4())
            if candidate not in self._users:
                return candidate


__all__ = ["UserRegistry", "normalize_email"]
