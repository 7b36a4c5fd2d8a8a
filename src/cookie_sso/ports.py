"""User store port.

The engine never owns user storage; it reads and writes user records
through this protocol. Implementations must guarantee exact, case-sensitive
email matching and should enforce a unique constraint on email, since
concurrent first logins of the same unknown user are not serialized here.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

UserRecord = dict[str, Any]


@runtime_checkable
class UserStore(Protocol):
    """Async find/create/update contract over named user collections."""

    async def find_by_email(self, collection: str, email: str) -> UserRecord | None:
        """Return the first user whose email equals ``email``, or None."""
        ...

    async def create(self, collection: str, data: dict[str, Any]) -> UserRecord:
        """Insert a user and return the stored record (including ``id``)."""
        ...

    async def update(
        self, collection: str, user_id: Any, data: dict[str, Any]
    ) -> UserRecord:
        """Apply ``data`` to the user ``user_id`` and return the stored record."""
        ...
