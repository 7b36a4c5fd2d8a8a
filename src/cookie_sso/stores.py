"""User store adapters.

Two implementations of the ``UserStore`` port:

- ``InMemoryUserStore`` for tests and single-process demos.
- ``SqlUserStore`` backed by one SQLAlchemy table per user collection.

Both enforce unique email per collection, so concurrent first logins of the
same user produce one record and a ``StoreError`` for the loser.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
import logging
from datetime import datetime
from functools import partial
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    insert,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError

from cookie_sso.exceptions import StoreError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from sqlalchemy.orm import Session

    from cookie_sso.ports import UserRecord

logger = logging.getLogger(__name__)


class InMemoryUserStore:
    """Dict-backed user store with integer ids.

    Records are copied in and out so callers never share mutable state with
    the store.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[int, UserRecord]] = {}
        self._ids = itertools.count(1)

    def _records(self, collection: str) -> dict[int, UserRecord]:
        return self._collections.setdefault(collection, {})

    async def find_by_email(self, collection: str, email: str) -> UserRecord | None:
        for record in self._records(collection).values():
            if record.get("email") == email:
                return copy.deepcopy(record)
        return None

    async def create(self, collection: str, data: dict[str, Any]) -> UserRecord:
        records = self._records(collection)
        email = data.get("email")
        if any(record.get("email") == email for record in records.values()):
            raise StoreError(
                "User with this email already exists",
                operation="create",
                collection=collection,
            )
        user_id = next(self._ids)
        records[user_id] = {**copy.deepcopy(data), "id": user_id}
        return copy.deepcopy(records[user_id])

    async def update(self, collection: str, user_id: Any, data: dict[str, Any]) -> UserRecord:
        records = self._records(collection)
        if user_id not in records:
            raise StoreError(
                f"User {user_id!r} not found",
                operation="update",
                collection=collection,
            )
        records[user_id].update(copy.deepcopy(data))
        return copy.deepcopy(records[user_id])

    def all(self, collection: str) -> list[UserRecord]:
        """Snapshot of every record in a collection, in insertion order."""
        return [copy.deepcopy(record) for record in self._records(collection).values()]


def users_table(metadata: MetaData, collection: str) -> Table:
    """Define the users table for a collection slug."""
    return Table(
        collection,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("email", String(320), nullable=False, unique=True),
        Column("name", String(255)),
        Column("first_name", String(255)),
        Column("last_name", String(255)),
        Column("profile_picture_url", String(2048)),
        Column("email_verified", Boolean, nullable=False, default=False),
        Column("last_login_at", DateTime(timezone=True)),
    )


class SqlUserStore:
    """SQLAlchemy-backed user store.

    Queries run on sync sessions in a worker thread via ``asyncio.to_thread``
    so the event loop is never blocked. Keys without a matching column are
    dropped on write.

    Args:
        session_factory: Callable returning a SQLAlchemy Session context manager.
        collections: Collection slugs to define tables for.
    """

    def __init__(self, session_factory: Callable[[], Session], collections: Iterable[str]) -> None:
        self._session_factory = session_factory
        self._metadata = MetaData()
        self._tables = {slug: users_table(self._metadata, slug) for slug in collections}

    @property
    def metadata(self) -> MetaData:
        return self._metadata

    def create_tables(self) -> None:
        """Create missing collection tables."""
        with self._session_factory() as session:
            self._metadata.create_all(session.get_bind())

    def _table(self, collection: str) -> Table:
        try:
            return self._tables[collection]
        except KeyError:
            raise LookupError(f"Unknown user collection {collection!r}") from None

    # -- Async port methods --

    async def find_by_email(self, collection: str, email: str) -> UserRecord | None:
        return await asyncio.to_thread(partial(self._find_by_email_sync, collection, email))

    async def create(self, collection: str, data: dict[str, Any]) -> UserRecord:
        return await asyncio.to_thread(partial(self._create_sync, collection, data))

    async def update(self, collection: str, user_id: Any, data: dict[str, Any]) -> UserRecord:
        return await asyncio.to_thread(partial(self._update_sync, collection, user_id, data))

    # -- Sync implementations --

    def _find_by_email_sync(self, collection: str, email: str) -> UserRecord | None:
        table = self._table(collection)
        with self._session_factory() as session:
            row = (
                session.execute(select(table).where(table.c.email == email).limit(1))
                .mappings()
                .first()
            )
            return dict(row) if row is not None else None

    def _create_sync(self, collection: str, data: dict[str, Any]) -> UserRecord:
        table = self._table(collection)
        values = self._column_values(table, data)
        with self._session_factory() as session:
            try:
                result = session.execute(insert(table).values(**values))
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise StoreError(
                    "User with this email already exists",
                    operation="create",
                    collection=collection,
                ) from exc
            user_id = result.inserted_primary_key[0]  # type: ignore[index]
            return self._get_sync(session, table, user_id)

    def _update_sync(self, collection: str, user_id: Any, data: dict[str, Any]) -> UserRecord:
        table = self._table(collection)
        values = self._column_values(table, data)
        with self._session_factory() as session:
            if values:
                session.execute(update(table).where(table.c.id == user_id).values(**values))
                session.commit()
            return self._get_sync(session, table, user_id)

    def _get_sync(self, session: Session, table: Table, user_id: Any) -> UserRecord:
        row = session.execute(select(table).where(table.c.id == user_id)).mappings().first()
        if row is None:
            raise StoreError(
                f"User {user_id!r} not found",
                operation="get",
                collection=table.name,
            )
        return dict(row)

    @staticmethod
    def _column_values(table: Table, data: dict[str, Any]) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for key, value in data.items():
            if key == "id" or key not in table.c:
                continue
            if isinstance(table.c[key].type, DateTime) and isinstance(value, str):
                value = datetime.fromisoformat(value)
            values[key] = value
        dropped = sorted(set(data) - set(values) - {"id"})
        if dropped:
            logger.debug(
                "user_store_fields_dropped",
                extra={"table": table.name, "fields": dropped},
            )
        return values
