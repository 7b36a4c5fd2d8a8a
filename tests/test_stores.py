"""Tests for the in-memory and SQLAlchemy user stores."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cookie_sso.authenticator import SSOCookieAuthenticator
from cookie_sso.exceptions import StoreError
from cookie_sso.ports import UserStore
from cookie_sso.stores import InMemoryUserStore, SqlUserStore
from tests.factories import cookie_headers, make_plugin, make_token

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture()
def sql_store() -> Iterator[SqlUserStore]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    store = SqlUserStore(sessionmaker(bind=engine), collections=["users", "admins"])
    store.create_tables()
    yield store
    engine.dispose()


@pytest.mark.unit
class TestInMemoryUserStore:
    def test_satisfies_port(self) -> None:
        assert isinstance(InMemoryUserStore(), UserStore)

    @pytest.mark.asyncio
    async def test_create_find_update(self, store: InMemoryUserStore) -> None:
        created = await store.create("users", {"email": "a@x.com", "name": "A"})
        found = await store.find_by_email("users", "a@x.com")
        updated = await store.update("users", created["id"], {"name": "B"})

        assert created == {"id": 1, "email": "a@x.com", "name": "A"}
        assert found == created
        assert updated["name"] == "B"

    @pytest.mark.asyncio
    async def test_email_match_is_exact(self, store: InMemoryUserStore) -> None:
        await store.create("users", {"email": "a@x.com"})
        assert await store.find_by_email("users", "A@X.COM") is None

    @pytest.mark.asyncio
    async def test_collections_are_isolated(self, store: InMemoryUserStore) -> None:
        await store.create("users", {"email": "a@x.com"})
        assert await store.find_by_email("admins", "a@x.com") is None

    @pytest.mark.asyncio
    async def test_duplicate_email_rejected(self, store: InMemoryUserStore) -> None:
        await store.create("users", {"email": "a@x.com"})
        with pytest.raises(StoreError):
            await store.create("users", {"email": "a@x.com"})

    @pytest.mark.asyncio
    async def test_update_unknown_user(self, store: InMemoryUserStore) -> None:
        with pytest.raises(StoreError):
            await store.update("users", 42, {"name": "X"})

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, store: InMemoryUserStore) -> None:
        created = await store.create("users", {"email": "a@x.com"})
        created["email"] = "mutated@x.com"
        assert await store.find_by_email("users", "a@x.com") is not None


@pytest.mark.unit
class TestSqlUserStore:
    def test_satisfies_port(self, sql_store: SqlUserStore) -> None:
        assert isinstance(sql_store, UserStore)

    @pytest.mark.asyncio
    async def test_create_and_find(self, sql_store: SqlUserStore) -> None:
        created = await sql_store.create(
            "users",
            {"email": "a@x.com", "first_name": "Ann", "unknown_claim": "dropped"},
        )

        assert created["id"] == 1
        assert created["email"] == "a@x.com"
        assert created["first_name"] == "Ann"
        assert created["email_verified"] is False
        assert "unknown_claim" not in created
        assert await sql_store.find_by_email("users", "a@x.com") == created

    @pytest.mark.asyncio
    async def test_update_applies_sparse_fields(self, sql_store: SqlUserStore) -> None:
        created = await sql_store.create("users", {"email": "a@x.com", "last_name": "Keep"})

        updated = await sql_store.update(
            "users",
            created["id"],
            {"first_name": "New", "email_verified": True, "last_login_at": "2024-05-01T10:00:00Z"},
        )

        assert updated["first_name"] == "New"
        assert updated["last_name"] == "Keep"
        assert updated["email_verified"] is True
        assert isinstance(updated["last_login_at"], datetime)
        assert updated["last_login_at"].year == 2024

    @pytest.mark.asyncio
    async def test_unique_email(self, sql_store: SqlUserStore) -> None:
        await sql_store.create("users", {"email": "a@x.com"})
        with pytest.raises(StoreError) as exc_info:
            await sql_store.create("users", {"email": "a@x.com"})
        assert exc_info.value.operation == "create"

    @pytest.mark.asyncio
    async def test_email_match_is_exact(self, sql_store: SqlUserStore) -> None:
        await sql_store.create("users", {"email": "a@x.com"})
        assert await sql_store.find_by_email("users", "A@X.COM") is None

    @pytest.mark.asyncio
    async def test_unknown_collection(self, sql_store: SqlUserStore) -> None:
        with pytest.raises(LookupError):
            await sql_store.find_by_email("missing", "a@x.com")

    @pytest.mark.asyncio
    async def test_malformed_last_login_does_not_block_existing_user(
        self, sql_store: SqlUserStore
    ) -> None:
        await sql_store.create("users", {"email": "alice@example.com"})
        token = make_token({"lastLoginAt": "Mon, 01 Jan 2024 10:00:00 GMT", "name": "Alice"})

        outcome = await SSOCookieAuthenticator(make_plugin(), sql_store).authenticate(
            cookie_headers(token)
        )

        assert outcome.authenticated
        stored = await sql_store.find_by_email("users", "alice@example.com")
        assert stored is not None
        assert stored["name"] == "Alice"
        assert stored["last_login_at"] is None
