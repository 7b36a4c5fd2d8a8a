"""Tests for the cookie -> origin -> session -> user authentication pipeline."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from cookie_sso.authenticator import AuthOutcome, DenialReason, SSOCookieAuthenticator
from cookie_sso.exceptions import InvalidSessionError, SignUpDeniedError, StoreError
from cookie_sso.stores import InMemoryUserStore
from tests.factories import cookie_headers, make_plugin, make_token


@pytest.mark.unit
class TestAuthOutcome:
    def test_deny_is_not_authenticated(self) -> None:
        outcome = AuthOutcome.deny(DenialReason.NO_COOKIE)
        assert outcome.authenticated is False
        assert outcome.principal is None
        assert outcome.reason is DenialReason.NO_COOKIE


@pytest.mark.unit
class TestSSOCookieAuthenticator:
    @pytest.mark.asyncio
    async def test_no_cookie(self, store: InMemoryUserStore) -> None:
        outcome = await SSOCookieAuthenticator(make_plugin(), store).authenticate({})
        assert outcome.reason is DenialReason.NO_COOKIE
        assert outcome.error is None

    @pytest.mark.asyncio
    async def test_other_cookies_only(self, store: InMemoryUserStore) -> None:
        authenticator = SSOCookieAuthenticator(make_plugin(), store)
        outcome = await authenticator.authenticate({"cookie": "session=abc; theme=dark"})
        assert outcome.reason is DenialReason.NO_COOKIE

    @pytest.mark.asyncio
    async def test_existing_user_allowed(self, store: InMemoryUserStore, token: str) -> None:
        existing = await store.create("users", {"email": "alice@example.com"})
        authenticator = SSOCookieAuthenticator(make_plugin(), store)

        outcome = await authenticator.authenticate(cookie_headers(token))

        assert outcome.authenticated is True
        assert outcome.principal is not None
        assert outcome.principal.user_id == existing["id"]
        assert outcome.principal.namespace == "app"
        assert outcome.principal.collection == "users"
        assert outcome.principal.strategy == "sso-cookie-users"
        assert outcome.identity is not None
        assert outcome.identity.email == "alice@example.com"

    @pytest.mark.asyncio
    async def test_unknown_user_denied_without_sign_up(
        self, store: InMemoryUserStore, token: str
    ) -> None:
        outcome = await SSOCookieAuthenticator(make_plugin(), store).authenticate(
            cookie_headers(token)
        )

        assert outcome.reason is DenialReason.SIGNUP_DENIED
        assert isinstance(outcome.error, SignUpDeniedError)
        assert store.all("users") == []

    @pytest.mark.asyncio
    async def test_unknown_user_created_with_sign_up(self, store: InMemoryUserStore) -> None:
        authenticator = SSOCookieAuthenticator(make_plugin(allow_sign_up=True), store)
        token = make_token({"firstName": "Alice"})

        outcome = await authenticator.authenticate(cookie_headers(token))

        assert outcome.authenticated is True
        assert store.all("users") == [
            {"id": 1, "email": "alice@example.com", "first_name": "Alice"}
        ]

    @pytest.mark.asyncio
    async def test_sign_up_override_prevents_creation(
        self, store: InMemoryUserStore, token: str
    ) -> None:
        authenticator = SSOCookieAuthenticator(make_plugin(allow_sign_up=True), store)

        outcome = await authenticator.authenticate(cookie_headers(token), allow_sign_up=False)

        assert outcome.reason is DenialReason.SIGNUP_DENIED
        assert store.all("users") == []

    @pytest.mark.asyncio
    async def test_invalid_session(self, store: InMemoryUserStore) -> None:
        outcome = await SSOCookieAuthenticator(make_plugin(), store).authenticate(
            cookie_headers("garbage")
        )
        assert outcome.reason is DenialReason.INVALID_SESSION
        assert isinstance(outcome.error, InvalidSessionError)

    @pytest.mark.asyncio
    async def test_origin_rejected(self, store: InMemoryUserStore, token: str) -> None:
        await store.create("users", {"email": "alice@example.com"})
        plugin = make_plugin(allowed_origins=("https://app.example.com",))
        validator = MagicMock()
        validator.validate = AsyncMock()
        authenticator = SSOCookieAuthenticator(plugin, store, validator=validator)

        outcome = await authenticator.authenticate(
            cookie_headers(token, origin="https://evil.example.com")
        )

        assert outcome.reason is DenialReason.ORIGIN_REJECTED
        validator.validate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_allowed_origin_and_missing_origin_pass(
        self, store: InMemoryUserStore, token: str
    ) -> None:
        await store.create("users", {"email": "alice@example.com"})
        plugin = make_plugin(allowed_origins=("https://app.example.com",))
        authenticator = SSOCookieAuthenticator(plugin, store)

        allowed = await authenticator.authenticate(
            cookie_headers(token, origin="https://app.example.com")
        )
        no_origin = await authenticator.authenticate(cookie_headers(token))

        assert allowed.authenticated is True
        assert no_origin.authenticated is True

    @pytest.mark.asyncio
    async def test_empty_allow_list_skips_origin_check(
        self, store: InMemoryUserStore, token: str
    ) -> None:
        await store.create("users", {"email": "alice@example.com"})
        outcome = await SSOCookieAuthenticator(make_plugin(), store).authenticate(
            cookie_headers(token, origin="https://anywhere.example.com")
        )
        assert outcome.authenticated is True

    @pytest.mark.asyncio
    async def test_store_failure(self, token: str) -> None:
        store = MagicMock()
        store.find_by_email = AsyncMock(side_effect=ConnectionError("db down"))

        outcome = await SSOCookieAuthenticator(make_plugin(), store).authenticate(
            cookie_headers(token)
        )

        assert outcome.reason is DenialReason.STORE_ERROR
        assert isinstance(outcome.error, StoreError)
        assert outcome.identity is not None

    @pytest.mark.asyncio
    async def test_unexpected_error_never_raises(self, store: InMemoryUserStore) -> None:
        validator = MagicMock()
        validator.validate = AsyncMock(side_effect=KeyError("boom"))
        authenticator = SSOCookieAuthenticator(make_plugin(), store, validator=validator)

        outcome = await authenticator.authenticate(cookie_headers("anything"))

        assert outcome.reason is DenialReason.INTERNAL_ERROR
        assert isinstance(outcome.error, KeyError)

    @pytest.mark.asyncio
    async def test_aclose_closes_validator(self, store: InMemoryUserStore) -> None:
        validator = MagicMock()
        validator.aclose = AsyncMock()
        await SSOCookieAuthenticator(make_plugin(), store, validator=validator).aclose()
        validator.aclose.assert_awaited_once()
