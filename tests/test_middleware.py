"""Tests for SSOCookieAuthMiddleware and the principal dependencies."""

from __future__ import annotations

import asyncio
from typing import Annotated, Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from starlette.requests import Request

from cookie_sso.authenticator import SSOCookieAuthenticator
from cookie_sso.context import NoPrincipalError, get_current_principal, get_optional_principal
from cookie_sso.dependencies import CurrentPrincipal, require_namespace
from cookie_sso.error_handlers import register_exception_handlers
from cookie_sso.middleware import SSOCookieAuthMiddleware
from cookie_sso.stores import InMemoryUserStore
from tests.factories import cookie_headers, make_plugin, make_token


def _make_app(authenticators: list[SSOCookieAuthenticator]) -> FastAPI:
    app = FastAPI()
    register_exception_handlers(app)
    app.add_middleware(SSOCookieAuthMiddleware, authenticators=authenticators)

    @app.get("/public")
    async def public(request: Request) -> dict[str, Any]:
        principal = get_optional_principal()
        return {
            "principal": principal.email if principal else None,
            "state": request.state.sso_principal is not None,
            "outcomes": sorted(request.state.sso_outcomes),
        }

    @app.get("/me")
    async def me(principal: CurrentPrincipal) -> dict[str, Any]:
        return {"email": principal.email, "namespace": principal.namespace}

    @app.get("/admin-only")
    async def admin_only(
        _: Annotated[None, Depends(require_namespace("admin"))],
    ) -> dict[str, bool]:
        return {"ok": True}

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/healthcare/plans")
    async def plans() -> dict[str, str | None]:
        principal = get_optional_principal()
        return {"principal": principal.email if principal else None}

    return app


def _seed(store: InMemoryUserStore, collection: str, email: str = "alice@example.com") -> None:
    asyncio.run(store.create(collection, {"email": email}))


@pytest.mark.unit
class TestPrincipalContext:
    def test_no_principal_outside_request(self) -> None:
        assert get_optional_principal() is None
        with pytest.raises(NoPrincipalError):
            get_current_principal()


@pytest.mark.integration
class TestSSOCookieAuthMiddleware:
    def test_anonymous_request_continues(self, store: InMemoryUserStore) -> None:
        app = _make_app([SSOCookieAuthenticator(make_plugin(), store)])
        response = TestClient(app).get("/public")

        assert response.status_code == 200
        assert response.json() == {"principal": None, "state": False, "outcomes": []}

    def test_valid_cookie_sets_principal(self, store: InMemoryUserStore, token: str) -> None:
        _seed(store, "users")
        app = _make_app([SSOCookieAuthenticator(make_plugin(), store)])

        response = TestClient(app).get("/public", headers=cookie_headers(token))

        assert response.json() == {
            "principal": "alice@example.com",
            "state": True,
            "outcomes": ["app"],
        }

    def test_invalid_cookie_is_anonymous_not_rejected(self, store: InMemoryUserStore) -> None:
        app = _make_app([SSOCookieAuthenticator(make_plugin(), store)])
        response = TestClient(app).get("/public", headers=cookie_headers("garbage"))

        assert response.status_code == 200
        assert response.json()["principal"] is None
        assert response.json()["outcomes"] == ["app"]

    def test_first_authenticated_namespace_wins(
        self, store: InMemoryUserStore, token: str
    ) -> None:
        _seed(store, "admins")
        _seed(store, "users")
        admin = SSOCookieAuthenticator(
            make_plugin("admin", users_collection_slug="admins"), store
        )
        second = MagicMock()
        second.authenticate = AsyncMock()

        response = TestClient(_make_app([admin, second])).get(
            "/me", headers=cookie_headers(token)
        )

        assert response.json() == {"email": "alice@example.com", "namespace": "admin"}
        second.authenticate.assert_not_awaited()

    def test_falls_through_to_next_namespace(
        self, store: InMemoryUserStore, token: str
    ) -> None:
        _seed(store, "users")
        admin = SSOCookieAuthenticator(
            make_plugin("admin", users_collection_slug="admins"), store
        )
        app_ns = SSOCookieAuthenticator(make_plugin("app"), store)

        response = TestClient(_make_app([admin, app_ns])).get(
            "/public", headers=cookie_headers(token)
        )

        assert response.json()["outcomes"] == ["admin", "app"]
        assert response.json()["principal"] == "alice@example.com"

    def test_excluded_path_skips_authentication(self) -> None:
        authenticator = MagicMock()
        authenticator.authenticate = AsyncMock()
        response = TestClient(_make_app([authenticator])).get(
            "/health", headers=cookie_headers(make_token())
        )

        assert response.status_code == 200
        authenticator.authenticate.assert_not_awaited()

    def test_excluded_prefix_matches_whole_segments(
        self, store: InMemoryUserStore, token: str
    ) -> None:
        _seed(store, "users")
        app = _make_app([SSOCookieAuthenticator(make_plugin(), store)])

        response = TestClient(app).get("/healthcare/plans", headers=cookie_headers(token))

        assert response.json() == {"principal": "alice@example.com"}

    def test_context_cleared_after_request(self, store: InMemoryUserStore, token: str) -> None:
        _seed(store, "users")
        client = TestClient(_make_app([SSOCookieAuthenticator(make_plugin(), store)]))

        client.get("/public", headers=cookie_headers(token))
        response = client.get("/public")

        assert response.json()["principal"] is None


@pytest.mark.integration
class TestDependencies:
    def test_current_principal_requires_authentication(self, store: InMemoryUserStore) -> None:
        app = _make_app([SSOCookieAuthenticator(make_plugin(), store)])
        response = TestClient(app).get("/me")

        assert response.status_code == 401
        assert response.headers["content-type"] == "application/problem+json"
        assert response.json()["error_code"] == "NOT_AUTHENTICATED"

    def test_require_namespace_forbids_other_namespace(
        self, store: InMemoryUserStore, token: str
    ) -> None:
        _seed(store, "users")
        app = _make_app([SSOCookieAuthenticator(make_plugin("app"), store)])

        response = TestClient(app).get("/admin-only", headers=cookie_headers(token))

        assert response.status_code == 403
        assert response.json()["context"] == {
            "required_namespace": "admin",
            "principal_namespace": "app",
        }

    def test_require_namespace_allows_matching_namespace(
        self, store: InMemoryUserStore, token: str
    ) -> None:
        _seed(store, "admins")
        admin = SSOCookieAuthenticator(
            make_plugin("admin", users_collection_slug="admins"), store
        )

        response = TestClient(_make_app([admin])).get("/admin-only", headers=cookie_headers(token))

        assert response.json() == {"ok": True}
