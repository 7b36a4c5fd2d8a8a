"""Shared fixtures for cookie-sso tests."""

from __future__ import annotations

import pytest

from cookie_sso.settings import get_sso_settings
from cookie_sso.stores import InMemoryUserStore
from tests.factories import make_token


@pytest.fixture()
def store() -> InMemoryUserStore:
    """Empty in-memory user store."""
    return InMemoryUserStore()


@pytest.fixture()
def token() -> str:
    """Valid token for alice@example.com."""
    return make_token()


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    get_sso_settings.cache_clear()
