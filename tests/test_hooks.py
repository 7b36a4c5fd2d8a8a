"""Tests for success/error hook invocation."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from cookie_sso.hooks import run_hook


@pytest.mark.unit
class TestRunHook:
    @pytest.mark.asyncio
    async def test_none_is_noop(self) -> None:
        await run_hook(None, "on_success", user={})

    @pytest.mark.asyncio
    async def test_sync_hook_called_with_kwargs(self) -> None:
        hook = MagicMock(return_value=None)
        await run_hook(hook, "on_success", user={"id": 1}, request="req")
        hook.assert_called_once_with(user={"id": 1}, request="req")

    @pytest.mark.asyncio
    async def test_async_hook_awaited(self) -> None:
        hook = AsyncMock()
        await run_hook(hook, "on_error", error="e")
        hook.assert_awaited_once_with(error="e")

    @pytest.mark.asyncio
    async def test_failure_is_logged_and_swallowed(self, caplog: pytest.LogCaptureFixture) -> None:
        hook = AsyncMock(side_effect=RuntimeError("hook bug"))
        with caplog.at_level(logging.ERROR, logger="cookie_sso.hooks"):
            await run_hook(hook, "on_success", user={})
        assert "sso_hook_failed" in caplog.messages
