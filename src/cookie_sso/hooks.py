"""Invocation of user-supplied ``on_success`` / ``on_error`` hooks."""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


async def run_hook(
    hook: Callable[..., Awaitable[None] | None] | None,
    hook_name: str,
    **kwargs: Any,
) -> None:
    """Call a sync or async hook, logging and discarding its failures.

    Hooks are observers: an exception raised by a hook never changes the
    authentication result that triggered it.
    """
    if hook is None:
        return
    try:
        result = hook(**kwargs)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception("sso_hook_failed", extra={"hook": hook_name})
