"""Request-scoped principal context.

A ContextVar holds the SSO principal for the current request. It is set by
``SSOCookieAuthMiddleware`` and read by handlers and dependencies without
passing the principal explicitly.

Usage:
    from cookie_sso.context import get_optional_principal

    principal = get_optional_principal()  # None for anonymous requests
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from contextvars import Token

    from cookie_sso.principal import SSOPrincipal

_principal_context: ContextVar[SSOPrincipal | None] = ContextVar(
    "sso_principal_context", default=None
)


class NoPrincipalError(RuntimeError):
    """Raised when the principal is read outside an authenticated request."""

    def __init__(self) -> None:
        super().__init__(
            "No SSO principal available. "
            "Ensure this code runs within a request handled by SSOCookieAuthMiddleware."
        )


def set_principal_context(principal: SSOPrincipal) -> Token[SSOPrincipal | None]:
    """Set the authenticated principal for the current request.

    Args:
        principal: Principal produced by the authenticator.

    Returns:
        Token for resetting the context.
    """
    return _principal_context.set(principal)


def clear_principal_context(token: Token[SSOPrincipal | None]) -> None:
    """Reset the principal context using the provided token."""
    _principal_context.reset(token)


def get_current_principal() -> SSOPrincipal:
    """Get the authenticated principal.

    Raises:
        NoPrincipalError: If no principal is set for this request.
    """
    principal = _principal_context.get()
    if principal is None:
        raise NoPrincipalError()
    return principal


def get_optional_principal() -> SSOPrincipal | None:
    """Get the authenticated principal if available, or None."""
    return _principal_context.get()
