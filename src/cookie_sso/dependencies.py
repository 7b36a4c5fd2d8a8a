"""FastAPI dependency functions for SSO-protected routes.

Usage:
    from cookie_sso.dependencies import CurrentPrincipal, require_namespace

    @router.get("/dashboard")
    def dashboard(principal: CurrentPrincipal):
        return {"email": principal.email}

    @router.delete("/admin/purge")
    def purge(
        _: Annotated[None, Depends(require_namespace("admin"))],
    ):
        ...
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from fastapi import Depends

from cookie_sso.context import get_optional_principal
from cookie_sso.exceptions import AuthenticationError, AuthorizationError
from cookie_sso.principal import SSOPrincipal

if TYPE_CHECKING:
    from collections.abc import Callable


def require_principal() -> SSOPrincipal:
    """FastAPI dependency that returns the authenticated SSO principal.

    Returns:
        Principal set by SSOCookieAuthMiddleware.

    Raises:
        AuthenticationError: If the request carries no valid SSO session.
    """
    principal = get_optional_principal()
    if principal is None:
        raise AuthenticationError(
            "Authentication required",
            error_code="NOT_AUTHENTICATED",
        )
    return principal


# Type alias for cleaner endpoint signatures
CurrentPrincipal = Annotated[SSOPrincipal, Depends(require_principal)]


def require_namespace(namespace: str) -> Callable[..., None]:
    """Factory returning a dependency that enforces the auth namespace.

    Args:
        namespace: Auth plugin name the principal must come from.

    Returns:
        FastAPI dependency raising AuthorizationError for principals
        authenticated by a different namespace.
    """

    def _check_namespace(
        principal: Annotated[SSOPrincipal, Depends(require_principal)],
    ) -> None:
        if principal.namespace != namespace:
            raise AuthorizationError(
                f"Namespace '{namespace}' required",
                context={
                    "required_namespace": namespace,
                    "principal_namespace": principal.namespace,
                },
            )

    return _check_namespace
