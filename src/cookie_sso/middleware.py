"""SSO cookie authentication middleware.

Authenticates every request against the configured auth namespaces, in
order, and exposes the first successful principal to downstream handlers:

- ``request.state.sso_principal`` -- SSOPrincipal or None
- ``request.state.sso_outcomes``  -- namespace -> AuthOutcome (reused by
  later lookups in the same request, so a user is provisioned at most once)
- principal ContextVar            -- read by ``cookie_sso.dependencies``

The middleware never rejects a request. Anonymous requests continue with no
principal; protected routes opt in through ``CurrentPrincipal`` or
``require_principal``.

Requests without any SSO cookie skip the pipeline entirely. The auth
endpoints themselves are excluded by ``create_app``; they authenticate with
their own sign-up policy.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from starlette.middleware.base import BaseHTTPMiddleware

from cookie_sso.context import clear_principal_context, set_principal_context

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from starlette.requests import Request
    from starlette.responses import Response

    from cookie_sso.authenticator import AuthOutcome, SSOCookieAuthenticator
    from cookie_sso.principal import SSOPrincipal

logger = logging.getLogger(__name__)

# Default paths excluded from SSO authentication.
DEFAULT_EXCLUDED_PREFIXES = (
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
)


class SSOCookieAuthMiddleware(BaseHTTPMiddleware):
    """Attach the SSO principal (if any) to each request.

    Request flow:
    1. Skip excluded paths
    2. For each authenticator in order: authenticate, cache the outcome
    3. Stop at the first authenticated outcome (first match wins)
    4. Set request.state and the principal ContextVar, call next handler
    """

    def __init__(
        self,
        app: Any,
        authenticators: Sequence[SSOCookieAuthenticator] = (),
        excluded_prefixes: tuple[str, ...] | None = None,
    ) -> None:
        """Initialize the middleware.

        Args:
            app: ASGI application (passed by Starlette).
            authenticators: One authenticator per auth namespace, in
                priority order.
            excluded_prefixes: Path prefixes to skip auth on.
        """
        super().__init__(app)
        self._authenticators = tuple(authenticators)
        self._excluded_prefixes = (
            excluded_prefixes if excluded_prefixes is not None else DEFAULT_EXCLUDED_PREFIXES
        )

    def _is_excluded(self, path: str) -> bool:
        """Match whole path segments, so ``/health`` leaves ``/healthcare`` authenticated."""
        for prefix in self._excluded_prefixes:
            if prefix.endswith("/"):
                if path.startswith(prefix):
                    return True
            elif path == prefix or path.startswith(f"{prefix}/"):
                return True
        return False

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Authenticate the request and continue to the next handler.

        Args:
            request: Incoming HTTP request.
            call_next: Next middleware/handler in stack.

        Returns:
            Response from the downstream handler.
        """
        request.state.sso_principal = None
        request.state.sso_outcomes = {}

        if self._is_excluded(request.url.path):
            return await call_next(request)

        principal = await self._authenticate(request)
        if principal is None:
            return await call_next(request)

        request.state.sso_principal = principal
        token = set_principal_context(principal)
        try:
            return await call_next(request)
        finally:
            clear_principal_context(token)

    async def _authenticate(self, request: Request) -> SSOPrincipal | None:
        outcomes: dict[str, AuthOutcome] = request.state.sso_outcomes
        for authenticator in self._authenticators:
            if authenticator.get_cookie(request.headers) is None:
                continue
            outcome = await authenticator.authenticate(request.headers)
            outcomes[authenticator.config.name] = outcome
            if outcome.principal is not None:
                return outcome.principal
        if outcomes:
            logger.debug(
                "sso_request_anonymous",
                extra={"path": request.url.path, "namespaces": sorted(outcomes)},
            )
        return None
