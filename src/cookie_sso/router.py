"""Per-namespace SSO auth endpoints.

For an auth namespace ``{name}`` the router exposes:

- ``GET /{name}/auth/login``   -- redirect to the provider, or provision and
  redirect to the success path; login errors redirect to the error path
- ``GET /{name}/auth/logout``  -- redirect to the provider logout
- ``GET /{name}/auth/session`` -- ``{"authenticated": bool, "user"?: {...}}``
- ``GET /users/me``            -- admin-panel compatible "me" response
  (only when ``use_admin`` is set)

Handlers reuse an outcome already cached on ``request.state.sso_outcomes``
for the same namespace, so a request provisions its user at most once.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import APIRouter
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.requests import Request  # noqa: TC002 -- FastAPI needs it at runtime

from cookie_sso.authenticator import AuthOutcome, DenialReason
from cookie_sso.exceptions import DomainError, InvalidSessionError
from cookie_sso.hooks import run_hook
from cookie_sso.redirects import (
    build_error_redirect,
    build_login_redirect,
    build_logout_redirect,
    classify_login_error,
    get_base_url,
)

if TYPE_CHECKING:
    from cookie_sso.authenticator import SSOCookieAuthenticator

logger = logging.getLogger(__name__)

_GENERIC_LOGIN_ERROR = "Authentication failed"


async def resolve_outcome(
    request: Request,
    authenticator: SSOCookieAuthenticator,
    *,
    allow_sign_up: bool | None = None,
) -> AuthOutcome:
    """Return this request's outcome for the authenticator's namespace.

    Uses the outcome cached on ``request.state.sso_outcomes`` by the
    middleware, authenticating (and caching) only when none exists yet.
    """
    outcomes: dict[str, AuthOutcome] | None = getattr(request.state, "sso_outcomes", None)
    if outcomes is None:
        outcomes = {}
        request.state.sso_outcomes = outcomes
    namespace = authenticator.config.name
    cached = outcomes.get(namespace)
    if cached is not None:
        return cached
    outcome = await authenticator.authenticate(request.headers, allow_sign_up=allow_sign_up)
    outcomes[namespace] = outcome
    return outcome


def create_auth_router(authenticator: SSOCookieAuthenticator, api_prefix: str = "") -> APIRouter:
    """Build the auth endpoints for one namespace.

    Args:
        authenticator: Authenticator for the namespace.
        api_prefix: Prefix the router is mounted under (e.g. ``"/api"``);
            used to build return URLs back into these endpoints.

    Returns:
        APIRouter to include with ``prefix=api_prefix``.
    """
    config = authenticator.config
    namespace = config.name
    login_path = f"{api_prefix}/{namespace}/auth/login"
    router = APIRouter(tags=[f"auth:{namespace}"])

    @router.get(f"/{namespace}/auth/login", name=f"{namespace}_auth_login")
    async def login(request: Request) -> RedirectResponse:
        """Start or complete the SSO login for this namespace."""
        base_url = get_base_url(request)
        provider_redirect = build_login_redirect(config.sso.login_url, f"{base_url}{login_path}")

        if authenticator.get_cookie(request.headers) is None:
            return RedirectResponse(provider_redirect, status_code=302)

        outcome = await resolve_outcome(request, authenticator)

        if outcome.principal is not None:
            await run_hook(
                config.on_success,
                "on_success",
                user=outcome.principal.user,
                identity=outcome.identity,
                request=request,
            )
            return RedirectResponse(
                f"{base_url}{config.success_redirect_path}", status_code=302
            )

        error = outcome.error
        if isinstance(error, InvalidSessionError) and not error.missing_email:
            # Expired or unknown session: send the user back through the provider.
            return RedirectResponse(provider_redirect, status_code=302)

        if error is None:
            error = InvalidSessionError(reason=str(outcome.reason))
        await run_hook(config.on_error, "on_error", error=error, request=request)

        message = error.message if isinstance(error, DomainError) else _GENERIC_LOGIN_ERROR
        target = build_error_redirect(
            base_url,
            config.error_redirect_path,
            classify_login_error(error),
            message,
            login_path,
        )
        logger.info(
            "sso_login_failed",
            extra={"namespace": namespace, "reason": str(outcome.reason)},
        )
        return RedirectResponse(target, status_code=302)

    @router.get(f"/{namespace}/auth/logout", name=f"{namespace}_auth_logout")
    async def logout(request: Request) -> RedirectResponse:
        """Redirect to the provider logout, returning to the app afterwards."""
        base_url = get_base_url(request)
        return_url = f"{base_url}/admin/login" if config.use_admin else f"{base_url}/"
        return RedirectResponse(
            build_logout_redirect(config.sso.logout_url, return_url), status_code=302
        )

    @router.get(f"/{namespace}/auth/session", name=f"{namespace}_auth_session")
    async def session(request: Request) -> Any:
        """Report whether the SSO cookie maps to a user of this namespace."""
        outcome = await resolve_outcome(request, authenticator, allow_sign_up=False)

        if outcome.principal is not None:
            return {
                "user": jsonable_encoder(outcome.principal.as_user_payload()),
                "authenticated": True,
            }
        if outcome.reason in (DenialReason.STORE_ERROR, DenialReason.INTERNAL_ERROR):
            return JSONResponse({"error": "Failed to check session"}, status_code=500)
        return {"authenticated": False}

    if config.use_admin:

        @router.get("/users/me", name=f"{namespace}_users_me")
        async def users_me(request: Request) -> Any:
            """Admin-panel "me" endpoint; null user for other collections."""
            principal = getattr(request.state, "sso_principal", None)
            is_admin_user = (
                principal is not None and principal.collection == config.users_collection_slug
            )
            return {
                "user": jsonable_encoder(principal.as_user_payload()) if is_admin_user else None,
                "collection": config.users_collection_slug,
                "token": None,
                "exp": None,
            }

    return router
