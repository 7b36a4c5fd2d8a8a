"""FastAPI application factory wiring SSO cookie authentication.

Provides :func:`create_app` which builds one authenticator per auth plugin and
wires the middleware, error handlers, per-namespace routers and lifespan.
"""

from __future__ import annotations

import dataclasses
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from cookie_sso.authenticator import SSOCookieAuthenticator
from cookie_sso.error_handlers import register_exception_handlers
from cookie_sso.exceptions import ConfigInvalidError
from cookie_sso.middleware import DEFAULT_EXCLUDED_PREFIXES, SSOCookieAuthMiddleware
from cookie_sso.observability import configure_logging
from cookie_sso.router import create_auth_router
from cookie_sso.settings import get_sso_settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from fastapi import APIRouter

    from cookie_sso.config import AuthPluginConfig
    from cookie_sso.observability import LoggingSettings
    from cookie_sso.ports import UserStore
    from cookie_sso.settings import SSOSettings

logger = logging.getLogger(__name__)


def build_authenticators(
    plugins: Sequence[AuthPluginConfig],
    store: UserStore,
) -> tuple[SSOCookieAuthenticator, ...]:
    """Create one authenticator per plugin, rejecting duplicate namespaces.

    Raises:
        ConfigInvalidError: If two plugins share a name.
    """
    seen: set[str] = set()
    authenticators: list[SSOCookieAuthenticator] = []
    for plugin in plugins:
        if plugin.name in seen:
            raise ConfigInvalidError("name", f"Duplicate auth plugin name {plugin.name!r}")
        seen.add(plugin.name)
        authenticators.append(SSOCookieAuthenticator(plugin, store))
    return tuple(authenticators)


def create_app(
    plugins: Sequence[AuthPluginConfig],
    store: UserStore,
    *,
    settings: SSOSettings | None = None,
    logging_settings: LoggingSettings | None = None,
    extra_routers: Sequence[APIRouter] = (),
    title: str = "cookie-sso",
) -> FastAPI:
    """Create a FastAPI application authenticated by external SSO cookies.

    Args:
        plugins: Auth namespaces, in middleware priority order.
        store: User store shared by every namespace.
        settings: SSO settings supplying ``api_prefix`` and the default
            origin allow-list for plugins that set none. Loaded from the
            environment when ``None``.
        logging_settings: Passed to ``configure_logging`` on startup.
        extra_routers: Application routers to include after the auth routers.
        title: OpenAPI title.

    Returns:
        Configured FastAPI application instance.

    Raises:
        ConfigInvalidError: If plugin names are not unique.
    """
    settings = settings or get_sso_settings()
    default_origins = settings.allowed_origin_list
    if default_origins:
        plugins = [
            plugin
            if plugin.allowed_origins
            else dataclasses.replace(plugin, allowed_origins=default_origins)
            for plugin in plugins
        ]
    authenticators = build_authenticators(plugins, store)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(logging_settings)
        for authenticator in authenticators:
            logger.info("sso_plugin_registered", extra=authenticator.config.describe())
        try:
            yield
        finally:
            for authenticator in authenticators:
                await authenticator.aclose()
            logger.info("sso_plugins_closed", extra={"count": len(authenticators)})

    app = FastAPI(title=title, lifespan=lifespan)
    app.state.sso_authenticators = authenticators

    register_exception_handlers(app)
    auth_prefixes = tuple(
        f"{settings.api_prefix}/{authenticator.config.name}/auth/"
        for authenticator in authenticators
    )
    app.add_middleware(
        SSOCookieAuthMiddleware,
        authenticators=authenticators,
        excluded_prefixes=(*DEFAULT_EXCLUDED_PREFIXES, *auth_prefixes),
    )

    for authenticator in authenticators:
        app.include_router(
            create_auth_router(authenticator, api_prefix=settings.api_prefix),
            prefix=settings.api_prefix,
        )
    for router in extra_routers:
        app.include_router(router)

    return app
