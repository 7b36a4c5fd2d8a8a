"""Cookie SSO -- external SSO cookie authentication for FastAPI.

Validates a cookie set by an external SSO provider (as a signed JWT or via a
remote session endpoint), provisions the matching local user just in time,
and exposes login, logout and session endpoints per auth namespace.
"""

from cookie_sso.app_factory import build_authenticators, create_app
from cookie_sso.authenticator import AuthOutcome, DenialReason, SSOCookieAuthenticator
from cookie_sso.config import (
    AuthPluginConfig,
    FieldMapping,
    JWTValidation,
    RemoteSessionValidation,
    SSOProviderConfig,
)
from cookie_sso.dependencies import CurrentPrincipal, require_namespace, require_principal
from cookie_sso.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigInvalidError,
    DomainError,
    InvalidSessionError,
    OriginRejectedError,
    SignUpDeniedError,
    StoreError,
)
from cookie_sso.identity import SSOIdentity
from cookie_sso.middleware import SSOCookieAuthMiddleware
from cookie_sso.ports import UserStore
from cookie_sso.principal import SSOPrincipal
from cookie_sso.settings import SSOSettings, get_sso_settings
from cookie_sso.stores import InMemoryUserStore, SqlUserStore
from cookie_sso.validator import SessionValidator

__all__ = [
    "AuthOutcome",
    "AuthPluginConfig",
    "AuthenticationError",
    "AuthorizationError",
    "ConfigInvalidError",
    "CurrentPrincipal",
    "DenialReason",
    "DomainError",
    "FieldMapping",
    "InMemoryUserStore",
    "InvalidSessionError",
    "JWTValidation",
    "OriginRejectedError",
    "RemoteSessionValidation",
    "SSOCookieAuthMiddleware",
    "SSOCookieAuthenticator",
    "SSOIdentity",
    "SSOPrincipal",
    "SSOProviderConfig",
    "SSOSettings",
    "SessionValidator",
    "SignUpDeniedError",
    "SqlUserStore",
    "StoreError",
    "UserStore",
    "build_authenticators",
    "create_app",
    "get_sso_settings",
    "require_namespace",
    "require_principal",
]
