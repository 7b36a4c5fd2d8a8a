"""Immutable SSO provider and plugin configuration.

Configuration objects are built once at startup, validated eagerly, and then
shared read-only by every request. Invalid configuration raises
``ConfigInvalidError`` so the application fails fast instead of denying every
request at runtime.

The validation mode is a tagged union: a provider is configured with either
``JWTValidation`` (the cookie is a signed JWT) or ``RemoteSessionValidation``
(the cookie is forwarded to a session endpoint). The choice is made once in
``SSOProviderConfig.create`` and never re-evaluated per request.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from cookie_sso.exceptions import ConfigInvalidError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

JWTAlgorithm = Literal["HS256", "HS384", "HS512"]

SUPPORTED_ALGORITHMS: frozenset[str] = frozenset({"HS256", "HS384", "HS512"})
DEFAULT_TIMEOUT_MS = 5000


@dataclass(frozen=True, slots=True)
class FieldMapping:
    """Source paths for each canonical identity field.

    Paths are dot-separated for nested lookup (e.g. ``"profile.email"``).
    Empty paths fall back to the default lowerCamel source name.
    """

    email: str = "email"
    name: str = "name"
    first_name: str = "firstName"
    last_name: str = "lastName"
    profile_picture_url: str = "profilePictureUrl"
    email_verified: str = "emailVerified"
    last_login_at: str = "lastLoginAt"

    def __post_init__(self) -> None:
        for name in self.__dataclass_fields__:
            if not getattr(self, name):
                object.__setattr__(self, name, self.__dataclass_fields__[name].default)


@dataclass(frozen=True, slots=True)
class JWTValidation:
    """Validate the cookie as a symmetric-key JWT.

    Attributes:
        secret: Shared HMAC secret (hidden from repr).
        algorithm: HS256, HS384 or HS512.
        issuer: Expected ``iss`` claim; not checked when None.
        audience: Expected ``aud`` claim; not checked when None.
    """

    secret: str = field(repr=False)
    algorithm: JWTAlgorithm = "HS256"
    issuer: str | None = None
    audience: str | None = None


@dataclass(frozen=True, slots=True)
class RemoteSessionValidation:
    """Validate the cookie by forwarding it to a remote session endpoint."""

    session_url: str


ValidationMode = JWTValidation | RemoteSessionValidation


@dataclass(frozen=True, slots=True)
class SSOProviderConfig:
    """External SSO provider configuration.

    Use :meth:`create` rather than the constructor; it applies defaults,
    resolves the validation mode and validates all fields.

    Attributes:
        cookie_name: Name of the cookie set by the SSO provider.
        login_url: Provider login URL (``returnUrl`` is appended).
        logout_url: Provider logout URL (``returnUrl`` is appended).
        validation: JWT or remote session validation mode.
        timeout_ms: Deadline for the remote session call.
        field_mapping: Source paths for identity fields.
    """

    cookie_name: str
    login_url: str
    logout_url: str
    validation: ValidationMode
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    field_mapping: FieldMapping = field(default_factory=FieldMapping)

    def __post_init__(self) -> None:
        if not self.cookie_name or not self.cookie_name.strip():
            raise ConfigInvalidError("cookie_name", "SSO cookie_name is required")
        if not self.login_url or not self.login_url.strip():
            raise ConfigInvalidError("login_url", "SSO login_url is required")
        if not self.logout_url or not self.logout_url.strip():
            raise ConfigInvalidError("logout_url", "SSO logout_url is required")
        if self.timeout_ms <= 0:
            raise ConfigInvalidError("timeout_ms", "SSO timeout_ms must be positive")

        match self.validation:
            case JWTValidation(secret=secret, algorithm=algorithm):
                if not secret or not secret.strip():
                    raise ConfigInvalidError(
                        "jwt.secret",
                        "SSO jwt.secret is required when jwt verification is configured",
                    )
                if algorithm not in SUPPORTED_ALGORITHMS:
                    raise ConfigInvalidError(
                        "jwt.algorithm",
                        f"Unsupported SSO jwt.algorithm {algorithm!r}",
                    )
            case RemoteSessionValidation(session_url=session_url):
                if not session_url or not session_url.strip():
                    raise ConfigInvalidError(
                        "session_url",
                        "SSO session_url is required when jwt verification is not configured",
                    )

    @classmethod
    def create(
        cls,
        *,
        cookie_name: str,
        login_url: str,
        logout_url: str,
        session_url: str | None = None,
        jwt: JWTValidation | None = None,
        timeout_ms: int | None = None,
        field_mapping: FieldMapping | None = None,
    ) -> SSOProviderConfig:
        """Build a validated provider config.

        JWT verification takes precedence when both ``jwt`` and
        ``session_url`` are supplied.

        Raises:
            ConfigInvalidError: If required fields are missing or invalid.
        """
        validation: ValidationMode
        if jwt is not None:
            if session_url:
                logger.warning(
                    "sso_config_session_url_ignored",
                    extra={"cookie_name": cookie_name},
                )
            validation = jwt
        elif session_url:
            validation = RemoteSessionValidation(session_url=session_url)
        else:
            raise ConfigInvalidError(
                "session_url",
                "Either jwt or session_url is required",
            )

        return cls(
            cookie_name=cookie_name,
            login_url=login_url,
            logout_url=logout_url,
            validation=validation,
            timeout_ms=timeout_ms if timeout_ms is not None else DEFAULT_TIMEOUT_MS,
            field_mapping=field_mapping or FieldMapping(),
        )

    @property
    def uses_jwt(self) -> bool:
        return isinstance(self.validation, JWTValidation)


@dataclass(frozen=True, slots=True)
class AuthPluginConfig:
    """One SSO auth namespace (e.g. ``admin`` or ``app``).

    Attributes:
        name: Namespace; scopes endpoint paths (``/{name}/auth/...``).
        users_collection_slug: User store collection to provision into.
        sso: Provider configuration.
        use_admin: Whether this namespace authenticates the admin panel.
        allow_sign_up: Create unknown users on first login.
        success_redirect_path: App path to redirect to after login.
        error_redirect_path: App path to redirect to on login errors.
        allowed_origins: Origin allow-list; empty disables the check.
        on_success: Hook called as ``on_success(user=, identity=, request=)``.
        on_error: Hook called as ``on_error(error=, request=)``.
    """

    name: str
    users_collection_slug: str
    sso: SSOProviderConfig
    use_admin: bool = False
    allow_sign_up: bool = False
    success_redirect_path: str = "/"
    error_redirect_path: str = "/auth/error"
    allowed_origins: tuple[str, ...] = ()
    on_success: Callable[..., Awaitable[None] | None] | None = None
    on_error: Callable[..., Awaitable[None] | None] | None = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ConfigInvalidError("name", "Auth plugin name is required")
        if "/" in self.name:
            raise ConfigInvalidError("name", "Auth plugin name must not contain '/'")
        if not self.users_collection_slug:
            raise ConfigInvalidError(
                "users_collection_slug", "Auth plugin users_collection_slug is required"
            )

    @property
    def strategy_name(self) -> str:
        return f"sso-cookie-{self.users_collection_slug}"

    def describe(self) -> dict[str, Any]:
        """Loggable summary without secrets or hooks."""
        return {
            "namespace": self.name,
            "collection": self.users_collection_slug,
            "use_admin": self.use_admin,
            "allow_sign_up": self.allow_sign_up,
            "validation": "jwt" if self.sso.uses_jwt else "remote",
        }
