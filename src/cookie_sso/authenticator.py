"""Per-request SSO cookie authentication.

Request flow (terminal states in brackets):
1. SSO cookie present?                 -> [deny: no_cookie]
2. Origin allowed (when configured)?   -> [deny: origin_rejected]
3. SessionValidator.validate           -> [deny: invalid_session]
4. UserProvisioner.resolve             -> [deny: signup_denied | store_error]
5.                                     -> [allow: SSOPrincipal]

Any unexpected exception becomes [deny: internal_error]. Callers only look at
``AuthOutcome.authenticated`` / ``AuthOutcome.principal``; the denial reason
and underlying error are kept on the outcome for logging and tests and are
never rendered into responses.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from cookie_sso.cookies import parse_cookies
from cookie_sso.exceptions import (
    DomainError,
    InvalidSessionError,
    OriginRejectedError,
    SignUpDeniedError,
    StoreError,
)
from cookie_sso.principal import SSOPrincipal
from cookie_sso.provisioning import UserProvisioner
from cookie_sso.validator import SessionValidator

if TYPE_CHECKING:
    from collections.abc import Mapping

    from cookie_sso.config import AuthPluginConfig
    from cookie_sso.identity import SSOIdentity
    from cookie_sso.ports import UserStore

logger = logging.getLogger(__name__)


class DenialReason(StrEnum):
    """Why a request was left unauthenticated."""

    NO_COOKIE = "no_cookie"
    ORIGIN_REJECTED = "origin_rejected"
    INVALID_SESSION = "invalid_session"
    SIGNUP_DENIED = "signup_denied"
    STORE_ERROR = "store_error"
    INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True, slots=True)
class AuthOutcome:
    """Result of authenticating one request against one namespace.

    Attributes:
        principal: Authenticated principal, or None when denied.
        reason: Denial reason, or None when allowed.
        error: Underlying error for denials other than no_cookie.
        identity: Validated identity, when validation got that far.
    """

    principal: SSOPrincipal | None = None
    reason: DenialReason | None = None
    error: Exception | None = None
    identity: SSOIdentity | None = None

    @property
    def authenticated(self) -> bool:
        return self.principal is not None

    @classmethod
    def deny(
        cls,
        reason: DenialReason,
        error: Exception | None = None,
        identity: SSOIdentity | None = None,
    ) -> AuthOutcome:
        return cls(reason=reason, error=error, identity=identity)


class SSOCookieAuthenticator:
    """Authenticate requests for one auth namespace.

    Holds only immutable configuration plus the validator (whose sole state
    is a shared HTTP client), so one instance serves all concurrent requests.

    Args:
        config: Namespace configuration.
        store: User store collaborator.
        validator: Session validator; built from ``config.sso`` when omitted.
    """

    def __init__(
        self,
        config: AuthPluginConfig,
        store: UserStore,
        validator: SessionValidator | None = None,
    ) -> None:
        self._config = config
        self._validator = validator or SessionValidator(config.sso)
        self._provisioner = UserProvisioner(store, config.users_collection_slug)

    @property
    def config(self) -> AuthPluginConfig:
        return self._config

    @property
    def validator(self) -> SessionValidator:
        return self._validator

    def get_cookie(self, headers: Mapping[str, str]) -> str | None:
        """Return the SSO cookie value from request headers, if present."""
        return parse_cookies(headers.get("cookie")).get(self._config.sso.cookie_name) or None

    async def authenticate(
        self,
        headers: Mapping[str, str],
        *,
        allow_sign_up: bool | None = None,
    ) -> AuthOutcome:
        """Run the cookie -> origin -> session -> user pipeline.

        Args:
            headers: Request headers (case-insensitive mapping or lowercase keys).
            allow_sign_up: Override the namespace sign-up policy; the session
                endpoint passes False so it never creates users.

        Returns:
            AuthOutcome; never raises.
        """
        if allow_sign_up is None:
            allow_sign_up = self._config.allow_sign_up
        identity: SSOIdentity | None = None

        try:
            cookie_value = self.get_cookie(headers)
            if cookie_value is None:
                return AuthOutcome.deny(DenialReason.NO_COOKIE)

            origin = headers.get("origin")
            allowed = self._config.allowed_origins
            if origin and allowed and origin not in allowed:
                return self._denied(DenialReason.ORIGIN_REJECTED, OriginRejectedError(origin))

            try:
                identity = await self._validator.validate(cookie_value)
            except InvalidSessionError as exc:
                return self._denied(DenialReason.INVALID_SESSION, exc)

            try:
                user = await self._provisioner.resolve(identity, allow_sign_up=allow_sign_up)
            except SignUpDeniedError as exc:
                return self._denied(DenialReason.SIGNUP_DENIED, exc, identity)
            except StoreError as exc:
                return self._denied(DenialReason.STORE_ERROR, exc, identity)

        except Exception as exc:
            logger.exception(
                "sso_authentication_unexpected_error",
                extra={"namespace": self._config.name},
            )
            return AuthOutcome.deny(DenialReason.INTERNAL_ERROR, exc, identity)

        principal = SSOPrincipal(
            namespace=self._config.name,
            collection=self._config.users_collection_slug,
            strategy=self._config.strategy_name,
            email=identity.email,
            user=user,
        )
        logger.debug(
            "sso_authenticated",
            extra={"namespace": self._config.name, "user_id": principal.user_id},
        )
        return AuthOutcome(principal=principal, identity=identity)

    def _denied(
        self,
        reason: DenialReason,
        error: DomainError,
        identity: SSOIdentity | None = None,
    ) -> AuthOutcome:
        logger.info(
            "sso_authentication_denied",
            extra={
                "namespace": self._config.name,
                "reason": reason.value,
                "error_code": error.error_code,
                **error.context,
            },
        )
        return AuthOutcome.deny(reason, error, identity)

    async def aclose(self) -> None:
        await self._validator.aclose()
