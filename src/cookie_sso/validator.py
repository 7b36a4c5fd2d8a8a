"""Session validation dispatch.

``SessionValidator`` picks its strategy once, from the provider's validation
mode, and then delegates every call to it:

- ``JWTValidation`` -> :class:`~cookie_sso.jwt_verifier.JWTVerifier`
- ``RemoteSessionValidation`` -> :class:`~cookie_sso.session_client.RemoteSessionFetcher`
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cookie_sso.config import JWTValidation, RemoteSessionValidation
from cookie_sso.exceptions import ConfigInvalidError
from cookie_sso.jwt_verifier import JWTVerifier
from cookie_sso.session_client import RemoteSessionFetcher

if TYPE_CHECKING:
    import httpx

    from cookie_sso.config import SSOProviderConfig
    from cookie_sso.identity import SSOIdentity


class SessionValidator:
    """Turn an SSO cookie value into an identity, or raise InvalidSessionError.

    Args:
        config: Provider configuration; its validation mode is resolved here.
        client: Optional shared httpx.AsyncClient for remote validation.
    """

    def __init__(
        self,
        config: SSOProviderConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._jwt_verifier: JWTVerifier | None = None
        self._fetcher: RemoteSessionFetcher | None = None

        match config.validation:
            case JWTValidation():
                self._jwt_verifier = JWTVerifier(config.validation, config.field_mapping)
            case RemoteSessionValidation():
                self._fetcher = RemoteSessionFetcher(
                    config.validation,
                    cookie_name=config.cookie_name,
                    field_mapping=config.field_mapping,
                    timeout_ms=config.timeout_ms,
                    client=client,
                )
            case _:
                raise ConfigInvalidError(
                    "validation", "No session validation strategy configured"
                )

    @property
    def mode(self) -> str:
        return "jwt" if self._jwt_verifier is not None else "remote"

    async def validate(self, cookie_value: str) -> SSOIdentity:
        """Validate ``cookie_value`` with the configured strategy.

        Raises:
            InvalidSessionError: If the session is invalid, expired,
                unreachable or carries no email.
        """
        if self._jwt_verifier is not None:
            return self._jwt_verifier.verify(cookie_value)
        if self._fetcher is not None:
            return await self._fetcher.fetch(cookie_value)
        raise ConfigInvalidError("validation", "No session validation strategy configured")

    async def aclose(self) -> None:
        """Release the remote fetcher's HTTP client, if any."""
        if self._fetcher is not None:
            await self._fetcher.aclose()
