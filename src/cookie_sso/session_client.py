"""Async client for the SSO provider's remote session endpoint.

Forwards the SSO cookie to the configured ``session_url`` and maps the JSON
answer onto an identity. The call runs under a hard deadline
(``timeout_ms``): when it expires the pending request is cancelled and the
session is treated as invalid.

Accepted response envelopes:
1. ``{"authenticated": true, "user": {...}}``
2. ``{"user": {...}}``
3. ``{...}`` (bare user object)

Design decisions:
- Shared httpx.AsyncClient per fetcher, created lazily and closed by the
  application lifespan via :meth:`RemoteSessionFetcher.aclose`.
- ``asyncio.timeout`` bounds the whole exchange (connect, send, body read);
  httpx's own timeout only bounds each phase.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import httpx

from cookie_sso.exceptions import MISSING_EMAIL_MESSAGE, InvalidSessionError
from cookie_sso.fields import extract_identity

if TYPE_CHECKING:
    from cookie_sso.config import FieldMapping, RemoteSessionValidation
    from cookie_sso.identity import SSOIdentity

logger = logging.getLogger(__name__)


def unwrap_session_payload(body: Any) -> Mapping[str, Any] | None:
    """Return the user record from a session response body.

    Uses ``body["user"]`` when it is a mapping, otherwise the body itself.
    Returns None when the body is not a JSON object.
    """
    if not isinstance(body, Mapping):
        return None
    user = body.get("user")
    if isinstance(user, Mapping):
        return user
    return body


class RemoteSessionFetcher:
    """Validate SSO cookies against a remote session endpoint.

    Supports both shared and owned httpx.AsyncClient modes:
    - If ``client`` is provided, it is reused (caller manages lifecycle).
    - Otherwise a client is created lazily on first use; call
      :meth:`aclose` to release it.

    Args:
        config: Remote session validation settings.
        cookie_name: Cookie name forwarded to the session endpoint.
        field_mapping: Source paths used to read identity fields.
        timeout_ms: Hard deadline for the whole request.
        client: Optional shared httpx.AsyncClient instance.
    """

    def __init__(
        self,
        config: RemoteSessionValidation,
        cookie_name: str,
        field_mapping: FieldMapping,
        timeout_ms: int,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._session_url = config.session_url
        self._cookie_name = cookie_name
        self._field_mapping = field_mapping
        self._timeout = timeout_ms / 1000
        self._external_client = client is not None
        self._client: httpx.AsyncClient | None = client

    async def fetch(self, cookie_value: str) -> SSOIdentity:
        """Ask the session endpoint who owns ``cookie_value``.

        Args:
            cookie_value: Raw SSO cookie value.

        Returns:
            Identity extracted from the response.

        Raises:
            InvalidSessionError: On non-2xx, timeout, network error, non-JSON
                body, or a user record without email.
        """
        client = self._get_client()
        try:
            async with asyncio.timeout(self._timeout):
                response = await client.get(
                    self._session_url,
                    headers={
                        "cookie": f"{self._cookie_name}={cookie_value}",
                        "Accept": "application/json",
                    },
                    timeout=self._timeout,
                )
        except TimeoutError:
            logger.warning(
                "sso_session_fetch_timeout",
                extra={"session_url": self._session_url, "timeout_s": self._timeout},
            )
            raise InvalidSessionError(reason="remote_unreachable") from None
        except httpx.HTTPError as exc:
            logger.warning(
                "sso_session_fetch_failed",
                extra={"session_url": self._session_url, "error_type": type(exc).__name__},
            )
            raise InvalidSessionError(reason="remote_unreachable") from None

        if not response.is_success:
            logger.info(
                "sso_session_rejected",
                extra={"session_url": self._session_url, "status": response.status_code},
            )
            raise InvalidSessionError(reason="remote_rejected")

        try:
            body = response.json()
        except ValueError:
            logger.warning(
                "sso_session_invalid_json",
                extra={"session_url": self._session_url},
            )
            raise InvalidSessionError(reason="remote_rejected") from None

        record = unwrap_session_payload(body)
        if record is None:
            raise InvalidSessionError(reason="remote_rejected")

        identity = extract_identity(record, self._field_mapping)
        if identity is None:
            raise InvalidSessionError(MISSING_EMAIL_MESSAGE, reason="missing_email")
        return identity

    def _get_client(self) -> httpx.AsyncClient:
        """Return the shared or lazily-created httpx.AsyncClient."""
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=False)
        return self._client

    async def aclose(self) -> None:
        """Close the internal httpx.AsyncClient if we own it.

        No-op if the client was provided externally or not yet created.
        """
        if self._client is not None and not self._external_client:
            await self._client.aclose()
            self._client = None
