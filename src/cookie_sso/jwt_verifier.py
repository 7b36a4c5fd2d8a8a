"""Symmetric JWT verification for SSO cookies.

Every failure (bad signature, expired token, wrong issuer or audience,
malformed token) collapses into a single ``InvalidSessionError`` with an
identical message, so the outcome cannot be used as an oracle for why a
forged token was rejected. The specific PyJWT error is logged at debug level.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import jwt as pyjwt

from cookie_sso.exceptions import MISSING_EMAIL_MESSAGE, InvalidSessionError
from cookie_sso.fields import extract_identity

if TYPE_CHECKING:
    from cookie_sso.config import FieldMapping, JWTValidation
    from cookie_sso.identity import SSOIdentity

logger = logging.getLogger(__name__)


class JWTVerifier:
    """Verify HS256/HS384/HS512 session tokens and extract the identity.

    Args:
        config: JWT validation settings (secret, algorithm, issuer, audience).
        field_mapping: Source paths used to read identity fields from claims.
    """

    def __init__(self, config: JWTValidation, field_mapping: FieldMapping) -> None:
        self._config = config
        self._field_mapping = field_mapping

    def decode(self, token: str) -> dict[str, Any]:
        """Verify ``token`` and return its claims.

        Raises:
            InvalidSessionError: On any verification or parsing failure.
        """
        try:
            claims: dict[str, Any] = pyjwt.decode(
                token,
                self._config.secret,
                algorithms=[self._config.algorithm],
                issuer=self._config.issuer,
                audience=self._config.audience,
                options={"verify_aud": self._config.audience is not None},
            )
        except pyjwt.PyJWTError as exc:
            logger.debug(
                "sso_jwt_rejected",
                extra={"error_type": type(exc).__name__},
            )
            raise InvalidSessionError(reason="jwt_rejected") from None
        return claims

    def verify(self, token: str) -> SSOIdentity:
        """Verify ``token`` and map its claims onto an identity.

        Args:
            token: Raw cookie value.

        Returns:
            Identity extracted through the configured field mapping.

        Raises:
            InvalidSessionError: If the token is invalid or carries no email.
        """
        claims = self.decode(token)
        identity = extract_identity(claims, self._field_mapping)
        if identity is None:
            raise InvalidSessionError(MISSING_EMAIL_MESSAGE, reason="missing_email")
        return identity
