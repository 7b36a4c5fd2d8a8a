"""Error taxonomy for SSO cookie authentication.

Every failure the engine can produce is a ``DomainError`` subclass carrying a
machine-readable ``error_code`` and structured ``context`` for logging. Only
``ConfigInvalidError`` is fatal (raised at startup); all other errors are
caught by the authenticator and turned into a uniform "no user" outcome.

Example:
    >>> from cookie_sso.exceptions import SignUpDeniedError
    >>> raise SignUpDeniedError("new@example.com", collection="users")
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "ConfigInvalidError",
    "DomainError",
    "InvalidSessionError",
    "OriginRejectedError",
    "SignUpDeniedError",
    "StoreError",
]

# Message fragments matched by the login redirect error classifier.
SIGNUP_DENIED_MESSAGE = "Sign-up is not allowed"
MISSING_EMAIL_MESSAGE = "SSO session missing email"


class DomainError(Exception):
    """Base class for all authentication engine errors.

    Attributes:
        error_code: Machine-readable error code for client handling.
        message: Human-readable error description.
        context: Structured debugging information (collection, reason, ...).
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Initialize error with message and optional context.

        Args:
            message: Human-readable error description.
            context: Structured debugging information. Keys should be snake_case.
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """String representation including context for logging."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigInvalidError(DomainError):
    """Raised at startup when SSO or plugin configuration is incomplete.

    Attributes:
        error_code: "CONFIG_INVALID" (class constant).
        field: Configuration field that failed validation.
        reason: Why the field is invalid.

    Example:
        >>> raise ConfigInvalidError("cookie_name", "SSO cookie_name is required")
        ConfigInvalidError: SSO cookie_name is required (field=cookie_name)
    """

    error_code: str = "CONFIG_INVALID"

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(reason, {"field": field})


class InvalidSessionError(DomainError):
    """Raised when the SSO cookie does not yield a usable identity.

    Covers bad signatures, expired tokens, unreachable or refusing remote
    session endpoints and sessions without an email. The ``reason`` is a
    coarse internal code for logs and tests; callers of the authenticator
    never see it.

    Attributes:
        error_code: "INVALID_SESSION" (class constant).
        reason: One of ``jwt_rejected``, ``remote_rejected``,
            ``remote_unreachable``, ``missing_email``.
    """

    error_code: str = "INVALID_SESSION"

    def __init__(self, message: str = "Invalid SSO session", *, reason: str) -> None:
        self.reason = reason
        super().__init__(message, {"reason": reason})

    @property
    def missing_email(self) -> bool:
        return self.reason == "missing_email"


class OriginRejectedError(DomainError):
    """Raised when the request Origin is not in the configured allow-list."""

    error_code: str = "ORIGIN_REJECTED"

    def __init__(self, origin: str) -> None:
        self.origin = origin
        super().__init__("Request origin is not allowed", {"origin": origin})


class SignUpDeniedError(DomainError):
    """Raised when an unknown user authenticates and sign-up is disabled.

    The message always contains ``SIGNUP_DENIED_MESSAGE`` so the login
    redirect can report ``signup_disabled``.
    """

    error_code: str = "SIGNUP_DENIED"

    def __init__(self, email: str, *, collection: str) -> None:
        self.email = email
        self.collection = collection
        super().__init__(
            f"{SIGNUP_DENIED_MESSAGE} for this account",
            {"collection": collection},
        )


class StoreError(DomainError):
    """Raised when the user store fails to find, create or update a record.

    Attributes:
        error_code: "STORE_ERROR" (class constant).
        operation: Store operation that failed (find, create, update).
        collection: Target user collection slug.
    """

    error_code: str = "STORE_ERROR"

    def __init__(
        self,
        message: str = "User store operation failed",
        *,
        operation: str,
        collection: str,
    ) -> None:
        self.operation = operation
        self.collection = collection
        super().__init__(message, {"operation": operation, "collection": collection})


class AuthenticationError(DomainError):
    """Raised when a protected route is reached without an SSO principal.

    Maps to HTTP 401 Unauthorized.
    """

    error_code: str = "AUTHENTICATION_ERROR"

    def __init__(
        self,
        message: str = "Authentication required",
        error_code: str = "AUTHENTICATION_ERROR",
        context: dict[str, Any] | None = None,
    ) -> None:
        self.error_code = error_code
        super().__init__(message, context)


class AuthorizationError(DomainError):
    """Raised when the principal was authenticated by a different namespace.

    Maps to HTTP 403 Forbidden.
    """

    error_code: str = "AUTHORIZATION_ERROR"
