"""Login/logout redirect URLs and login error classification."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from cookie_sso.exceptions import MISSING_EMAIL_MESSAGE, SIGNUP_DENIED_MESSAGE

if TYPE_CHECKING:
    from starlette.requests import Request

RETURN_URL_PARAM = "returnUrl"
DEFAULT_BASE_URL = "http://127.0.0.1:3000"


class LoginErrorKind(StrEnum):
    """``error`` query values used on the login error redirect."""

    LOGIN_FAILED = "login_failed"
    SIGNUP_DISABLED = "signup_disabled"
    INVALID_SESSION = "invalid_session"


def _with_return_url(url: str, return_url: str) -> str:
    parts = urlsplit(url)
    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key != RETURN_URL_PARAM
    ]
    query.append((RETURN_URL_PARAM, return_url))
    return urlunsplit(parts._replace(query=urlencode(query)))


def build_login_redirect(login_url: str, return_url: str) -> str:
    """Set the ``returnUrl`` parameter on the provider login URL.

    Existing query parameters are kept; an existing ``returnUrl`` is replaced,
    so applying the transform twice yields the same URL.

    Example:
        >>> build_login_redirect("https://sso.example.com/login", "http://app/api/app/auth/login")
        'https://sso.example.com/login?returnUrl=http%3A%2F%2Fapp%2Fapi%2Fapp%2Fauth%2Flogin'
    """
    return _with_return_url(login_url, return_url)


def build_logout_redirect(logout_url: str, return_url: str) -> str:
    """Set the ``returnUrl`` parameter on the provider logout URL."""
    return _with_return_url(logout_url, return_url)


def classify_login_error(error: BaseException) -> LoginErrorKind:
    """Map a login failure to its redirect error code by message content."""
    message = getattr(error, "message", None) or str(error)
    if SIGNUP_DENIED_MESSAGE in message:
        return LoginErrorKind.SIGNUP_DISABLED
    if MISSING_EMAIL_MESSAGE in message:
        return LoginErrorKind.INVALID_SESSION
    return LoginErrorKind.LOGIN_FAILED


def build_error_redirect(
    base_url: str,
    error_path: str,
    kind: LoginErrorKind,
    message: str,
    return_url: str,
) -> str:
    """Build the app error page URL with ``error``, ``message`` and ``returnUrl``."""
    query = urlencode(
        {"error": kind.value, "message": message, RETURN_URL_PARAM: return_url},
        quote_via=quote,
    )
    return f"{base_url}{error_path}?{query}"


def get_base_url(request: Request) -> str:
    """Public base URL of the app, honouring ``X-Forwarded-Proto``."""
    host = request.headers.get("host")
    if not host:
        return DEFAULT_BASE_URL
    protocol = request.headers.get("x-forwarded-proto") or "http"
    return f"{protocol}://{host}"
