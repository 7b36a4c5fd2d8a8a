"""RFC 7807 Problem Details exception handlers for FastAPI.

Translates engine exceptions raised inside route handlers (mostly from the
``cookie_sso.dependencies`` guards) into ``application/problem+json``
responses. The authenticator itself never raises; these handlers cover
protected routes and application code that calls the store directly.

Usage:
    from cookie_sso.error_handlers import register_exception_handlers

    app = FastAPI()
    register_exception_handlers(app)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from cookie_sso.exceptions import (
    AuthenticationError,
    AuthorizationError,
    DomainError,
    StoreError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"

_SENSITIVE_KEYS = frozenset(
    {"password", "secret", "token", "cookie", "api_key", "apikey", "credential", "email"}
)


class ProblemDetail(BaseModel):
    """RFC 7807 Problem Details response model."""

    type: str = Field(..., description="URI reference identifying problem type")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., ge=400, le=599, description="HTTP status code")
    detail: str = Field(..., description="Human-readable explanation")
    instance: str | None = Field(default=None, description="Request path")
    error_code: str | None = Field(default=None, description="Machine-readable error code")
    context: dict[str, Any] | None = Field(default=None, description="Debugging context")


def _create_problem_response(problem: ProblemDetail) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(exclude_none=True),
        media_type=PROBLEM_MEDIA_TYPE,
    )


def _is_sensitive_key(key: str) -> bool:
    key_lower = key.lower()
    if key_lower in _SENSITIVE_KEYS:
        return True
    return any(part in key_lower for part in ("token", "secret", "cookie", "password"))


def _sanitize_context(context: dict[str, Any] | None) -> dict[str, Any] | None:
    """Drop sensitive keys and stringify values for a response body."""
    if not context:
        return None
    sanitized = {
        key: value if isinstance(value, str | int | float | bool) else str(value)
        for key, value in context.items()
        if not _is_sensitive_key(key)
    }
    return sanitized or None


async def authentication_error_handler(
    request: Request,
    exc: AuthenticationError,
) -> JSONResponse:
    """Translate AuthenticationError to 401 Unauthorized."""
    problem = ProblemDetail(
        type=f"/errors/{exc.error_code.lower().replace('_', '-')}",
        title="Unauthorized",
        status=401,
        detail=exc.message,
        instance=str(request.url.path),
        error_code=exc.error_code,
    )
    return _create_problem_response(problem)


async def authorization_error_handler(
    request: Request,
    exc: AuthorizationError,
) -> JSONResponse:
    """Translate AuthorizationError to 403 Forbidden."""
    problem = ProblemDetail(
        type="/errors/forbidden",
        title="Forbidden",
        status=403,
        detail=exc.message,
        instance=str(request.url.path),
        error_code=exc.error_code,
        context=_sanitize_context(exc.context),
    )
    return _create_problem_response(problem)


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """Translate StoreError to 503 Service Unavailable."""
    logger.error(
        "user_store_unavailable",
        extra={"path": str(request.url.path), **exc.context},
    )
    problem = ProblemDetail(
        type="/errors/store-unavailable",
        title="Service Unavailable",
        status=503,
        detail="User store is temporarily unavailable",
        instance=str(request.url.path),
        error_code=exc.error_code,
    )
    return _create_problem_response(problem)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Translate any other DomainError to 400 Bad Request."""
    problem = ProblemDetail(
        type="/errors/domain-error",
        title="Bad Request",
        status=400,
        detail=exc.message,
        instance=str(request.url.path),
        error_code=exc.error_code,
        context=_sanitize_context(exc.context),
    )
    return _create_problem_response(problem)


def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers from most to least specific.

    1. AuthenticationError -> 401
    2. AuthorizationError -> 403
    3. StoreError -> 503
    4. DomainError -> 400 (base class fallback)
    """
    app.add_exception_handler(
        AuthenticationError,
        authentication_error_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        AuthorizationError,
        authorization_error_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        StoreError,
        store_error_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        DomainError,
        domain_error_handler,  # type: ignore[arg-type]
    )
