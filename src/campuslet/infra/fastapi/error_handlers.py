"""RFC 7807 Problem Details exception handlers for FastAPI.

Translates the domain error taxonomy into standardized HTTP responses
(Content-Type: application/problem+json):

- NotFoundError -> 404
- ValidationError -> 422
- RestrictionViolationError / ConcurrentModificationError / ConflictError -> 409
- PartialFailureError / ProvisioningFailureError -> 500, with correlation id
- StoreError -> 502, TransportError -> 503, with correlation id
- DomainError -> 400 (fallback)

Blocked deletes are expected outcomes and are not logged as errors. Partial
failures and failed compensations need an operator, so their responses keep
the completed steps and orphan ids in ``context``.

Usage:
    from campuslet.infra.fastapi.error_handlers import register_exception_handlers

    app = FastAPI()
    register_exception_handlers(app)
"""

from __future__ import annotations

import json
import logging
import re
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from campuslet.foundation.domain.exceptions import (
    ConcurrentModificationError,
    ConflictError,
    DomainError,
    NotFoundError,
    PartialFailureError,
    ProvisioningFailureError,
    RestrictionViolationError,
    StoreError,
    TransportError,
    ValidationError,
)
from campuslet.infra.fastapi.middleware.request_id import get_request_id

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"


class ProblemDetail(BaseModel):
    """RFC 7807 Problem Details response model.

    Standard fields:
    - type: URI reference identifying the problem type
    - title: Short human-readable summary
    - status: HTTP status code
    - detail: Human-readable explanation
    - instance: URI reference to specific occurrence

    Extension fields:
    - error_code: Machine-readable error code for client handling
    - context: Structured debugging information
    - correlation_id: Request correlation ID (5xx errors only)
    """

    type: str = Field(
        ...,
        description="URI reference identifying problem type",
        examples=["/errors/not-found", "/errors/restriction-violation"],
    )
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., ge=400, le=599, description="HTTP status code")
    detail: str = Field(..., description="Human-readable explanation")
    instance: str | None = Field(
        default=None,
        description="URI reference to specific occurrence (request path)",
    )
    error_code: str | None = Field(
        default=None,
        description="Machine-readable error code",
        examples=["RESOURCE_NOT_FOUND", "RESTRICTION_VIOLATION", "PARTIAL_FAILURE"],
    )
    context: dict[str, Any] | None = Field(
        default=None,
        description="Structured debugging information",
    )
    correlation_id: str | None = Field(
        default=None,
        description="Request correlation ID for support requests",
    )


_SENSITIVE_PATTERNS = [
    (
        re.compile(r"postgresql(\+\w+)?://[^@]*@[^/\s]*"),
        "postgresql://[REDACTED]@[REDACTED]",
    ),
    (
        re.compile(r"password\s*=\s*['\"]?[^'\"\s]+['\"]?", re.IGNORECASE),
        "password=[REDACTED]",
    ),
    (
        re.compile(r"api[_-]?key\s*=\s*['\"]?[^'\"\s]+['\"]?", re.IGNORECASE),
        "api_key=[REDACTED]",
    ),
    (
        re.compile(r"bearer\s+[A-Za-z0-9._~+/=-]+", re.IGNORECASE),
        "Bearer [REDACTED]",
    ),
]

_SENSITIVE_KEYS = frozenset(
    {"password", "password_hash", "secret", "token", "api_key", "apikey", "credential"}
)


def _create_problem_response(problem: ProblemDetail) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(exclude_none=True),
        media_type=PROBLEM_MEDIA_TYPE,
    )


def _get_correlation_id() -> str:
    return get_request_id() or "unknown"


def _sanitize_context(context: dict[str, Any] | None) -> dict[str, Any] | None:
    """Sanitize a context dictionary for safe inclusion in responses.

    - Converts UUIDs, dates and decimals to strings
    - Drops sensitive keys and redacts credentials inside string values
    """
    if context is None:
        return None

    sanitized = {}
    for key, value in context.items():
        if key.lower() in _SENSITIVE_KEYS:
            continue
        sanitized[key] = _sanitize_value(value)

    return sanitized if sanitized else None


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, str):
        return _redact_sensitive_strings(value)
    if isinstance(value, dict):
        return _sanitize_context(value)
    if isinstance(value, (list, tuple)):
        return [_sanitize_value(v) for v in value]
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)


def _redact_sensitive_strings(text: str) -> str:
    result = text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def _domain_problem(
    request: Request,
    exc: DomainError,
    *,
    status: int,
    problem_type: str,
    title: str,
    context: dict[str, Any] | None = None,
    with_correlation: bool = False,
) -> JSONResponse:
    problem = ProblemDetail(
        type=problem_type,
        title=title,
        status=status,
        detail=_redact_sensitive_strings(str(exc.message)),
        instance=str(request.url.path),
        error_code=exc.error_code,
        context=_sanitize_context(exc.context if context is None else context),
        correlation_id=_get_correlation_id() if with_correlation else None,
    )
    return _create_problem_response(problem)


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Translate NotFoundError to 404."""
    return _domain_problem(
        request, exc, status=404, problem_type="/errors/not-found", title="Resource Not Found"
    )


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Translate ValidationError to 422 with field-level details."""
    return _domain_problem(
        request,
        exc,
        status=422,
        problem_type="/errors/validation-error",
        title="Validation Error",
    )


async def conflict_error_handler(request: Request, exc: ConflictError) -> JSONResponse:
    """Translate ConflictError (e.g. duplicate email) to 409."""
    return _domain_problem(
        request, exc, status=409, problem_type="/errors/conflict", title="Conflict"
    )


async def restriction_violation_handler(
    request: Request,
    exc: RestrictionViolationError,
) -> JSONResponse:
    """Translate RestrictionViolationError to 409 Deletion Blocked.

    The context carries the referencing row counts (e.g. ``{"Student": 2}``).
    """
    return _domain_problem(
        request,
        exc,
        status=409,
        problem_type="/errors/restriction-violation",
        title="Deletion Blocked",
    )


async def concurrent_modification_handler(
    request: Request,
    exc: ConcurrentModificationError,
) -> JSONResponse:
    """Translate ConcurrentModificationError to 409; the client may retry."""
    return _domain_problem(
        request,
        exc,
        status=409,
        problem_type="/errors/concurrent-modification",
        title="Concurrent Modification",
    )


async def partial_failure_handler(request: Request, exc: PartialFailureError) -> JSONResponse:
    """Translate PartialFailureError to 500, keeping the repair context.

    Context lists the completed steps, the failed step and the cause code so
    an operator can re-run the same deletion or repair the rows by hand.
    """
    correlation_id = _get_correlation_id()
    logger.error(
        "partial_failure_response",
        extra={
            "correlation_id": correlation_id,
            "path": str(request.url.path),
            "failed_step": exc.failed_step,
            "completed": exc.completed,
        },
    )
    return _domain_problem(
        request,
        exc,
        status=500,
        problem_type="/errors/partial-failure",
        title="Partially Applied",
        with_correlation=True,
    )


async def provisioning_failure_handler(
    request: Request,
    exc: ProvisioningFailureError,
) -> JSONResponse:
    """Translate ProvisioningFailureError to 500.

    A failed compensation gets its own problem type and keeps the orphan
    ``user_id`` in the context.
    """
    problem_type = (
        "/errors/provisioning-compensation-failure"
        if exc.stage == "compensation"
        else "/errors/provisioning-failure"
    )
    return _domain_problem(
        request,
        exc,
        status=500,
        problem_type=problem_type,
        title="Account Provisioning Failed",
        with_correlation=True,
    )


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """Translate StoreError to 502 Bad Gateway."""
    logger.error(
        "store_error_response",
        extra={"path": str(request.url.path), "error_code": exc.error_code},
    )
    return _domain_problem(
        request,
        exc,
        status=502,
        problem_type="/errors/store-error",
        title="Store Error",
        with_correlation=True,
    )


async def transport_error_handler(request: Request, exc: TransportError) -> JSONResponse:
    """Translate TransportError to 503 Service Unavailable."""
    logger.error(
        "store_unavailable_response",
        extra={"path": str(request.url.path), "error_code": exc.error_code},
    )
    response = _domain_problem(
        request,
        exc,
        status=503,
        problem_type="/errors/store-unavailable",
        title="Store Unavailable",
        with_correlation=True,
    )
    response.headers["Retry-After"] = "5"
    return response


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Translate any other DomainError to 400 Bad Request."""
    return _domain_problem(
        request, exc, status=400, problem_type="/errors/domain-error", title="Bad Request"
    )


async def request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Translate Pydantic RequestValidationError to 422."""
    errors = [
        {
            "loc": list(error.get("loc", [])),
            "msg": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    problem = ProblemDetail(
        type="/errors/request-validation-error",
        title="Request Validation Error",
        status=422,
        detail="Request validation failed",
        instance=str(request.url.path),
        error_code="REQUEST_VALIDATION_ERROR",
        context={"errors": errors},
    )
    return _create_problem_response(problem)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unhandled exceptions.

    Logs full exception details but returns a sanitized response with the
    correlation ID. In debug mode the exception type and message are
    included.
    """
    correlation_id = _get_correlation_id()
    logger.exception(
        "unhandled_exception",
        extra={
            "correlation_id": correlation_id,
            "path": str(request.url.path),
            "method": request.method,
            "exception_type": type(exc).__name__,
        },
    )

    if getattr(request.app, "debug", False):
        detail = f"{type(exc).__name__}: {exc}"
        context: dict[str, Any] | None = {"exception_type": type(exc).__name__}
    else:
        detail = "An internal error occurred. Please contact support with the correlation ID."
        context = None

    problem = ProblemDetail(
        type="/errors/internal-error",
        title="Internal Server Error",
        status=500,
        detail=detail,
        instance=str(request.url.path),
        error_code="INTERNAL_ERROR",
        context=context,
        correlation_id=correlation_id,
    )
    return _create_problem_response(problem)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on a FastAPI application.

    Starlette resolves handlers along the exception's MRO, so subclasses
    (RestrictionViolationError, TransportError) get their own handler even
    though their bases are registered too.

    Example:
        >>> from fastapi import FastAPI
        >>> app = FastAPI()
        >>> register_exception_handlers(app)
    """
    # Starlette's handler typing is stricter than the runtime contract
    app.add_exception_handler(NotFoundError, not_found_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ConflictError, conflict_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        RestrictionViolationError,
        restriction_violation_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        ConcurrentModificationError,
        concurrent_modification_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(PartialFailureError, partial_failure_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        ProvisioningFailureError,
        provisioning_failure_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(StoreError, store_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(TransportError, transport_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(DomainError, domain_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError,
        request_validation_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(Exception, unhandled_exception_handler)
