"""
Error mapping — terminal workflow errors to RFC 7807 responses.

Status mapping::

    UpstreamError          → upstream status (502 if it is not an error status),
                             with the upstream body as ``upstream_body``
    UpstreamUnavailable    → 502
    UpstreamTimeout        → 504
    PathNotFound           → 502
    StoreThrottled         → 503 + Retry-After
    StoreUnavailable       → 503
    WorkflowTimeout        → 504
    anything else          → 500
"""

from __future__ import annotations

from http import HTTPStatus

from fastapi import Request
from fastapi.responses import JSONResponse

from gateflow.api.schemas import ProblemDetail
from gateflow.core.errors import (
    ErrorCategory,
    GateflowError,
    PathNotFound,
    StoreThrottled,
    StoreUnavailable,
    UpstreamError,
    UpstreamTimeout,
    UpstreamUnavailable,
    WorkflowTimeout,
)
from gateflow.core.logging import get_logger

logger = get_logger(__name__)

# ── Error kind → HTTP status mapping (most specific first) ───────────────

ERROR_STATUS: tuple[tuple[type[GateflowError], int], ...] = (
    (UpstreamUnavailable, 502),
    (UpstreamTimeout, 504),
    (PathNotFound, 502),
    (StoreThrottled, 503),
    (StoreUnavailable, 503),
    (WorkflowTimeout, 504),
)


def status_for_error(error: GateflowError) -> int:
    """Resolve a terminal error to an HTTP status, defaulting to 500."""
    if isinstance(error, UpstreamError):
        return error.status_code if 400 <= error.status_code <= 599 else 502
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


def problem_for_error(
    error: GateflowError,
    *,
    instance: str = "",
    debug: bool = False,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build the RFC 7807 response for a failed invocation."""
    status = status_for_error(error)
    detail = error.message
    if error.category == ErrorCategory.INTERNAL and not debug:
        detail = "An unexpected error occurred."

    body = ProblemDetail(
        title=HTTPStatus(status).phrase,
        status=status,
        detail=detail,
        instance=instance,
        code=error.code,
        category=error.category.value,
        step=error.context.step,
        run_id=error.context.run_id,
        upstream_body=error.body if isinstance(error, UpstreamError) else None,
    )
    response_headers = dict(headers or {})
    if isinstance(error, StoreThrottled):
        response_headers["Retry-After"] = str(error.retry_after or 1)
    return JSONResponse(
        status_code=status,
        content=body.model_dump(exclude_none=True),
        headers=response_headers,
        media_type="application/problem+json",
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions — returns 500 with ProblemDetail."""
    logger.exception("api.unhandled_exception", path=request.url.path)
    body = ProblemDetail(
        title="Internal Server Error",
        status=500,
        detail=str(exc) if request.app.state.settings.debug else "An unexpected error occurred.",
        instance=str(request.url),
        code="InternalError",
        category=ErrorCategory.INTERNAL.value,
    )
    return JSONResponse(
        status_code=500,
        content=body.model_dump(exclude_none=True),
        media_type="application/problem+json",
    )
