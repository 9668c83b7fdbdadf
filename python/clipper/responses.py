"""API response envelope helpers and exception handlers.

The extension consumes flat JSON bodies:
- Success: { "success": true, ...payload }
- Error: { "error": "E_...", "message": "...", "debug": ..., "request_id": "..." }

`debug` is only emitted outside production. `retry_after` accompanies
E_RATE_LIMITED together with a Retry-After header.
"""

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from clipper.config import get_settings
from clipper.errors import ApiError, ApiErrorCode
from clipper.logging import get_logger, get_request_id

logger = get_logger(__name__)


def success_response(**payload: Any) -> dict[str, Any]:
    """Create a success response body.

    Args:
        **payload: Top-level fields to return next to "success".

    Returns:
        Dict with "success": True merged with the payload.
    """
    return {"success": True, **payload}


def error_response(
    code: ApiErrorCode,
    message: str,
    debug: Any = None,
    retry_after: int | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Create an error response body.

    Args:
        code: The error code enum value.
        message: Human-readable error message.
        debug: Optional diagnostics, dropped in production.
        retry_after: Seconds until retry is allowed (rate limiting only).
        request_id: Request ID for correlation (auto-populated from context if None).

    Returns:
        Dict with error code, message and optional fields.
    """
    if request_id is None:
        request_id = get_request_id()

    body: dict[str, Any] = {"error": code.value, "message": message}
    if debug is not None and not get_settings().is_production:
        body["debug"] = debug
    if retry_after is not None:
        body["retry_after"] = retry_after
    if request_id:
        body["request_id"] = request_id

    return body


def api_error_json(exc: ApiError) -> JSONResponse:
    """Render an ApiError as a JSONResponse, including Retry-After when set."""
    headers = None
    if exc.retry_after is not None:
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message, exc.debug, exc.retry_after),
        headers=headers,
    )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    """Handle ApiError exceptions and return proper JSON response."""
    if exc.status_code >= 500:
        logger.error("api_error", code=exc.code.value, status_code=exc.status_code)
    return api_error_json(exc)


async def http_exception_handler(request: Request, exc: Any) -> JSONResponse:
    """Handle starlette HTTPException and return proper JSON response."""
    status_to_code = {
        400: ApiErrorCode.E_INVALID_REQUEST,
        401: ApiErrorCode.E_UNAUTHENTICATED,
        404: ApiErrorCode.E_NOT_FOUND,
        405: ApiErrorCode.E_METHOD_NOT_ALLOWED,
        422: ApiErrorCode.E_INVALID_REQUEST,
    }
    code = status_to_code.get(exc.status_code, ApiErrorCode.E_INTERNAL)
    message = str(exc.detail) if exc.detail else "An error occurred"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(code, message),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions and return 500 with E_INTERNAL.

    Logs the exception server-side but never leaks details to client.
    """
    logger.exception("unhandled_exception", error_type=type(exc).__name__)

    return JSONResponse(
        status_code=500,
        content=error_response(ApiErrorCode.E_INTERNAL, "Internal server error"),
    )
