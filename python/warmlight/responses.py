"""HTTP response envelope helpers and exception handlers.

All JSON responses use a consistent envelope:
- Success: { "data": ... }
- Error: { "error": { "code": "E_...", "message": "...", "request_id": "..." } }
"""

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from warmlight.errors import AppError, ErrorCode
from warmlight.logging import get_logger, get_request_id

logger = get_logger(__name__)


def success_response(data: Any) -> dict[str, Any]:
    """Wrap data in the success envelope."""
    return {"data": data}


def error_response(code: ErrorCode, message: str, request_id: str | None = None) -> dict[str, Any]:
    """Create an error response envelope.

    Args:
        code: The error code enum value.
        message: Human-readable error message.
        request_id: Request ID for correlation (taken from context if None).
    """
    if request_id is None:
        request_id = get_request_id()

    error = {"code": code.value, "message": message}
    if request_id:
        error["request_id"] = request_id

    return {"error": error}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle AppError exceptions and return the mapped status."""
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.code, exc.message),
    )


async def http_exception_handler(request: Request, exc: Any) -> JSONResponse:
    """Handle HTTPException (404 for unknown paths, 405, ...)."""
    status_to_code = {
        400: ErrorCode.E_INVALID_REQUEST,
        401: ErrorCode.E_UNAUTHENTICATED,
        403: ErrorCode.E_FORBIDDEN,
        404: ErrorCode.E_NOT_FOUND,
        422: ErrorCode.E_INVALID_REQUEST,
    }
    code = status_to_code.get(exc.status_code, ErrorCode.E_INTERNAL)
    message = str(exc.detail) if exc.detail else "An error occurred"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(code, message),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the exception and return 500 without leaking details."""
    logger.exception("unhandled_exception", error_type=type(exc).__name__)

    return JSONResponse(
        status_code=500,
        content=error_response(ErrorCode.E_INTERNAL, "Internal server error"),
    )
