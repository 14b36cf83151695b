"""
API Error Handling for Next Market
Renders every failure in the standard response envelope and logs it
"""

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..services.plugins.exceptions import PluginError
from ..utils.logging_security import sanitize_error_message_for_log, sanitize_path_for_log

logger = logging.getLogger(__name__)


class ErrorType:
    """Standard error types for consistent handling"""

    VALIDATION_ERROR = "validation_error"
    NOT_FOUND_ERROR = "not_found_error"
    CONFLICT_ERROR = "conflict_error"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    DATABASE_ERROR = "database_error"
    STORAGE_ERROR = "storage_error"
    INTERNAL_ERROR = "internal_error"


ERROR_MAPPINGS = {
    400: ErrorType.VALIDATION_ERROR,
    404: ErrorType.NOT_FOUND_ERROR,
    409: ErrorType.CONFLICT_ERROR,
    413: ErrorType.PAYLOAD_TOO_LARGE,
    500: ErrorType.DATABASE_ERROR,
    502: ErrorType.STORAGE_ERROR,
}

# Shown instead of the exception message for infrastructure faults
USER_MESSAGES = {
    ErrorType.DATABASE_ERROR: "Database operation failed",
    ErrorType.STORAGE_ERROR: "Storage service error",
    ErrorType.INTERNAL_ERROR: "Internal server error occurred",
}


def error_envelope(code: int, message: str, data: Optional[Dict[str, Any]] = None) -> JSONResponse:
    """JSON error response in the {code, message, data} envelope."""
    return JSONResponse(status_code=code, content={"code": code, "message": message, "data": data})


async def plugin_error_handler(request: Request, exc: PluginError) -> JSONResponse:
    """Render a PluginError; infrastructure faults get a generic message and an error id."""
    path = sanitize_path_for_log(request.url.path)
    error_type = ERROR_MAPPINGS.get(exc.status_code, ErrorType.INTERNAL_ERROR)

    if exc.client_fault:
        logger.info(f"{request.method} {path} rejected: {exc.__class__.__name__}: {exc.message}")
        return error_envelope(exc.status_code, exc.message, {"error_type": error_type, **exc.details})

    error_id = str(uuid.uuid4())[:8]
    cause = exc.__cause__ or exc
    logger.error(
        f"{request.method} {path} failed [{error_id}]: {exc.__class__.__name__}: "
        f"{sanitize_error_message_for_log(cause)}"
    )
    return error_envelope(
        exc.status_code,
        USER_MESSAGES.get(error_type, USER_MESSAGES[ErrorType.INTERNAL_ERROR]),
        {"error_type": error_type, "error_id": error_id},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Parameter and body validation failures are client errors (400)."""
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    message = f"invalid request: {errors[0]['field']}: {errors[0]['message']}" if errors else "invalid request"
    return error_envelope(
        status.HTTP_400_BAD_REQUEST,
        message,
        {"error_type": ErrorType.VALIDATION_ERROR, "errors": errors},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "request failed"
    error_type = ERROR_MAPPINGS.get(exc.status_code, ErrorType.INTERNAL_ERROR)
    return error_envelope(exc.status_code, message, {"error_type": error_type})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    error_id = str(uuid.uuid4())[:8]
    logger.exception(
        f"Unhandled error [{error_id}] on {request.method} {sanitize_path_for_log(request.url.path)}"
    )
    return error_envelope(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        USER_MESSAGES[ErrorType.INTERNAL_ERROR],
        {"error_type": ErrorType.INTERNAL_ERROR, "error_id": error_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the envelope-producing handlers on an application."""
    app.add_exception_handler(PluginError, plugin_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
