"""
Global exception handlers - every error leaves as an error envelope
"""

import logging
from decimal import Decimal
from typing import Any, Dict
from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from friendvault.schemas.common import error_body
from friendvault.services.exceptions import (
    AuthorizationError,
    InsufficientFundsError,
    LedgerError,
    NotFoundError,
    PersistenceError,
    StateError,
    ValidationError,
    VaultCoreError,
)
from friendvault.utils.trace_id import get_trace_id

logger = logging.getLogger(__name__)

# Most specific first; subclasses inherit their parent's status
_STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (StateError, status.HTTP_409_CONFLICT),
    (InsufficientFundsError, status.HTTP_409_CONFLICT),
    (LedgerError, status.HTTP_502_BAD_GATEWAY),
    (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)

_HTTP_ERROR_CODES = {
    status.HTTP_403_FORBIDDEN: "AUTHORIZATION_ERROR",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


def status_for(exc: VaultCoreError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _json_safe(obj: Any) -> Any:
    """Recursively convert non-JSON-serializable objects to strings"""
    if isinstance(obj, (Decimal, Exception, bytes)):
        return str(obj)
    if isinstance(obj, dict):
        return {key: _json_safe(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_json_safe(item) for item in obj]
    return obj


async def vault_core_exception_handler(request: Request, exc: VaultCoreError) -> JSONResponse:
    """Map service errors to their HTTP status and error kind"""
    trace_id = get_trace_id(request)
    status_code = status_for(exc)

    log_extra = {"error_code": exc.code, "path": request.url.path, "trace_id": trace_id}
    if status_code >= 500:
        logger.error(f"Request failed: {exc.message}", extra=log_extra)
    else:
        logger.info(f"Request rejected: {exc.message}", extra=log_extra)

    return JSONResponse(
        status_code=status_code,
        content=error_body(exc.code, exc.message, details=_json_safe(exc.details), trace_id=trace_id),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions"""
    trace_id = get_trace_id(request)
    code = _HTTP_ERROR_CODES.get(exc.status_code, f"HTTP_{exc.status_code}")
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, message, trace_id=trace_id),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies are VALIDATION_ERROR (422)"""
    trace_id = get_trace_id(request)

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body(
            "VALIDATION_ERROR",
            "Request validation failed",
            details=_json_safe(exc.errors()),
            trace_id=trace_id,
        ),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle general exceptions"""
    trace_id = get_trace_id(request)

    # Log the actual exception; never expose details
    logger.exception("Unhandled exception", exc_info=exc, extra={"trace_id": trace_id})

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("INTERNAL_ERROR", "An internal error occurred", trace_id=trace_id),
    )
