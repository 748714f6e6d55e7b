"""Custom exceptions and error handlers"""

import traceback
from typing import Any, Dict, List, Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from invoicing.core.config import settings

logger = structlog.get_logger()


class InvoicingError(Exception):
    """
    Base exception for application errors.

    Subclasses fix the machine-readable ``code`` and the HTTP status used when
    the error escapes a request. ``details`` carries identifiers of the
    entities involved and is safe to show to the caller.
    """

    code = "UNKNOWN_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(InvoicingError):
    """Malformed input or a violated business rule; never mutates state"""
    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(InvoicingError):
    """Entity missing or outside the caller's business/client scope"""
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(InvoicingError):
    """Operation not permitted in the entity's current lifecycle state"""
    code = "INVALID_STATE"
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(InvoicingError):
    """Uniqueness violation or concurrent modification"""
    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class DatabaseError(InvoicingError):
    code = "DATABASE_ERROR"


class AWSServiceError(InvoicingError):
    """EventBridge (or any other AWS) call failed after retries"""
    code = "AWS_SERVICE_ERROR"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: str, service: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, {**(details or {}), "service": service})


class AuthenticationError(InvoicingError):
    code = "AUTH_ERROR"
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class AuthorizationError(InvoicingError):
    code = "AUTHZ_ERROR"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Insufficient permissions", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


def current_request_id(request: Request) -> Optional[str]:
    """Request id bound by LoggingMiddleware, else the incoming header"""
    bound = structlog.contextvars.get_contextvars().get("request_id")
    return bound or request.headers.get("X-Request-ID")


def error_envelope(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """``{"error": {code, message, details, request_id?}}``"""
    error: Dict[str, Any] = {"code": code, "message": message, "details": details or {}}
    request_id = current_request_id(request)
    if request_id:
        error["request_id"] = request_id
    return JSONResponse(status_code=status_code, content={"error": error})


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    # loc[0] is "body", "query" or "path"
    return [
        {
            "field": ".".join(str(part) for part in error["loc"][1:]) or str(error["loc"][0]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in errors
    ]


async def invoicing_error_handler(request: Request, exc: InvoicingError) -> JSONResponse:
    internal = exc.status_code >= 500
    log = logger.error if internal else logger.info
    log("Request rejected", error_code=exc.code, error_message=exc.message, error_details=exc.details)

    if internal:
        return error_envelope(
            request,
            exc.status_code,
            exc.code,
            "An internal error occurred",
            exc.details if settings.DEBUG else None,
        )
    return error_envelope(request, exc.status_code, exc.code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.info("HTTP exception", status_code=exc.status_code, detail=exc.detail)
    response = error_envelope(
        request,
        exc.status_code,
        f"HTTP_{exc.status_code}",
        str(exc.detail) if exc.detail else "An error occurred",
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Schema violations share the 400 VALIDATION_ERROR shape of business rule failures"""
    errors = format_validation_errors(exc.errors())
    logger.info("Request validation failed", fields=[e["field"] for e in errors])
    return error_envelope(
        request,
        status.HTTP_400_BAD_REQUEST,
        ValidationError.code,
        "Request validation failed",
        {"validation_errors": errors},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        exception_type=type(exc).__name__,
        exception_message=str(exc),
        traceback=traceback.format_exc(),
    )
    details = {"exception_type": type(exc).__name__, "exception_message": str(exc)} if settings.DEBUG else None
    return error_envelope(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        "An internal error occurred",
        details,
    )


def setup_exception_handlers(app: FastAPI):
    app.add_exception_handler(InvoicingError, invoicing_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
