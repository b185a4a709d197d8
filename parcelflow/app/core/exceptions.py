"""
Application errors and the handlers that turn them into JSON responses.

Every error body has the same shape: ``error_code``, ``message``, ``details``
and the ``correlation_id`` of the request that failed.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class AuthError(AppException):
    """Raised when the identity token is missing or invalid."""

    def __init__(self, message: str = "unauthorized access"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class ForbiddenError(AppException):
    """Raised when the caller's role or ownership does not allow the action."""

    def __init__(self, message: str = "forbidden access", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class NotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class ConflictError(AppException):
    """Raised for duplicates and state conflicts."""

    def __init__(self, message: str, details: Dict[str, Any] = None, error_code: str = "ERR_CONFLICT_001"):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class InvalidTransitionError(ConflictError):
    """Raised when a parcel cannot move from its current delivery status."""

    def __init__(self, current: Any, requested: Any):
        current_value = getattr(current, "value", current)
        requested_value = getattr(requested, "value", requested)
        super().__init__(
            message=f"Cannot move parcel from '{current_value}' to '{requested_value}'",
            details={"current_status": current_value, "requested_status": requested_value},
            error_code="ERR_CONFLICT_002"
        )


class ValidationError(AppException):
    """Raised for malformed input that passed schema parsing."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_001",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details
        )


class ExternalServiceError(AppException):
    """Raised when the identity provider or payment gateway call fails."""

    def __init__(self, service: str, message: str = "External service call failed"):
        super().__init__(
            message=f"{service}: {message}",
            error_code="ERR_EXTERNAL_001",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"service": service}
        )


# Global Exception Handlers

HTTP_ERROR_CODES = {
    400: "ERR_BAD_REQUEST",
    401: "ERR_UNAUTHORIZED",
    403: "ERR_FORBIDDEN",
    404: "ERR_NOT_FOUND",
    405: "ERR_METHOD_NOT_ALLOWED",
    409: "ERR_CONFLICT",
    500: "ERR_INTERNAL_SERVER",
}


def error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: Any,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Error body shared by every handler; carries the request's correlation id."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details or {},
            "correlation_id": getattr(request.state, "correlation_id", None),
        },
        headers=headers,
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s on %s %s: %s", exc.error_code, request.method, request.url.path, exc.message)
    return error_response(request, exc.status_code, exc.error_code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return error_response(
        request,
        exc.status_code,
        HTTP_ERROR_CODES.get(exc.status_code, "ERR_UNKNOWN"),
        exc.detail,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "ERR_VALIDATION",
        "Validation error",
        {"errors": jsonable_errors(exc)},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "ERR_INTERNAL_SERVER",
        "An internal server error occurred",
    )


def jsonable_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    # pydantic v2 puts the raw exception under "ctx" for custom validators
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        errors.append(error)
    return errors
