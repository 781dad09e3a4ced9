"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
Every pickup workflow failure maps to one of these exceptions; none of them
is used for normal control flow.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import OperationalError
from typing import Any, Dict

logger = logging.getLogger("pickup_backend.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class TenantScopeError(AppException):
    """Raised when a resource belongs to another tenant."""

    def __init__(self, resource: str = "resource", resource_id: Any = None):
        super().__init__(
            message=f"Access denied. This {resource} belongs to another tenant.",
            error_code="ERR_PERM_002",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"resource": resource, "id": resource_id}
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class AssignmentConflictError(AppException):
    """Raised when a pickup is no longer free to be claimed."""

    def __init__(self, pickup_order_id: int, current_status: str, message: str = None):
        super().__init__(
            message=message or f"Pickup {pickup_order_id} has already been taken (status: {current_status})",
            error_code="ERR_PICKUP_CONFLICT",
            status_code=status.HTTP_409_CONFLICT,
            details={"pickup_order_id": pickup_order_id, "current_status": current_status}
        )


class NotOwnerError(AppException):
    """Raised when the acting driver is not the pickup's current assignee."""

    def __init__(self, pickup_order_id: int):
        super().__init__(
            message=f"Pickup {pickup_order_id} is not assigned to you",
            error_code="ERR_PICKUP_NOT_OWNER",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"pickup_order_id": pickup_order_id}
        )


class IllegalTransitionError(AppException):
    """Raised when the requested status change is not allowed from the current status."""

    def __init__(self, pickup_order_id: int, current_status: str, requested_status: str):
        super().__init__(
            message=f"Cannot change pickup {pickup_order_id} from {current_status} to {requested_status}",
            error_code="ERR_PICKUP_ILLEGAL_TRANSITION",
            status_code=status.HTTP_409_CONFLICT,
            details={
                "pickup_order_id": pickup_order_id,
                "current_status": current_status,
                "requested_status": requested_status
            }
        )


class TerminalStateError(AppException):
    """Raised on any mutation of a completed or canceled pickup."""

    def __init__(self, pickup_order_id: int, current_status: str):
        super().__init__(
            message=f"Pickup {pickup_order_id} is {current_status} and can no longer be changed",
            error_code="ERR_PICKUP_TERMINAL",
            status_code=status.HTTP_409_CONFLICT,
            details={"pickup_order_id": pickup_order_id, "current_status": current_status}
        )


class PickupValidationError(AppException):
    """Raised when a request is well-formed but its values are unusable."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details
        )


class TransientError(AppException):
    """Raised for infrastructure failures that are safe to retry once."""

    def __init__(self, message: str = "Service temporarily unavailable, please retry"):
        super().__init__(
            message=message,
            error_code="ERR_TRANSIENT",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_errors(exc)
            }
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Strip non-serializable context (e.g. raised ValueErrors) from validation errors."""
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


async def operational_error_handler(request: Request, exc: OperationalError) -> JSONResponse:
    """Database connectivity failures are reported as transient."""
    logger.warning("Transient database failure on %s: %s", request.url.path, exc)
    transient = TransientError()
    return await app_exception_handler(request, transient)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s: %s", type(exc).__name__, exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
