"""Custom exceptions following RFC 9457 Problem Details for HTTP APIs."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class ProblemDetailsException(HTTPException):
    """
    Base exception class following RFC 9457 Problem Details for HTTP APIs.

    https://tools.ietf.org/rfc/rfc9457.txt
    """

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        extensions: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize Problem Details exception.

        Args:
            status_code: HTTP status code
            title: Short, human-readable summary of the problem type
            detail: Human-readable explanation specific to this occurrence
            type_uri: URI reference that identifies the problem type
            instance: URI reference that identifies the specific occurrence
            extensions: Additional problem-specific information
            headers: HTTP headers to include in response
        """
        self.status_code = status_code
        self.title = title
        self.detail = detail
        self.type_uri = type_uri or f"about:blank#{status_code}"
        self.instance = instance
        self.extensions = extensions or {}

        self.problem_details = {
            "type": self.type_uri,
            "title": self.title,
            "status": self.status_code,
        }

        if self.detail:
            self.problem_details["detail"] = self.detail

        if self.instance:
            self.problem_details["instance"] = self.instance

        self.problem_details.update(self.extensions)

        super().__init__(
            status_code=status_code,
            detail=self.problem_details,
            headers=headers
        )


class ValidationError(ProblemDetailsException):
    """Exception for malformed input such as impossible date ranges."""

    def __init__(
        self,
        detail: str = "The request data failed validation",
        errors: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if errors:
            extensions["errors"] = errors

        super().__init__(
            status_code=400,
            title="Validation Error",
            detail=detail,
            type_uri="https://example.com/problems/validation-error",
            instance=instance,
            extensions=extensions,
        )


class AuthenticationError(ProblemDetailsException):
    """Exception for authentication errors."""

    def __init__(
        self,
        detail: str = "Authentication credentials are required",
        instance: Optional[str] = None,
    ):
        super().__init__(
            status_code=401,
            title="Authentication Required",
            detail=detail,
            type_uri="https://example.com/problems/authentication-required",
            instance=instance,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(ProblemDetailsException):
    """Exception for business-rule authorization failures."""

    def __init__(
        self,
        detail: str = "Insufficient permissions to access this resource",
        required_roles: Optional[list] = None,
        instance: Optional[str] = None,
    ):
        extensions = {}
        if required_roles:
            extensions["required_roles"] = required_roles

        super().__init__(
            status_code=403,
            title="Access Forbidden",
            detail=detail,
            type_uri="https://example.com/problems/access-forbidden",
            instance=instance,
            extensions=extensions,
        )


class NotFoundError(ProblemDetailsException):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str = "resource",
        resource_id: Optional[str] = None,
        detail: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not detail:
            detail = f"The requested {resource_type}"
            if resource_id:
                detail += f" with ID '{resource_id}'"
            detail += " could not be found"

        extensions = {
            "resource_type": resource_type,
        }
        if resource_id:
            extensions["resource_id"] = resource_id

        super().__init__(
            status_code=404,
            title="Resource Not Found",
            detail=detail,
            type_uri="https://example.com/problems/resource-not-found",
            instance=instance,
            extensions=extensions,
        )


class ConflictError(ProblemDetailsException):
    """Exception for resource conflict errors."""

    def __init__(
        self,
        detail: str = "The request conflicts with the current state of the resource",
        conflicting_resource: Optional[Dict[str, Any]] = None,
        instance: Optional[str] = None,
        title: str = "Resource Conflict",
        type_uri: str = "https://example.com/problems/resource-conflict",
    ):
        extensions = {}
        if conflicting_resource:
            extensions["conflicting_resource"] = conflicting_resource

        super().__init__(
            status_code=409,
            title=title,
            detail=detail,
            type_uri=type_uri,
            instance=instance,
            extensions=extensions,
        )


class InternalServerError(ProblemDetailsException):
    """Opaque exception for unexpected failures."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred while processing the request",
        error_id: Optional[str] = None,
        instance: Optional[str] = None,
    ):
        if not error_id:
            error_id = str(uuid.uuid4())

        extensions = {
            "error_id": error_id,
            "timestamp": _utc_timestamp(),
        }

        super().__init__(
            status_code=500,
            title="Internal Server Error",
            detail=detail,
            type_uri="https://example.com/problems/internal-server-error",
            instance=instance,
            extensions=extensions,
        )


# Business rule exceptions

class InsufficientInventoryError(ConflictError):
    """Requested quantity exceeds the free rooms of a type for a date range."""

    def __init__(self, room_type_id: int, requested: int, available: int):
        super().__init__(
            detail=(
                f"Not enough rooms available for room type {room_type_id}. "
                f"Requested: {requested}, Available: {available}"
            ),
            conflicting_resource={
                "room_type_id": room_type_id,
                "requested": requested,
                "available": available,
            },
            title="Insufficient Inventory",
            type_uri="https://example.com/problems/insufficient-inventory",
        )
        self.room_type_id = room_type_id
        self.problem_details.update({
            "code": "INSUFFICIENT_INVENTORY",
            "retryable": False,
        })


class InvalidStateError(ConflictError):
    """Operation is not permitted from the current status of a reservation or invoice."""

    def __init__(
        self,
        operation: str,
        current_status: str,
        required_statuses: Iterable[str],
        resource_type: str = "reservation",
    ):
        required = sorted(str(status) for status in required_statuses)
        super().__init__(
            detail=(
                f"Cannot {operation} a {resource_type} in status '{current_status}'. "
                f"Required status: {', '.join(required) or 'none'}"
            ),
            title="Invalid State",
            type_uri="https://example.com/problems/invalid-state",
        )
        self.current_status = current_status
        self.problem_details.update({
            "code": "INVALID_STATE",
            "retryable": False,
            "operation": operation,
            "current_status": current_status,
            "required_statuses": required,
        })


class RoomUnavailableError(ConflictError):
    """Target room is out of service or allocated for overlapping dates."""

    def __init__(self, room_id: int, reason: str):
        super().__init__(
            detail=f"Room {room_id} is not available for the reservation dates: {reason}",
            conflicting_resource={"room_id": room_id},
            title="Room Unavailable",
            type_uri="https://example.com/problems/room-unavailable",
        )
        self.problem_details.update({
            "code": "ROOM_UNAVAILABLE",
            "retryable": False,
        })


class RoomTypeMismatchError(ProblemDetailsException):
    """Replacement room is not of the originally booked room type."""

    def __init__(self, room_id: int, expected_room_type_id: int, actual_room_type_id: int):
        super().__init__(
            status_code=400,
            title="Room Type Mismatch",
            detail=(
                f"Room {room_id} is of room type {actual_room_type_id}, "
                f"not the booked room type {expected_room_type_id}"
            ),
            type_uri="https://example.com/problems/room-type-mismatch",
            extensions={
                "code": "TYPE_MISMATCH",
                "room_id": room_id,
                "expected_room_type_id": expected_room_type_id,
                "actual_room_type_id": actual_room_type_id,
            },
        )


class NotSupportedError(ProblemDetailsException):
    """Requested change is not supported by this version of the API."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=400,
            title="Not Supported",
            detail=detail,
            type_uri="https://example.com/problems/not-supported",
            extensions={"code": "NOT_SUPPORTED"},
        )


async def problem_details_handler(request: Request, exc: ProblemDetailsException) -> JSONResponse:
    """
    Exception handler for Problem Details exceptions.

    Args:
        request: FastAPI request object
        exc: Problem Details exception

    Returns:
        JSONResponse: Problem Details formatted response
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.problem_details,
        headers=exc.headers,
        media_type="application/problem+json",
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render request validation failures as a 400 problem with violations."""
    violations = [
        {
            "path": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    problem = ValidationError(detail="The request data failed validation")
    problem.problem_details["violations"] = violations
    return await problem_details_handler(request, problem)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Generic exception handler that converts unhandled exceptions to Problem Details format.

    The full exception is logged server side; the caller only receives an
    error id to quote.
    """
    problem = InternalServerError(instance=str(request.url))
    logger.error(
        "Unhandled exception",
        exc_info=exc,
        extra={
            "error_id": problem.problem_details["error_id"],
            "path": request.url.path,
            "method": request.method,
        },
    )
    return await problem_details_handler(request, problem)
