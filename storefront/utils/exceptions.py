"""
Centralized exception handling utilities for consistent error responses.
"""
from fastapi import HTTPException, status
from typing import Optional


# Map HTTP status codes to error code strings
STATUS_CODE_MAP = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    429: "RATE_LIMITED",
    500: "INTERNAL_ERROR",
}


class APIException(HTTPException):
    """Base API exception with consistent error formatting."""
    error_code: str = "ERROR"

    def __init__(self, status_code: int, detail: str, headers: Optional[dict] = None):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        # Default error_code from status code if subclass didn't set one
        if self.error_code == "ERROR":
            self.error_code = STATUS_CODE_MAP.get(status_code, "ERROR")


class NotFoundError(APIException):
    """Resource not found exception."""
    error_code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", resource_id: Optional[int] = None):
        if resource_id is not None:
            detail = f"{resource} {resource_id} not found"
        else:
            detail = f"{resource} not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ForbiddenError(APIException):
    """Access forbidden exception."""
    error_code = "FORBIDDEN"

    def __init__(self, message: str = "Not enough permissions"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=message)


class BadRequestError(APIException):
    """Bad request exception."""
    error_code = "BAD_REQUEST"

    def __init__(self, message: str = "Bad request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


class UnauthorizedError(APIException):
    """
    Authentication failure.

    Every cause (missing header, bad signature, expiry, unknown claims) shares
    this one message so callers cannot tell them apart.
    """
    error_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=message,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ConflictError(APIException):
    """Resource conflict exception."""
    error_code = "CONFLICT"

    def __init__(self, message: str = "Resource conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=message)


class TooManyRequestsError(APIException):
    """Rate limit exceeded."""
    error_code = "RATE_LIMITED"

    def __init__(self, message: str = "Too many attempts. Please try again later."):
        super().__init__(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=message)


class InternalServerError(APIException):
    """Unexpected storage or transaction failure."""
    error_code = "INTERNAL_ERROR"

    def __init__(self, message: str = "Internal server error"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


# Business logic specific exceptions
class InvalidOrderStatusError(ConflictError):
    """Status transition not allowed from the order's current state."""
    error_code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current_status: str, new_status: str):
        message = f"Invalid status transition: cannot change order status from {current_status} to {new_status}"
        super().__init__(message)


class OrderDispatchedError(InvalidOrderStatusError):
    """Cancellation attempted after the order left for delivery."""
    error_code = "ORDER_ALREADY_DISPATCHED"

    def __init__(self, current_status: str):
        super().__init__(current_status, "canceled")
        self.detail = f"Cannot cancel an order that is already {current_status}"


class PermissionDeniedError(ForbiddenError):
    """Permission denied for specific action."""
    error_code = "PERMISSION_DENIED"

    def __init__(self, action: str, resource: str = "resource"):
        message = f"You don't have permission to {action} this {resource}"
        super().__init__(message)
