"""
Booking engine exceptions

Each error maps onto an HTTP status so routes can let them propagate.
"""
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Malformed or missing input, detected before any write."""

    def __init__(self, detail: str = "Validation failed", errors: Optional[List[Dict[str, Any]]] = None) -> None:
        self.errors = errors
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class NotFoundError(AppException):
    """Referenced booking or resource does not exist."""

    def __init__(self, resource: str = "Resource", identifier: Optional[str] = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} {identifier} not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictError(AppException):
    """Resource blocked, mismatched, or already booked for the dates."""

    def __init__(self, detail: str = "The selected dates are not available", status_code: int = status.HTTP_400_BAD_REQUEST) -> None:
        super().__init__(status_code=status_code, detail=detail)


class PreconditionError(AppException):
    """Operation not allowed for the booking's current state."""

    def __init__(self, detail: str = "This operation is not allowed for the current booking status") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class AuthenticationError(AppException):
    def __init__(self, detail: str = "Authentication required") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(AppException):
    def __init__(self, detail: str = "You don't have permission to access this resource") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class ConsistencyError(AppException):
    """
    A resource occupancy write and its paired booking write diverged.
    Needs operator reconciliation (scripts/reconcile_occupancy.py).
    """

    def __init__(self, booking_id: str, resource_id: Optional[str], detail: Optional[str] = None) -> None:
        self.booking_id = booking_id
        self.resource_id = resource_id
        message = detail or (
            f"Booking {booking_id} and resource {resource_id} are out of sync; "
            "operator reconciliation required"
        )
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=message)


class NotificationError(Exception):
    """Raised by notification transports; never propagated to callers."""

    def __init__(self, channel: str, detail: str) -> None:
        self.channel = channel
        super().__init__(f"{channel} notification failed: {detail}")
