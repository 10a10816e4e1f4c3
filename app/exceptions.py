"""
UniRide Exceptions

Typed business failures raised by the services. The service boundary turns
them into failure results (see app.models.result).
"""

from typing import Optional


class UniRideError(Exception):
    """Base class for all business rule failures."""

    code = "error"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        constraint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.field = field
        self.constraint = constraint


class ValidationError(UniRideError):
    """Malformed or out-of-range input."""

    code = "validation_error"


class NotFoundError(UniRideError):
    """Referenced ride, booking or user does not exist."""

    code = "not_found"


class AuthorizationError(UniRideError):
    """Caller does not own the resource or lacks the required role."""

    code = "authorization_error"


class CapacityError(UniRideError):
    """Seat availability constraint violated."""

    code = "capacity_error"


class StateError(UniRideError):
    """Operation is invalid for the current status."""

    code = "state_error"
