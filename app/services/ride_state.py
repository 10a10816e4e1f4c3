"""
Ride Status State Machine

active <-> full follows seat availability. completed and cancelled are
terminal and only reachable from active or full.
"""

from app.exceptions import StateError, ValidationError
from app.models.ride import RideStatus


ALLOWED_TRANSITIONS = {
    RideStatus.ACTIVE.value: {
        RideStatus.FULL.value,
        RideStatus.COMPLETED.value,
        RideStatus.CANCELLED.value,
    },
    RideStatus.FULL.value: {
        RideStatus.ACTIVE.value,
        RideStatus.COMPLETED.value,
        RideStatus.CANCELLED.value,
    },
    RideStatus.COMPLETED.value: set(),
    RideStatus.CANCELLED.value: set(),
}


def parse_status(status) -> str:
    try:
        return RideStatus(status).value
    except ValueError:
        raise ValidationError(
            f"Invalid ride status: {status}",
            field="status",
            constraint="one of active, full, completed, cancelled",
        )


def can_transition(current, target) -> bool:
    """Check the transition table without raising."""
    return parse_status(target) in ALLOWED_TRANSITIONS[parse_status(current)]


def ensure_transition(current, target) -> None:
    """Raise StateError if current -> target is not allowed."""
    current = parse_status(current)
    target = parse_status(target)

    if target in ALLOWED_TRANSITIONS[current]:
        return

    if current == RideStatus.CANCELLED.value:
        if target == RideStatus.CANCELLED.value:
            raise StateError("Ride is already cancelled")
        if target == RideStatus.COMPLETED.value:
            raise StateError("Cannot complete a cancelled ride")
        raise StateError("Cancelled rides cannot be modified")

    if current == RideStatus.COMPLETED.value:
        if target == RideStatus.COMPLETED.value:
            raise StateError("Ride is already completed")
        if target == RideStatus.CANCELLED.value:
            raise StateError("Cannot cancel a completed ride")
        raise StateError("Completed rides cannot be modified")

    raise StateError(f"Ride is already {current}")


def status_for_seats(seats_available: int) -> str:
    """Open status implied by the seat counter."""
    if seats_available <= 0:
        return RideStatus.FULL.value
    return RideStatus.ACTIVE.value
