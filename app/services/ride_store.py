"""Ride document access shared by the ride, booking, tracking and chat services."""

from app.database import get_db
from app.exceptions import AuthorizationError, NotFoundError, ValidationError
from app.models.ride import Ride, RideStatus


def require_id(value, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field=field, constraint="non-empty string")
    return value


async def load_ride(ride_id: str) -> Ride:
    """Fetch a ride or raise NotFoundError."""
    require_id(ride_id, "ride_id")
    doc = await get_db().rides.find_one({"ride_id": ride_id})
    if not doc:
        raise NotFoundError("Ride not found", field="ride_id")
    return Ride(**doc)


def ensure_driver(ride: Ride, user_id: str, action: str = "modify this ride") -> None:
    if ride.driver_id != user_id:
        raise AuthorizationError(
            f"Only the ride's driver can {action}",
            field="driver_id",
            constraint="caller == ride.driver_id"
        )


def participant_role(ride: Ride, user_id: str):
    """'driver', 'rider' or None when the user is not part of the ride."""
    if ride.driver_id == user_id:
        return "driver"
    if user_id in ride.riders:
        return "rider"
    return None


def ensure_participant(ride: Ride, user_id: str) -> str:
    role = participant_role(ride, user_id)
    if role is None:
        raise AuthorizationError(
            "You must be part of this ride",
            field="user_id",
            constraint="driver or booked rider"
        )
    return role


async def sync_seat_status(ride_id: str) -> None:
    """
    Flip active <-> full to match seats_available.

    Both updates are conditional, so they are no-ops for terminal rides
    and safe to run after any seat change.
    """
    db = get_db()
    await db.rides.update_one(
        {"ride_id": ride_id, "status": RideStatus.ACTIVE.value, "seats_available": {"$lte": 0}},
        {"$set": {"status": RideStatus.FULL.value}}
    )
    await db.rides.update_one(
        {"ride_id": ride_id, "status": RideStatus.FULL.value, "seats_available": {"$gt": 0}},
        {"$set": {"status": RideStatus.ACTIVE.value}}
    )
