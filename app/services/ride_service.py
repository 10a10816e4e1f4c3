"""
Ride Service - Ride offer lifecycle.

Handles:
- Ride creation with driver/role checks and future-departure validation
- Detail updates with seat recomputation
- Status transitions (active <-> full, completed, cancelled)
- Read accessors for a driver's rides and a user's combined rides

State machine:
    active <-> full -> completed
                    -> cancelled

completed and cancelled are terminal. Every write is conditional on the
status read, so a concurrent transition turns into a StateError instead of
overwriting a terminal ride.
"""

import logging
import uuid
from typing import List, Optional

from pymongo import ReturnDocument
from pymongo.errors import PyMongoError
from redis.exceptions import RedisError

from app.config import settings
from app.database import get_db
from app.exceptions import AuthorizationError, CapacityError, StateError, ValidationError
from app.models.booking import BookingStatus
from app.models.notification import NotificationType
from app.models.result import service_operation
from app.models.ride import (
    Ride, RideCreate, RideUpdate, RideStatus, OPEN_STATUSES, TERMINAL_STATUSES,
)
from app.models.user import UserRole
from app.services.chat_service import ChatService
from app.services.notification_service import NotificationService
from app.services.ride_state import ensure_transition, parse_status, status_for_seats
from app.services.ride_store import ensure_driver, load_ride, require_id
from app.services.score_service import ScoreService
from app.services.tracking_service import TrackingService
from app.services.user_service import UserService
from app.utils.geo import calculate_distance
from app.utils.timezone_utils import parse_local_to_utc, utc_now
from app.utils.validation import parse_model

logger = logging.getLogger(__name__)

COORDINATE_FIELDS = ("pickup_lat", "pickup_lng", "destination_lat", "destination_lng")


def _route_distance(pickup_lat, pickup_lng, destination_lat, destination_lng) -> float:
    return round(calculate_distance(pickup_lat, pickup_lng, destination_lat, destination_lng), 2)


def _future_departure(date: str, time: str, offset_minutes: int):
    ride_datetime = parse_local_to_utc(date, time, offset_minutes)
    if ride_datetime <= utc_now():
        raise ValidationError(
            "Ride date and time must be in the future",
            field="date",
            constraint="date + time > now"
        )
    return ride_datetime


class RideService:
    """
    Ride lifecycle service.

    All public operations return a ServiceResult.
    """

    def __init__(self):
        self.user_service = UserService()
        self.notification_service = NotificationService()
        self.chat_service = ChatService()
        self.tracking_service = TrackingService()
        self.score_service = ScoreService()

    # =========================================================================
    # Create / update
    # =========================================================================

    @service_operation
    async def create_ride(self, driver_id: str, fields) -> Ride:
        """
        Offer a new ride.

        The ride starts active with every seat available. The driver's
        total_rides_offered counter is incremented.
        """
        require_id(driver_id, "driver_id")
        data = parse_model(RideCreate, fields)

        driver = await self.user_service.require_user(driver_id, field="driver_id")
        if driver.role != UserRole.DRIVER.value:
            raise AuthorizationError(
                "Only drivers can create rides",
                field="role",
                constraint="role == driver"
            )

        offset = data.timezone_offset_minutes
        if offset is None:
            offset = settings.default_timezone_offset_minutes
        ride_datetime = _future_departure(data.date, data.time, offset)

        now = utc_now()
        ride = Ride(
            ride_id=str(uuid.uuid4()),
            driver_id=driver_id,
            driver_name=driver.name,
            driver_phone=driver.phone,
            driver_rating=driver.avg_rating,
            driver_gender=driver.gender,
            driver_photo_url=driver.photo_url,
            **data.model_dump(exclude={"timezone_offset_minutes"}),
            distance_km=_route_distance(
                data.pickup_lat, data.pickup_lng, data.destination_lat, data.destination_lng
            ),
            timezone_offset_minutes=offset,
            ride_datetime=ride_datetime,
            seats_available=data.total_seats,
            status=RideStatus.ACTIVE,
            riders=[],
            created_at=now,
            updated_at=now,
        )

        db = get_db()
        await db.rides.insert_one(ride.model_dump())
        await self.user_service.increment_counters(driver_id, total_rides_offered=1)

        logger.info(
            f"Ride {ride.ride_id} created by {driver_id}: "
            f"{ride.pickup} -> {ride.destination} at {ride_datetime.isoformat()}"
        )
        return ride

    @service_operation
    async def update_ride_details(self, driver_id: str, ride_id: str, updates) -> Ride:
        """
        Edit an open ride.

        Changing total_seats recomputes seats_available from the seats already
        booked and flips active/full accordingly.
        """
        data = parse_model(RideUpdate, updates)
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if not changes:
            raise ValidationError("No updates provided")

        ride = await load_ride(ride_id)
        ensure_driver(ride, driver_id)
        if ride.status in TERMINAL_STATUSES:
            raise StateError(f"Cannot update a {ride.status} ride")

        query = {"ride_id": ride_id, "status": {"$in": OPEN_STATUSES}}
        update = dict(changes)

        if "total_seats" in changes:
            booked = ride.seats_booked
            if changes["total_seats"] < booked:
                raise CapacityError(
                    f"Cannot reduce seats below {booked} already booked",
                    field="total_seats",
                    constraint=f">= {booked}"
                )
            seats_available = changes["total_seats"] - booked
            update["seats_available"] = seats_available
            update["status"] = status_for_seats(seats_available)
            # Seat math assumes no booking landed since the read
            query["seats_available"] = ride.seats_available

        if "date" in changes or "time" in changes:
            update["ride_datetime"] = _future_departure(
                changes.get("date", ride.date),
                changes.get("time", ride.time),
                ride.timezone_offset_minutes,
            )
            update["reminder_sent"] = False

        if any(f in changes for f in COORDINATE_FIELDS):
            coords = {f: changes.get(f, getattr(ride, f)) for f in COORDINATE_FIELDS}
            update["distance_km"] = _route_distance(**coords)

        update["updated_at"] = utc_now()

        db = get_db()
        doc = await db.rides.find_one_and_update(
            query, {"$set": update}, return_document=ReturnDocument.AFTER
        )
        if doc is None:
            raise StateError("Ride changed while updating, please retry")

        logger.info(f"Ride {ride_id} updated by {driver_id}: {sorted(changes)}")
        return Ride(**doc)

    # =========================================================================
    # Status transitions
    # =========================================================================

    @service_operation
    async def update_ride_status(self, ride_id: str, status, driver_id: str) -> Ride:
        """
        Generic status change.

        completed/cancelled delegate to the completion/cancellation flows.
        active/full must agree with seat availability.
        """
        target = parse_status(status)

        if target == RideStatus.CANCELLED.value:
            return await self._cancel(ride_id, driver_id)
        if target == RideStatus.COMPLETED.value:
            return await self._complete(ride_id, driver_id)

        ride = await load_ride(ride_id)
        ensure_driver(ride, driver_id)
        ensure_transition(ride.status, target)

        if target == RideStatus.FULL.value and ride.seats_available > 0:
            raise StateError("Cannot mark a ride full while seats remain")
        if target == RideStatus.ACTIVE.value and ride.seats_available == 0:
            raise StateError("Cannot reopen a ride with no seats available")

        return await self._set_status(ride, target)

    async def _set_status(self, ride: Ride, target: str, **extra) -> Ride:
        db = get_db()
        doc = await db.rides.find_one_and_update(
            {"ride_id": ride.ride_id, "status": ride.status},
            {"$set": {"status": target, "updated_at": utc_now(), **extra}},
            return_document=ReturnDocument.AFTER
        )
        if doc is None:
            latest = await load_ride(ride.ride_id)
            ensure_transition(latest.status, target)
            raise StateError("Ride status changed, please retry")
        return Ride(**doc)

    @service_operation
    async def cancel_ride(self, ride_id: str, driver_id: str, reason: Optional[str] = None) -> Ride:
        return await self._cancel(ride_id, driver_id, reason)

    async def _cancel(self, ride_id: str, driver_id: str, reason: Optional[str] = None) -> Ride:
        """
        Cancel an open ride.

        Active bookings are cancelled with it. Chat notice, tracking cleanup
        and rider notifications are best effort.
        """
        ride = await load_ride(ride_id)
        ensure_driver(ride, driver_id, "cancel this ride")
        ensure_transition(ride.status, RideStatus.CANCELLED)

        now = utc_now()
        cancelled = await self._set_status(
            ride,
            RideStatus.CANCELLED.value,
            cancelled_at=now,
            cancellation_reason=reason,
        )

        db = get_db()
        await db.bookings.update_many(
            {"ride_id": ride_id, "status": BookingStatus.ACTIVE.value},
            {"$set": {
                "status": BookingStatus.CANCELLED.value,
                "cancelled_at": now,
                "updated_at": now,
            }}
        )

        logger.info(f"Ride {ride_id} cancelled by {driver_id} ({len(cancelled.riders)} riders affected)")

        notice = "The driver cancelled this ride."
        if reason:
            notice = f"The driver cancelled this ride: {reason}"
        try:
            await self.chat_service.send_system_message(ride_id, notice)
        except RedisError as e:
            logger.error(f"Cancellation chat notice failed for ride {ride_id}: {e}")

        try:
            await self.tracking_service.clear_tracking_data(ride_id)
        except RedisError as e:
            logger.error(f"Tracking cleanup failed for cancelled ride {ride_id}: {e}")

        try:
            await self.notification_service.notify_ride_cancelled(cancelled, cancelled.riders)
        except PyMongoError as e:
            logger.error(f"Cancellation notifications failed for ride {ride_id}: {e}")

        return cancelled

    @service_operation
    async def complete_ride(self, ride_id: str, driver_id: str) -> Ride:
        return await self._complete(ride_id, driver_id)

    async def _complete(self, ride_id: str, driver_id: str) -> Ride:
        """
        Mark a ride completed.

        Active bookings are completed, tracking is cleared, carpool stats are
        credited and every participant is asked for a rating.
        """
        ride = await load_ride(ride_id)
        ensure_driver(ride, driver_id, "complete this ride")
        ensure_transition(ride.status, RideStatus.COMPLETED)

        now = utc_now()
        completed = await self._set_status(ride, RideStatus.COMPLETED.value, completed_at=now)

        db = get_db()
        await db.bookings.update_many(
            {"ride_id": ride_id, "status": BookingStatus.ACTIVE.value},
            {"$set": {
                "status": BookingStatus.COMPLETED.value,
                "completed_at": now,
                "updated_at": now,
            }}
        )

        logger.info(f"Ride {ride_id} completed by {driver_id}")

        try:
            await self.tracking_service.clear_tracking_data(ride_id)
        except RedisError as e:
            logger.error(f"Tracking cleanup failed for completed ride {ride_id}: {e}")

        try:
            await self.score_service.record_completed_ride(completed)
        except PyMongoError as e:
            logger.error(f"Carpool stats update failed for ride {ride_id}: {e}", exc_info=True)

        try:
            await self.notification_service.notify_many(
                [completed.driver_id, *completed.riders],
                NotificationType.RATING_REQUEST,
                {"ride_id": ride_id, "destination": completed.destination},
            )
        except PyMongoError as e:
            logger.error(f"Rating requests failed for ride {ride_id}: {e}")

        return completed

    # =========================================================================
    # Reads
    # =========================================================================

    @service_operation
    async def get_ride_by_id(self, ride_id: str) -> Ride:
        return await load_ride(ride_id)

    @service_operation
    async def get_driver_rides(self, driver_id: str, status: Optional[str] = None) -> List[Ride]:
        """A driver's rides, latest departure first."""
        require_id(driver_id, "driver_id")
        query = {"driver_id": driver_id}
        if status is not None:
            query["status"] = parse_status(status)

        db = get_db()
        cursor = db.rides.find(query).sort("ride_datetime", -1).limit(settings.my_rides_limit)
        return [Ride(**doc) async for doc in cursor]

    @service_operation
    async def get_my_rides(self, user_id: str, role: str = "all") -> List[dict]:
        """
        Rides the user drives and rides the user booked, tagged with
        user_role and ordered by departure, latest first.
        """
        require_id(user_id, "user_id")
        if role not in ("all", "driver", "rider"):
            raise ValidationError(
                "Role must be all, driver or rider",
                field="role",
                constraint="one of all, driver, rider"
            )

        db = get_db()
        rides = []

        if role in ("all", "driver"):
            cursor = db.rides.find({"driver_id": user_id}).sort("ride_datetime", -1).limit(settings.my_rides_limit)
            async for doc in cursor:
                rides.append({**Ride(**doc).model_dump(), "user_role": "driver"})

        if role in ("all", "rider"):
            cursor = db.rides.find({"riders": user_id}).sort("ride_datetime", -1).limit(settings.my_rides_limit)
            async for doc in cursor:
                rides.append({**Ride(**doc).model_dump(), "user_role": "rider"})

        rides.sort(key=lambda r: (r["ride_datetime"], r["ride_id"]), reverse=True)
        return rides
