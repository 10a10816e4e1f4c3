"""
Booking Service - Seat booking and seat accounting.

seats_available on the ride document is the source of truth for capacity.
A booking claims seats with one conditional update on the ride:

    {ride_id, status: active, seats_available >= n}  ->  $inc -n, $addToSet rider

MongoDB applies that update atomically, so two riders racing for the last
seat cannot both succeed. The booking document is inserted only after the
claim; if the insert fails the seats are handed back before the error
surfaces. A ride left with zero seats is then flipped to full.
"""

import logging
import uuid
from datetime import timedelta
from typing import List, Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError
from redis.exceptions import RedisError

from app.config import settings
from app.database import get_db
from app.exceptions import (
    AuthorizationError, CapacityError, NotFoundError, StateError, ValidationError,
)
from app.models.booking import Booking, BookingCreate, BookingStatus
from app.models.notification import NotificationType
from app.models.result import service_operation
from app.models.ride import GenderPreference, Ride, RideStatus, OPEN_STATUSES, TERMINAL_STATUSES
from app.services.chat_service import ChatService
from app.services.notification_service import NotificationService
from app.services.ride_store import ensure_driver, load_ride, require_id, sync_seat_status
from app.services.user_service import UserService
from app.utils.timezone_utils import utc_now
from app.utils.validation import parse_model

logger = logging.getLogger(__name__)


def is_gender_compatible(ride_preference: Optional[str], rider_gender: Optional[str]) -> bool:
    """A restricted ride only admits riders of the matching gender."""
    if not ride_preference or ride_preference == GenderPreference.ANY.value:
        return True
    return rider_gender == ride_preference


class BookingService:
    """
    Booking service.

    All public operations return a ServiceResult.
    """

    def __init__(self):
        self.user_service = UserService()
        self.notification_service = NotificationService()
        self.chat_service = ChatService()

    async def _load_booking(self, booking_id: str) -> Booking:
        require_id(booking_id, "booking_id")
        doc = await get_db().bookings.find_one({"booking_id": booking_id})
        if not doc:
            raise NotFoundError("Booking not found", field="booking_id")
        return Booking(**doc)

    async def _release_seats(self, ride_id: str, rider_id: str, seats: int) -> None:
        """Return seats to an open ride and drop the rider from it."""
        db = get_db()
        await db.rides.update_one(
            {"ride_id": ride_id, "status": {"$in": OPEN_STATUSES}},
            {
                "$inc": {"seats_available": seats},
                "$pull": {"riders": rider_id},
                "$set": {"updated_at": utc_now()},
            }
        )
        await sync_seat_status(ride_id)

    async def _void_booking(self, booking_id: str) -> None:
        now = utc_now()
        db = get_db()
        await db.bookings.update_one(
            {"booking_id": booking_id, "status": BookingStatus.ACTIVE.value},
            {"$set": {
                "status": BookingStatus.CANCELLED.value,
                "cancelled_at": now,
                "updated_at": now,
            }}
        )
        logger.warning(f"Booking {booking_id} voided, its ride ended before it was recorded")

    # =========================================================================
    # Book / cancel
    # =========================================================================

    @service_operation
    async def book_seat(self, ride_id: str, rider_id: str, seats_booked: int = 1) -> Booking:
        """
        Book seats on an active ride.

        Fails with CapacityError before touching the ride when the request
        exceeds the seats left.
        """
        require_id(rider_id, "rider_id")
        data = parse_model(BookingCreate, {"ride_id": ride_id, "seats_booked": seats_booked})
        seats = data.seats_booked
        if seats > settings.max_seats_per_booking:
            raise ValidationError(
                f"You can book at most {settings.max_seats_per_booking} seats",
                field="seats_booked",
                constraint=f"1 <= seats_booked <= {settings.max_seats_per_booking}"
            )

        rider = await self.user_service.require_user(rider_id, field="rider_id")
        ride = await load_ride(ride_id)

        if ride.driver_id == rider_id:
            raise AuthorizationError(
                "You cannot book your own ride",
                field="rider_id",
                constraint="rider != driver"
            )
        if ride.status in TERMINAL_STATUSES:
            raise StateError(f"Ride is {ride.status}")
        if ride.ride_datetime <= utc_now():
            raise StateError("Ride has already departed")
        if not is_gender_compatible(ride.gender_preference, rider.gender):
            raise AuthorizationError(
                f"This ride is for {ride.gender_preference} riders only",
                field="gender",
                constraint=f"gender == {ride.gender_preference}"
            )

        db = get_db()
        existing = await db.bookings.find_one(
            {"ride_id": ride_id, "rider_id": rider_id, "status": BookingStatus.ACTIVE.value}
        )
        if existing or rider_id in ride.riders:
            raise StateError("You have already booked this ride")

        if seats > ride.seats_available:
            raise CapacityError(
                f"Only {ride.seats_available} seat(s) available",
                field="seats_booked",
                constraint=f"<= {ride.seats_available}"
            )

        now = utc_now()
        claimed = await db.rides.find_one_and_update(
            {
                "ride_id": ride_id,
                "status": RideStatus.ACTIVE.value,
                "seats_available": {"$gte": seats},
                "riders": {"$ne": rider_id},
            },
            {
                "$inc": {"seats_available": -seats},
                "$addToSet": {"riders": rider_id},
                "$set": {"updated_at": now},
            },
            return_document=ReturnDocument.AFTER
        )
        if claimed is None:
            latest = await load_ride(ride_id)
            if latest.status in TERMINAL_STATUSES:
                raise StateError(f"Ride is {latest.status}")
            raise CapacityError(
                f"Only {latest.seats_available} seat(s) available",
                field="seats_booked",
                constraint=f"<= {latest.seats_available}"
            )

        booking = Booking(
            booking_id=str(uuid.uuid4()),
            ride_id=ride_id,
            rider_id=rider_id,
            driver_id=ride.driver_id,
            rider_name=rider.name,
            rider_phone=rider.phone,
            rider_photo_url=rider.photo_url,
            pickup=ride.pickup,
            destination=ride.destination,
            date=ride.date,
            time=ride.time,
            ride_datetime=ride.ride_datetime,
            seats_booked=seats,
            cost_per_seat=ride.cost,
            total_cost=round(ride.cost * seats, 2),
            status=BookingStatus.ACTIVE,
            created_at=now,
            updated_at=now,
        )

        try:
            await db.bookings.insert_one(booking.model_dump())
        except PyMongoError as e:
            logger.error(f"Booking insert failed for ride {ride_id}, releasing {seats} seat(s): {e}")
            await self._release_seats(ride_id, rider_id, seats)
            if isinstance(e, DuplicateKeyError):
                raise StateError("You have already booked this ride")
            raise

        # A cancel or complete between the claim and the insert missed this booking
        latest = await load_ride(ride_id)
        if latest.status in TERMINAL_STATUSES:
            await self._void_booking(booking.booking_id)
            raise StateError(f"Ride is {latest.status}")

        await sync_seat_status(ride_id)
        await self.user_service.increment_counters(rider_id, total_rides_taken=1)

        logger.info(f"Booking {booking.booking_id}: {rider_id} took {seats} seat(s) on ride {ride_id}")

        await self._after_booking(Ride(**claimed), booking)
        return booking

    async def _after_booking(self, ride: Ride, booking: Booking) -> None:
        """Notify the driver and post a chat notice. Failures are only logged."""
        try:
            await self.notification_service.send_notification(
                ride.driver_id,
                NotificationType.NEW_BOOKING,
                data={
                    "ride_id": ride.ride_id,
                    "booking_id": booking.booking_id,
                    "rider_name": booking.rider_name,
                    "seats_booked": booking.seats_booked,
                    "destination": ride.destination,
                },
            )
            if ride.seats_available == 0:
                await self.notification_service.send_notification(
                    ride.driver_id,
                    NotificationType.RIDE_FULL,
                    data={"ride_id": ride.ride_id, "destination": ride.destination},
                )
            await self.chat_service.send_system_message(
                ride.ride_id, f"{booking.rider_name} joined the ride"
            )
        except (PyMongoError, RedisError) as e:
            logger.error(f"Post-booking notifications failed for {booking.booking_id}: {e}")

    @service_operation
    async def cancel_booking(self, booking_id: str, rider_id: str) -> dict:
        """
        Cancel a rider's booking.

        Allowed up to BOOKING_CANCELLATION_WINDOW_HOURS before departure.
        The seats go back to the ride and the full cost is refunded.
        """
        booking = await self._load_booking(booking_id)
        if booking.rider_id != rider_id:
            raise AuthorizationError(
                "You can only cancel your own bookings",
                field="rider_id",
                constraint="caller == booking.rider_id"
            )
        if booking.status != BookingStatus.ACTIVE.value:
            raise StateError(f"Booking is already {booking.status}")

        ride = await load_ride(booking.ride_id)
        if ride.status == RideStatus.COMPLETED.value:
            raise StateError("Cannot cancel a booking for a completed ride")

        window = timedelta(hours=settings.booking_cancellation_window_hours)
        if ride.ride_datetime - utc_now() < window:
            raise StateError(
                f"Bookings can only be cancelled at least "
                f"{settings.booking_cancellation_window_hours} hours before departure"
            )

        now = utc_now()
        db = get_db()
        doc = await db.bookings.find_one_and_update(
            {"booking_id": booking_id, "status": BookingStatus.ACTIVE.value},
            {"$set": {
                "status": BookingStatus.CANCELLED.value,
                "cancelled_at": now,
                "updated_at": now,
            }},
            return_document=ReturnDocument.AFTER
        )
        if doc is None:
            raise StateError("Booking is no longer active")

        await self._release_seats(ride.ride_id, rider_id, booking.seats_booked)
        await self.user_service.increment_counters(rider_id, total_rides_taken=-1)

        logger.info(f"Booking {booking_id} cancelled, {booking.seats_booked} seat(s) returned to ride {ride.ride_id}")

        try:
            await self.notification_service.send_notification(
                ride.driver_id,
                NotificationType.BOOKING_CANCELLED,
                data={
                    "ride_id": ride.ride_id,
                    "booking_id": booking_id,
                    "rider_name": booking.rider_name,
                    "destination": ride.destination,
                },
            )
        except PyMongoError as e:
            logger.error(f"Cancellation notice failed for booking {booking_id}: {e}")

        return {
            "booking": Booking(**doc),
            "seats_freed": booking.seats_booked,
            "refund_amount": booking.total_cost,
        }

    @service_operation
    async def complete_booking(self, booking_id: str) -> Booking:
        """Mark a booking completed. Completing twice is a no-op."""
        booking = await self._load_booking(booking_id)
        if booking.status == BookingStatus.COMPLETED.value:
            return booking
        if booking.status == BookingStatus.CANCELLED.value:
            raise StateError("Cannot complete a cancelled booking")

        now = utc_now()
        doc = await get_db().bookings.find_one_and_update(
            {"booking_id": booking_id, "status": BookingStatus.ACTIVE.value},
            {"$set": {
                "status": BookingStatus.COMPLETED.value,
                "completed_at": now,
                "updated_at": now,
            }},
            return_document=ReturnDocument.AFTER
        )
        if doc is None:
            return await self._load_booking(booking_id)
        return Booking(**doc)

    # =========================================================================
    # Reads
    # =========================================================================

    @service_operation
    async def get_booking_by_id(self, booking_id: str) -> Booking:
        return await self._load_booking(booking_id)

    @service_operation
    async def get_my_bookings(self, rider_id: str, status: Optional[str] = None) -> List[Booking]:
        """A rider's bookings, newest first."""
        require_id(rider_id, "rider_id")
        query = {"rider_id": rider_id}
        if status is not None:
            try:
                query["status"] = BookingStatus(status).value
            except ValueError:
                raise ValidationError(
                    f"Invalid booking status: {status}",
                    field="status",
                    constraint="one of active, cancelled, completed"
                )

        cursor = get_db().bookings.find(query).sort("created_at", -1)
        return [Booking(**doc) async for doc in cursor]

    @service_operation
    async def get_ride_bookings(self, ride_id: str, driver_id: str) -> dict:
        """Active bookings on a ride. Driver only."""
        ride = await load_ride(ride_id)
        ensure_driver(ride, driver_id, "view its bookings")

        cursor = get_db().bookings.find(
            {"ride_id": ride_id, "status": BookingStatus.ACTIVE.value}
        ).sort("created_at", 1)
        bookings = [Booking(**doc) async for doc in cursor]
        return {
            "bookings": bookings,
            "total_seats_booked": sum(b.seats_booked for b in bookings),
        }

    @service_operation
    async def get_booking_stats(self, user_id: str) -> dict:
        """Counts per status and total spent on completed bookings."""
        require_id(user_id, "user_id")
        stats = {
            "total": 0,
            BookingStatus.ACTIVE.value: 0,
            BookingStatus.COMPLETED.value: 0,
            BookingStatus.CANCELLED.value: 0,
            "total_spent": 0.0,
        }

        async for doc in get_db().bookings.find({"rider_id": user_id}):
            stats["total"] += 1
            stats[doc["status"]] += 1
            if doc["status"] == BookingStatus.COMPLETED.value:
                stats["total_spent"] += doc.get("total_cost", 0.0)

        stats["total_spent"] = round(stats["total_spent"], 2)
        return stats

    @service_operation
    async def has_user_booked_ride(self, ride_id: str, rider_id: str) -> dict:
        require_id(ride_id, "ride_id")
        require_id(rider_id, "rider_id")
        doc = await get_db().bookings.find_one(
            {"ride_id": ride_id, "rider_id": rider_id, "status": BookingStatus.ACTIVE.value}
        )
        return {
            "has_booked": doc is not None,
            "booking": Booking(**doc) if doc else None,
        }
