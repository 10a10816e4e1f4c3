"""
Tests for Booking Service

Seat claiming, capacity and gender rules, cancellation window and the
seat/status bookkeeping on the parent ride.
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from pymongo.errors import PyMongoError

from app.services.booking_service import BookingService, is_gender_compatible
from app.services.ride_service import RideService


@pytest.fixture
def service():
    return BookingService()


class TestGenderCompatibility:

    @pytest.mark.parametrize("preference,gender,expected", [
        ("any", None, True),
        ("any", "male", True),
        (None, "female", True),
        ("female", "female", True),
        ("female", "male", False),
        ("female", None, False),
    ])
    def test_is_gender_compatible(self, preference, gender, expected):
        assert is_gender_compatible(preference, gender) is expected


class TestBookSeat:

    @pytest.mark.asyncio
    async def test_books_and_decrements_seats(self, service, make_user, make_ride, db):
        await make_user("rider-1", name="Asha")
        ride = await make_ride(total_seats=4, cost=25.0)

        result = await service.book_seat(ride.ride_id, "rider-1", 2)

        assert result.success
        booking = result.data
        assert booking.status == "active"
        assert booking.total_cost == 50.0
        assert booking.rider_name == "Asha"

        doc = await db.rides.find_one({"ride_id": ride.ride_id})
        assert doc["seats_available"] == 2
        assert doc["riders"] == ["rider-1"]
        assert doc["status"] == "active"

        rider = await db.users.find_one({"user_id": "rider-1"})
        assert rider["total_rides_taken"] == 1

    @pytest.mark.asyncio
    async def test_last_seat_marks_ride_full(self, service, make_user, make_ride, db):
        await make_user("rider-1")
        ride = await make_ride(total_seats=2)

        result = await service.book_seat(ride.ride_id, "rider-1", 2)

        assert result.success
        doc = await db.rides.find_one({"ride_id": ride.ride_id})
        assert doc["seats_available"] == 0
        assert doc["status"] == "full"

        full_notice = await db.notifications.find_one({"user_id": "driver-1", "type": "ride_full"})
        assert full_notice is not None

    @pytest.mark.asyncio
    async def test_more_seats_than_available(self, service, make_user, make_ride, db):
        await make_user("rider-1")
        ride = await make_ride(total_seats=4, seats_available=1)

        result = await service.book_seat(ride.ride_id, "rider-1", 2)

        assert result.error_code == "capacity_error"
        doc = await db.rides.find_one({"ride_id": ride.ride_id})
        assert doc["seats_available"] == 1
        assert await db.bookings.count_documents({}) == 0

    @pytest.mark.asyncio
    async def test_per_booking_limit(self, service, make_user, make_ride):
        await make_user("rider-1")
        ride = await make_ride(total_seats=8)

        result = await service.book_seat(ride.ride_id, "rider-1", 5)

        assert result.error_code == "validation_error"
        assert result.error.field == "seats_booked"

    @pytest.mark.asyncio
    async def test_driver_cannot_book_own_ride(self, service, make_user, make_ride):
        await make_user("driver-1", role="driver")
        ride = await make_ride()

        result = await service.book_seat(ride.ride_id, "driver-1", 1)

        assert result.error_code == "authorization_error"

    @pytest.mark.asyncio
    async def test_gender_restricted_ride(self, service, make_user, make_ride):
        await make_user("rider-m", gender="male")
        await make_user("rider-f", gender="female")
        ride = await make_ride(gender_preference="female")

        rejected = await service.book_seat(ride.ride_id, "rider-m", 1)
        accepted = await service.book_seat(ride.ride_id, "rider-f", 1)

        assert rejected.error_code == "authorization_error"
        assert accepted.success

    @pytest.mark.asyncio
    async def test_duplicate_booking(self, service, make_user, make_ride):
        await make_user("rider-1")
        ride = await make_ride()

        first = await service.book_seat(ride.ride_id, "rider-1", 1)
        second = await service.book_seat(ride.ride_id, "rider-1", 1)

        assert first.success
        assert second.error_code == "state_error"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["cancelled", "completed"])
    async def test_terminal_ride(self, service, make_user, make_ride, status):
        await make_user("rider-1")
        ride = await make_ride(status=status)

        result = await service.book_seat(ride.ride_id, "rider-1", 1)

        assert result.error_code == "state_error"

    @pytest.mark.asyncio
    async def test_full_ride(self, service, make_user, make_ride):
        await make_user("rider-1")
        ride = await make_ride(total_seats=2, seats_available=0, status="full", riders=["a", "b"])

        result = await service.book_seat(ride.ride_id, "rider-1", 1)

        assert result.error_code == "capacity_error"

    @pytest.mark.asyncio
    async def test_departed_ride(self, service, make_user, make_ride):
        await make_user("rider-1")
        ride = await make_ride(hours_ahead=-1)

        result = await service.book_seat(ride.ride_id, "rider-1", 1)

        assert result.error_code == "state_error"

    @pytest.mark.asyncio
    async def test_concurrent_last_seat(self, service, make_user, make_ride, db):
        """Only one of two riders racing for the last seat gets it."""
        await make_user("rider-1")
        await make_user("rider-2")
        ride = await make_ride(total_seats=1)

        results = await asyncio.gather(
            service.book_seat(ride.ride_id, "rider-1", 1),
            service.book_seat(ride.ride_id, "rider-2", 1),
        )

        assert sorted(r.success for r in results) == [False, True]
        doc = await db.rides.find_one({"ride_id": ride.ride_id})
        assert doc["seats_available"] == 0
        assert len(doc["riders"]) == 1
        assert await db.bookings.count_documents({}) == 1

    @pytest.mark.asyncio
    async def test_failed_insert_releases_seats(self, service, make_user, make_ride, db):
        await make_user("rider-1")
        ride = await make_ride(total_seats=3)

        with patch.object(type(db.bookings), "insert_one", new=AsyncMock(side_effect=PyMongoError("down"))):
            result = await service.book_seat(ride.ride_id, "rider-1", 2)

        assert result.error_code == "store_error"
        doc = await db.rides.find_one({"ride_id": ride.ride_id})
        assert doc["seats_available"] == 3
        assert doc["riders"] == []

    @pytest.mark.asyncio
    async def test_cancel_between_claim_and_insert_voids_booking(self, service, make_user, make_ride, db):
        await make_user("driver-1", role="driver")
        await make_user("rider-1")
        ride = await make_ride(total_seats=3)

        collection_type = type(db.bookings)
        original_insert = collection_type.insert_one
        cancelled = []

        async def insert_after_cancel(self, document, *args, **kwargs):
            if not cancelled:
                cancelled.append(True)
                await RideService().cancel_ride(ride.ride_id, "driver-1")
            return await original_insert(self, document, *args, **kwargs)

        with patch.object(collection_type, "insert_one", new=insert_after_cancel):
            result = await service.book_seat(ride.ride_id, "rider-1", 1)

        assert result.error_code == "state_error"
        assert result.error.message == "Ride is cancelled"

        ride_doc = await db.rides.find_one({"ride_id": ride.ride_id})
        assert ride_doc["status"] == "cancelled"
        booking = await db.bookings.find_one({"ride_id": ride.ride_id, "rider_id": "rider-1"})
        assert booking["status"] == "cancelled"
        assert await db.bookings.count_documents({"status": "active"}) == 0

        rider = await db.users.find_one({"user_id": "rider-1"})
        assert rider["total_rides_taken"] == 0


class TestCancelBooking:

    @pytest.mark.asyncio
    async def test_cancel_returns_seats_and_refund(self, service, make_user, make_ride, db):
        await make_user("rider-1")
        ride = await make_ride(total_seats=2, cost=30.0)
        booked = await service.book_seat(ride.ride_id, "rider-1", 2)

        result = await service.cancel_booking(booked.data.booking_id, "rider-1")

        assert result.success
        assert result.data["seats_freed"] == 2
        assert result.data["refund_amount"] == 60.0
        assert result.data["booking"].status == "cancelled"

        doc = await db.rides.find_one({"ride_id": ride.ride_id})
        assert doc["seats_available"] == 2
        assert doc["status"] == "active"
        assert doc["riders"] == []

    @pytest.mark.asyncio
    async def test_inside_cancellation_window(self, service, make_user, make_ride):
        await make_user("rider-1")
        ride = await make_ride(hours_ahead=1)
        booked = await service.book_seat(ride.ride_id, "rider-1", 1)

        result = await service.cancel_booking(booked.data.booking_id, "rider-1")

        assert result.error_code == "state_error"

    @pytest.mark.asyncio
    async def test_only_owner_may_cancel(self, service, make_user, make_ride):
        await make_user("rider-1")
        ride = await make_ride()
        booked = await service.book_seat(ride.ride_id, "rider-1", 1)

        result = await service.cancel_booking(booked.data.booking_id, "rider-2")

        assert result.error_code == "authorization_error"

    @pytest.mark.asyncio
    async def test_cancel_twice(self, service, make_user, make_ride):
        await make_user("rider-1")
        ride = await make_ride()
        booked = await service.book_seat(ride.ride_id, "rider-1", 1)

        await service.cancel_booking(booked.data.booking_id, "rider-1")
        result = await service.cancel_booking(booked.data.booking_id, "rider-1")

        assert result.error_code == "state_error"

    @pytest.mark.asyncio
    async def test_rebook_after_cancel(self, service, make_user, make_ride):
        await make_user("rider-1")
        ride = await make_ride()
        booked = await service.book_seat(ride.ride_id, "rider-1", 1)
        await service.cancel_booking(booked.data.booking_id, "rider-1")

        result = await service.book_seat(ride.ride_id, "rider-1", 1)

        assert result.success


class TestBookingReads:

    @pytest.mark.asyncio
    async def test_ride_bookings_for_driver_only(self, service, make_user, make_ride):
        await make_user("rider-1")
        await make_user("rider-2")
        ride = await make_ride()
        await service.book_seat(ride.ride_id, "rider-1", 1)
        await service.book_seat(ride.ride_id, "rider-2", 2)

        result = await service.get_ride_bookings(ride.ride_id, "driver-1")
        denied = await service.get_ride_bookings(ride.ride_id, "rider-1")

        assert result.data["total_seats_booked"] == 3
        assert len(result.data["bookings"]) == 2
        assert denied.error_code == "authorization_error"

    @pytest.mark.asyncio
    async def test_has_user_booked(self, service, make_user, make_ride):
        await make_user("rider-1")
        ride = await make_ride()
        await service.book_seat(ride.ride_id, "rider-1", 1)

        booked = await service.has_user_booked_ride(ride.ride_id, "rider-1")
        not_booked = await service.has_user_booked_ride(ride.ride_id, "rider-2")

        assert booked.data["has_booked"] is True
        assert not_booked.data == {"has_booked": False, "booking": None}

    @pytest.mark.asyncio
    async def test_my_bookings_status_filter(self, service, make_user, make_ride):
        await make_user("rider-1")
        first = await make_ride()
        second = await make_ride()
        booked = await service.book_seat(first.ride_id, "rider-1", 1)
        await service.book_seat(second.ride_id, "rider-1", 1)
        await service.cancel_booking(booked.data.booking_id, "rider-1")

        active = await service.get_my_bookings("rider-1", "active")
        invalid = await service.get_my_bookings("rider-1", "pending")

        assert [b.ride_id for b in active.data] == [second.ride_id]
        assert invalid.error_code == "validation_error"

    @pytest.mark.asyncio
    async def test_complete_booking_is_idempotent(self, service, make_user, make_ride):
        await make_user("rider-1")
        ride = await make_ride()
        booked = await service.book_seat(ride.ride_id, "rider-1", 1)

        first = await service.complete_booking(booked.data.booking_id)
        second = await service.complete_booking(booked.data.booking_id)

        assert first.data.status == "completed"
        assert second.data.status == "completed"

    @pytest.mark.asyncio
    async def test_booking_stats(self, service, make_user, make_ride):
        await make_user("rider-1")
        ride = await make_ride(cost=12.5)
        booked = await service.book_seat(ride.ride_id, "rider-1", 2)
        await service.complete_booking(booked.data.booking_id)

        result = await service.get_booking_stats("rider-1")

        assert result.data["total"] == 1
        assert result.data["completed"] == 1
        assert result.data["total_spent"] == 25.0
