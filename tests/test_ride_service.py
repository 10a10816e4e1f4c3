"""
Tests for Ride Service

Creation validation, detail updates with seat recomputation and the
cancel/complete flows.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from redis.exceptions import RedisError

from app.services.booking_service import BookingService
from app.services.redis_service import RedisKeys
from app.services.ride_service import RideService
from app.utils.timezone_utils import utc_now


def ride_payload(**overrides):
    departure = utc_now() + timedelta(days=2)
    payload = {
        "pickup": "Main Gate",
        "destination": "Railway Station",
        "pickup_lat": 9.7276,
        "pickup_lng": 76.7266,
        "destination_lat": 9.5916,
        "destination_lng": 76.5222,
        "date": departure.strftime("%Y-%m-%d"),
        "time": departure.strftime("%H:%M"),
        "total_seats": 4,
        "cost": 50,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def service():
    return RideService()


@pytest.fixture
def booking_service():
    return BookingService()


class TestCreateRide:

    @pytest.mark.asyncio
    async def test_creates_active_ride(self, service, make_user, db):
        await make_user("driver-1", role="driver")

        result = await service.create_ride("driver-1", ride_payload())

        assert result.success
        ride = result.data
        assert ride.status == "active"
        assert ride.seats_available == 4
        assert ride.riders == []
        assert ride.distance_km > 0
        assert ride.ride_datetime.tzinfo is not None

        driver = await db.users.find_one({"user_id": "driver-1"})
        assert driver["total_rides_offered"] == 1

    @pytest.mark.asyncio
    async def test_applies_timezone_offset(self, service, make_user):
        await make_user("driver-1", role="driver")
        payload = ride_payload(date="2099-06-01", time="09:00", timezone_offset_minutes=330)

        result = await service.create_ride("driver-1", payload)

        assert result.data.ride_datetime.hour == 3
        assert result.data.ride_datetime.minute == 30

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides,field", [
        ({"total_seats": 9}, "total_seats"),
        ({"total_seats": 0}, "total_seats"),
        ({"cost": -1}, "cost"),
        ({"pickup": ""}, "pickup"),
        ({"date": "01-06-2099"}, "date"),
        ({"time": "25:00"}, "time"),
    ])
    async def test_rejects_invalid_fields(self, service, make_user, overrides, field):
        await make_user("driver-1", role="driver")

        result = await service.create_ride("driver-1", ride_payload(**overrides))

        assert result.error_code == "validation_error"
        assert result.error.field == field

    @pytest.mark.asyncio
    async def test_rejects_past_departure(self, service, make_user):
        await make_user("driver-1", role="driver")
        yesterday = utc_now() - timedelta(days=1)

        result = await service.create_ride(
            "driver-1", ride_payload(date=yesterday.strftime("%Y-%m-%d"))
        )

        assert result.error_code == "validation_error"
        assert result.error.message == "Ride date and time must be in the future"

    @pytest.mark.asyncio
    async def test_riders_cannot_offer_rides(self, service, make_user):
        await make_user("rider-1", role="rider")

        result = await service.create_ride("rider-1", ride_payload())

        assert result.error_code == "authorization_error"

    @pytest.mark.asyncio
    async def test_unknown_driver(self, service, db, redis):
        result = await service.create_ride("ghost", ride_payload())
        assert result.error_code == "not_found"


class TestUpdateRideDetails:

    @pytest.mark.asyncio
    async def test_seat_change_recomputes_availability(self, service, make_ride, redis):
        ride = await make_ride(total_seats=4, seats_available=1, riders=["rider-1"])

        result = await service.update_ride_details("driver-1", ride.ride_id, {"total_seats": 3})

        assert result.success
        assert result.data.seats_available == 0
        assert result.data.status == "full"

    @pytest.mark.asyncio
    async def test_seat_increase_reopens_full_ride(self, service, make_ride, redis):
        ride = await make_ride(total_seats=2, seats_available=0, status="full", riders=["rider-1"])

        result = await service.update_ride_details("driver-1", ride.ride_id, {"total_seats": 4})

        assert result.data.seats_available == 2
        assert result.data.status == "active"

    @pytest.mark.asyncio
    async def test_cannot_drop_below_booked(self, service, make_ride, redis):
        ride = await make_ride(total_seats=4, seats_available=1, riders=["rider-1"])

        result = await service.update_ride_details("driver-1", ride.ride_id, {"total_seats": 2})

        assert result.error_code == "capacity_error"
        assert result.error.message == "Cannot reduce seats below 3 already booked"

    @pytest.mark.asyncio
    async def test_only_driver_may_update(self, service, make_ride, redis):
        ride = await make_ride()

        result = await service.update_ride_details("someone-else", ride.ride_id, {"cost": 20})

        assert result.error_code == "authorization_error"

    @pytest.mark.asyncio
    async def test_reschedule_to_past_rejected(self, service, make_ride, db):
        ride = await make_ride()
        past_date = (utc_now() - timedelta(days=2)).strftime("%Y-%m-%d")

        result = await service.update_ride_details("driver-1", ride.ride_id, {"date": past_date})

        assert result.error_code == "validation_error"
        assert result.error.field == "date"
        doc = await db.rides.find_one({"ride_id": ride.ride_id})
        assert doc["date"] == ride.date

    @pytest.mark.asyncio
    async def test_terminal_rides_are_frozen(self, service, make_ride, redis):
        ride = await make_ride(status="completed")

        result = await service.update_ride_details("driver-1", ride.ride_id, {"cost": 20})

        assert result.error_code == "state_error"

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, service, make_ride, redis):
        ride = await make_ride()

        result = await service.update_ride_details("driver-1", ride.ride_id, {"status": "full"})

        assert result.error_code == "validation_error"

    @pytest.mark.asyncio
    async def test_coordinates_recompute_distance(self, service, make_ride, redis):
        ride = await make_ride(pickup_coords=(0.0, 0.0), destination_coords=(0.0, 1.0))

        result = await service.update_ride_details(
            "driver-1", ride.ride_id, {"destination_lng": 2.0}
        )

        assert result.data.distance_km == pytest.approx(222.39, abs=0.01)


class TestStatusTransitions:

    @pytest.mark.asyncio
    async def test_cancel_cascades_to_bookings(self, service, booking_service, make_user, make_ride, db):
        await make_user("driver-1", role="driver")
        await make_user("rider-1")
        ride = await make_ride()
        booked = await booking_service.book_seat(ride.ride_id, "rider-1", 1)
        assert booked.success

        result = await service.cancel_ride(ride.ride_id, "driver-1", "Car broke down")

        assert result.success
        assert result.data.status == "cancelled"
        assert result.data.cancellation_reason == "Car broke down"

        booking = await db.bookings.find_one({"booking_id": booked.data.booking_id})
        assert booking["status"] == "cancelled"

        notice = await db.notifications.find_one({"user_id": "rider-1", "type": "ride_cancelled"})
        assert notice is not None

    @pytest.mark.asyncio
    async def test_chat_failure_still_clears_tracking(self, service, make_user, make_ride, redis):
        await make_user("driver-1", role="driver")
        ride = await make_ride()
        key = RedisKeys.driver_location(ride.ride_id)
        await redis.set(key, '{"lat": 9.7, "lng": 76.7}')

        failing_notice = AsyncMock(side_effect=RedisError("chat down"))
        with patch.object(service.chat_service, "send_system_message", new=failing_notice):
            result = await service.cancel_ride(ride.ride_id, "driver-1")

        assert result.success
        failing_notice.assert_awaited_once()
        assert await redis.get(key) is None

    @pytest.mark.asyncio
    async def test_cancel_twice(self, service, make_ride, redis):
        ride = await make_ride(status="cancelled")

        result = await service.cancel_ride(ride.ride_id, "driver-1")

        assert result.error_code == "state_error"
        assert result.error.message == "Ride is already cancelled"

    @pytest.mark.asyncio
    async def test_cannot_cancel_completed(self, service, make_ride, redis):
        ride = await make_ride(status="completed")

        result = await service.cancel_ride(ride.ride_id, "driver-1")

        assert result.error.message == "Cannot cancel a completed ride"

    @pytest.mark.asyncio
    async def test_only_driver_may_cancel(self, service, make_ride, redis):
        ride = await make_ride()

        result = await service.cancel_ride(ride.ride_id, "rider-1")

        assert result.error_code == "authorization_error"

    @pytest.mark.asyncio
    async def test_complete_credits_stats(self, service, booking_service, make_user, make_ride, db):
        await make_user("driver-1", role="driver")
        await make_user("rider-1")
        ride = await make_ride()
        booked = await booking_service.book_seat(ride.ride_id, "rider-1", 2)
        assert booked.success

        result = await service.complete_ride(ride.ride_id, "driver-1")

        assert result.data.status == "completed"
        assert result.data.completed_at is not None

        booking = await db.bookings.find_one({"booking_id": booked.data.booking_id})
        assert booking["status"] == "completed"

        driver = await db.users.find_one({"user_id": "driver-1"})
        assert driver["stats"]["rides_created"] == 1
        assert driver["stats"]["passengers_carried"] == 2
        rider = await db.users.find_one({"user_id": "rider-1"})
        assert rider["stats"]["rides_joined"] == 1

        requests = await db.notifications.count_documents({"type": "rating_request"})
        assert requests == 2

    @pytest.mark.asyncio
    async def test_only_owner_may_complete(self, service, make_user, make_ride, db):
        await make_user("driver-2", role="driver")
        ride = await make_ride()

        result = await service.complete_ride(ride.ride_id, "driver-2")

        assert result.error_code == "authorization_error"
        doc = await db.rides.find_one({"ride_id": ride.ride_id})
        assert doc["status"] == "active"
        assert doc["completed_at"] is None

    @pytest.mark.asyncio
    async def test_status_update_full_requires_no_seats(self, service, make_ride, redis):
        ride = await make_ride(seats_available=2)

        result = await service.update_ride_status(ride.ride_id, "full", "driver-1")

        assert result.error_code == "state_error"

    @pytest.mark.asyncio
    async def test_status_update_delegates_to_complete(self, service, make_user, make_ride, redis):
        await make_user("driver-1", role="driver")
        ride = await make_ride()

        result = await service.update_ride_status(ride.ride_id, "completed", "driver-1")

        assert result.data.status == "completed"

    @pytest.mark.asyncio
    async def test_invalid_status(self, service, make_ride, redis):
        ride = await make_ride()

        result = await service.update_ride_status(ride.ride_id, "paused", "driver-1")

        assert result.error_code == "validation_error"


class TestReads:

    @pytest.mark.asyncio
    async def test_get_missing_ride(self, service, db, redis):
        result = await service.get_ride_by_id("nope")
        assert result.error_code == "not_found"

    @pytest.mark.asyncio
    async def test_driver_rides_filtered_by_status(self, service, make_ride, redis):
        await make_ride(status="active")
        await make_ride(status="completed")

        result = await service.get_driver_rides("driver-1", "completed")

        assert [r.status for r in result.data] == ["completed"]

    @pytest.mark.asyncio
    async def test_my_rides_tags_roles(self, service, make_ride, redis):
        await make_ride(driver_id="user-a", hours_ahead=10)
        await make_ride(driver_id="user-b", hours_ahead=20, riders=["user-a"], seats_available=3)

        result = await service.get_my_rides("user-a")

        assert [r["user_role"] for r in result.data] == ["rider", "driver"]

        riders_only = await service.get_my_rides("user-a", "rider")
        assert len(riders_only.data) == 1
