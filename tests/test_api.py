"""
API tests

Routers exercised through httpx against the ASGI app, with the Firebase
dependency overridden.
"""

from datetime import timedelta

import httpx
import pytest

from app.dependencies import get_current_active_user
from app.main import app
from app.utils.timezone_utils import utc_now


@pytest.fixture
def client_as(db, redis):
    """Build an AsyncClient authenticated as the given user."""

    def _client(user):
        app.dependency_overrides[get_current_active_user] = lambda: user
        transport = httpx.ASGITransport(app=app)
        return httpx.AsyncClient(transport=transport, base_url="http://test")

    yield _client
    app.dependency_overrides.clear()


class TestApi:

    @pytest.mark.asyncio
    async def test_health(self):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health")
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_requires_bearer_token(self, db, redis):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/api/v1/users/me")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_create_search_and_book(self, client_as, make_user):
        driver = await make_user("driver-1", role="driver")
        rider = await make_user("rider-1")
        departure = utc_now() + timedelta(days=1)
        payload = {
            "pickup": "Main Gate",
            "destination": "Airport",
            "pickup_lat": 10.0,
            "pickup_lng": 76.0,
            "destination_lat": 10.2,
            "destination_lng": 76.3,
            "date": departure.strftime("%Y-%m-%d"),
            "time": departure.strftime("%H:%M"),
            "total_seats": 1,
            "cost": 40,
        }

        async with client_as(driver) as client:
            created = await client.post("/api/v1/rides", json=payload)
        assert created.status_code == 200
        ride_id = created.json()["ride_id"]

        async with client_as(rider) as client:
            found = await client.get("/api/v1/rides/search", params={"destination": "air"})
            booked = await client.post("/api/v1/bookings", json={"ride_id": ride_id, "seats_booked": 1})
            again = await client.post("/api/v1/bookings", json={"ride_id": ride_id, "seats_booked": 1})

        assert [r["ride_id"] for r in found.json()["rides"]] == [ride_id]
        assert booked.status_code == 200
        assert again.status_code == 409
        assert again.json()["detail"]["code"] == "state_error"

    @pytest.mark.asyncio
    async def test_business_errors_map_to_status(self, client_as, make_user):
        rider = await make_user("rider-1")

        async with client_as(rider) as client:
            missing = await client.get("/api/v1/rides/does-not-exist")
            bad_limit = await client.get("/api/v1/activity", params={"limit": 500})

        assert missing.status_code == 404
        assert missing.json()["detail"]["field"] == "ride_id"
        assert bad_limit.status_code == 422
