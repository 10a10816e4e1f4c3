"""
Shared fixtures.

Services talk to an in-memory MongoDB (mongomock_motor) and an in-memory
Redis (fakeredis) wired into app.database.
"""

import os
import uuid
from datetime import timedelta

# Required settings must exist before app.config is imported
os.environ.setdefault("FIREBASE_PROJECT_ID", "uniride-test")
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("CORS_ORIGINS", "*")

import pytest
from fakeredis import aioredis
from mongomock_motor import AsyncMongoMockClient

from app.database import mongo, redis_client
from app.models.ride import Ride
from app.models.user import User
from app.utils.geo import calculate_distance
from app.utils.timezone_utils import utc_now


@pytest.fixture
def db():
    mongo.db = AsyncMongoMockClient()["uniride_test"]
    yield mongo.db
    mongo.db = None


@pytest.fixture
def redis():
    redis_client.client = aioredis.FakeRedis(decode_responses=True)
    yield redis_client.client
    redis_client.client = None


@pytest.fixture
def make_user(db, redis):
    """Insert a user document and return the model."""

    async def _make(user_id=None, role="rider", gender=None, name=None, **fields):
        user_id = user_id or f"user-{uuid.uuid4().hex[:8]}"
        user = User(
            user_id=user_id,
            email=f"{user_id}@uni.edu",
            name=name or user_id.title(),
            role=role,
            gender=gender,
            **fields,
        )
        await db.users.insert_one(user.model_dump())
        return user

    return _make


@pytest.fixture
def make_ride(db):
    """
    Insert a ride directly, bypassing create_ride validation.

    hours_ahead controls the departure; negative values give departed rides.
    """

    async def _make(driver_id="driver-1", hours_ahead=24, total_seats=4, seats_available=None,
                    cost=10.0, status="active", **fields):
        departure = utc_now() + timedelta(hours=hours_ahead)
        pickup = fields.pop("pickup_coords", (10.0, 76.0))
        destination = fields.pop("destination_coords", (10.1, 76.1))
        data = {
            "ride_id": f"ride-{uuid.uuid4().hex[:8]}",
            "driver_id": driver_id,
            "pickup": "Main Gate",
            "destination": "City Centre",
            "pickup_lat": pickup[0],
            "pickup_lng": pickup[1],
            "destination_lat": destination[0],
            "destination_lng": destination[1],
            "distance_km": round(calculate_distance(*pickup, *destination), 2),
            "date": departure.strftime("%Y-%m-%d"),
            "time": departure.strftime("%H:%M"),
            "ride_datetime": departure,
            "total_seats": total_seats,
            "seats_available": total_seats if seats_available is None else seats_available,
            "cost": cost,
            "status": status,
        }
        data.update(fields)
        ride = Ride(**data)
        await db.rides.insert_one(ride.model_dump())
        return ride

    return _make
