"""
UniRide Database Module

MongoDB (document store) and Redis (realtime store) connection management.
"""

from typing import Optional

import redis.asyncio as redis
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.config import settings


# =============================================================================
# MongoDB Connection
# =============================================================================

class MongoDB:
    """MongoDB connection manager."""

    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None


mongo = MongoDB()


async def create_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create indexes for every collection the services query."""
    # users
    await db.users.create_index("user_id", unique=True)
    await db.users.create_index("email")
    await db.users.create_index([("stats.score", -1)])
    await db.users.create_index([("stats.weekly_score", -1)])

    # rides
    await db.rides.create_index("ride_id", unique=True)
    await db.rides.create_index([("driver_id", 1), ("ride_datetime", -1)])
    await db.rides.create_index([("driver_id", 1), ("created_at", -1)])
    await db.rides.create_index([("riders", 1), ("ride_datetime", -1)])

    # Search prefilter: status + departure ordering
    await db.rides.create_index([
        ("status", 1),
        ("ride_datetime", 1),
        ("seats_available", 1)
    ])
    await db.rides.create_index([("status", 1), ("date", 1), ("ride_datetime", 1)])

    # Archival sweep
    await db.rides.create_index([("status", 1), ("updated_at", 1)])

    # bookings
    await db.bookings.create_index("booking_id", unique=True)
    await db.bookings.create_index([("rider_id", 1), ("created_at", -1)])
    await db.bookings.create_index([("ride_id", 1), ("status", 1)])

    # One active booking per rider per ride
    await db.bookings.create_index(
        [("ride_id", 1), ("rider_id", 1)],
        unique=True,
        partialFilterExpression={"status": "active"},
        name="unique_active_booking_per_rider"
    )

    # ratings
    await db.ratings.create_index("rating_id", unique=True)
    await db.ratings.create_index([("to_user_id", 1), ("created_at", -1)])
    await db.ratings.create_index(
        [("ride_id", 1), ("from_user_id", 1), ("to_user_id", 1)],
        unique=True
    )

    # notifications
    await db.notifications.create_index("notification_id", unique=True)
    await db.notifications.create_index([("user_id", 1), ("read", 1)])

    # history snapshots
    await db.user_history.create_index([("user_id", 1), ("generated_at", -1)])


async def init_mongodb():
    """Initialize MongoDB connection and create indexes."""
    mongo.client = AsyncIOMotorClient(settings.mongodb_uri)
    mongo.db = mongo.client[settings.mongodb_database]
    await create_indexes(mongo.db)


async def close_mongodb():
    """Close MongoDB connection."""
    if mongo.client:
        mongo.client.close()


def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    if mongo.db is None:
        raise RuntimeError("Database not initialized")
    return mongo.db


# =============================================================================
# Redis Connection
# =============================================================================

class RedisClient:
    """Redis connection manager."""

    client: Optional[redis.Redis] = None


redis_client = RedisClient()


async def init_redis():
    """Initialize Redis connection."""
    redis_client.client = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        health_check_interval=30,
        socket_connect_timeout=5,
        retry_on_timeout=True,
        socket_keepalive=True
    )


async def close_redis():
    """Close Redis connection."""
    if redis_client.client:
        await redis_client.client.aclose()


def get_redis() -> redis.Redis:
    """Get Redis client instance."""
    if redis_client.client is None:
        raise RuntimeError("Redis not initialized")
    return redis_client.client


# =============================================================================
# Combined Initialization
# =============================================================================

async def init_db():
    """Initialize all database connections."""
    await init_mongodb()
    await init_redis()


async def close_db():
    """Close all database connections."""
    await close_mongodb()
    await close_redis()
