"""User Service - User profile management and role switching."""

import json
import logging
from typing import Optional, Tuple

from pymongo.errors import DuplicateKeyError
from redis.exceptions import RedisError

from app.config import settings
from app.database import get_db, get_redis
from app.exceptions import NotFoundError, StateError
from app.models.booking import BookingStatus
from app.models.result import service_operation
from app.models.ride import OPEN_STATUSES
from app.models.user import User, UserUpdate, UserPublic, RoleSwitch
from app.services.redis_service import RedisKeys
from app.utils.timezone_utils import utc_now
from app.utils.validation import parse_model

logger = logging.getLogger(__name__)

# Profile fields copied onto rides (driver_*) and bookings (rider_*)
SNAPSHOT_FIELDS = ("name", "phone", "photo_url", "gender")


class UserService:
    """
    User profile and role management service.
    """

    async def _get_from_cache(self, user_id: str) -> Optional[User]:
        """Get user from Redis cache."""
        try:
            cached = await get_redis().get(RedisKeys.user_cache(user_id))
            if cached:
                return User(**json.loads(cached))
        except (RedisError, ValueError) as e:
            logger.debug(f"Cache miss for {user_id}: {e}")
        return None

    async def _set_cache(self, user: User):
        """Cache user in Redis."""
        try:
            await get_redis().setex(
                RedisKeys.user_cache(user.user_id),
                settings.user_cache_ttl_seconds,
                user.model_dump_json()
            )
        except RedisError as e:
            logger.debug(f"Cache set failed: {e}")

    async def invalidate_cache(self, user_id: str):
        """Remove user from cache."""
        try:
            await get_redis().delete(RedisKeys.user_cache(user_id))
        except RedisError as e:
            logger.debug(f"Cache invalidation failed for {user_id}: {e}")

    async def get_user(self, user_id: str) -> Optional[User]:
        """Get user by ID (cached)."""
        cached = await self._get_from_cache(user_id)
        if cached:
            return cached

        db = get_db()
        doc = await db.users.find_one({"user_id": user_id})
        if doc:
            user = User(**doc)
            await self._set_cache(user)
            return user
        return None

    async def require_user(self, user_id: str, field: str = "user_id") -> User:
        """Get user by ID or raise NotFoundError."""
        user = await self.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found", field=field)
        return user

    async def get_or_create_user(self, token_claims: dict) -> Tuple[User, bool]:
        """
        Get existing user or create new one from Firebase claims.

        New users start as riders. Concurrent first requests for the same
        UID are resolved by the unique user_id index.

        Returns:
            (user, is_new) tuple
        """
        db = get_db()
        user_id = token_claims["uid"]

        existing = await db.users.find_one({"user_id": user_id})
        if existing:
            return User(**existing), False

        email = token_claims.get("email", "")
        user = User(
            user_id=user_id,
            email=email,
            name=token_claims.get("name") or email.split("@")[0] or "Student",
            photo_url=token_claims.get("picture"),
        )

        try:
            await db.users.insert_one(user.model_dump())
        except DuplicateKeyError:
            existing = await db.users.find_one({"user_id": user_id})
            return User(**existing), False

        logger.info(f"Created user {user_id}")
        return user, True

    async def increment_counters(self, user_id: str, **amounts: int) -> None:
        """Atomically adjust role-scoped counters such as total_rides_offered."""
        db = get_db()
        await db.users.update_one(
            {"user_id": user_id},
            {"$inc": amounts, "$set": {"updated_at": utc_now()}}
        )
        await self.invalidate_cache(user_id)

    @service_operation
    async def get_profile(self, user_id: str) -> User:
        return await self.require_user(user_id)

    @service_operation
    async def get_public_profile(self, user_id: str) -> UserPublic:
        user = await self.require_user(user_id)
        return UserPublic(**user.model_dump())

    @service_operation
    async def update_profile(self, user_id: str, updates) -> User:
        """
        Update user profile.

        SECURITY: Only allowed fields can be updated via UserUpdate model.
        Name/phone/photo/gender changes are copied onto the user's open rides
        and active bookings so other participants see current details.
        """
        data = parse_model(UserUpdate, updates)
        update_data = {k: v for k, v in data.model_dump().items() if v is not None}

        user = await self.require_user(user_id)
        if not update_data:
            return user

        db = get_db()
        update_data["updated_at"] = utc_now()
        await db.users.update_one({"user_id": user_id}, {"$set": update_data})
        await self.invalidate_cache(user_id)

        await self._propagate_snapshot(user_id, update_data)

        logger.info(f"Updated profile for {user_id}: {sorted(update_data)}")
        return await self.require_user(user_id)

    async def _propagate_snapshot(self, user_id: str, update_data: dict) -> None:
        """Refresh denormalised driver/rider snapshots."""
        changed = {k: update_data[k] for k in SNAPSHOT_FIELDS if k in update_data}
        if not changed:
            return

        db = get_db()
        now = utc_now()

        ride_set = {f"driver_{k}": v for k, v in changed.items()}
        ride_set["updated_at"] = now
        await db.rides.update_many(
            {"driver_id": user_id, "status": {"$in": OPEN_STATUSES}},
            {"$set": ride_set}
        )

        booking_set = {f"rider_{k}": v for k, v in changed.items() if k != "gender"}
        if booking_set:
            booking_set["updated_at"] = now
            await db.bookings.update_many(
                {"rider_id": user_id, "status": BookingStatus.ACTIVE.value},
                {"$set": booking_set}
            )

    @service_operation
    async def switch_role(self, user_id: str, new_role) -> User:
        """
        Switch between driver and rider.

        Only allowed when the user has no open ride as driver and no
        active booking.
        """
        role = parse_model(RoleSwitch, {"role": new_role}).role
        user = await self.require_user(user_id)
        if user.role == role:
            return user

        db = get_db()
        open_rides = await db.rides.count_documents(
            {"driver_id": user_id, "status": {"$in": OPEN_STATUSES}}
        )
        if open_rides:
            raise StateError(
                "Cannot switch role while you have active rides",
                field="role",
                constraint="no active or full rides as driver"
            )

        active_bookings = await db.bookings.count_documents(
            {"rider_id": user_id, "status": BookingStatus.ACTIVE.value}
        )
        if active_bookings:
            raise StateError(
                "Cannot switch role while you have active bookings",
                field="role",
                constraint="no active bookings"
            )

        await db.users.update_one(
            {"user_id": user_id},
            {"$set": {"role": role, "updated_at": utc_now()}}
        )
        await self.invalidate_cache(user_id)

        logger.info(f"User {user_id} switched role to {role}")
        return await self.require_user(user_id)
