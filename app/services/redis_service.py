"""Redis Service - Realtime store for live tracking, ride chat and typing indicators."""

import json
from typing import Any, Dict, List, Optional

from app.config import settings
from app.database import get_redis


# =============================================================================
# Redis Key Naming Convention
# =============================================================================
#
# All keys are namespaced under "uniride:" prefix.
#
# Key patterns:
# - uniride:tracking:{ride_id}:driver      - String, driver's last location (JSON)
# - uniride:tracking:{ride_id}:passengers  - Hash user_id -> location (JSON)
# - uniride:chat:{ride_id}                 - List of chat messages (JSON), oldest first
# - uniride:typing:{ride_id}               - Hash user_id -> ISO timestamp of last keystroke
# - uniride:user:{user_id}                 - String, cached user profile
#
# TTL rules:
# - Tracking data: TRACKING_TTL_HOURS, cleared on ride completion/cancellation
# - Typing entries: TYPING_TTL_SECONDS, stale entries ignored on read
# - User cache: USER_CACHE_TTL_SECONDS
#
# =============================================================================


class RedisKeys:
    """Redis key builders with documentation."""

    @staticmethod
    def driver_location(ride_id: str) -> str:
        """String containing {lat, lng, last_updated} of the ride's driver."""
        return f"uniride:tracking:{ride_id}:driver"

    @staticmethod
    def passenger_locations(ride_id: str) -> str:
        """Hash of passenger user_id -> {lat, lng, last_updated}."""
        return f"uniride:tracking:{ride_id}:passengers"

    @staticmethod
    def chat_messages(ride_id: str) -> str:
        """
        List of chat messages for a ride, appended with RPUSH.
        Trimmed to CHAT_MAX_MESSAGES most recent entries.
        """
        return f"uniride:chat:{ride_id}"

    @staticmethod
    def typing(ride_id: str) -> str:
        """Hash of user_id -> last typing timestamp (ISO format)."""
        return f"uniride:typing:{ride_id}"

    @staticmethod
    def user_cache(user_id: str) -> str:
        """String containing a serialized User document."""
        return f"uniride:user:{user_id}"


class RedisService:
    """
    JSON helpers over the realtime store.

    Everything stored here is ephemeral. MongoDB stays the source of truth
    for rides and bookings.
    """

    def __init__(self):
        self.tracking_ttl_seconds = settings.tracking_ttl_hours * 3600

    async def set_json(self, key: str, value: Dict[str, Any], ttl_seconds: Optional[int] = None) -> None:
        redis = get_redis()
        if ttl_seconds:
            await redis.set(key, json.dumps(value), ex=ttl_seconds)
        else:
            await redis.set(key, json.dumps(value))

    async def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        redis = get_redis()
        raw = await redis.get(key)
        if not raw:
            return None
        return json.loads(raw)

    async def hset_json(
        self,
        key: str,
        field: str,
        value: Dict[str, Any],
        ttl_seconds: Optional[int] = None
    ) -> None:
        """Store one JSON field of a hash and refresh the hash TTL."""
        redis = get_redis()
        pipe = redis.pipeline()
        pipe.hset(key, field, json.dumps(value))
        if ttl_seconds:
            pipe.expire(key, ttl_seconds)
        await pipe.execute()

    async def hgetall_json(self, key: str) -> Dict[str, Dict[str, Any]]:
        redis = get_redis()
        data = await redis.hgetall(key)
        return {field: json.loads(raw) for field, raw in (data or {}).items()}

    async def append_json(self, key: str, value: Dict[str, Any], max_length: int) -> None:
        """Append to a capped list."""
        redis = get_redis()
        pipe = redis.pipeline()
        pipe.rpush(key, json.dumps(value))
        pipe.ltrim(key, -max_length, -1)
        await pipe.execute()

    async def list_json(self, key: str, start: int = 0, end: int = -1) -> List[Dict[str, Any]]:
        redis = get_redis()
        items = await redis.lrange(key, start, end)
        return [json.loads(raw) for raw in items]

    async def delete(self, *keys: str) -> None:
        redis = get_redis()
        await redis.delete(*keys)
