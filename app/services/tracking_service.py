"""
Tracking Service - Live driver and passenger locations for a ride.

Locations live in Redis under uniride:tracking:{ride_id} and expire after
TRACKING_TTL_HOURS. They are cleared when a ride completes or is cancelled.
"""

import logging
from typing import Dict, Optional

from app.config import settings
from app.exceptions import AuthorizationError, ValidationError
from app.models.result import service_operation
from app.services.redis_service import RedisKeys, RedisService
from app.services.ride_store import ensure_driver, load_ride, require_id
from app.utils.geo import calculate_distance, is_valid_coordinate
from app.utils.timezone_utils import utc_now

logger = logging.getLogger(__name__)

DEFAULT_SPEED_KMH = 30


def _check_coordinates(lat, lng) -> None:
    if isinstance(lat, bool) or isinstance(lng, bool) or not all(
        isinstance(v, (int, float)) for v in (lat, lng)
    ):
        raise ValidationError(
            "Invalid coordinates: lat and lng must be numbers",
            field="lat",
            constraint="numeric"
        )
    if not is_valid_coordinate(lat, lng):
        raise ValidationError(
            "Invalid coordinates: lat must be between -90 and 90, lng must be between -180 and 180",
            field="lat",
            constraint="-90 <= lat <= 90, -180 <= lng <= 180"
        )


class TrackingService:
    """Driver/passenger location sharing over the realtime store."""

    def __init__(self):
        self.redis = RedisService()
        self.ttl_seconds = settings.tracking_ttl_hours * 3600

    @service_operation
    async def update_driver_location(self, ride_id: str, driver_id: str, lat: float, lng: float) -> dict:
        require_id(driver_id, "driver_id")
        _check_coordinates(lat, lng)
        ride = await load_ride(ride_id)
        ensure_driver(ride, driver_id, "share the driver location")

        location = {"lat": lat, "lng": lng, "last_updated": utc_now().isoformat()}
        await self.redis.set_json(RedisKeys.driver_location(ride_id), location, self.ttl_seconds)
        return location

    @service_operation
    async def get_driver_location(self, ride_id: str) -> Optional[dict]:
        require_id(ride_id, "ride_id")
        return await self.redis.get_json(RedisKeys.driver_location(ride_id))

    @service_operation
    async def update_passenger_location(self, ride_id: str, user_id: str, lat: float, lng: float) -> dict:
        require_id(user_id, "user_id")
        _check_coordinates(lat, lng)
        ride = await load_ride(ride_id)
        if user_id not in ride.riders:
            raise AuthorizationError(
                "User is not a passenger on this ride",
                field="user_id",
                constraint="booked rider"
            )

        location = {"lat": lat, "lng": lng, "last_updated": utc_now().isoformat()}
        await self.redis.hset_json(
            RedisKeys.passenger_locations(ride_id), user_id, location, self.ttl_seconds
        )
        return location

    @service_operation
    async def get_all_passenger_locations(self, ride_id: str) -> Dict[str, dict]:
        require_id(ride_id, "ride_id")
        return await self.redis.hgetall_json(RedisKeys.passenger_locations(ride_id))

    async def clear_tracking_data(self, ride_id: str) -> None:
        await self.redis.delete(
            RedisKeys.driver_location(ride_id),
            RedisKeys.passenger_locations(ride_id),
        )
        logger.info(f"Cleared tracking data for ride {ride_id}")

    @service_operation
    async def estimate_eta_minutes(
        self,
        ride_id: str,
        target_lat: float,
        target_lng: float,
        speed_kmh: float = DEFAULT_SPEED_KMH
    ) -> Optional[dict]:
        """
        Rough ETA from the driver's last known location.

        Straight-line haversine distance at a constant speed; None when the
        driver is not sharing a location.
        """
        _check_coordinates(target_lat, target_lng)
        if speed_kmh <= 0:
            raise ValidationError("Speed must be positive", field="speed_kmh", constraint="> 0")

        location = await self.redis.get_json(RedisKeys.driver_location(ride_id))
        if location is None:
            return None

        distance = calculate_distance(location["lat"], location["lng"], target_lat, target_lng)
        return {
            "distance_km": round(distance, 2),
            "eta_minutes": round(distance / speed_kmh * 60),
        }
