"""
Search Service - Available ride search and proximity search.

Two stages:
1. Store-side prefilter (status, date bound, seats, cost), ordered by
   departure and capped at `limit`. This bounds the working set.
2. In-process predicates MongoDB cannot express cheaply here: case
   insensitive substring match on place names, the time-of-day floor and
   gender-preference compatibility.

Proximity search runs the same pipeline with at most
LOCATION_SEARCH_CANDIDATE_LIMIT candidates and filters them by haversine
distance, so rides beyond that cap are never considered.
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from app.config import settings
from app.database import get_db
from app.exceptions import ValidationError
from app.models.result import service_operation
from app.models.ride import GenderPreference, LocationSearchType, Ride, RideFilters, RideStatus
from app.utils.geo import calculate_distance, is_valid_coordinate
from app.utils.timezone_utils import utc_now
from app.utils.validation import parse_model

logger = logging.getLogger(__name__)

SORT_ORDER = [("ride_datetime", 1), ("ride_id", 1)]


def build_ride_query(filters: RideFilters, now: datetime) -> dict:
    """Store-side filter document for the search prefilter."""
    query = {
        "status": RideStatus.ACTIVE.value,
        "archived": {"$ne": True},
        "seats_available": {"$gte": filters.seats_needed},
    }
    if filters.date:
        query["date"] = filters.date
    else:
        query["ride_datetime"] = {"$gt": now}
    if filters.max_cost is not None:
        query["cost"] = {"$lte": filters.max_cost}
    return query


def _contains(haystack: str, needle: Optional[str]) -> bool:
    if not needle:
        return True
    return needle.strip().lower() in (haystack or "").lower()


def is_preference_compatible(ride_preference: str, requested: Optional[str]) -> bool:
    """
    A ride matches when it accepts anyone or the requester's preference.

    Requesting "any" is itself a preference: it matches only unrestricted
    rides. Leave the filter unset to see gender-restricted rides too.
    """
    if not requested:
        return True
    return ride_preference == GenderPreference.ANY.value or ride_preference == requested


def apply_client_filters(rides: Iterable[Ride], filters: RideFilters) -> List[Ride]:
    """
    Substring, time-of-day and gender filters.

    The time floor only applies together with a date; undated searches are
    already limited to future departures by the prefilter.
    """
    results = []
    for ride in rides:
        if not _contains(ride.pickup, filters.pickup):
            continue
        if not _contains(ride.destination, filters.destination):
            continue
        if filters.date and filters.time_from and ride.time < filters.time_from:
            continue
        if not is_preference_compatible(ride.gender_preference, filters.gender_preference):
            continue
        results.append(ride)
    return results


class SearchService:
    """Ride search service."""

    async def _find_available(self, filters: RideFilters) -> List[Ride]:
        db = get_db()
        query = build_ride_query(filters, utc_now())
        cursor = db.rides.find(query).sort(SORT_ORDER).limit(filters.limit)
        candidates = [Ride(**doc) async for doc in cursor]
        return apply_client_filters(candidates, filters)

    @service_operation
    async def get_available_rides(self, filters=None) -> dict:
        """Rides open for booking, earliest departure first."""
        filters = parse_model(RideFilters, filters if filters is not None else {})
        rides = await self._find_available(filters)
        return {"rides": rides, "count": len(rides)}

    @service_operation
    async def search_rides_by_location(
        self,
        lat: float,
        lng: float,
        radius_km: Optional[float] = None,
        search_type: str = LocationSearchType.PICKUP.value,
        date: Optional[str] = None,
    ) -> List[dict]:
        """
        Rides whose pickup (or destination) lies within radius_km of a point,
        nearest first. Each result carries distance_km.
        """
        if not is_valid_coordinate(lat, lng):
            raise ValidationError(
                "Invalid coordinates",
                field="lat",
                constraint="-90 <= lat <= 90, -180 <= lng <= 180"
            )
        if radius_km is None:
            radius_km = settings.location_search_default_radius_km
        if radius_km <= 0:
            raise ValidationError("Radius must be positive", field="radius_km", constraint="> 0")
        try:
            search_type = LocationSearchType(search_type).value
        except ValueError:
            raise ValidationError(
                "Search type must be pickup or destination",
                field="search_type",
                constraint="one of pickup, destination"
            )

        filters = parse_model(RideFilters, {
            "date": date,
            "limit": settings.location_search_candidate_limit,
        })
        candidates = await self._find_available(filters)

        nearby = []
        for ride in candidates:
            if search_type == LocationSearchType.PICKUP.value:
                distance = calculate_distance(lat, lng, ride.pickup_lat, ride.pickup_lng)
            else:
                distance = calculate_distance(lat, lng, ride.destination_lat, ride.destination_lng)
            if distance <= radius_km:
                nearby.append((distance, ride))

        nearby.sort(key=lambda item: (item[0], item[1].ride_datetime, item[1].ride_id))
        return [
            {**ride.model_dump(), "distance_km": round(distance, 2)}
            for distance, ride in nearby
        ]
