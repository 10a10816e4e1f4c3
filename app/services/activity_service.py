"""
Activity Service - User activity feed, history snapshots and ride archival.

The feed merges two independently fetched sources, rides the user drove
and bookings the user made, into one list ordered by creation time.
"""

import asyncio
import logging
import uuid
from datetime import timedelta
from typing import List

from pymongo.errors import PyMongoError

from app.config import settings
from app.database import get_db
from app.exceptions import ValidationError
from app.models.activity import ActivityEntry, ActivityKind
from app.models.booking import Booking
from app.models.result import service_operation
from app.models.ride import Ride, RideStatus
from app.utils.timezone_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

SNAPSHOT_ACTIVITY_LIMIT = 20
SNAPSHOT_RECENT_LIMIT = 10


def _check_user_id(user_id) -> None:
    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError("Invalid user ID provided", field="user_id", constraint="non-empty string")


def _check_limit(limit) -> None:
    if isinstance(limit, bool) or not isinstance(limit, int) or not 1 <= limit <= settings.activity_max_limit:
        raise ValidationError(
            f"Limit must be an integer between 1 and {settings.activity_max_limit}",
            field="limit",
            constraint=f"1 <= limit <= {settings.activity_max_limit}"
        )


def merge_activity(rides: List[Ride], bookings: List[Booking], limit: int) -> List[ActivityEntry]:
    """Tag, project to a common shape, sort newest first and truncate."""
    now = utc_now()
    entries = [
        ActivityEntry(
            kind=ActivityKind.DRIVER,
            timestamp=ensure_utc(ride.created_at) or now,
            payload=ride.model_dump(),
        )
        for ride in rides
    ]
    entries.extend(
        ActivityEntry(
            kind=ActivityKind.PASSENGER,
            timestamp=ensure_utc(booking.created_at) or now,
            payload=booking.model_dump(),
        )
        for booking in bookings
    )
    entries.sort(key=lambda e: e.timestamp, reverse=True)
    return entries[:limit]


class ActivityService:
    """Activity feed and housekeeping."""

    async def _collect(self, user_id: str, limit: int) -> List[ActivityEntry]:
        db = get_db()

        rides_cursor = db.rides.find({"driver_id": user_id}).sort("created_at", -1).limit(limit)
        bookings_cursor = db.bookings.find({"rider_id": user_id}).sort("created_at", -1).limit(limit)

        rides = [Ride(**doc) async for doc in rides_cursor]
        bookings = [Booking(**doc) async for doc in bookings_cursor]
        return merge_activity(rides, bookings, limit)

    @service_operation
    async def get_user_activity(self, user_id: str, limit: int = 10) -> List[ActivityEntry]:
        """Latest `limit` rides-as-driver and bookings-as-passenger, newest first."""
        _check_user_id(user_id)
        _check_limit(limit)
        return await self._collect(user_id, limit)

    @service_operation
    async def get_user_history_snapshot(self, user_id: str) -> dict:
        """
        Summarise the user's latest activity and store it in user_history.
        """
        _check_user_id(user_id)
        activities = await self._collect(user_id, SNAPSHOT_ACTIVITY_LIMIT)

        summary = {
            "total_activities": len(activities),
            "rides_as_driver": sum(1 for a in activities if a.kind == ActivityKind.DRIVER.value),
            "rides_as_passenger": sum(1 for a in activities if a.kind == ActivityKind.PASSENGER.value),
            "completed_rides": sum(1 for a in activities if a.payload.get("status") == "completed"),
            "cancelled_rides": sum(1 for a in activities if a.payload.get("status") == "cancelled"),
            "last_activity_at": activities[0].timestamp if activities else None,
        }
        snapshot = {
            "snapshot_id": str(uuid.uuid4()),
            "user_id": user_id,
            "summary": summary,
            "recent_activities": [a.model_dump() for a in activities[:SNAPSHOT_RECENT_LIMIT]],
            "generated_at": utc_now(),
        }

        await get_db().user_history.insert_one(dict(snapshot))
        logger.info(f"History snapshot {snapshot['snapshot_id']} created for {user_id}")
        return snapshot

    @service_operation
    async def archive_old_rides(self, days: int = 30) -> int:
        """
        Flag completed rides last updated more than `days` ago as archived.

        Per-ride updates run concurrently; individual failures are logged
        and skipped. Returns how many rides were flagged. Already archived
        rides are not selected again.
        """
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            raise ValidationError("Days must be a positive integer", field="days", constraint=">= 1")

        db = get_db()
        cutoff = utc_now() - timedelta(days=days)
        cursor = db.rides.find(
            {
                "status": RideStatus.COMPLETED.value,
                "updated_at": {"$lt": cutoff},
                "archived": {"$ne": True},
            },
            {"ride_id": 1}
        )
        ride_ids = [doc["ride_id"] async for doc in cursor]
        if not ride_ids:
            logger.info("No old rides found to archive")
            return 0

        archived_at = utc_now()

        async def archive(ride_id: str):
            return await db.rides.update_one(
                {"ride_id": ride_id, "archived": {"$ne": True}},
                {"$set": {"archived": True, "archived_at": archived_at}}
            )

        results = await asyncio.gather(
            *(archive(ride_id) for ride_id in ride_ids),
            return_exceptions=True,
        )

        archived = 0
        for ride_id, result in zip(ride_ids, results):
            if isinstance(result, PyMongoError):
                logger.error(f"Failed to archive ride {ride_id}: {result}", exc_info=result)
            elif isinstance(result, BaseException):
                raise result
            elif result.modified_count:
                archived += 1

        logger.info(f"Archived {archived} of {len(ride_ids)} rides older than {days} days")
        return archived
