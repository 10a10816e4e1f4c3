"""
Score Service - Carpool savings, score, badges and leaderboard.

Stats are accumulated on the user document when a ride completes:
fuel saved assumes 14 km per litre, 2.31 kg CO2 per litre and 0.20 per
litre in fuel cost.
"""

import logging
from typing import Dict, List

from pymongo import ReturnDocument

from app.database import get_db
from app.exceptions import ValidationError
from app.models.result import service_operation
from app.models.user import UserRole, UserStats
from app.utils.timezone_utils import utc_now

logger = logging.getLogger(__name__)

KM_PER_LITRE = 14
CO2_KG_PER_LITRE = 2.31
MONEY_PER_LITRE = 0.20
MAX_SCORE = 100

LEVELS = [(25, "New"), (50, "Active"), (75, "Experienced")]
TOP_LEVEL = "Veteran"

WEEKLY_FIELDS = {
    "weekly_score": 0,
    "weekly_rides_joined": 0,
    "weekly_rides_created": 0,
    "weekly_passengers_carried": 0,
    "weekly_distance_km": 0.0,
}


def calculate_savings(distance_km: float) -> Dict[str, float]:
    fuel = distance_km / KM_PER_LITRE
    return {
        "fuel_saved": fuel,
        "co2_saved": fuel * CO2_KG_PER_LITRE,
        "money_saved": fuel * MONEY_PER_LITRE,
    }


def calculate_score(
    rides_joined: int = 0,
    rides_created: int = 0,
    passengers_carried: int = 0,
    fuel_saved: float = 0.0,
    co2_saved: float = 0.0,
) -> int:
    raw = (
        rides_joined * 5
        + rides_created * 8
        + passengers_carried * 3
        + fuel_saved * 10
        + co2_saved * 3
    )
    return min(MAX_SCORE, round(raw / 6))


def get_user_level(score: int) -> str:
    for upper, level in LEVELS:
        if score < upper:
            return level
    return TOP_LEVEL


def get_badges(role: str, stats: UserStats) -> List[str]:
    """Badge ids earned for the user's current role."""
    badges = []
    if role == UserRole.DRIVER.value:
        if stats.rides_created >= 5:
            badges.append("trusted_driver")
        if stats.co2_saved > 10:
            badges.append("eco_driver")
        if stats.rides_created >= 20:
            badges.append("veteran_driver")
        if stats.weekly_passengers_carried >= 10:
            badges.append("campus_hero")
        if stats.rides_created >= 10:
            badges.append("on_time_driver")
    else:
        if stats.rides_joined >= 5:
            badges.append("active_rider")
        if stats.co2_saved > 5:
            badges.append("eco_rider")
        if stats.total_distance_km >= 15:
            badges.append("green_student")
        if stats.rides_joined >= 10:
            badges.append("community_rider")
        if stats.rides_joined >= 3:
            badges.append("fast_booker")
    return badges


def derive_stats(role: str, stats: UserStats) -> UserStats:
    """Recompute savings, scores and badges from the raw counters."""
    savings = calculate_savings(stats.total_distance_km)
    weekly_savings = calculate_savings(stats.weekly_distance_km)

    stats = stats.model_copy(update={
        "fuel_saved": round(savings["fuel_saved"], 1),
        "co2_saved": round(savings["co2_saved"], 1),
        "money_saved": round(savings["money_saved"], 2),
        "score": calculate_score(
            stats.rides_joined,
            stats.rides_created,
            stats.passengers_carried,
            savings["fuel_saved"],
            savings["co2_saved"],
        ),
        "weekly_score": calculate_score(
            stats.weekly_rides_joined,
            stats.weekly_rides_created,
            stats.weekly_passengers_carried,
            weekly_savings["fuel_saved"],
            weekly_savings["co2_saved"],
        ),
        "last_updated": utc_now(),
    })
    stats.badges = get_badges(role, stats)
    return stats


class ScoreService:
    """Maintains the stats block on user documents."""

    async def _apply(self, user_id: str, increments: Dict[str, float]) -> None:
        db = get_db()
        doc = await db.users.find_one_and_update(
            {"user_id": user_id},
            {"$inc": {f"stats.{k}": v for k, v in increments.items()}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            logger.warning(f"Skipping stats update for missing user {user_id}")
            return

        stats = derive_stats(doc.get("role", UserRole.RIDER.value), UserStats(**doc.get("stats", {})))
        await db.users.update_one(
            {"user_id": user_id},
            {"$set": {"stats": stats.model_dump()}}
        )

    async def record_completed_ride(self, ride) -> None:
        """Credit the driver and every rider of a completed ride."""
        distance = ride.distance_km or 0.0
        carried = ride.seats_booked

        await self._apply(ride.driver_id, {
            "rides_created": 1,
            "weekly_rides_created": 1,
            "passengers_carried": carried,
            "weekly_passengers_carried": carried,
            "total_distance_km": distance,
            "weekly_distance_km": distance,
        })

        for rider_id in ride.riders:
            await self._apply(rider_id, {
                "rides_joined": 1,
                "weekly_rides_joined": 1,
                "total_distance_km": distance,
                "weekly_distance_km": distance,
            })

        logger.info(f"Recorded stats for ride {ride.ride_id} ({len(ride.riders)} riders)")

    @service_operation
    async def get_user_stats(self, user_id: str) -> dict:
        db = get_db()
        doc = await db.users.find_one({"user_id": user_id}, {"stats": 1})
        stats = UserStats(**(doc or {}).get("stats", {}))
        return {**stats.model_dump(), "level": get_user_level(stats.score)}

    @service_operation
    async def get_leaderboard(self, period: str = "all", limit: int = 10) -> List[dict]:
        """Top users by all-time or weekly score."""
        if period not in ("all", "weekly"):
            raise ValidationError(
                "Period must be 'all' or 'weekly'",
                field="period",
                constraint="one of all, weekly"
            )
        if not 1 <= limit <= 100:
            raise ValidationError(
                "Limit must be between 1 and 100",
                field="limit",
                constraint="1 <= limit <= 100"
            )

        score_field = "stats.score" if period == "all" else "stats.weekly_score"
        db = get_db()
        cursor = db.users.find(
            {"is_active": True},
            {"user_id": 1, "name": 1, "photo_url": 1, "role": 1, "stats": 1}
        ).sort([(score_field, -1), ("user_id", 1)]).limit(limit)

        leaderboard = []
        async for doc in cursor:
            stats = UserStats(**doc.get("stats", {}))
            score = stats.score if period == "all" else stats.weekly_score
            leaderboard.append({
                "rank": len(leaderboard) + 1,
                "user_id": doc["user_id"],
                "name": doc.get("name", ""),
                "photo_url": doc.get("photo_url"),
                "role": doc.get("role"),
                "score": score,
                "level": get_user_level(stats.score),
                "co2_saved": stats.co2_saved,
                "badges": stats.badges,
            })
        return leaderboard

    async def reset_weekly_scores(self) -> int:
        """Zero the weekly counters for everyone. Returns users touched."""
        db = get_db()
        result = await db.users.update_many(
            {},
            {"$set": {f"stats.{k}": v for k, v in WEEKLY_FIELDS.items()}}
        )
        logger.info(f"Reset weekly scores for {result.modified_count} users")
        return result.modified_count
