"""
Rating Service

Handles post-ride ratings and the avg_rating / ratings_count aggregate
kept on user documents.
"""

import logging
import uuid
from typing import List

from pymongo.errors import DuplicateKeyError

from app.database import get_db
from app.exceptions import AuthorizationError, StateError, ValidationError
from app.models.rating import Rating, RatingCreate
from app.models.result import service_operation
from app.models.ride import Ride, RideStatus
from app.services.ride_store import load_ride, participant_role, require_id
from app.services.user_service import UserService
from app.utils.validation import parse_model

logger = logging.getLogger(__name__)

PENDING_RIDES_LIMIT = 20


class RatingService:
    """Service for managing user ratings."""

    def __init__(self):
        self.user_service = UserService()

    @service_operation
    async def rate_user(self, from_user_id: str, data) -> Rating:
        """
        Rate another participant of a completed ride.

        Validates:
        - Not rating themselves
        - Ride is completed
        - Both users were the driver or a rider of the ride
        - Hasn't already rated this user for this ride
        """
        require_id(from_user_id, "from_user_id")
        data = parse_model(RatingCreate, data)

        if from_user_id == data.to_user_id:
            raise ValidationError("Cannot rate yourself", field="to_user_id", constraint="!= from_user_id")

        ride = await load_ride(data.ride_id)
        if ride.status != RideStatus.COMPLETED.value:
            raise StateError("You can only rate users after the ride is completed")
        if participant_role(ride, from_user_id) is None:
            raise AuthorizationError("You were not part of this ride", field="from_user_id")
        if participant_role(ride, data.to_user_id) is None:
            raise ValidationError("Rated user was not part of this ride", field="to_user_id")

        db = get_db()
        existing = await db.ratings.find_one({
            "ride_id": data.ride_id,
            "from_user_id": from_user_id,
            "to_user_id": data.to_user_id,
        })
        if existing:
            raise StateError("You have already rated this user for this ride")

        rater = await self.user_service.require_user(from_user_id, field="from_user_id")
        rated = await self.user_service.require_user(data.to_user_id, field="to_user_id")

        rating = Rating(
            rating_id=str(uuid.uuid4()),
            ride_id=data.ride_id,
            from_user_id=from_user_id,
            from_user_name=rater.name,
            to_user_id=data.to_user_id,
            to_user_name=rated.name,
            rating=data.rating,
            comment=data.comment.strip(),
            ride_date=ride.date,
            ride_route=f"{ride.pickup} -> {ride.destination}",
        )

        try:
            await db.ratings.insert_one(rating.model_dump())
        except DuplicateKeyError:
            raise StateError("You have already rated this user for this ride")

        await self._apply_rating(rated.user_id, data.rating)

        logger.info(f"{from_user_id} rated {data.to_user_id} {data.rating}/5 for ride {data.ride_id}")
        return rating

    async def _apply_rating(self, user_id: str, value: int) -> None:
        """
        Fold one new rating into the running average.

        Conditional on the count read, falling back to a full recalculation
        if another rating landed in between.
        """
        db = get_db()
        doc = await db.users.find_one({"user_id": user_id}, {"avg_rating": 1, "ratings_count": 1})
        count = doc.get("ratings_count", 0)
        avg = doc.get("avg_rating", 0.0)

        new_count = count + 1
        new_avg = round((avg * count + value) / new_count, 2)
        result = await db.users.update_one(
            {"user_id": user_id, "ratings_count": count},
            {"$set": {"avg_rating": new_avg, "ratings_count": new_count}}
        )
        if result.modified_count == 0:
            await self._recalculate(user_id)
        await self.user_service.invalidate_cache(user_id)

    async def _recalculate(self, user_id: str) -> dict:
        db = get_db()
        values = [doc["rating"] async for doc in db.ratings.find({"to_user_id": user_id}, {"rating": 1})]
        avg = round(sum(values) / len(values), 2) if values else 0.0

        await db.users.update_one(
            {"user_id": user_id},
            {"$set": {"avg_rating": avg, "ratings_count": len(values)}}
        )
        await self.user_service.invalidate_cache(user_id)
        return {"avg_rating": avg, "ratings_count": len(values)}

    @service_operation
    async def recalculate_user_rating(self, user_id: str) -> dict:
        """Rebuild avg_rating / ratings_count from the ratings collection."""
        require_id(user_id, "user_id")
        await self.user_service.require_user(user_id)
        return await self._recalculate(user_id)

    @service_operation
    async def get_user_ratings(self, user_id: str, limit: int = 50) -> dict:
        """Latest ratings received, with a 1-5 star distribution."""
        require_id(user_id, "user_id")
        if not 1 <= limit <= 100:
            raise ValidationError("Limit must be between 1 and 100", field="limit", constraint="1 <= limit <= 100")

        cursor = get_db().ratings.find({"to_user_id": user_id}).sort("created_at", -1).limit(limit)
        ratings = [Rating(**doc) async for doc in cursor]

        distribution = {star: 0 for star in range(1, 6)}
        for r in ratings:
            distribution[r.rating] += 1

        average = round(sum(r.rating for r in ratings) / len(ratings), 2) if ratings else 0.0
        return {
            "ratings": ratings,
            "average": average,
            "count": len(ratings),
            "distribution": distribution,
        }

    @service_operation
    async def get_pending_ratings(self, user_id: str) -> List[dict]:
        """
        Completed rides where the user has not yet rated every other
        participant.
        """
        require_id(user_id, "user_id")
        db = get_db()

        cursor = db.rides.find({
            "status": RideStatus.COMPLETED.value,
            "$or": [{"driver_id": user_id}, {"riders": user_id}],
        }).sort("completed_at", -1).limit(PENDING_RIDES_LIMIT)
        rides = [Ride(**doc) async for doc in cursor]

        pending = []
        for ride in rides:
            participants = [ride.driver_id, *ride.riders]
            others = [uid for uid in participants if uid != user_id]
            rated = {
                doc["to_user_id"]
                async for doc in db.ratings.find(
                    {"ride_id": ride.ride_id, "from_user_id": user_id}, {"to_user_id": 1}
                )
            }
            remaining = [uid for uid in others if uid not in rated]
            if remaining:
                pending.append({
                    "ride_id": ride.ride_id,
                    "pickup": ride.pickup,
                    "destination": ride.destination,
                    "date": ride.date,
                    "users_to_rate": remaining,
                })
        return pending

    @service_operation
    async def get_rating_stats(self, user_id: str) -> dict:
        """Aggregate over every rating the user received."""
        require_id(user_id, "user_id")
        distribution = {star: 0 for star in range(1, 6)}
        total = 0
        async for doc in get_db().ratings.find({"to_user_id": user_id}, {"rating": 1}):
            distribution[doc["rating"]] += 1
            total += 1

        average = round(sum(s * n for s, n in distribution.items()) / total, 2) if total else 0.0
        return {
            "average_rating": average,
            "total_ratings": total,
            "distribution": distribution,
            "five_star_percentage": round(distribution[5] / total * 100, 1) if total else 0.0,
        }
