"""
Ratings Router

API endpoints for rating system.
"""

from fastapi import APIRouter, Depends

from app.dependencies import get_current_active_user
from app.models.rating import RatingCreate
from app.models.user import User
from app.services.rating_service import RatingService
from app.utils.http import unwrap


router = APIRouter()
rating_service = RatingService()


@router.post("")
async def submit_rating(
    data: RatingCreate,
    current_user: User = Depends(get_current_active_user)
):
    """
    Submit a rating for another user after a ride.

    - Ride must be completed
    - Both users must have been on the ride
    - Can only rate once per user per ride
    """
    return unwrap(await rating_service.rate_user(current_user.user_id, data))


@router.get("/pending")
async def get_pending_ratings(current_user: User = Depends(get_current_active_user)):
    """Completed rides with participants the caller has not rated yet."""
    return unwrap(await rating_service.get_pending_ratings(current_user.user_id))


@router.get("/user/{user_id}")
async def get_user_ratings(
    user_id: str,
    limit: int = 50,
    current_user: User = Depends(get_current_active_user)
):
    return unwrap(await rating_service.get_user_ratings(user_id, limit))


@router.get("/user/{user_id}/stats")
async def get_rating_stats(
    user_id: str,
    current_user: User = Depends(get_current_active_user)
):
    return unwrap(await rating_service.get_rating_stats(user_id))
