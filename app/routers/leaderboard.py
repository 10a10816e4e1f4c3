"""
Leaderboard Router

Eco score rankings and personal stats.
"""

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_current_active_user
from app.models.user import User
from app.services.score_service import ScoreService
from app.utils.http import unwrap


router = APIRouter()
score_service = ScoreService()


@router.get("")
async def get_leaderboard(
    period: str = Query("all", pattern="^(all|weekly)$"),
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_active_user)
):
    """Top users by all-time or weekly score."""
    return unwrap(await score_service.get_leaderboard(period, limit))


@router.get("/me")
async def get_my_stats(current_user: User = Depends(get_current_active_user)):
    """Counters, savings, score, level and badges for the current user."""
    return unwrap(await score_service.get_user_stats(current_user.user_id))
