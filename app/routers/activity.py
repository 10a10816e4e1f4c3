"""
Activity Router

Unified ride/booking activity feed and history snapshots.
"""

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_current_active_user
from app.models.user import User
from app.services.activity_service import ActivityService
from app.utils.http import unwrap


router = APIRouter()
activity_service = ActivityService()


@router.get("")
async def get_activity(
    limit: int = Query(10, ge=1, le=100),
    current_user: User = Depends(get_current_active_user)
):
    """Rides driven and bookings made, newest first."""
    return unwrap(await activity_service.get_user_activity(current_user.user_id, limit))


@router.post("/snapshot")
async def create_history_snapshot(current_user: User = Depends(get_current_active_user)):
    return unwrap(await activity_service.get_user_history_snapshot(current_user.user_id))
