"""
Notifications Router

In-app notification center.
"""

from fastapi import APIRouter, Depends

from app.dependencies import get_current_active_user
from app.models.user import User
from app.services.notification_service import NotificationService
from app.utils.http import unwrap


router = APIRouter()
notification_service = NotificationService()


@router.get("")
async def get_notifications(
    limit: int = 50,
    unread_only: bool = False,
    current_user: User = Depends(get_current_active_user)
):
    """Get user's notifications."""
    notifications = unwrap(await notification_service.get_notifications(
        user_id=current_user.user_id,
        limit=limit,
        unread_only=unread_only
    ))
    unread_count = unwrap(await notification_service.get_unread_count(current_user.user_id))

    return {"notifications": notifications, "unread_count": unread_count}


@router.put("/read-all")
async def mark_all_read(current_user: User = Depends(get_current_active_user)):
    """Mark all notifications as read."""
    count = unwrap(await notification_service.mark_all_read(current_user.user_id))
    return {
        "success": True,
        "count": count,
        "message": f"Marked {count} notifications as read"
    }


@router.put("/{notification_id}/read")
async def mark_notification_read(
    notification_id: str,
    current_user: User = Depends(get_current_active_user)
):
    """Mark a notification as read."""
    success = unwrap(await notification_service.mark_read(
        user_id=current_user.user_id,
        notification_id=notification_id
    ))
    return {
        "success": success,
        "message": "Notification marked as read" if success else "Notification not found"
    }
