"""
Notification Service - Push notifications via FCM and in-app
notification center.
"""

import asyncio
import logging
import uuid
from typing import Optional, List, Dict, Any, Iterable

from firebase_admin import messaging
from firebase_admin.exceptions import FirebaseError

from app.database import get_db
from app.models.notification import Notification, NotificationType
from app.models.result import service_operation
from app.services.notification_content import render

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Notification service for push and in-app notifications.

    Supports:
    - FCM push notifications (requires Firebase Admin SDK)
    - In-app notification center stored in MongoDB
    """

    async def send_notification(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: Optional[str] = None,
        body: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
        send_push: bool = True,
    ) -> Notification:
        """
        Send a notification to a user.

        Creates an in-app notification and optionally sends FCM push.
        Title/body default to the template for the notification type,
        filled from data.
        """
        db = get_db()

        if title is None or body is None:
            default_title, default_body = render(notification_type, data or {})
            title = title or default_title
            body = body or default_body

        notification = Notification(
            notification_id=str(uuid.uuid4()),
            user_id=user_id,
            type=notification_type,
            title=title,
            body=body,
            data=data,
            read=False,
        )

        await db.notifications.insert_one(notification.model_dump())

        if send_push:
            await self._send_fcm_push(user_id, title, body, data)

        return notification

    async def _send_fcm_push(
        self,
        user_id: str,
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Send FCM push notification.

        SECURITY: FCM credentials are loaded from Firebase Admin SDK.
        """
        db = get_db()
        user = await db.users.find_one({"user_id": user_id}, {"fcm_token": 1})

        if not user or not user.get("fcm_token"):
            logger.debug(f"[FCM] User {user_id} has no FCM token registered")
            return False

        message = messaging.Message(
            notification=messaging.Notification(title=title, body=body),
            data={str(k): str(v) for k, v in (data or {}).items()},
            token=user["fcm_token"],
        )

        try:
            result = messaging.send(message)
        except (FirebaseError, ValueError) as e:
            logger.warning(f"[FCM] Push failed for {user_id}: {e}")
            return False

        logger.info(f"[FCM] Push sent to {user_id}: {title} (message_id: {result})")
        return True

    async def notify_many(
        self,
        user_ids: Iterable[str],
        notification_type: NotificationType,
        data: Dict[str, Any],
    ) -> int:
        """
        Fan out one notification type to several users concurrently.

        Per-recipient failures are logged and skipped. Returns how many
        notifications were delivered.
        """
        user_ids = list(user_ids)
        results = await asyncio.gather(
            *(self.send_notification(uid, notification_type, data=data) for uid in user_ids),
            return_exceptions=True,
        )

        sent = 0
        for uid, result in zip(user_ids, results):
            if isinstance(result, Exception):
                logger.error(f"Failed to notify {uid} ({notification_type}): {result}")
            else:
                sent += 1
        return sent

    async def notify_ride_cancelled(self, ride, rider_ids: Iterable[str]) -> int:
        """Tell every booked rider that the driver cancelled the ride."""
        return await self.notify_many(
            rider_ids,
            NotificationType.RIDE_CANCELLED,
            {
                "ride_id": ride.ride_id,
                "destination": ride.destination,
                "date": ride.date,
                "reason": ride.cancellation_reason or "",
            },
        )

    @service_operation
    async def get_notifications(
        self, user_id: str, limit: int = 50, unread_only: bool = False
    ) -> List[Notification]:
        """Get user's notifications."""
        db = get_db()

        query = {"user_id": user_id}
        if unread_only:
            query["read"] = False

        cursor = db.notifications.find(query).sort("created_at", -1).limit(limit)

        notifications = []
        async for doc in cursor:
            notifications.append(Notification(**doc))

        return notifications

    @service_operation
    async def get_unread_count(self, user_id: str) -> int:
        """Get count of unread notifications."""
        db = get_db()
        return await db.notifications.count_documents(
            {"user_id": user_id, "read": False}
        )

    @service_operation
    async def mark_read(self, user_id: str, notification_id: str) -> bool:
        """Mark a notification as read."""
        db = get_db()

        result = await db.notifications.update_one(
            {"notification_id": notification_id, "user_id": user_id},
            {"$set": {"read": True}},
        )

        return result.modified_count > 0

    @service_operation
    async def mark_all_read(self, user_id: str) -> int:
        """Mark all notifications as read. Returns count marked."""
        db = get_db()

        result = await db.notifications.update_many(
            {"user_id": user_id, "read": False}, {"$set": {"read": True}}
        )

        return result.modified_count
