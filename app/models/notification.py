"""
Notification Model - Defines the notification schema for in-app and push
notifications.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    """Type of notification."""

    NEW_BOOKING = "new_booking"
    BOOKING_CANCELLED = "booking_cancelled"
    RIDE_FULL = "ride_full"
    RIDE_REMINDER = "ride_reminder"
    RIDE_CANCELLED = "ride_cancelled"
    RATING_REQUEST = "rating_request"
    DRIVER_NEARBY = "driver_nearby"


class Notification(BaseModel):
    """
    Notification model for MongoDB.

    Stores in-app notifications. Push notifications are sent via FCM
    but also stored here for the notification center.
    """

    notification_id: str = Field(..., description="Unique notification ID")
    user_id: str = Field(..., description="Target user ID")
    type: NotificationType
    title: str = Field(..., description="Notification title")
    body: str = Field(..., description="Notification body")
    data: Optional[dict] = Field(None, description="Additional data (ride_id, booking_id)")
    read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        use_enum_values = True
