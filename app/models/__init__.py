"""UniRide Models Package"""

from app.models.user import User, UserUpdate, UserPublic, UserRole, UserStats, Gender, RoleSwitch
from app.models.ride import (
    Ride, RideCreate, RideUpdate, RideFilters, RideStatus, RideCancel, RideStatusUpdate,
    GenderPreference, VehicleInfo, LocationSearchType,
)
from app.models.booking import Booking, BookingCreate, BookingStatus
from app.models.rating import Rating, RatingCreate
from app.models.notification import Notification, NotificationType
from app.models.chat_message import ChatMessage, ChatMessageCreate, MessageType, TypingUpdate
from app.models.activity import ActivityEntry, ActivityKind, LocationUpdate
from app.models.result import ServiceResult, ErrorDetail

__all__ = [
    "User", "UserUpdate", "UserPublic", "UserRole", "UserStats", "Gender", "RoleSwitch",
    "Ride", "RideCreate", "RideUpdate", "RideFilters", "RideStatus", "RideCancel", "RideStatusUpdate",
    "GenderPreference", "VehicleInfo", "LocationSearchType",
    "Booking", "BookingCreate", "BookingStatus",
    "Rating", "RatingCreate",
    "Notification", "NotificationType",
    "ChatMessage", "ChatMessageCreate", "MessageType", "TypingUpdate",
    "ActivityEntry", "ActivityKind", "LocationUpdate",
    "ServiceResult", "ErrorDetail",
]
