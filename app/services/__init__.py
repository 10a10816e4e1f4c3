"""UniRide Services Package"""

from app.services.auth_service import AuthService
from app.services.user_service import UserService
from app.services.redis_service import RedisService
from app.services.notification_service import NotificationService
from app.services.chat_service import ChatService
from app.services.tracking_service import TrackingService
from app.services.score_service import ScoreService
from app.services.ride_service import RideService
from app.services.booking_service import BookingService
from app.services.search_service import SearchService
from app.services.activity_service import ActivityService
from app.services.rating_service import RatingService

__all__ = [
    "AuthService",
    "UserService",
    "RedisService",
    "NotificationService",
    "ChatService",
    "TrackingService",
    "ScoreService",
    "RideService",
    "BookingService",
    "SearchService",
    "ActivityService",
    "RatingService",
]
