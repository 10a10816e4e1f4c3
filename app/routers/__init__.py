"""UniRide Routers Package"""

from app.routers import (
    users,
    rides,
    bookings,
    activity,
    ratings,
    tracking,
    chat,
    leaderboard,
    notifications,
    scheduler,
)

__all__ = [
    "users",
    "rides",
    "bookings",
    "activity",
    "ratings",
    "tracking",
    "chat",
    "leaderboard",
    "notifications",
    "scheduler",
]
