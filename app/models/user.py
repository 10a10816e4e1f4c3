"""User Model - Defines the user schema for MongoDB persistence."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, Field


class UserRole(str, Enum):
    """Mutually exclusive roles. Switchable only with no open rides/bookings."""
    DRIVER = "driver"
    RIDER = "rider"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class UserStats(BaseModel):
    """Carpool score block, recomputed after every completed ride."""
    rides_joined: int = 0
    rides_created: int = 0
    passengers_carried: int = 0
    total_distance_km: float = 0.0
    fuel_saved: float = 0.0
    co2_saved: float = 0.0
    money_saved: float = 0.0
    score: int = 0
    weekly_score: int = 0
    weekly_rides_joined: int = 0
    weekly_rides_created: int = 0
    weekly_passengers_carried: int = 0
    weekly_distance_km: float = 0.0
    badges: List[str] = Field(default_factory=list)
    last_updated: Optional[datetime] = None


class User(BaseModel):
    """
    User model for MongoDB.

    Fields:
    - user_id: Firebase Authentication UID
    - email: University email address (verified via Firebase)
    - name: Display name
    - phone: Contact number shared with ride participants
    - gender: male/female/other, used for gender-preference rides
    - role: driver or rider
    - avg_rating / ratings_count: running rating aggregate
    - total_rides_offered / total_rides_taken: role-scoped counters
    - stats: carpool score and badges
    - fcm_token: Firebase Cloud Messaging token for push notifications
    """
    user_id: str = Field(..., description="Firebase UID")
    email: str = Field(..., description="University email")
    name: str = Field(..., description="Display name")
    phone: Optional[str] = Field(None)
    gender: Optional[Gender] = Field(None)
    photo_url: Optional[str] = Field(None)
    university: Optional[str] = Field(None)
    role: UserRole = Field(default=UserRole.RIDER)
    avg_rating: float = Field(default=0.0, ge=0.0, le=5.0)
    ratings_count: int = Field(default=0, ge=0)
    total_rides_offered: int = Field(default=0)
    total_rides_taken: int = Field(default=0)
    stats: UserStats = Field(default_factory=UserStats)
    fcm_token: Optional[str] = Field(None)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        use_enum_values = True


class UserUpdate(BaseModel):
    """Data that can be updated by the user."""
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    phone: Optional[str] = Field(None, pattern=r"^\+?[0-9][0-9\- ]{6,18}[0-9]$")
    gender: Optional[Gender] = None
    photo_url: Optional[str] = Field(None, pattern=r"^https?://")
    university: Optional[str] = Field(None, max_length=200)
    fcm_token: Optional[str] = None

    class Config:
        use_enum_values = True


class RoleSwitch(BaseModel):
    role: UserRole

    class Config:
        use_enum_values = True


class UserPublic(BaseModel):
    """Public user data shown to other users."""
    user_id: str
    name: str
    photo_url: Optional[str] = None
    gender: Optional[str] = None
    role: str
    avg_rating: float
    ratings_count: int
