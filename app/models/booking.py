"""Booking Model - A rider's claim on seats of exactly one ride."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.utils.timezone_utils import ensure_utc


class BookingStatus(str, Enum):
    """Tracked independently of the parent ride's status."""
    ACTIVE = "active"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Booking(BaseModel):
    """
    Booking model for MongoDB.

    Fields:
    - booking_id: Unique booking ID
    - ride_id / driver_id: Parent ride and its driver
    - rider_*: Snapshot of the rider at booking time
    - pickup/destination/date/time: Snapshot of the route
    - seats_booked, cost_per_seat, total_cost = cost_per_seat * seats_booked
    - status: active, cancelled or completed
    """
    booking_id: str = Field(..., description="Unique booking ID")
    ride_id: str = Field(..., description="Booked ride")
    rider_id: str = Field(..., description="Rider who owns the booking")
    driver_id: str = Field(..., description="Driver of the booked ride")
    rider_name: str = Field(default="")
    rider_phone: Optional[str] = Field(None)
    rider_photo_url: Optional[str] = Field(None)
    pickup: str
    destination: str
    date: str
    time: str
    ride_datetime: datetime
    seats_booked: int = Field(..., ge=1)
    cost_per_seat: float = Field(..., ge=0)
    total_cost: float = Field(..., ge=0)
    status: BookingStatus = Field(default=BookingStatus.ACTIVE)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    cancelled_at: Optional[datetime] = Field(None)
    completed_at: Optional[datetime] = Field(None)

    class Config:
        use_enum_values = True

    @field_validator("ride_datetime", "created_at", "updated_at", "cancelled_at", "completed_at")
    @classmethod
    def normalize_utc(cls, v):
        return ensure_utc(v)


class BookingCreate(BaseModel):
    """Data required to book seats."""
    ride_id: str = Field(..., min_length=1)
    seats_booked: int = Field(default=1, ge=1)
