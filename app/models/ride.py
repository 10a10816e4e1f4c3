"""
Ride Model

Defines the ride offer schema for MongoDB persistence and the input
models used to create, update and search rides.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Optional, List

from pydantic import AfterValidator, BaseModel, Field, field_validator

from app.config import settings
from app.utils.timezone_utils import ensure_utc


class RideStatus(str, Enum):
    """Status of a ride offer."""

    ACTIVE = "active"  # Accepting bookings
    FULL = "full"  # No seats left
    COMPLETED = "completed"  # Terminal
    CANCELLED = "cancelled"  # Terminal


TERMINAL_STATUSES = {RideStatus.COMPLETED.value, RideStatus.CANCELLED.value}
OPEN_STATUSES = [RideStatus.ACTIVE.value, RideStatus.FULL.value]


class GenderPreference(str, Enum):
    """Which riders may book the ride."""

    MALE = "male"
    FEMALE = "female"
    ANY = "any"


class VehicleInfo(BaseModel):
    make: str = ""
    model: str = ""
    color: str = ""
    license_plate: str = ""


class Ride(BaseModel):
    """
    Ride offer model for MongoDB.

    Invariants kept by the services:
    - 0 <= seats_available <= total_seats
    - status == full  <=>  seats_available == 0 and not completed/cancelled
    - completed/cancelled rides are never modified again
    """

    ride_id: str = Field(..., description="Unique ride ID")
    driver_id: str = Field(..., description="Driver user ID")
    driver_name: str = Field(default="")
    driver_phone: Optional[str] = Field(None)
    driver_rating: float = Field(default=0.0)
    driver_gender: Optional[str] = Field(None)
    driver_photo_url: Optional[str] = Field(None)

    pickup: str = Field(..., description="Pickup location name")
    destination: str = Field(..., description="Destination location name")
    pickup_lat: float
    pickup_lng: float
    destination_lat: float
    destination_lng: float
    distance_km: float = Field(default=0.0, description="Pickup to destination")

    date: str = Field(..., description="Local ride date (YYYY-MM-DD)")
    time: str = Field(..., description="Local ride time (HH:MM)")
    timezone_offset_minutes: int = Field(default=0)
    ride_datetime: datetime = Field(..., description="Departure in UTC")

    total_seats: int = Field(..., ge=1)
    seats_available: int = Field(..., ge=0)
    cost: float = Field(..., ge=0, description="Cost per seat")
    gender_preference: GenderPreference = Field(default=GenderPreference.ANY)
    riders: List[str] = Field(default_factory=list)
    status: RideStatus = Field(default=RideStatus.ACTIVE)

    notes: str = Field(default="")
    vehicle_info: VehicleInfo = Field(default_factory=VehicleInfo)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = Field(None)
    cancelled_at: Optional[datetime] = Field(None)
    cancellation_reason: Optional[str] = Field(None)
    archived: bool = Field(default=False)
    archived_at: Optional[datetime] = Field(None)
    reminder_sent: bool = Field(default=False)

    class Config:
        use_enum_values = True

    @field_validator(
        "ride_datetime", "created_at", "updated_at",
        "completed_at", "cancelled_at", "archived_at",
    )
    @classmethod
    def normalize_utc(cls, v):
        # MongoDB returns naive datetimes
        return ensure_utc(v)

    @property
    def seats_booked(self) -> int:
        return self.total_seats - self.seats_available


def _check_date(value: str) -> str:
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise ValueError("Date must be a valid calendar date (YYYY-MM-DD)")
    return value


def _check_time(value: str) -> str:
    try:
        datetime.strptime(value, "%H:%M")
    except ValueError:
        raise ValueError("Time must be a valid time of day (HH:MM)")
    return value


def _check_total_seats(value: int) -> int:
    if value > settings.max_total_seats:
        raise ValueError(f"Total seats must be between 1 and {settings.max_total_seats}")
    return value


RideDate = Annotated[str, Field(pattern=r"^\d{4}-\d{2}-\d{2}$"), AfterValidator(_check_date)]
RideTime = Annotated[str, Field(pattern=r"^\d{2}:\d{2}$"), AfterValidator(_check_time)]
SeatCount = Annotated[int, Field(ge=1), AfterValidator(_check_total_seats)]


class RideCreate(BaseModel):
    """Data required to offer a new ride."""

    pickup: str = Field(..., min_length=1, max_length=200)
    destination: str = Field(..., min_length=1, max_length=200)
    pickup_lat: float = Field(..., ge=-90, le=90)
    pickup_lng: float = Field(..., ge=-180, le=180)
    destination_lat: float = Field(..., ge=-90, le=90)
    destination_lng: float = Field(..., ge=-180, le=180)
    date: RideDate
    time: RideTime
    timezone_offset_minutes: Optional[int] = Field(None, ge=-720, le=840)
    total_seats: SeatCount
    cost: float = Field(..., ge=0)
    gender_preference: GenderPreference = GenderPreference.ANY
    notes: str = Field(default="", max_length=500)
    vehicle_info: VehicleInfo = Field(default_factory=VehicleInfo)

    class Config:
        use_enum_values = True


class RideUpdate(BaseModel):
    """
    Fields a driver may change on an open ride.

    Status, seat availability and ownership are not editable here.
    """

    pickup: Optional[str] = Field(None, min_length=1, max_length=200)
    destination: Optional[str] = Field(None, min_length=1, max_length=200)
    pickup_lat: Optional[float] = Field(None, ge=-90, le=90)
    pickup_lng: Optional[float] = Field(None, ge=-180, le=180)
    destination_lat: Optional[float] = Field(None, ge=-90, le=90)
    destination_lng: Optional[float] = Field(None, ge=-180, le=180)
    date: Optional[RideDate] = None
    time: Optional[RideTime] = None
    total_seats: Optional[SeatCount] = None
    cost: Optional[float] = Field(None, ge=0)
    gender_preference: Optional[GenderPreference] = None
    notes: Optional[str] = Field(None, max_length=500)
    vehicle_info: Optional[VehicleInfo] = None

    class Config:
        use_enum_values = True
        extra = "forbid"


class RideFilters(BaseModel):
    """Search filters for available rides."""

    pickup: Optional[str] = None
    destination: Optional[str] = None
    date: Optional[RideDate] = None
    time_from: Optional[RideTime] = None
    seats_needed: int = Field(default=1, ge=1)
    max_cost: Optional[float] = Field(None, ge=0)
    gender_preference: Optional[GenderPreference] = None
    limit: int = Field(default_factory=lambda: settings.search_default_limit, ge=1, le=settings.search_max_limit)

    class Config:
        use_enum_values = True


class LocationSearchType(str, Enum):
    PICKUP = "pickup"
    DESTINATION = "destination"


class RideCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=300)


class RideStatusUpdate(BaseModel):
    status: RideStatus
