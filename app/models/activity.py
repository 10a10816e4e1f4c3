"""Activity Model - Unified feed entry over rides (as driver) and bookings (as passenger)."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class ActivityKind(str, Enum):
    DRIVER = "driver"
    PASSENGER = "passenger"


class ActivityEntry(BaseModel):
    """Common {timestamp, kind, payload} projection used for merge-sorting."""
    kind: ActivityKind
    timestamp: datetime
    payload: dict

    class Config:
        use_enum_values = True


class LocationUpdate(BaseModel):
    """Live coordinate pushed by a driver or passenger."""
    lat: float
    lng: float
