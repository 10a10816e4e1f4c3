"""Chat Message Model - Ride chat messages kept in the realtime store."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class MessageType(str, Enum):
    """Type of chat message."""
    TEXT = "text"          # Regular participant message
    LOCATION = "location"  # Shared location pin
    SYSTEM = "system"      # Booking/cancellation notices


class ChatMessage(BaseModel):
    """
    Chat message for a ride.

    Only the driver and booked riders of the ride may read or write.
    System messages have sender_id "system".
    """
    message_id: str = Field(..., description="Unique message ID")
    ride_id: str = Field(..., description="Parent ride ID")
    sender_id: str = Field(..., description="Sender user ID or 'system'")
    sender_name: str = Field(default="")
    sender_photo_url: Optional[str] = Field(None)
    sender_role: str = Field(..., description="driver, rider or system")
    text: str = Field(..., max_length=1000)
    message_type: MessageType = Field(default=MessageType.TEXT)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    read_by: List[str] = Field(default_factory=list)

    class Config:
        use_enum_values = True


class ChatMessageCreate(BaseModel):
    """Data required to send a chat message."""
    text: str = Field(..., min_length=1, max_length=1000)
    message_type: MessageType = MessageType.TEXT


class TypingUpdate(BaseModel):
    is_typing: bool = True
