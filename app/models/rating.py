"""Rating Model - Model for storing user ratings after rides."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


class Rating(BaseModel):
    """
    Rating submitted by one ride participant for another after completion.

    Ratings feed the rated user's avg_rating / ratings_count aggregate.
    """
    rating_id: str = Field(..., description="Unique rating ID")
    ride_id: str = Field(..., description="Completed ride this rating is for")
    from_user_id: str = Field(..., description="User who gave the rating")
    from_user_name: str = Field(default="")
    to_user_id: str = Field(..., description="User who received the rating")
    to_user_name: str = Field(default="")
    rating: int = Field(..., ge=1, le=5, description="1-5 star rating")
    comment: str = Field(default="", max_length=500)
    ride_date: Optional[str] = Field(None)
    ride_route: Optional[str] = Field(None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RatingCreate(BaseModel):
    """Data required to submit a rating."""
    ride_id: str = Field(..., min_length=1)
    to_user_id: str = Field(..., min_length=1)
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(default="", max_length=500)
