import json
import os
import base64
import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ==========================================================================
    # Firebase Configuration
    # ==========================================================================
    firebase_service_account_json: Optional[str] = None
    firebase_service_account_path: Optional[str] = None
    firebase_project_id: str

    # ==========================================================================
    # MongoDB Configuration
    # ==========================================================================
    mongodb_uri: str
    mongodb_database: str = "uniride"

    # ==========================================================================
    # Redis Configuration
    # ==========================================================================
    redis_url: str

    # ==========================================================================
    # Application Settings
    # ==========================================================================
    api_base_url: str = "http://localhost:8000"
    api_v1_str: str = "/api/v1"
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: str  # No default - must be configured

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse comma-separated CORS origins into list."""
        if self.cors_origins == "*":
            return ["*"]
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    # ==========================================================================
    # Ride Rules
    # ==========================================================================
    max_total_seats: int = 8
    max_seats_per_booking: int = 4
    booking_cancellation_window_hours: int = 2
    ride_archive_retention_days: int = 30
    default_timezone_offset_minutes: int = 0

    # ==========================================================================
    # Search / Activity Limits
    # ==========================================================================
    search_max_limit: int = 200
    search_default_limit: int = 50
    location_search_candidate_limit: int = 100
    location_search_default_radius_km: float = 5.0
    activity_max_limit: int = 100
    my_rides_limit: int = 100

    # ==========================================================================
    # Realtime (tracking, chat, typing)
    # ==========================================================================
    tracking_ttl_hours: int = 12
    typing_ttl_seconds: int = 5
    chat_history_limit: int = 50
    chat_max_messages: int = 500
    user_cache_ttl_seconds: int = 300

    # ==========================================================================
    # Scheduler
    # ==========================================================================
    archive_job_interval_hours: int = 24
    ride_reminder_minutes_before: int = 30

    # ==========================================================================
    # Computed Properties
    # ==========================================================================

    @property
    def firebase_credentials(self) -> Optional[dict]:
        """
        Get Firebase credentials as dict.

        Supports:
        1. File path (FIREBASE_SERVICE_ACCOUNT_PATH)
        2. JSON string (FIREBASE_SERVICE_ACCOUNT_JSON)
        3. Base64 encoded JSON string (FIREBASE_SERVICE_ACCOUNT_JSON)
        """
        if self.firebase_service_account_path:
            if os.path.exists(self.firebase_service_account_path):
                try:
                    with open(self.firebase_service_account_path, "r") as f:
                        return json.load(f)
                except (OSError, json.JSONDecodeError) as e:
                    logger.error(f"Error reading Firebase credentials file: {e}")
                    return None

        if self.firebase_service_account_json:
            content = self.firebase_service_account_json.strip()

            if content.startswith("{"):
                try:
                    return json.loads(content)
                except json.JSONDecodeError:
                    pass  # Move to Base64 attempt

            try:
                decoded = base64.b64decode(content).decode("utf-8")
                return json.loads(decoded)
            except (ValueError, UnicodeDecodeError):
                logger.error(
                    "Failed to decode FIREBASE_SERVICE_ACCOUNT_JSON (Invalid JSON or Base64)"
                )
                return None

        return None

    @model_validator(mode="after")
    def check_search_limits(self) -> "Settings":
        """Search limits feed RideFilters.limit, which is capped at search_max_limit."""
        for name in ("search_default_limit", "location_search_candidate_limit"):
            value = getattr(self, name)
            if not 1 <= value <= self.search_max_limit:
                raise ValueError(f"{name} must be between 1 and search_max_limit ({self.search_max_limit})")
        return self

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", case_sensitive=False
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to avoid re-reading env vars on every request.
    """
    return Settings()


# Convenience export
settings = get_settings()
