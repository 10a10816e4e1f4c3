"""
Scheduler Package

Periodic housekeeping jobs with execution tracking and error handling.
"""

from app.scheduler.jobs import (
    health_check_job,
    archive_rides_job,
    ride_reminder_job,
    weekly_score_reset_job,
)

__all__ = [
    "health_check_job",
    "archive_rides_job",
    "ride_reminder_job",
    "weekly_score_reset_job",
]
