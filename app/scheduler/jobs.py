"""
Scheduled Jobs for UniRide Backend

Periodic housekeeping run by the AsyncIOScheduler started in app.main:
- Ride archival
- Ride reminders
- Weekly score reset
- Keep-alive health ping
"""

import logging
from datetime import timedelta

import httpx
from pymongo.errors import PyMongoError

from app.config import settings
from app.database import get_db
from app.models.notification import NotificationType
from app.models.ride import OPEN_STATUSES
from app.services.activity_service import ActivityService
from app.services.notification_service import NotificationService
from app.services.score_service import ScoreService
from app.utils.timezone_utils import utc_now

logger = logging.getLogger(__name__)


class ScheduledJob:
    """Base class for scheduled jobs with error handling and logging."""

    def __init__(self, name: str):
        self.name = name
        self.execution_count = 0
        self.failure_count = 0
        self.last_execution = None
        self.last_error = None

    async def execute(self):
        """Execute the job with error handling and metrics."""
        self.execution_count += 1
        start_time = utc_now()

        try:
            logger.info(f"[{self.name}] Starting execution #{self.execution_count}")
            await self._run()
            self.last_execution = utc_now()
            duration = (self.last_execution - start_time).total_seconds()
            logger.info(f"[{self.name}] Completed successfully in {duration:.2f}s")

        except Exception as e:
            self.failure_count += 1
            self.last_error = str(e)
            logger.error(f"[{self.name}] Failed: {e}", exc_info=True)

            if self.failure_count >= 3:
                logger.critical(
                    f"[{self.name}] CRITICAL: Failed {self.failure_count} times. "
                    f"Last error: {e}"
                )

    async def _run(self):
        """Override this method in subclasses."""
        raise NotImplementedError

    def status(self) -> dict:
        return {
            "name": self.name,
            "execution_count": self.execution_count,
            "failure_count": self.failure_count,
            "last_execution": self.last_execution,
            "last_error": self.last_error,
        }


class HealthCheckJob(ScheduledJob):
    """
    Keep-alive ping so hosted instances don't sleep.

    Frequency: Every 10 minutes
    """

    def __init__(self):
        super().__init__("HealthCheck")

    async def _run(self):
        url = f"{settings.api_base_url}/health"
        try:
            async with httpx.AsyncClient(timeout=10) as client:
                response = await client.get(url)
                response.raise_for_status()
                logger.debug(f"[{self.name}] Pinged {url} - Status: {response.status_code}")
        except httpx.TimeoutException:
            logger.warning(f"[{self.name}] Health check timeout")
        except httpx.HTTPError as e:
            logger.warning(f"[{self.name}] Health check error: {e}")


class ArchiveRidesJob(ScheduledJob):
    """
    Archive completed rides older than RIDE_ARCHIVE_RETENTION_DAYS.

    Frequency: ARCHIVE_JOB_INTERVAL_HOURS
    """

    def __init__(self):
        super().__init__("ArchiveRides")
        self.activity_service = ActivityService()
        self.last_archived = 0

    async def _run(self):
        result = await self.activity_service.archive_old_rides(settings.ride_archive_retention_days)
        if not result.success:
            raise RuntimeError(f"Archival failed: {result.error.message}")
        self.last_archived = result.data


class RideReminderJob(ScheduledJob):
    """
    Remind driver and riders shortly before departure.

    Frequency: Every 5 minutes
    Each ride is reminded once, tracked by its reminder_sent flag.
    """

    def __init__(self):
        super().__init__("RideReminder")
        self.notification_service = NotificationService()

    async def _run(self):
        db = get_db()
        now = utc_now()
        minutes = settings.ride_reminder_minutes_before
        window_end = now + timedelta(minutes=minutes)

        cursor = db.rides.find({
            "status": {"$in": OPEN_STATUSES},
            "reminder_sent": {"$ne": True},
            "ride_datetime": {"$gt": now, "$lte": window_end},
        })

        async for ride in cursor:
            # Claim the ride first so overlapping runs don't double-send
            claimed = await db.rides.update_one(
                {"ride_id": ride["ride_id"], "reminder_sent": {"$ne": True}},
                {"$set": {"reminder_sent": True}}
            )
            if not claimed.modified_count:
                continue

            recipients = [ride["driver_id"], *ride.get("riders", [])]
            try:
                await self.notification_service.notify_many(
                    recipients,
                    NotificationType.RIDE_REMINDER,
                    {
                        "ride_id": ride["ride_id"],
                        "destination": ride["destination"],
                        "minutes": minutes,
                    },
                )
            except PyMongoError as e:
                logger.error(f"[{self.name}] Reminder failed for ride {ride['ride_id']}: {e}")


class WeeklyScoreResetJob(ScheduledJob):
    """
    Zero weekly leaderboard counters.

    Frequency: Mondays 00:00 UTC
    """

    def __init__(self):
        super().__init__("WeeklyScoreReset")
        self.score_service = ScoreService()

    async def _run(self):
        await self.score_service.reset_weekly_scores()


# Job instances (singleton pattern)
health_check_job = HealthCheckJob()
archive_rides_job = ArchiveRidesJob()
ride_reminder_job = RideReminderJob()
weekly_score_reset_job = WeeklyScoreResetJob()
