"""
Scheduler Monitoring Router

Execution metrics for the background jobs.
"""

from typing import Dict

from fastapi import APIRouter, Depends

from app.dependencies import get_current_active_user
from app.scheduler import (
    archive_rides_job,
    health_check_job,
    ride_reminder_job,
    weekly_score_reset_job,
)

router = APIRouter()


@router.get("/scheduler/status", dependencies=[Depends(get_current_active_user)])
async def get_scheduler_status() -> Dict:
    """
    Status of all scheduled jobs.

    A job with 3 or more consecutive failures is reported unhealthy.
    """
    jobs = [health_check_job, archive_rides_job, ride_reminder_job, weekly_score_reset_job]

    job_statuses = []
    for job in jobs:
        status = job.status()
        status["health"] = "healthy" if job.failure_count < 3 else "unhealthy"
        job_statuses.append(status)

    unhealthy_jobs = [j for j in job_statuses if j["health"] == "unhealthy"]
    return {
        "overall_health": "unhealthy" if unhealthy_jobs else "healthy",
        "jobs": job_statuses,
    }
