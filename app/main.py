"""
UniRide Backend - FastAPI Application

Main application entry point with middleware, routers, scheduler and
OpenAPI documentation.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from redis.exceptions import RedisError

from app.config import settings
from app.database import init_db, close_db, get_db, get_redis
from app.routers import (
    users,
    rides,
    bookings,
    activity,
    ratings,
    tracking,
    chat,
    leaderboard,
    notifications,
    scheduler as scheduler_router,
)
from app.scheduler import (
    health_check_job,
    archive_rides_job,
    ride_reminder_job,
    weekly_score_reset_job,
)


logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger("uniride")


def create_scheduler() -> AsyncIOScheduler:
    """Register the housekeeping jobs on a fresh scheduler."""
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        health_check_job.execute,
        "interval",
        minutes=10,
        id="health_check",
        name="Health Check Job",
        max_instances=1,
        coalesce=True,  # Skip if previous run is still executing
    )

    scheduler.add_job(
        archive_rides_job.execute,
        "interval",
        hours=settings.archive_job_interval_hours,
        id="archive_rides",
        name="Archive Rides Job",
        max_instances=1,
        coalesce=True,
    )

    scheduler.add_job(
        ride_reminder_job.execute,
        "interval",
        minutes=5,
        id="ride_reminder",
        name="Ride Reminder Job",
        max_instances=1,
        coalesce=True,
    )

    scheduler.add_job(
        weekly_score_reset_job.execute,
        "cron",
        day_of_week="mon",
        hour=0,
        minute=0,
        id="weekly_score_reset",
        name="Weekly Score Reset Job",
        max_instances=1,
        coalesce=True,
    )

    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    Handles startup and shutdown events:
    - Initialize database connections and indexes
    - Start background jobs
    - Cleanup on shutdown
    """
    await init_db()

    try:
        await get_db().client.admin.command("ping")
        logger.info("Connected to MongoDB")
    except PyMongoError as e:
        logger.error(f"FAILED to connect to MongoDB: {e}")

    try:
        await get_redis().ping()
        logger.info("Connected to Redis")
    except RedisError as e:
        logger.error(f"FAILED to connect to Redis: {e}")

    scheduler = create_scheduler()
    scheduler.start()
    logger.info(
        "Scheduler started with 4 jobs: Health Check (10m) | "
        f"Archive ({settings.archive_job_interval_hours}h) | Reminders (5m) | Weekly Reset (Mon)"
    )

    yield

    scheduler.shutdown()
    logger.info("Scheduler stopped")

    await close_db()


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="UniRide API",
    description="""
    UniRide - University Ride Sharing API

    ## Features
    - Firebase Authentication
    - Ride offers, seat booking and search
    - Ride chat and live location tracking
    - Ratings, eco score and leaderboard

    ## Authentication
    All authenticated endpoints require a valid Firebase ID token in the
    Authorization header: `Authorization: Bearer <firebase_id_token>`
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)


# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unhandled errors.

    SECURITY: Do not leak internal error details.
    """
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": (
                "Something went wrong. Our team has been notified "
                "and will fix it shortly."
            )
        },
    )


# =============================================================================
# Routers
# =============================================================================

app.include_router(users.router, prefix="/api/v1/users", tags=["Users"])

app.include_router(rides.router, prefix="/api/v1/rides", tags=["Rides"])

app.include_router(bookings.router, prefix="/api/v1/bookings", tags=["Bookings"])

app.include_router(activity.router, prefix="/api/v1/activity", tags=["Activity"])

app.include_router(ratings.router, prefix="/api/v1/ratings", tags=["Ratings"])

app.include_router(tracking.router, prefix="/api/v1/tracking", tags=["Tracking"])

app.include_router(chat.router, prefix="/api/v1/chat", tags=["Chat"])

app.include_router(leaderboard.router, prefix="/api/v1/leaderboard", tags=["Leaderboard"])

app.include_router(
    notifications.router,
    prefix="/api/v1/notifications",
    tags=["Notifications"],
)

app.include_router(scheduler_router.router, prefix="/api/v1", tags=["Scheduler"])


# =============================================================================
# Health Check
# =============================================================================


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for load balancers and the keep-alive job."""
    return {"status": "healthy", "version": "1.0.0"}


@app.get("/", tags=["Root"])
async def root():
    return {
        "name": "UniRide API",
        "version": "1.0.0",
        "docs": "/docs",
    }
