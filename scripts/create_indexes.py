"""
Database Index Creation Script

Creates the MongoDB indexes the services rely on (unique ids, the
one-active-booking-per-rider-and-ride constraint, search and feed sorts).
Run this script after deployment or when setting up a new database.
"""

import asyncio
import logging

from motor.motor_asyncio import AsyncIOMotorClient

from app.config import settings
from app.database import create_indexes

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def main():
    client = AsyncIOMotorClient(settings.mongodb_uri)
    db = client[settings.mongodb_database]

    logger.info(f"Creating indexes on {settings.mongodb_database}...")
    try:
        await create_indexes(db)
        logger.info("All indexes created successfully!")
    finally:
        client.close()


if __name__ == "__main__":
    asyncio.run(main())
