"""
MongoDB async database connection using Motor.
Provides database instance and collection access.
"""

import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from typing import Optional
from .config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class Database:
    """MongoDB database connection manager."""

    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect(cls):
        """Connect to MongoDB."""
        cls.client = AsyncIOMotorClient(settings.MONGODB_URL)
        cls.db = cls.client[settings.DATABASE_NAME]

        # Verify connection
        await cls.client.admin.command('ping')
        logger.info("Connected to MongoDB: %s", settings.DATABASE_NAME)

        await cls.create_indexes()

    @classmethod
    async def disconnect(cls):
        """Disconnect from MongoDB."""
        if cls.client:
            cls.client.close()
            logger.info("Disconnected from MongoDB")

    @classmethod
    async def create_indexes(cls):
        """Create database indexes for the queue workload."""
        if cls.db is None:
            return

        await cls.db.users.create_index("username", unique=True)

        # One ticket number per day
        await cls.db.queue_entries.create_index(
            [("queue_date", 1), ("ticket_number", 1)], unique=True
        )
        await cls.db.queue_entries.create_index("status")
        await cls.db.queue_entries.create_index("appointment_ref")

        await cls.db.appointments.create_index("appointment_date")
        await cls.db.patients.create_index("phone")

        logger.debug("Database indexes created")

    @classmethod
    def get_collection(cls, name: str):
        """Get a collection by name."""
        if cls.db is None:
            raise RuntimeError("Database not connected")
        return cls.db[name]


async def get_database() -> AsyncIOMotorDatabase:
    """FastAPI dependency for database access."""
    if Database.db is None:
        await Database.connect()
    return Database.db
