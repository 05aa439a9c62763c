"""
Database configuration and connection management for MongoDB
"""
import logging
from motor.motor_asyncio import AsyncIOMotorClient
from typing import Optional

from sporti.config.settings import Settings, settings

logger = logging.getLogger(__name__)


class DatabaseConfig:
    """MongoDB database configuration"""

    def __init__(self, config: Settings):
        self.MONGO_URI = config.MONGO_URI
        self.DATABASE_NAME = config.DATABASE_NAME
        self.TRANSACTIONS = config.MONGO_TRANSACTIONS
        self.client: Optional[AsyncIOMotorClient] = None
        self.database = None

    async def connect_db(self):
        """Connect to MongoDB"""
        try:
            self.client = AsyncIOMotorClient(self.MONGO_URI, tz_aware=False)
            self.database = self.client[self.DATABASE_NAME]
            # Test connection
            await self.client.admin.command('ping')
            logger.info("✅ Connected to MongoDB: %s", self.DATABASE_NAME)
        except Exception as e:
            logger.error("❌ Error connecting to MongoDB: %s", e)
            raise

    def attach(self, client, database_name: Optional[str] = None):
        """Bind an already constructed client (used by scripts and tests)"""
        self.client = client
        self.database = client[database_name or self.DATABASE_NAME]

    async def ensure_indexes(self):
        """Create the indexes the booking engine relies on"""
        bookings = self.get_collection(Collections.BOOKINGS)
        await bookings.create_index("booking_code", unique=True)
        await bookings.create_index("application_no", unique=True)
        await bookings.create_index([("resource_id", 1), ("status", 1), ("check_in", 1), ("check_out", 1)])
        await self.get_collection(Collections.ROOMS).create_index(
            [("site", 1), ("room_number", 1)], unique=True
        )

    async def close_db(self):
        """Close MongoDB connection"""
        if self.client:
            self.client.close()
            logger.info("✅ MongoDB connection closed")

    def get_collection(self, collection_name: str):
        """Get a specific collection"""
        if self.database is None:
            raise Exception("Database not connected")
        return self.database[collection_name]


# Global database instance
db_config = DatabaseConfig(settings)


# Collection names
class Collections:
    ROOMS = "rooms"
    SERVICES = "services"
    BOOKINGS = "bookings"
    RESOURCE_LOCKS = "resource_locks"
