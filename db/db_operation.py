from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from settings.config import Settings
from utils.logger import get_logger

logger = get_logger("DB_OPERATION")

class MongoConnection:
    def __init__(self, settings: Settings, client: Optional[AsyncIOMotorClient] = None):
        logger.info("Initializing MongoDB Connection")
        self.db_name = settings.DB_NAME
        self.client = client if client is not None else AsyncIOMotorClient(settings.MONGO_URI)
        self.db = self.client[settings.DB_NAME]
        self.accounts_collection = self.db["accounts"]
        self.orders_collection = self.db["orders"]
        self.qr_codes_collection = self.db["qr_codes"]

    async def connect(self):
        try:
            # Force an actual connection & authentication check
            await self.db.command("ping")
            logger.info("Successfully connected to MongoDB and authenticated.")
            logger.info(f"Using Database: {self.db_name}")
        except Exception as e:
            logger.error(f"Could not connect to MongoDB: {e}")
            raise e

    async def create_indexes(self):
        await self.accounts_collection.create_index("id", unique=True)
        await self.accounts_collection.create_index("phone_number", unique=True)
        await self.orders_collection.create_index("id", unique=True)
        await self.orders_collection.create_index("order_id", unique=True)
        await self.orders_collection.create_index([("restaurant_id", ASCENDING), ("status", ASCENDING)])
        await self.orders_collection.create_index([("restaurant_id", ASCENDING), ("created_at", DESCENDING)])
        await self.qr_codes_collection.create_index("id", unique=True)
        await self.qr_codes_collection.create_index("code", unique=True)
        await self.qr_codes_collection.create_index([("restaurant_id", ASCENDING), ("is_active", ASCENDING)])
        logger.info("Indexes created")

    def close(self):
        self.client.close()
        logger.info("MongoDB connection closed")
