"""MongoDB database connection using Motor (async driver)"""

import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from marketplace.config import settings

logger = logging.getLogger(__name__)


class Database:
    """Database connection manager"""
    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None


database = Database()


async def connect_to_mongo():
    """Connect to MongoDB on application startup"""
    database.client = AsyncIOMotorClient(settings.mongodb_url)
    database.db = database.client[settings.mongodb_db_name]
    await ensure_indexes(database.db)
    logger.info(f"Connected to MongoDB: {settings.mongodb_db_name}")


async def close_mongo_connection():
    """Close MongoDB connection on application shutdown"""
    if database.client:
        database.client.close()
        logger.info("Closed MongoDB connection")


async def ensure_indexes(db: AsyncIOMotorDatabase):
    """Create the indexes the order and return workflows rely on"""
    await db.coupons.create_index("code", unique=True)
    await db.orders.create_index("order_number", unique=True)
    await db.orders.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    # One payment can settle at most one order
    await db.orders.create_index("payment_intent_id", unique=True, sparse=True)
    await db.returns.create_index([("order_id", ASCENDING), ("status", ASCENDING)])
    await db.returns.create_index([("user_id", ASCENDING), ("requested_at", DESCENDING)])
    await db.returns.create_index([("status", ASCENDING), ("requested_at", DESCENDING)])
    await db.product_options.create_index("product_id")
    await db.coupon_redemptions.create_index([("coupon_id", ASCENDING), ("user_id", ASCENDING)])
    # Only SINGLE_USE redemptions carry this key
    await db.coupon_redemptions.create_index("single_use_key", unique=True, sparse=True)


def get_database() -> AsyncIOMotorDatabase:
    """Dependency to get database instance"""
    return database.db
