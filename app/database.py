# app/database.py
from motor.motor_asyncio import AsyncIOMotorClient
from app.config import settings
from app.utils.logger import logger

client = AsyncIOMotorClient(settings.MONGO_URI)
db = client[settings.MONGO_DB]
users_collection = db["users"]
bids_collection = db["bids"]
auctions_collection = db["auctions"]


async def init_db():
    """Initialize database indexes"""
    await bids_collection.create_index([("stock_symbol", 1), ("timestamp", -1)])
    await bids_collection.create_index("user_id")
    await users_collection.create_index("email", sparse=True)

    logger.info("✅ Database indexes created successfully")
