# app/stores.py
"""MongoDB adapters for the bid, user profile and auction stores.

Each adapter takes its collection in the constructor so services never import
a shared client. Tests swap these for the in-memory fakes in tests/helpers.
"""
import asyncio
from contextlib import contextmanager
from datetime import datetime
from typing import AsyncIterator, List, Optional

from pymongo.errors import OperationFailure, PyMongoError

from app.models.auction_model import Auction
from app.models.bid_model import Bid, BidStatus
from app.models.user_model import UserProfile
from app.utils.errors import (
    BidNotFoundError,
    StorePermissionError,
    StoreUnavailableError,
)
from app.utils.helpers import ensure_objectid, ensure_utc
from app.utils.logger import logger

UNAUTHORIZED = 13
# "$changeStream is only supported on replica sets" and friends
CHANGE_STREAM_UNSUPPORTED = {40573, 40324, 136}


def translate_error(e: PyMongoError, action: str):
    if isinstance(e, OperationFailure) and e.code == UNAUTHORIZED:
        return StorePermissionError(f"Missing or insufficient permissions to {action}")
    return StoreUnavailableError(f"Failed to {action}: {e}")


@contextmanager
def store_errors(action: str):
    """Map driver errors onto the store error taxonomy."""
    try:
        yield
    except PyMongoError as e:
        raise translate_error(e, action) from e


def bid_from_doc(doc: dict) -> Bid:
    return Bid(
        id=str(doc["_id"]),
        user_id=doc["user_id"],
        user_name=doc.get("user_name") or "Anonymous",
        amount=doc["amount"],
        quantity=doc.get("quantity") or 1,
        side=doc["side"],
        timestamp=ensure_utc(doc["timestamp"]),
        stock_symbol=doc["stock_symbol"],
        status=doc.get("status"),
    )


class MongoBidStore:
    def __init__(self, collection, poll_seconds: float = 1.0):
        self.collection = collection
        self.poll_seconds = poll_seconds

    async def insert(self, bid: dict) -> Bid:
        doc = {**bid, "status": BidStatus.ACTIVE.value, "created_at": datetime.utcnow()}
        with store_errors("place bid"):
            result = await self.collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        logger.info(f"Bid added with ID: {result.inserted_id}")
        return bid_from_doc(doc)

    async def get(self, bid_id: str) -> Optional[Bid]:
        oid = ensure_objectid(bid_id)
        if isinstance(oid, str):
            return None
        with store_errors("load bid"):
            doc = await self.collection.find_one({"_id": oid})
        return bid_from_doc(doc) if doc else None

    async def update_status(self, bid_id: str, owner_id: str, status: BidStatus) -> None:
        now = datetime.utcnow()
        status = BidStatus(status)
        oid = ensure_objectid(bid_id)
        if isinstance(oid, str):
            raise BidNotFoundError()
        with store_errors("update bid"):
            result = await self.collection.update_one(
                {"_id": oid, "user_id": owner_id},
                {
                    "$set": {
                        "status": status.value,
                        f"{status.value}_at": now,
                        "updated_at": now,
                    }
                },
            )
        if result.matched_count == 0:
            raise BidNotFoundError()

    async def list_by_stock(self, symbol: str, limit: int = 50) -> List[Bid]:
        with store_errors("load bids"):
            docs = (
                await self.collection.find({"stock_symbol": symbol})
                .sort("timestamp", -1)
                .limit(limit)
                .to_list(length=limit)
            )
        return [bid_from_doc(d) for d in docs]

    async def stream_by_stock(self, symbol: str, limit: int = 50) -> AsyncIterator[List[Bid]]:
        """
        Yield the latest bids for a stock, first immediately and then after
        every change. Each item is a full snapshot, not a delta.

        Uses a change stream; standalone servers don't support those, so the
        stream falls back to polling.
        """
        previous = await self.list_by_stock(symbol, limit)
        yield previous

        pipeline = [{"$match": {"fullDocument.stock_symbol": symbol}}]
        try:
            async with self.collection.watch(
                pipeline, full_document="updateLookup"
            ) as changes:
                async for _ in changes:
                    yield await self.list_by_stock(symbol, limit)
            return
        except OperationFailure as e:
            if e.code not in CHANGE_STREAM_UNSUPPORTED:
                raise translate_error(e, "watch bids") from e
            logger.warning(
                f"Change streams unavailable ({e.code}); polling bids for {symbol} "
                f"every {self.poll_seconds}s"
            )

        while True:
            await asyncio.sleep(self.poll_seconds)
            bids = await self.list_by_stock(symbol, limit)
            if bids != previous:
                previous = bids
                yield bids


class MongoUserStore:
    def __init__(self, collection):
        self.collection = collection

    @staticmethod
    def _from_doc(doc: dict) -> UserProfile:
        doc = dict(doc)
        doc["id"] = doc.pop("_id")
        return UserProfile(**doc)

    async def get(self, user_id: str) -> Optional[UserProfile]:
        with store_errors("load user profile"):
            doc = await self.collection.find_one({"_id": user_id})
        return self._from_doc(doc) if doc else None

    async def create(self, user_id: str, fields: dict) -> UserProfile:
        profile = UserProfile(id=user_id, **fields)
        doc = profile.model_dump(exclude={"id"})
        doc["_id"] = user_id
        with store_errors("create user profile"):
            await self.collection.insert_one(doc)
        logger.info(f"User profile created for {user_id}")
        return profile

    async def update(self, user_id: str, fields: dict) -> None:
        with store_errors("update user profile"):
            await self.collection.update_one(
                {"_id": user_id},
                {"$set": {**fields, "updated_at": datetime.utcnow()}},
            )

    async def increment(self, user_id: str, fields: dict) -> None:
        """Atomically add to numeric fields, creating a bare profile if missing."""
        now = datetime.utcnow()
        with store_errors("update user stats"):
            await self.collection.update_one(
                {"_id": user_id},
                {
                    "$inc": fields,
                    "$set": {"updated_at": now},
                    "$setOnInsert": {"display_name": "Anonymous", "created_at": now},
                },
                upsert=True,
            )


class MongoAuctionStore:
    def __init__(self, collection):
        self.collection = collection

    @staticmethod
    def _from_doc(doc: dict) -> Auction:
        doc = dict(doc)
        doc["id"] = doc.pop("_id")
        for key in ("start_time", "end_time", "ended_at"):
            if doc.get(key) is not None:
                doc[key] = ensure_utc(doc[key])
        return Auction(**doc)

    async def get(self, symbol: str) -> Optional[Auction]:
        with store_errors("load auction"):
            doc = await self.collection.find_one({"_id": symbol})
        return self._from_doc(doc) if doc else None

    async def save(self, auction: Auction) -> Auction:
        doc = auction.model_dump(exclude={"id"})
        doc["updated_at"] = datetime.utcnow()
        with store_errors("save auction"):
            await self.collection.replace_one({"_id": auction.id}, doc, upsert=True)
        return auction

    async def update(self, symbol: str, fields: dict) -> None:
        with store_errors("update auction"):
            await self.collection.update_one(
                {"_id": symbol},
                {"$set": {**fields, "updated_at": datetime.utcnow()}},
            )

    async def record_bid(self, symbol: str, user_id: str) -> None:
        with store_errors("update auction stats"):
            await self.collection.update_one(
                {"_id": symbol},
                {
                    "$inc": {"total_bids": 1},
                    "$addToSet": {"participant_ids": user_id},
                    "$set": {"updated_at": datetime.utcnow()},
                },
            )
