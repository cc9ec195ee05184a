"""In-memory stand-ins for the Mongo stores.

Each fake follows the same contract as its adapter in ``app/stores.py``.
Setting ``fail_with`` to an exception instance makes the next matching
calls raise it, which is how tests reach degraded mode and the
best-effort bookkeeping paths.
"""

import itertools
from datetime import datetime
from typing import Dict, List, Optional

from app.models.auction_model import Auction
from app.models.bid_model import Bid, BidStatus
from app.models.user_model import UserProfile
from app.utils.errors import BidNotFoundError


class InMemoryBidStore:
    def __init__(self) -> None:
        self.bids: Dict[str, Bid] = {}
        self.fail_with: Optional[Exception] = None
        self.fail_reads_with: Optional[Exception] = None
        self._ids = itertools.count(1)

    def add(self, bid: Bid) -> Bid:
        self.bids[bid.id] = bid
        return bid

    async def insert(self, bid: dict) -> Bid:
        if self.fail_with:
            raise self.fail_with
        stored = Bid(id=f"bid{next(self._ids)}", status=BidStatus.ACTIVE, **bid)
        self.bids[stored.id] = stored
        return stored

    async def get(self, bid_id: str) -> Optional[Bid]:
        return self.bids.get(bid_id)

    async def update_status(self, bid_id: str, owner_id: str, status: BidStatus) -> None:
        if self.fail_with:
            raise self.fail_with
        bid = self.bids.get(bid_id)
        if bid is None or bid.user_id != owner_id:
            raise BidNotFoundError()
        self.bids[bid_id] = bid.model_copy(update={"status": BidStatus(status).value})

    async def list_by_stock(self, symbol: str, limit: int = 50) -> List[Bid]:
        if self.fail_reads_with:
            raise self.fail_reads_with
        bids = [b for b in self.bids.values() if b.stock_symbol == symbol]
        bids.sort(key=lambda b: b.timestamp, reverse=True)
        return bids[:limit]

    async def stream_by_stock(self, symbol: str, limit: int = 50):
        yield await self.list_by_stock(symbol, limit)


class InMemoryUserStore:
    def __init__(self) -> None:
        self.users: Dict[str, UserProfile] = {}
        self.fail_with: Optional[Exception] = None
        self.fail_increment_with: Optional[Exception] = None

    async def get(self, user_id: str) -> Optional[UserProfile]:
        if self.fail_with:
            raise self.fail_with
        return self.users.get(user_id)

    async def create(self, user_id: str, fields: dict) -> UserProfile:
        if self.fail_with:
            raise self.fail_with
        profile = UserProfile(id=user_id, **fields)
        self.users[user_id] = profile
        return profile

    async def update(self, user_id: str, fields: dict) -> None:
        if self.fail_with:
            raise self.fail_with
        current = self.users[user_id]
        self.users[user_id] = current.model_copy(update={**fields, "updated_at": datetime.utcnow()})

    async def increment(self, user_id: str, fields: dict) -> None:
        if self.fail_increment_with:
            raise self.fail_increment_with
        current = self.users.get(user_id) or UserProfile(id=user_id, display_name="Anonymous")
        updated = {k: getattr(current, k) + v for k, v in fields.items()}
        self.users[user_id] = current.model_copy(update=updated)


class InMemoryAuctionStore:
    def __init__(self) -> None:
        self.auctions: Dict[str, Auction] = {}
        self.fail_record_with: Optional[Exception] = None

    async def get(self, symbol: str) -> Optional[Auction]:
        return self.auctions.get(symbol)

    async def save(self, auction: Auction) -> Auction:
        self.auctions[auction.id] = auction
        return auction

    async def update(self, symbol: str, fields: dict) -> None:
        self.auctions[symbol] = self.auctions[symbol].model_copy(update=fields)

    async def record_bid(self, symbol: str, user_id: str) -> None:
        if self.fail_record_with:
            raise self.fail_record_with
        auction = self.auctions[symbol]
        participants = list(auction.participant_ids)
        if user_id not in participants:
            participants.append(user_id)
        self.auctions[symbol] = auction.model_copy(
            update={"total_bids": auction.total_bids + 1, "participant_ids": participants}
        )
