# app/dependencies.py
"""FastAPI providers for stores and services.

Each provider builds its object once per process. Tests replace them through
app.dependency_overrides.
"""
from functools import lru_cache

from app.config import settings
from app.database import auctions_collection, bids_collection, users_collection
from app.models.bid_model import BidValidationRules
from app.services.auction import AuctionService
from app.services.bidding import BidPlacementService
from app.services.whatsapp import WhatsAppClient
from app.stores import MongoAuctionStore, MongoBidStore, MongoUserStore


@lru_cache
def get_bid_store() -> MongoBidStore:
    return MongoBidStore(bids_collection, poll_seconds=settings.BID_STREAM_POLL_SECONDS)


@lru_cache
def get_user_store() -> MongoUserStore:
    return MongoUserStore(users_collection)


@lru_cache
def get_auction_store() -> MongoAuctionStore:
    return MongoAuctionStore(auctions_collection)


@lru_cache
def get_whatsapp_client() -> WhatsAppClient:
    return WhatsAppClient.from_settings(settings)


@lru_cache
def get_auction_service() -> AuctionService:
    return AuctionService(get_auction_store())


def validation_rules() -> BidValidationRules:
    return BidValidationRules(
        min_increment=settings.MIN_BID_INCREMENT,
        max_amount=settings.MAX_BID_AMOUNT,
        max_quantity=settings.MAX_BID_QUANTITY,
        max_order_value=settings.MAX_ORDER_VALUE,
    )


@lru_cache
def get_bidding_service() -> BidPlacementService:
    return BidPlacementService(
        bid_store=get_bid_store(),
        user_store=get_user_store(),
        auction_service=get_auction_service(),
        whatsapp=get_whatsapp_client(),
        rules=validation_rules(),
        stock_symbol=settings.STOCK_SYMBOL,
        default_quantity=settings.DEFAULT_BID_QUANTITY,
    )
