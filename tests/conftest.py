"""Shared test fixtures.

Every test runs against the in-memory stores in ``helpers/fake_stores.py``
and a fixed clock; nothing here talks to MongoDB or Twilio.
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from app.dependencies import (
    get_auction_service,
    get_bid_store,
    get_bidding_service,
    get_user_store,
    get_whatsapp_client,
)
from app.main import app
from app.models.bid_model import Bid, BidValidationRules
from app.services.auction import AuctionService
from app.services.bidding import BidPlacementService
from app.services.whatsapp import WhatsAppClient
from helpers.fake_stores import InMemoryAuctionStore, InMemoryBidStore, InMemoryUserStore
from helpers.tokens import bearer

T0 = datetime(2026, 10, 18, 9, 30, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(T0)


@pytest.fixture
def make_bid():
    """Build a Bid; `at` is seconds after T0."""

    def _make(bid_id, amount, side="buy", quantity=1, user_id="u1", at=0, status="active"):
        return Bid(
            id=bid_id,
            user_id=user_id,
            user_name=user_id.upper(),
            amount=amount,
            quantity=quantity,
            side=side,
            timestamp=T0 + timedelta(seconds=at),
            stock_symbol="AAPL",
            status=status,
        )

    return _make


@pytest.fixture
def bid_store() -> InMemoryBidStore:
    return InMemoryBidStore()


@pytest.fixture
def user_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def auction_store() -> InMemoryAuctionStore:
    return InMemoryAuctionStore()


@pytest.fixture
def auction_service(auction_store, clock) -> AuctionService:
    return AuctionService(auction_store, clock=clock)


@pytest.fixture
async def active_auction(auction_service):
    return await auction_service.start_auction("AAPL", "Apple Inc.", 150.0, 300)


@pytest.fixture
def whatsapp() -> WhatsAppClient:
    # no relay, no credentials: every send is simulated
    return WhatsAppClient(simulation_delay=0)


@pytest.fixture
def bidding_service(bid_store, user_store, auction_service, whatsapp, clock) -> BidPlacementService:
    return BidPlacementService(
        bid_store=bid_store,
        user_store=user_store,
        auction_service=auction_service,
        whatsapp=whatsapp,
        rules=BidValidationRules(),
        stock_symbol="AAPL",
        default_quantity=10,
        clock=clock,
    )


@pytest.fixture
def auth_headers():
    return bearer("alice-uid", email="alice@example.com", name="Alice")


@pytest.fixture
def overrides(bid_store, user_store, auction_service, whatsapp, bidding_service):
    app.dependency_overrides[get_bid_store] = lambda: bid_store
    app.dependency_overrides[get_user_store] = lambda: user_store
    app.dependency_overrides[get_auction_service] = lambda: auction_service
    app.dependency_overrides[get_whatsapp_client] = lambda: whatsapp
    app.dependency_overrides[get_bidding_service] = lambda: bidding_service
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(overrides) -> AsyncClient:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=overrides)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
