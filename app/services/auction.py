# app/services/auction.py
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from app.models.auction_model import Auction
from app.services.auction_timer import AuctionTimer, TimerPhase, TimerState, timer_state
from app.utils.errors import AppError, AuctionNotFoundError, StoreError
from app.utils.helpers import ensure_utc, utc_now
from app.utils.logger import logger


class AuctionService:
    """Auction lifecycle plus the countdown timers the scheduler ticks."""

    def __init__(self, store, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock
        self.timers: Dict[str, AuctionTimer] = {}

    def is_active(self, auction: Optional[Auction], now: Optional[datetime] = None) -> bool:
        if auction is None or not auction.is_active:
            return False
        now = now or self.clock()
        return ensure_utc(now) < ensure_utc(auction.end_time)

    async def find(self, symbol: str) -> Optional[Auction]:
        return await self.store.get(symbol)

    async def get(self, symbol: str) -> Auction:
        auction = await self.store.get(symbol)
        if auction is None:
            raise AuctionNotFoundError(symbol)
        return auction

    async def start_auction(
        self, symbol: str, name: str, price: float, duration: int
    ) -> Auction:
        start = self.clock()
        auction = Auction(
            id=symbol,
            stock_symbol=symbol,
            stock_name=name,
            start_price=price,
            current_price=price,
            start_time=start,
            end_time=start + timedelta(seconds=duration),
            duration=duration,
        )
        await self.store.save(auction)
        self._register(auction)
        logger.info(f"🎯 Auction started for {symbol} at {price} ({duration}s)")
        return auction

    async def ensure_auction(
        self, symbol: str, name: str, price: float, duration: int
    ) -> Auction:
        """Reuse a running auction for the symbol, otherwise start a fresh one."""
        existing = await self.store.get(symbol)
        if self.is_active(existing):
            self._register(existing)
            return existing
        return await self.start_auction(symbol, name, price, duration)

    async def end_auction(self, symbol: str) -> Auction:
        auction = await self.get(symbol)
        timer = self.timers.get(symbol)
        if timer:
            timer.fired = True
        if not auction.is_active:
            return auction

        now = self.clock()
        await self.store.update(symbol, {"is_active": False, "ended_at": now})
        logger.info(f"🏁 Auction ended for {symbol}")
        return auction.model_copy(update={"is_active": False, "ended_at": now})

    async def timer(self, symbol: str) -> TimerState:
        auction = await self.get(symbol)
        if not auction.is_active:
            return TimerState(
                remaining_seconds=0, phase=TimerPhase.ENDED, progress_percent=0.0
            )
        return timer_state(self.clock(), auction.end_time, auction.duration)

    async def record_bid(self, symbol: str, user_id: str) -> None:
        """Bookkeeping only; a failure here never affects the bid."""
        try:
            await self.store.record_bid(symbol, user_id)
        except StoreError as e:
            logger.warning(f"Failed to update auction stats for {symbol}: {e}")

    async def tick(self) -> None:
        now = self.clock()
        for timer in list(self.timers.values()):
            if not timer.fired:
                await timer.tick(now)

    def _register(self, auction: Auction) -> None:
        self.timers[auction.stock_symbol] = AuctionTimer(
            auction.stock_symbol,
            auction.end_time,
            auction.duration,
            on_time_up=self._on_time_up,
        )

    async def _on_time_up(self, symbol: str) -> None:
        try:
            await self.end_auction(symbol)
        except AppError as e:
            logger.error(f"Failed to end auction {symbol} on time up: {e.message}")
