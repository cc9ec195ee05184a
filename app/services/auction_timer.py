# app/services/auction_timer.py
import math
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional

from pydantic import BaseModel

from app.utils.helpers import ensure_utc
from app.utils.logger import logger

WARNING_SECONDS = 300
CRITICAL_SECONDS = 60


class TimerPhase(str, Enum):
    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"
    ENDED = "ended"


class TimerState(BaseModel):
    remaining_seconds: int
    phase: TimerPhase
    progress_percent: float

    @property
    def ended(self) -> bool:
        return self.phase == TimerPhase.ENDED


def timer_state(now: datetime, end_time: datetime, duration: int = WARNING_SECONDS) -> TimerState:
    """Countdown derived only from the clock and the auction end time."""
    seconds_left = (ensure_utc(end_time) - ensure_utc(now)).total_seconds()
    remaining = max(0, math.floor(seconds_left))

    if remaining == 0:
        phase = TimerPhase.ENDED
    elif remaining <= CRITICAL_SECONDS:
        phase = TimerPhase.CRITICAL
    elif remaining <= WARNING_SECONDS:
        phase = TimerPhase.WARNING
    else:
        phase = TimerPhase.NORMAL

    progress = min(100.0, remaining / duration * 100) if duration > 0 else 0.0
    return TimerState(
        remaining_seconds=remaining, phase=phase, progress_percent=round(progress, 2)
    )


class AuctionTimer:
    """
    Ticks one auction's countdown and calls on_time_up the first time the
    countdown reaches zero. Later ticks never call it again.
    """

    def __init__(
        self,
        symbol: str,
        end_time: datetime,
        duration: int,
        on_time_up: Optional[Callable[[str], Awaitable[None]]] = None,
    ):
        self.symbol = symbol
        self.end_time = end_time
        self.duration = duration
        self.on_time_up = on_time_up
        self.fired = False

    async def tick(self, now: datetime) -> TimerState:
        state = timer_state(now, self.end_time, self.duration)
        if state.ended and not self.fired:
            self.fired = True
            logger.info(f"⏰ Auction for {self.symbol} reached its end time")
            if self.on_time_up:
                await self.on_time_up(self.symbol)
        return state
