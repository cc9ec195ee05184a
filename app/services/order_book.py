# app/services/order_book.py
"""
Order book aggregation over a snapshot of bids.

Everything here is a pure function of its input list: no caching, no
counters, no I/O. The live stream recomputes every view from scratch on each
snapshot, so calling any of these twice on the same bids gives the same answer.
"""
from typing import Iterable, List, Optional

from pydantic import BaseModel

from app.models.bid_model import Bid, BidSide, BidStatus


class VolumeStats(BaseModel):
    total_quantity: int = 0
    total_notional: float = 0.0
    bidder_count: int = 0
    buy_volume: int = 0
    sell_volume: int = 0
    best_buy: Optional[float] = None
    best_sell: Optional[float] = None
    spread: Optional[float] = None
    spread_percent: Optional[float] = None


class RankedBid(BaseModel):
    rank: int
    bid: Bid
    volume_share: float  # fraction of the list's total quantity


class OrderBookView(BaseModel):
    buys: List[RankedBid]
    sells: List[RankedBid]
    stats: VolumeStats


class LeaderboardView(BaseModel):
    entries: List[RankedBid]
    total_volume: int
    total_value: float
    average_bid: float
    buy_count: int
    sell_count: int


class UserSummary(BaseModel):
    user_id: str
    total_bids: int
    active_bids: int
    buy_bids: int
    sell_bids: int
    total_volume: float
    profit_loss: float


def is_active(bid: Bid) -> bool:
    # bids written before status existed count as active
    return bid.status is None or bid.status == BidStatus.ACTIVE


def active_bids(bids: Iterable[Bid]) -> List[Bid]:
    return [b for b in bids if is_active(b)]


def rank(bids: Iterable[Bid], side: BidSide) -> List[Bid]:
    """
    Active bids on one side, best price first.

    Buys: highest amount first. Sells: lowest amount first.
    Equal prices keep time priority (earlier timestamp first).
    """
    side = BidSide(side)
    same_side = [b for b in active_bids(bids) if b.side == side]
    if side == BidSide.BUY:
        return sorted(same_side, key=lambda b: (-b.amount, b.timestamp))
    return sorted(same_side, key=lambda b: (b.amount, b.timestamp))


def top_n(bids: Iterable[Bid], n: int) -> List[Bid]:
    """Active bids of both sides by amount descending, earliest first on ties."""
    ordered = sorted(active_bids(bids), key=lambda b: (-b.amount, b.timestamp))
    return ordered[: max(n, 0)]


def highest_bid(bids: Iterable[Bid]) -> Optional[Bid]:
    top = top_n(bids, 1)
    return top[0] if top else None


def volume_stats(bids: Iterable[Bid]) -> VolumeStats:
    live = active_bids(bids)
    if not live:
        return VolumeStats()

    buys = rank(live, BidSide.BUY)
    sells = rank(live, BidSide.SELL)
    best_buy = buys[0].amount if buys else None
    best_sell = sells[0].amount if sells else None

    spread = None
    spread_percent = None
    if best_buy is not None and best_sell is not None:
        # negative when the book is crossed; not clamped
        spread = round(best_sell - best_buy, 2)
        spread_percent = round(abs(spread) / best_buy * 100, 2)

    return VolumeStats(
        total_quantity=sum(b.quantity for b in live),
        total_notional=round(sum(b.amount * b.quantity for b in live), 2),
        bidder_count=len({b.user_id for b in live}),
        buy_volume=sum(b.quantity for b in buys),
        sell_volume=sum(b.quantity for b in sells),
        best_buy=best_buy,
        best_sell=best_sell,
        spread=spread,
        spread_percent=spread_percent,
    )


def _with_shares(bids: List[Bid]) -> List[RankedBid]:
    total = sum(b.quantity for b in bids)
    return [
        RankedBid(
            rank=i + 1,
            bid=b,
            volume_share=b.quantity / total if total else 0.0,
        )
        for i, b in enumerate(bids)
    ]


def order_book(bids: Iterable[Bid], depth: int = 10) -> OrderBookView:
    bids = list(bids)
    return OrderBookView(
        buys=_with_shares(rank(bids, BidSide.BUY)[:depth]),
        sells=_with_shares(rank(bids, BidSide.SELL)[:depth]),
        stats=volume_stats(bids),
    )


def leaderboard(bids: Iterable[Bid], limit: int = 15) -> LeaderboardView:
    top = top_n(bids, limit)
    total_value = sum(b.amount * b.quantity for b in top)
    return LeaderboardView(
        entries=_with_shares(top),
        total_volume=sum(b.quantity for b in top),
        total_value=round(total_value, 2),
        average_bid=round(total_value / len(top), 2) if top else 0.0,
        buy_count=sum(1 for b in top if b.side == BidSide.BUY),
        sell_count=sum(1 for b in top if b.side == BidSide.SELL),
    )


def history(
    bids: Iterable[Bid],
    side: Optional[BidSide] = None,
    user_id: Optional[str] = None,
    limit: int = 20,
) -> List[Bid]:
    """Every bid regardless of status, newest first."""
    selected = [
        b
        for b in bids
        if (side is None or b.side == BidSide(side))
        and (user_id is None or b.user_id == user_id)
    ]
    selected.sort(key=lambda b: b.timestamp, reverse=True)
    return selected[:limit]


def user_summary(bids: Iterable[Bid], user_id: str, profit_loss: float = 0.0) -> UserSummary:
    mine = [b for b in bids if b.user_id == user_id]
    return UserSummary(
        user_id=user_id,
        total_bids=len(mine),
        active_bids=sum(1 for b in mine if is_active(b)),
        buy_bids=sum(1 for b in mine if b.side == BidSide.BUY),
        sell_bids=sum(1 for b in mine if b.side == BidSide.SELL),
        total_volume=round(sum(b.amount * b.quantity for b in mine), 2),
        profit_loss=round(profit_loss, 2),
    )
