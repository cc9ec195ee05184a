"""Tests for the order book aggregator."""

import pytest

from app.models.bid_model import BidSide
from app.services import order_book


def test_rank_buys_highest_first_with_time_priority(make_bid):
    bids = [
        make_bid("a", 150.0, at=0),
        make_bid("b", 152.0, at=1),
        make_bid("c", 151.0, at=2),
        make_bid("d", 152.0, at=3),
    ]
    ranked = order_book.rank(bids, BidSide.BUY)
    assert [b.id for b in ranked] == ["b", "d", "c", "a"]


def test_rank_sells_lowest_first(make_bid):
    bids = [
        make_bid("a", 155.0, side="sell", at=0),
        make_bid("b", 153.0, side="sell", at=1),
        make_bid("c", 153.0, side="sell", at=0),
        make_bid("d", 160.0, side="buy", at=0),
    ]
    ranked = order_book.rank(bids, "sell")
    assert [b.id for b in ranked] == ["c", "b", "a"]


def test_cancelled_bid_leaves_book_but_stays_in_history(make_bid):
    bids = [
        make_bid("a", 151.0, at=0),
        make_bid("b", 153.0, at=1, status="cancelled"),
    ]
    assert [b.id for b in order_book.rank(bids, BidSide.BUY)] == ["a"]

    history = order_book.history(bids)
    assert [b.id for b in history] == ["b", "a"]
    assert history[0].status == "cancelled"


def test_bids_without_status_count_as_active(make_bid):
    bid = make_bid("a", 151.0).model_copy(update={"status": None})
    assert order_book.is_active(bid)
    assert order_book.rank([bid], BidSide.BUY) == [bid]


def test_empty_stats():
    stats = order_book.volume_stats([])
    assert stats.total_quantity == 0
    assert stats.total_notional == 0.0
    assert stats.spread is None
    assert stats.best_buy is None and stats.best_sell is None


def test_spread_is_signed(make_bid):
    normal = [make_bid("a", 151.0), make_bid("b", 153.0, side="sell")]
    assert order_book.volume_stats(normal).spread == 2.0

    crossed = [make_bid("a", 155.0), make_bid("b", 153.0, side="sell")]
    assert order_book.volume_stats(crossed).spread == -2.0


def test_one_sided_book_has_no_spread(make_bid):
    stats = order_book.volume_stats([make_bid("a", 151.0, quantity=4)])
    assert stats.spread is None
    assert stats.buy_volume == 4
    assert stats.sell_volume == 0


def test_volume_stats_totals(make_bid):
    bids = [
        make_bid("a", 150.0, quantity=10, user_id="u1"),
        make_bid("b", 152.0, side="sell", quantity=5, user_id="u2"),
        make_bid("c", 151.0, quantity=2, user_id="u1"),
        make_bid("d", 199.0, quantity=99, user_id="u3", status="cancelled"),
    ]
    stats = order_book.volume_stats(bids)
    assert stats.total_quantity == 17
    assert stats.total_notional == pytest.approx(1500 + 760 + 302)
    assert stats.bidder_count == 2


def test_aggregation_is_idempotent(make_bid):
    bids = [
        make_bid("a", 150.0, quantity=3),
        make_bid("b", 152.0, side="sell", quantity=5, at=1),
        make_bid("c", 151.0, quantity=2, at=2),
    ]
    assert order_book.order_book(bids) == order_book.order_book(bids)
    assert order_book.leaderboard(bids) == order_book.leaderboard(bids)


def test_order_book_depth_and_volume_share(make_bid):
    bids = [make_bid(str(i), 150.0 + i, quantity=1, at=i) for i in range(12)]
    book = order_book.order_book(bids, depth=10)
    assert len(book.buys) == 10
    assert book.buys[0].rank == 1
    assert book.buys[0].bid.amount == 161.0
    assert sum(r.volume_share for r in book.buys) == pytest.approx(1.0)
    assert book.sells == []


def test_leaderboard_spans_both_sides(make_bid):
    bids = [
        make_bid("a", 150.0, quantity=10),
        make_bid("b", 155.0, side="sell", quantity=5),
        make_bid("c", 152.0, quantity=5),
    ]
    board = order_book.leaderboard(bids, limit=2)
    assert [e.bid.id for e in board.entries] == ["b", "c"]
    assert board.total_volume == 10
    assert board.total_value == pytest.approx(1535.0)
    assert board.buy_count == 1 and board.sell_count == 1
    assert [e.volume_share for e in board.entries] == [0.5, 0.5]


def test_highest_bid_considers_both_sides(make_bid):
    bids = [make_bid("a", 151.0), make_bid("b", 153.0, side="sell")]
    assert order_book.highest_bid(bids).id == "b"
    assert order_book.highest_bid([]) is None


def test_history_filters_and_limits(make_bid):
    bids = [make_bid(str(i), 150.0 + i, side="buy" if i % 2 else "sell", at=i) for i in range(6)]
    buys = order_book.history(bids, side=BidSide.BUY, limit=2)
    assert [b.id for b in buys] == ["5", "3"]

    mine = order_book.history(bids + [make_bid("x", 170.0, user_id="u2", at=9)], user_id="u2")
    assert [b.id for b in mine] == ["x"]


def test_user_summary(make_bid):
    bids = [
        make_bid("a", 150.0, quantity=2, user_id="u1"),
        make_bid("b", 152.0, side="sell", quantity=1, user_id="u1", status="cancelled"),
        make_bid("c", 151.0, user_id="u2"),
    ]
    summary = order_book.user_summary(bids, "u1", profit_loss=-10.004)
    assert summary.total_bids == 2
    assert summary.active_bids == 1
    assert summary.buy_bids == 1 and summary.sell_bids == 1
    assert summary.total_volume == pytest.approx(452.0)
    assert summary.profit_loss == -10.0
