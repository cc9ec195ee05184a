import pytest

from app.services.auction_timer import TimerPhase
from app.utils.errors import AuctionNotFoundError, StoreUnavailableError


async def test_start_auction_persists_and_registers_timer(auction_service, auction_store, clock):
    auction = await auction_service.start_auction("AAPL", "Apple Inc.", 150.0, 300)

    assert auction_store.auctions["AAPL"] == auction
    assert auction.current_price == 150.0
    assert (auction.end_time - clock.now).total_seconds() == 300
    assert "AAPL" in auction_service.timers
    assert auction_service.is_active(auction)


async def test_get_unknown_auction(auction_service):
    with pytest.raises(AuctionNotFoundError) as exc:
        await auction_service.get("MSFT")
    assert exc.value.http_status == 404


async def test_tick_ends_auction_at_end_time(auction_service, auction_store, active_auction, clock):
    clock.advance(299)
    await auction_service.tick()
    assert auction_store.auctions["AAPL"].is_active

    clock.advance(1)
    await auction_service.tick()
    ended = auction_store.auctions["AAPL"]
    assert not ended.is_active
    assert ended.ended_at == clock.now
    assert auction_service.timers["AAPL"].fired


async def test_timer_reports_phase(auction_service, active_auction, clock):
    state = await auction_service.timer("AAPL")
    assert state.phase == TimerPhase.WARNING
    assert state.remaining_seconds == 300

    clock.advance(250)
    assert (await auction_service.timer("AAPL")).phase == TimerPhase.CRITICAL


async def test_timer_after_manual_end(auction_service, active_auction):
    await auction_service.end_auction("AAPL")
    state = await auction_service.timer("AAPL")
    assert state.phase == TimerPhase.ENDED
    assert state.remaining_seconds == 0


async def test_end_auction_is_idempotent(auction_service, active_auction, clock):
    first = await auction_service.end_auction("AAPL")
    clock.advance(10)
    second = await auction_service.end_auction("AAPL")
    assert not first.is_active
    assert second.ended_at == first.ended_at


async def test_ensure_auction_reuses_running_auction(auction_service, active_auction, clock):
    clock.advance(100)
    same = await auction_service.ensure_auction("AAPL", "Apple Inc.", 999.0, 300)
    assert same.start_time == active_auction.start_time
    assert same.current_price == 150.0


async def test_ensure_auction_restarts_expired_auction(auction_service, active_auction, clock):
    clock.advance(301)
    fresh = await auction_service.ensure_auction("AAPL", "Apple Inc.", 160.0, 300)
    assert fresh.start_time == clock.now
    assert fresh.current_price == 160.0


async def test_record_bid_failure_is_swallowed(auction_service, auction_store, active_auction):
    auction_store.fail_record_with = StoreUnavailableError("down")
    await auction_service.record_bid("AAPL", "u1")
    assert auction_store.auctions["AAPL"].total_bids == 0


async def test_record_bid_tracks_participants(auction_service, auction_store, active_auction):
    await auction_service.record_bid("AAPL", "u1")
    await auction_service.record_bid("AAPL", "u1")
    await auction_service.record_bid("AAPL", "u2")
    auction = auction_store.auctions["AAPL"]
    assert auction.total_bids == 3
    assert auction.participant_ids == ["u1", "u2"]
