# app/routers/bids.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.config import settings
from app.dependencies import get_bid_store, get_bidding_service
from app.models.bid_model import BidCreate, BidSide, PlacementResult
from app.models.user_model import UserProfile
from app.services import order_book
from app.utils.auth import get_current_user
from app.utils.errors import AppError
from app.utils.logger import logger

router = APIRouter()

# live views are computed over the most recent bids only
BOOK_WINDOW = 50


async def load_bids(bid_store, limit: int = BOOK_WINDOW):
    try:
        return await bid_store.list_by_stock(settings.STOCK_SYMBOL, limit=limit)
    except AppError as e:
        logger.error(f"Error loading bids for {settings.STOCK_SYMBOL}: {e.message}")
        raise HTTPException(status_code=e.http_status, detail=e.message)


@router.post("", response_model=PlacementResult, status_code=status.HTTP_201_CREATED)
async def place_bid(
    payload: BidCreate,
    current_user: UserProfile = Depends(get_current_user),
    service=Depends(get_bidding_service),
):
    """
    Validate, persist and invoice a bid.

    If the bid store refuses the write, the bid is kept locally and the
    response carries `degraded: true`.
    """
    try:
        return await service.place_bid(
            current_user, payload.amount, payload.side, payload.quantity
        )
    except AppError as e:
        raise HTTPException(status_code=e.http_status, detail=e.message)


@router.post("/{bid_id}/cancel")
async def cancel_bid(
    bid_id: str,
    current_user: UserProfile = Depends(get_current_user),
    service=Depends(get_bidding_service),
):
    """Cancel one of your own active bids."""
    try:
        bid = await service.cancel_bid(bid_id, current_user.id)
    except AppError as e:
        raise HTTPException(status_code=e.http_status, detail=e.message)
    return {"message": "Bid cancelled successfully", "bid": bid}


@router.get("")
async def list_bids(
    side: Optional[BidSide] = None,
    mine: bool = False,
    limit: int = Query(20, ge=1, le=200),
    current_user: UserProfile = Depends(get_current_user),
    bid_store=Depends(get_bid_store),
    service=Depends(get_bidding_service),
):
    """
    Bid history in every status, newest first.

    Bids kept locally in degraded mode are listed separately under
    `local_bids`; they are not part of the shared ledger.
    """
    user_id = current_user.id if mine else None
    bids = await load_bids(bid_store, limit=200)
    local = service.local_history(current_user.id)
    return {
        "bids": order_book.history(bids, side=side, user_id=user_id, limit=limit),
        "local_bids": order_book.history(local, side=side, limit=limit),
    }


@router.get("/order-book", response_model=order_book.OrderBookView)
async def get_order_book(
    depth: int = Query(10, ge=1, le=50),
    bid_store=Depends(get_bid_store),
):
    bids = await load_bids(bid_store)
    return order_book.order_book(bids, depth=depth)


@router.get("/leaderboard", response_model=order_book.LeaderboardView)
async def get_leaderboard(
    limit: int = Query(15, ge=1, le=50),
    bid_store=Depends(get_bid_store),
):
    bids = await load_bids(bid_store)
    return order_book.leaderboard(bids, limit=limit)


@router.get("/stats")
async def get_stats(bid_store=Depends(get_bid_store)):
    bids = await load_bids(bid_store)
    return {
        "stats": order_book.volume_stats(bids),
        "highest_bid": order_book.highest_bid(bids),
    }


@router.get("/me/summary")
async def get_my_summary(
    current_user: UserProfile = Depends(get_current_user),
    bid_store=Depends(get_bid_store),
    service=Depends(get_bidding_service),
):
    bids = await load_bids(bid_store)
    return {
        "summary": order_book.user_summary(bids, current_user.id, current_user.profit_loss),
        "local_profit_loss": round(service.local_profit_loss.get(current_user.id, 0.0), 2),
    }
