# app/routers/auction.py
import asyncio

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from fastapi.encoders import jsonable_encoder
from starlette.websockets import WebSocketState

from app.config import settings
from app.dependencies import get_auction_service, get_bid_store
from app.models.auction_model import Auction, AuctionEnd, AuctionStart
from app.models.user_model import UserProfile
from app.services import order_book
from app.services.auction_timer import TimerState
from app.utils.auth import decode_token, get_current_user
from app.utils.errors import AppError
from app.utils.logger import logger

router = APIRouter()


def live_view(bids) -> dict:
    return {
        "order_book": order_book.order_book(bids),
        "leaderboard": order_book.leaderboard(bids),
        "stats": order_book.volume_stats(bids),
    }


@router.post("/start", response_model=Auction, status_code=status.HTTP_201_CREATED)
async def start_auction(
    payload: AuctionStart,
    current_user: UserProfile = Depends(get_current_user),
    service=Depends(get_auction_service),
):
    """Start (or restart) the auction for a stock; unset fields use the configured defaults."""
    try:
        return await service.start_auction(
            payload.stock_symbol or settings.STOCK_SYMBOL,
            payload.stock_name or settings.STOCK_NAME,
            payload.current_price or settings.STOCK_START_PRICE,
            payload.duration or settings.AUCTION_DURATION,
        )
    except AppError as e:
        raise HTTPException(status_code=e.http_status, detail=e.message)


@router.post("/end", response_model=Auction)
async def end_auction(
    payload: AuctionEnd,
    current_user: UserProfile = Depends(get_current_user),
    service=Depends(get_auction_service),
):
    try:
        return await service.end_auction(payload.stock_symbol or settings.STOCK_SYMBOL)
    except AppError as e:
        raise HTTPException(status_code=e.http_status, detail=e.message)


@router.get("/{symbol}")
async def get_auction(symbol: str, service=Depends(get_auction_service)):
    try:
        auction = await service.get(symbol)
        timer = await service.timer(symbol)
    except AppError as e:
        raise HTTPException(status_code=e.http_status, detail=e.message)
    return {"auction": auction, "timer": timer, "is_active": not timer.ended}


@router.get("/{symbol}/timer", response_model=TimerState)
async def get_timer(symbol: str, service=Depends(get_auction_service)):
    try:
        return await service.timer(symbol)
    except AppError as e:
        raise HTTPException(status_code=e.http_status, detail=e.message)


@router.websocket("/ws/{symbol}")
async def auction_ws(websocket: WebSocket, symbol: str, bid_store=Depends(get_bid_store)):
    """
    Push {order_book, leaderboard, stats} every time the bids for the stock
    change. Each message is recomputed from the full snapshot.
    """
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        token_data = decode_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    logger.info(f"🔌 Live feed opened for {symbol} by {token_data.uid}")

    async def push():
        try:
            async for bids in bid_store.stream_by_stock(symbol):
                await websocket.send_json(jsonable_encoder(live_view(bids)))
        except AppError as e:
            logger.error(f"Live feed for {symbol} stopped: {e.message}")
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)

    async def listen():
        # the client never sends anything useful; this only detects disconnects
        while True:
            await websocket.receive_text()

    tasks = [asyncio.create_task(push()), asyncio.create_task(listen())]
    done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)

    for task in done:
        exc = task.exception()
        if exc and not isinstance(exc, WebSocketDisconnect):
            logger.error(f"Live feed for {symbol} failed: {exc}", exc_info=exc)

    if (
        websocket.application_state == WebSocketState.CONNECTED
        and websocket.client_state == WebSocketState.CONNECTED
    ):
        await websocket.close()
    logger.info(f"🔌 Live feed closed for {symbol}")
