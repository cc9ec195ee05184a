# app/services/bidding.py
"""
Bid placement and cancellation.

A placement walks VALIDATING -> PERSISTING -> PROFIT_LOSS_UPDATING ->
INVOICE_DISPATCHING -> DONE. Only validation and persistence can abort it;
P&L bookkeeping and invoice delivery are best-effort and never undo a bid.

Degraded mode: when the bid store refuses the insert for lack of permission,
the bid is kept in an in-process local ledger under a 'local-' id. Those bids
are not in the authoritative store, other clients never see them, and they
are never merged into store results.
"""
import math
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, List, Optional

from app.models.auction_model import Auction
from app.models.bid_model import (
    Bid,
    BidSide,
    BidStatus,
    BidValidationRules,
    DeliveryChannel,
    DeliveryResult,
    Invoice,
    PlacementResult,
    PlacementStage,
)
from app.models.user_model import UserProfile
from app.services.invoice import build_invoice, format_console_invoice
from app.services.order_book import highest_bid, is_active
from app.utils.errors import (
    AppError,
    BidNotFoundError,
    BidValidationError,
    CancellationRejectedError,
    StoreError,
    StorePermissionError,
)
from app.utils.helpers import ensure_utc, format_inr, is_local_bid_id, local_bid_id, utc_now
from app.utils.logger import logger

AUCTION_NOT_ACTIVE = "Auction is not active"
# float noise in reference + increment
FLOAT_TOLERANCE = 1e-9


def compute_profit_loss(side: BidSide, amount: float, quantity: int, current_price: float) -> float:
    """Buys gain when the market is above the bid; sells gain when it is below."""
    if BidSide(side) == BidSide.BUY:
        profit_loss = (current_price - amount) * quantity
    else:
        profit_loss = (amount - current_price) * quantity
    return round(profit_loss, 2)


def validate_bid(
    amount: float,
    quantity: int,
    side: BidSide,
    auction: Optional[Auction],
    highest: Optional[Bid],
    now: datetime,
    rules: BidValidationRules,
) -> Optional[str]:
    """Return why the bid is rejected, or None if it may be placed."""
    if auction is None or not auction.is_active or ensure_utc(now) >= ensure_utc(auction.end_time):
        return AUCTION_NOT_ACTIVE

    try:
        BidSide(side)
    except ValueError:
        return "Bid side must be 'buy' or 'sell'"

    if amount is None or not math.isfinite(amount) or amount <= 0:
        return "Please enter a valid price"

    if quantity is None or quantity < 1:
        return "Please enter a valid quantity (minimum 1)"

    if quantity > rules.max_quantity:
        return f"Maximum quantity is {rules.max_quantity:,} shares"

    reference = highest.amount if highest else auction.current_price
    min_bid = reference + rules.min_increment
    if amount < min_bid - FLOAT_TOLERANCE:
        return f"Minimum bid is ₹{min_bid:.2f}"

    if amount > rules.max_amount:
        return f"Maximum bid is {format_inr(rules.max_amount)}"

    if amount * quantity > rules.max_order_value:
        return f"Total order value cannot exceed {format_inr(rules.max_order_value)}"

    return None


class BidPlacementService:
    def __init__(
        self,
        bid_store,
        user_store,
        auction_service,
        whatsapp,
        rules: BidValidationRules,
        stock_symbol: str,
        default_quantity: int = 10,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.bids = bid_store
        self.users = user_store
        self.auctions = auction_service
        self.whatsapp = whatsapp
        self.rules = rules
        self.stock_symbol = stock_symbol
        self.default_quantity = default_quantity
        self.clock = clock

        # Degraded-mode ledger, never written to the store
        self.local_bids: List[Bid] = []
        self.local_profit_loss: Dict[str, float] = defaultdict(float)

    async def place_bid(
        self,
        user: UserProfile,
        amount: float,
        side: BidSide,
        quantity: Optional[int] = None,
    ) -> PlacementResult:
        if quantity is None:
            quantity = self.default_quantity
        stage = PlacementStage.VALIDATING
        logger.info(f"🎯 Placing bid: {amount} x {quantity} ({side}) by {user.id}")

        try:
            now = self.clock()
            auction = await self.auctions.find(self.stock_symbol)
            visible = await self._bids_for_validation()
            reason = validate_bid(
                amount, quantity, side, auction, highest_bid(visible), now, self.rules
            )
            if reason:
                raise BidValidationError(reason)

            stage = PlacementStage.PERSISTING
            draft = {
                "user_id": user.id,
                "user_name": user.display_name or user.email or "Anonymous",
                "amount": amount,
                "quantity": quantity,
                "side": BidSide(side).value,
                "timestamp": now,
                "stock_symbol": self.stock_symbol,
            }
            bid, degraded = await self._persist(draft)

            stage = PlacementStage.PROFIT_LOSS_UPDATING
            profit_loss = compute_profit_loss(side, amount, quantity, auction.current_price)
            profit_loss_error = await self._apply_profit_loss(user.id, profit_loss, degraded)

            stage = PlacementStage.INVOICE_DISPATCHING
            invoice = build_invoice(bid, profit_loss, auction.stock_name)
            delivery = await self._dispatch_invoice(user, invoice)
        except AppError as e:
            logger.warning(f"❌ Failed to place bid at stage '{stage.value}': {e.message}")
            raise

        logger.info(
            f"{'🟢 PROFIT' if profit_loss >= 0 else '🔴 LOSS'} on bid {bid.id}: {profit_loss:+.2f}"
        )
        return PlacementResult(
            bid=bid,
            profit_loss=profit_loss,
            degraded=degraded,
            invoice=invoice,
            delivery=delivery,
            profit_loss_error=profit_loss_error,
            stage=PlacementStage.DONE,
        )

    async def cancel_bid(self, bid_id: str, requester_id: str) -> Bid:
        if is_local_bid_id(bid_id):
            return self._cancel_local(bid_id, requester_id)

        bid = await self.bids.get(bid_id)
        if bid is None:
            raise BidNotFoundError()
        self._check_cancellable(bid, requester_id)

        # permission errors surface here; cancellation has no local fallback
        await self.bids.update_status(bid_id, requester_id, BidStatus.CANCELLED)
        await self._bump_user_stats(requester_id, {"active_bids": -1})
        logger.info(f"✅ Bid cancelled successfully: {bid_id}")
        return bid.model_copy(update={"status": BidStatus.CANCELLED.value})

    def local_history(self, user_id: Optional[str] = None) -> List[Bid]:
        return [b for b in self.local_bids if user_id is None or b.user_id == user_id]

    async def _bids_for_validation(self) -> List[Bid]:
        try:
            stored = await self.bids.list_by_stock(self.stock_symbol)
        except StorePermissionError as e:
            logger.warning(f"Cannot read bids ({e.message}); validating against local bids only")
            stored = []
        local = [b for b in self.local_bids if b.stock_symbol == self.stock_symbol]
        return stored + local

    async def _persist(self, draft: dict):
        try:
            bid = await self.bids.insert(draft)
        except StorePermissionError as e:
            bid = Bid(id=local_bid_id(), status=BidStatus.ACTIVE, **draft)
            self.local_bids.append(bid)
            logger.warning(
                f"⚠️ DEGRADED MODE: bid store refused the insert ({e.message}). "
                f"Bid {bid.id} is kept locally only and is NOT part of the shared ledger."
            )
            return bid, True

        await self._bump_user_stats(draft["user_id"], {"total_bids": 1, "active_bids": 1})
        await self.auctions.record_bid(self.stock_symbol, draft["user_id"])
        return bid, False

    async def _apply_profit_loss(self, user_id: str, profit_loss: float, degraded: bool) -> Optional[str]:
        if degraded:
            self.local_profit_loss[user_id] += profit_loss
            return None
        try:
            await self.users.increment(user_id, {"profit_loss": profit_loss})
        except StoreError as e:
            # the bid stands; the caller is told the P&L is stale
            logger.warning(f"Failed to update profit/loss for {user_id}: {e.message}")
            return e.message
        return None

    async def _dispatch_invoice(self, user: UserProfile, invoice: Invoice) -> DeliveryResult:
        try:
            if user.phone_number:
                result = await self.whatsapp.send_invoice(user.phone_number, invoice)
                if result.success:
                    logger.info(f"✅ Invoice delivered via {result.channel}: {result.message_id}")
                else:
                    logger.warning(f"⚠️ WhatsApp delivery failed: {result.error}")
                return result

            logger.info(
                "📱 No phone number set - showing invoice in console:\n"
                + format_console_invoice(invoice, self.whatsapp.tz_name)
            )
            return DeliveryResult(success=True, channel=DeliveryChannel.LOCAL)
        except Exception as e:
            logger.error(f"Invoice dispatch failed for bid {invoice.bid_id}: {e}", exc_info=True)
            return DeliveryResult(success=False, error=str(e))

    async def _bump_user_stats(self, user_id: str, fields: dict) -> None:
        try:
            await self.users.increment(user_id, fields)
        except StoreError as e:
            logger.warning(f"Failed to update user stats for {user_id}: {e.message}")

    def _cancel_local(self, bid_id: str, requester_id: str) -> Bid:
        for i, bid in enumerate(self.local_bids):
            if bid.id == bid_id:
                self._check_cancellable(bid, requester_id)
                cancelled = bid.model_copy(update={"status": BidStatus.CANCELLED.value})
                self.local_bids[i] = cancelled
                logger.info(f"✅ Local bid cancelled: {bid_id}")
                return cancelled
        raise BidNotFoundError()

    @staticmethod
    def _check_cancellable(bid: Bid, requester_id: str) -> None:
        if bid.user_id != requester_id:
            raise CancellationRejectedError("You can only cancel your own bids", 403)
        if not is_active(bid):
            raise CancellationRejectedError("Bid cannot be cancelled")
