# app/services/invoice.py
from app.config import settings
from app.models.bid_model import Bid, BidSide, Invoice
from app.utils.helpers import format_local_time

DIVIDER = "━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━"


def build_invoice(bid: Bid, profit_loss: float, stock_name: str) -> Invoice:
    return Invoice(
        stock_name=stock_name,
        quantity=bid.quantity,
        price_per_unit=bid.amount,
        profit_loss=round(profit_loss, 2),
        timestamp=bid.timestamp,
        trader_name=bid.user_name,
        side=bid.side,
        stock_symbol=bid.stock_symbol,
        bid_id=bid.id,
    )


def signed_amount(value: float) -> str:
    """'+₹10.00' / '-₹10.00'"""
    sign = "+" if value >= 0 else "-"
    return f"{sign}₹{abs(value):.2f}"


def _encouragement(profit_loss: float) -> str:
    if profit_loss > 50:
        return "🎉 Outstanding trade! You're on fire! 🔥"
    if profit_loss >= 0:
        return "✨ Great trade! Keep building that portfolio!"
    if profit_loss < -50:
        return "💪 Tough break, but champions bounce back stronger!"
    return "📊 Learning opportunity! Every trade teaches us something."


def format_invoice_message(invoice: Invoice, tz_name: str = settings.INVOICE_TIMEZONE) -> str:
    """WhatsApp-flavoured invoice text (asterisks render as bold)."""
    gain = invoice.profit_loss >= 0
    side_label = "🟢 BUY" if invoice.side == BidSide.BUY else "🔴 SELL"
    bid_line = f"\n🆔 *Bid ID:* {invoice.bid_id}" if invoice.bid_id else ""

    if invoice.side == BidSide.BUY:
        analysis = (
            f"• You bought at ₹{invoice.price_per_unit:.2f} per share\n"
            "• Current market price affects your P&L"
        )
    else:
        analysis = (
            f"• You sold at ₹{invoice.price_per_unit:.2f} per share\n"
            "• Profit if market price drops below your sell price"
        )

    lines = [
        "🎯 *STOCK AUCTION INVOICE* 🎯",
        DIVIDER,
        "",
        f"👤 *Trader:* {invoice.trader_name}",
        f"📊 *Stock:* {invoice.stock_symbol} - {invoice.stock_name}",
        f"{side_label} *Order Type:* {BidSide(invoice.side).value.upper()}",
        f"🔢 *Quantity:* {invoice.quantity} shares",
        f"💰 *Price per Share:* ₹{invoice.price_per_unit:.2f}",
        f"💵 *Total Value:* ₹{invoice.total_value:.2f}{bid_line}",
        "",
        f"{'🟢' if gain else '🔴'} *{'PROFIT' if gain else 'LOSS'}:* "
        f"{signed_amount(invoice.profit_loss)} {'📈' if gain else '📉'}",
        "",
        f"🕐 *Timestamp:* {format_local_time(invoice.timestamp, tz_name)}",
        "",
        DIVIDER,
        "🚀 *Stock Auction Platform*",
        "",
        _encouragement(invoice.profit_loss),
        "",
        "💡 *Trading Analysis:*",
        analysis,
        "",
        "_Happy Trading!_ 🎯✨",
        "",
        "*Risk Warning:* Trading involves risk. This is a simulated platform "
        "for educational purposes only.",
    ]
    return "\n".join(lines)


def format_console_invoice(invoice: Invoice, tz_name: str = settings.INVOICE_TIMEZONE) -> str:
    """Plain rendering for the log when the trader has no phone number."""
    rule = "═" * 59
    gain = invoice.profit_loss >= 0
    return "\n".join(
        [
            rule,
            "📱 TRADING INVOICE (Phone number not set)",
            rule,
            f"👤 Trader: {invoice.trader_name}",
            f"📊 Stock: {invoice.stock_symbol} - {invoice.stock_name}",
            f"Order: {BidSide(invoice.side).value.upper()}",
            f"🔢 Quantity: {invoice.quantity}",
            f"💰 Bid Price: ₹{invoice.price_per_unit:.2f}",
            f"💵 Total Value: ₹{invoice.total_value:.2f}",
            f"{'🟢 PROFIT' if gain else '🔴 LOSS'}: {signed_amount(invoice.profit_loss)}",
            f"🕐 Time: {format_local_time(invoice.timestamp, tz_name)}",
            f"🆔 Bid ID: {invoice.bid_id}",
            rule,
        ]
    )
