import time
import uuid
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from bson import ObjectId

from app.utils.logger import logger

LOCAL_BID_PREFIX = "local-"


def generate_id():
    return str(uuid.uuid4())[:8]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def now_ms() -> int:
    return int(time.time() * 1000)


def local_bid_id() -> str:
    """Id for a bid that exists only in this process (degraded mode)."""
    return f"{LOCAL_BID_PREFIX}{now_ms()}-{generate_id()}"


def is_local_bid_id(bid_id: str) -> bool:
    return bid_id.startswith(LOCAL_BID_PREFIX)


def ensure_objectid(id_value):
    """Ensure _id is an ObjectId instance (convert from string if needed)."""
    if isinstance(id_value, ObjectId):
        return id_value
    try:
        return ObjectId(id_value)
    except Exception:
        logger.warning(f"Invalid ObjectId: {id_value}")
        return id_value


def ensure_utc(value: datetime) -> datetime:
    """Mongo hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def format_local_time(value: datetime, tz_name: str = "Asia/Kolkata") -> str:
    """Render like en-IN medium date + short time, e.g. '18 Oct 2026, 3:05 pm'."""
    local = ensure_utc(value).astimezone(ZoneInfo(tz_name))
    hour = local.hour % 12 or 12
    meridiem = "am" if local.hour < 12 else "pm"
    return f"{local.day} {local.strftime('%b %Y')}, {hour}:{local.minute:02d} {meridiem}"


def format_inr(amount: float) -> str:
    """Format with Indian digit grouping: 1234567.5 -> '₹12,34,567.50'."""
    sign = "-" if amount < 0 else ""
    whole, frac = f"{abs(amount):.2f}".split(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    return f"{sign}₹{whole}.{frac}"
