# app/models/bid_model.py
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, validator


class BidSide(str, Enum):
    BUY = "buy"
    SELL = "sell"


class BidStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXECUTED = "executed"


class Bid(BaseModel):
    id: str
    user_id: str
    user_name: str
    amount: float  # price per unit
    quantity: int = 1
    side: BidSide
    timestamp: datetime
    stock_symbol: str
    status: Optional[BidStatus] = BidStatus.ACTIVE

    class Config:
        use_enum_values = True


class BidCreate(BaseModel):
    amount: float = Field(..., allow_inf_nan=False)
    side: BidSide
    quantity: Optional[int] = None


class PlacementStage(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    PERSISTING = "persisting"
    PROFIT_LOSS_UPDATING = "profit_loss_updating"
    INVOICE_DISPATCHING = "invoice_dispatching"
    DONE = "done"


class Invoice(BaseModel):
    stock_name: str
    quantity: int
    price_per_unit: float
    profit_loss: float
    timestamp: datetime
    trader_name: str
    side: BidSide
    stock_symbol: str
    bid_id: Optional[str] = None

    class Config:
        use_enum_values = True

    @property
    def total_value(self) -> float:
        return self.price_per_unit * self.quantity


class DeliveryChannel(str, Enum):
    RELAY = "relay"
    DIRECT = "direct"
    SIMULATED = "simulated"
    LOCAL = "local"


class DeliveryResult(BaseModel):
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    channel: Optional[DeliveryChannel] = None

    class Config:
        use_enum_values = True


class PlacementResult(BaseModel):
    bid: Bid
    profit_loss: float
    degraded: bool = False
    invoice: Invoice
    delivery: DeliveryResult
    profit_loss_error: Optional[str] = None
    stage: PlacementStage = PlacementStage.DONE

    class Config:
        use_enum_values = True


class BidValidationRules(BaseModel):
    min_increment: float = Field(1.0, gt=0)
    max_amount: float = 1_000_000
    max_quantity: int = 10_000
    max_order_value: float = 50_000_000

    @validator("max_quantity")
    def validate_max_quantity(cls, v):
        if v < 1:
            raise ValueError("max_quantity must be at least 1")
        return v
