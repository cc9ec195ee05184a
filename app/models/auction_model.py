# app/models/auction_model.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class Auction(BaseModel):
    id: str  # same as stock_symbol, one auction per stock
    stock_symbol: str
    stock_name: str
    start_price: float
    current_price: float
    start_time: datetime
    end_time: datetime
    duration: int
    is_active: bool = True
    total_bids: int = 0
    participant_ids: List[str] = Field(default_factory=list)
    ended_at: Optional[datetime] = None


class AuctionStart(BaseModel):
    stock_symbol: Optional[str] = None
    stock_name: Optional[str] = None
    current_price: Optional[float] = Field(None, gt=0)
    duration: Optional[int] = Field(None, gt=0)


class AuctionEnd(BaseModel):
    stock_symbol: Optional[str] = None
