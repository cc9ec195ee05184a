# app/models/user_model.py
import re
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, validator

PHONE_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")


class UserProfile(BaseModel):
    """User profile document, keyed by the identity provider's uid"""

    id: str
    display_name: str
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None
    profit_loss: float = 0.0
    total_bids: int = 0
    active_bids: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None

    class Config:
        json_encoders = {datetime: lambda v: v.isoformat()}


class PhoneUpdate(BaseModel):
    phone_number: str

    @validator("phone_number")
    def validate_phone_number(cls, v):
        v = v.strip()
        if not PHONE_PATTERN.match(v):
            raise ValueError(
                "Invalid phone number format. Use international format: +1234567890"
            )
        return v


class TokenData(BaseModel):
    uid: str
    email: Optional[str] = None
    name: Optional[str] = None
