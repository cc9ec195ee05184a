# app/config.py
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Stock Auction Backend"

    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "stock_auction"

    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 8000
    CORS_ORIGINS: List[str] = [
        "http://localhost:5177",
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    SECRET_KEY: str = "CHANGE_THIS_SECRET"
    ALGORITHM: str = "HS256"

    # Auctioned stock
    STOCK_SYMBOL: str = "AAPL"
    STOCK_NAME: str = "Apple Inc."
    STOCK_START_PRICE: float = 150.00

    # Auction rules
    AUCTION_DURATION: int = 300
    MIN_BID_INCREMENT: float = 1.0
    MAX_BID_AMOUNT: float = 1_000_000
    MAX_BID_QUANTITY: int = 10_000
    MAX_ORDER_VALUE: float = 50_000_000
    DEFAULT_BID_QUANTITY: int = 10
    BOT_BIDDING_ENABLED: bool = False

    # WhatsApp relay client
    USE_BACKEND_API: bool = False
    BACKEND_API_URL: str = "http://localhost:3001"
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_WHATSAPP_NUMBER: str = "whatsapp:+14155238886"
    DEFAULT_COUNTRY_CODE: str = "1"
    SIMULATION_DELAY_SECONDS: float = 0.8

    TIMER_TICK_SECONDS: int = 1
    BID_STREAM_POLL_SECONDS: float = 1.0
    INVOICE_TIMEZONE: str = "Asia/Kolkata"

    RELAY_PORT: int = 3001

    class Config:
        env_file = ".env"


settings = Settings()
