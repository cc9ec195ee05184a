# app/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from app.routers import auction, bids, relay, users, whatsapp
from app.scheduler import start_scheduler
from app.config import settings
from app.database import init_db
from app.dependencies import get_auction_service, get_whatsapp_client
from app.utils.errors import AppError
from app.utils.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown"""
    await init_db()
    logger.info("✅ Database initialized successfully")

    try:
        await get_auction_service().ensure_auction(
            settings.STOCK_SYMBOL,
            settings.STOCK_NAME,
            settings.STOCK_START_PRICE,
            settings.AUCTION_DURATION,
        )
    except AppError as e:
        logger.error(f"Could not start the {settings.STOCK_SYMBOL} auction: {e.message}")

    # missing WhatsApp credentials only downgrade delivery to simulation
    get_whatsapp_client().log_configuration()

    scheduler = start_scheduler()
    yield
    scheduler.shutdown(wait=False)
    logger.info("Application shutting down")


app = FastAPI(
    title=settings.APP_NAME,
    description="Live stock auction with WhatsApp invoices",
    version="1.0.0",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(auction.router, prefix="/auction", tags=["Auction"])
app.include_router(bids.router, prefix="/bids", tags=["Bids"])
app.include_router(users.router, prefix="/users", tags=["Users"])
app.include_router(whatsapp.router, prefix="/whatsapp", tags=["WhatsApp"])
app.include_router(relay.router, prefix="/api", tags=["Relay"])


@app.get("/")
def root():
    return {"message": "Stock Auction Backend Running 🚀"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.BACKEND_HOST, port=settings.BACKEND_PORT)
