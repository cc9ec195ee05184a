# app/relay_main.py
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.routers import relay
from app.utils.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """The relay is useless without credentials, so refuse to start"""
    relay.build_twilio_client()
    logger.info("📱 WhatsApp API Server started")
    logger.info(f"📞 Twilio Account: {settings.TWILIO_ACCOUNT_SID[:8]}...")
    logger.info(f"📱 WhatsApp Number: {settings.TWILIO_WHATSAPP_NUMBER}")
    yield
    logger.info("📱 WhatsApp server shutting down")


app = FastAPI(
    title="WhatsApp Relay",
    description="Forwards invoice messages to Twilio WhatsApp",
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

app.include_router(relay.router, prefix="/api", tags=["Relay"])


if __name__ == "__main__":
    uvicorn.run("app.relay_main:app", host=settings.BACKEND_HOST, port=settings.RELAY_PORT)
