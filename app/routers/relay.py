# app/routers/relay.py
"""
WhatsApp relay: forwards messages to Twilio so clients never hold the
account credentials. Served standalone by app/relay_main.py and also mounted
on the main app under /api.
"""
import re
from functools import lru_cache
from typing import Optional

import aiohttp
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.http.async_http_client import AsyncTwilioHttpClient
from twilio.rest import Client

from app.config import settings
from app.utils.errors import ConfigurationError
from app.utils.helpers import utc_now
from app.utils.logger import logger

router = APIRouter()

# Twilio error code -> (code slug, message)
PROVIDER_ERRORS = {
    21211: ("invalid-number", "Invalid phone number format"),
    21408: ("whatsapp-not-enabled", "WhatsApp not enabled for this number"),
    20003: ("auth-failed", "Authentication failed - check credentials"),
}

TEST_MESSAGE = """🧪 WhatsApp Test Message

✅ Your WhatsApp integration is working!

🎯 Stock Auction Platform
📱 Test completed successfully at {sent_at}

This confirms that:
• Your Twilio account is active
• WhatsApp Business API is configured
• Messages can be delivered to {phone_number}

Ready to receive trading invoices! 🚀

_This is an automated test message_"""


class SendRequest(BaseModel):
    to: Optional[str] = None
    body: Optional[str] = None


class TestRequest(BaseModel):
    phoneNumber: Optional[str] = None


@lru_cache
def build_twilio_client() -> Client:
    if not (settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN):
        raise ConfigurationError(
            "Missing Twilio credentials: set TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN"
        )
    return Client(
        settings.TWILIO_ACCOUNT_SID,
        settings.TWILIO_AUTH_TOKEN,
        http_client=AsyncTwilioHttpClient(),
    )


def get_twilio_client() -> Client:
    try:
        return build_twilio_client()
    except ConfigurationError as e:
        logger.error(f"❌ {e.message}")
        raise HTTPException(status_code=e.http_status, detail=e.message)


def whatsapp_address(number: str) -> str:
    """'whatsapp:+<digits>' unless the caller already sent a whatsapp: address."""
    if number.startswith("whatsapp:"):
        return number
    return f"whatsapp:+{re.sub(r'[^0-9]', '', number)}"


def failure(message: str, status_code: int, code: str = None, provider_code: int = None):
    content = {"success": False, "error": message}
    if code is not None:
        content["code"] = code
    if provider_code is not None:
        content["providerCode"] = provider_code
    return JSONResponse(status_code=status_code, content=content)


async def forward(client: Client, to: str, body: str):
    """Send through Twilio; returns (message, None) or (None, error response)."""
    try:
        message = await client.messages.create_async(
            from_=settings.TWILIO_WHATSAPP_NUMBER, to=to, body=body
        )
    except TwilioRestException as e:
        code, text = PROVIDER_ERRORS.get(e.code, ("UNKNOWN", e.msg))
        logger.error(f"❌ WhatsApp send error ({e.code}): {e.msg}")
        return None, failure(text, 500, code=code, provider_code=e.code)
    except (TwilioException, aiohttp.ClientError) as e:
        logger.error(f"❌ WhatsApp send error: {e}", exc_info=True)
        return None, failure(str(e) or "Failed to send WhatsApp message", 500, code="UNKNOWN")
    return message, None


@router.get("/health")
async def health():
    sid = settings.TWILIO_ACCOUNT_SID
    return {
        "status": "ok",
        "service": "WhatsApp API Server",
        "timestamp": utc_now().isoformat(),
        "twilioAccountPrefix": f"{sid[:8]}..." if sid else None,
        "whatsappNumber": settings.TWILIO_WHATSAPP_NUMBER,
    }


@router.post("/send-whatsapp")
async def send_whatsapp(payload: SendRequest, client: Client = Depends(get_twilio_client)):
    if not payload.to or not payload.body:
        return failure("Missing required fields: to, body", status.HTTP_400_BAD_REQUEST)

    to = whatsapp_address(payload.to)
    logger.info(f"📱 Sending WhatsApp message to: {to}")
    message, error = await forward(client, to, payload.body)
    if error:
        return error

    logger.info(f"✅ WhatsApp message sent successfully: {message.sid} ({message.status})")
    return {"success": True, "messageId": message.sid, "status": message.status, "to": to}


@router.post("/test-whatsapp")
async def test_whatsapp(payload: TestRequest, client: Client = Depends(get_twilio_client)):
    if not payload.phoneNumber:
        return failure("Phone number is required", status.HTTP_400_BAD_REQUEST)

    to = whatsapp_address(payload.phoneNumber)
    body = TEST_MESSAGE.format(
        sent_at=utc_now().strftime("%d %b %Y, %H:%M UTC"), phone_number=payload.phoneNumber
    )
    logger.info(f"🧪 Sending test message to: {to}")
    message, error = await forward(client, to, body)
    if error:
        return error

    logger.info(f"✅ Test message sent successfully: {message.sid}")
    return {
        "success": True,
        "messageId": message.sid,
        "status": message.status,
        "message": "Test message sent successfully!",
        "to": to,
    }
