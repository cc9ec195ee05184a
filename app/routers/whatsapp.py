# app/routers/whatsapp.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from app.dependencies import get_whatsapp_client
from app.models.bid_model import DeliveryResult
from app.models.user_model import UserProfile
from app.utils.auth import get_current_user

router = APIRouter()


class TestMessageRequest(BaseModel):
    phone_number: Optional[str] = None


@router.get("/status")
async def get_status(client=Depends(get_whatsapp_client)):
    """Which delivery channels are configured (credentials masked)."""
    return client.get_status()


@router.get("/diagnostics")
async def get_diagnostics(client=Depends(get_whatsapp_client)):
    return await client.run_diagnostics()


@router.post("/test", response_model=DeliveryResult)
async def send_test_message(
    payload: TestMessageRequest,
    current_user: UserProfile = Depends(get_current_user),
    client=Depends(get_whatsapp_client),
):
    """Send a canned invoice to the given number, or to your saved number."""
    phone_number = payload.phone_number or current_user.phone_number
    if not phone_number:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No phone number given and none saved on your profile",
        )
    return await client.test_connection(phone_number)
