# app/routers/users.py
from fastapi import APIRouter, Depends, HTTPException

from app.dependencies import get_user_store
from app.models.user_model import PhoneUpdate, UserProfile
from app.utils.auth import get_current_user
from app.utils.errors import StoreError
from app.utils.helpers import utc_now
from app.utils.logger import logger

router = APIRouter()


@router.get("/me", response_model=UserProfile)
async def get_current_user_info(current_user: UserProfile = Depends(get_current_user)):
    """Get current user profile (created on first sign-in)"""
    return current_user


@router.put("/me/phone", response_model=UserProfile)
async def update_phone_number(
    phone_update: PhoneUpdate,
    current_user: UserProfile = Depends(get_current_user),
    user_store=Depends(get_user_store),
):
    """Set the number WhatsApp invoices are sent to"""
    try:
        await user_store.update(current_user.id, {"phone_number": phone_update.phone_number})
    except StoreError as e:
        logger.error(f"Failed to update phone number for {current_user.id}: {e.message}")
        raise HTTPException(status_code=e.http_status, detail=e.message)

    logger.info(f"Phone number updated for {current_user.id}")
    return current_user.model_copy(
        update={"phone_number": phone_update.phone_number, "updated_at": utc_now()}
    )
