# app/utils/auth.py
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from app.dependencies import get_user_store
from app.models.user_model import TokenData, UserProfile
from app.config import settings
from app.utils.errors import StoreError, StorePermissionError
from app.utils.logger import logger

# Tokens are issued by the external identity provider
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/users/token")


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token (development and tests)"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=15)

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(
        to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM
    )
    return encoded_jwt


def decode_token(token: str) -> TokenData:
    """Decode a JWT token; `sub` carries the provider uid"""
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        uid: str = payload.get("sub")

        if uid is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Could not validate credentials",
            )
        return TokenData(uid=uid, email=payload.get("email"), name=payload.get("name"))
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )


def display_name_for(token_data: TokenData) -> str:
    if token_data.name:
        return token_data.name
    if token_data.email:
        return token_data.email.split("@")[0]
    return "Anonymous"


async def get_current_user(
    token: str = Depends(oauth2_scheme), user_store=Depends(get_user_store)
) -> UserProfile:
    """Get the current user's profile, creating it on first sign-in"""
    token_data = decode_token(token)

    try:
        user = await user_store.get(token_data.uid)
        if user is None:
            user = await user_store.create(
                token_data.uid,
                {"display_name": display_name_for(token_data), "email": token_data.email},
            )
    except StorePermissionError as e:
        # bids can still be placed in degraded mode with a token-only profile
        logger.warning(f"⚠️ Profile store refused access for {token_data.uid}: {e.message}")
        return UserProfile(
            id=token_data.uid,
            display_name=display_name_for(token_data),
            email=token_data.email,
        )
    except StoreError as e:
        logger.error(f"Failed to load profile for {token_data.uid}: {e.message}")
        raise HTTPException(status_code=e.http_status, detail=e.message)

    return user
