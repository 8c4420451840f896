from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.database import get_db
from storefront.core.security import create_user_token, seconds_until_expiry
from storefront.core.rate_limit import limiter
from storefront.core.redis import redis_client
from storefront.config import settings
from storefront.services.user_service import user_service
from storefront.schemas.auth import LoginRequest, LoginResponse, RefreshResponse, LogoutResponse
from storefront.schemas.user import UserResponse
from storefront.models.user import User
from storefront.api.deps import get_current_user, get_token, get_token_payload
import logging

logger = logging.getLogger(__name__)
router = APIRouter()

INVALID_CREDENTIALS = "Invalid email/username or password. Please check your credentials and try again."


def serialize_user(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump(mode="json", by_alias=True)


@router.post("", response_model=LoginResponse)
@limiter.limit(settings.AUTH_RATE_LIMIT)
async def login(
    request: Request,
    credentials: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """Authenticate by email or username and issue a 24h token"""
    user = await user_service.authenticate(db, credentials.email, credentials.password)
    if not user:
        logger.info(f"Failed login attempt for {credentials.email!r}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=INVALID_CREDENTIALS
        )

    token = create_user_token(user)
    logger.info(f"User {user.id} logged in")
    return LoginResponse(token=token, user=serialize_user(user))


@router.get("", response_model=UserResponse)
async def get_logged_in_user(
    current_user: User = Depends(get_current_user)
):
    """Get logged in user"""
    return UserResponse.model_validate(current_user)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_token(
    current_user: User = Depends(get_current_user)
):
    """Issue a fresh token for a still-valid one"""
    token = create_user_token(current_user)
    logger.info(f"Token refreshed for user {current_user.id}")
    return RefreshResponse(
        token=token,
        message="Token refreshed successfully",
        expires_in=f"{settings.ACCESS_TOKEN_EXPIRE_HOURS}h"
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    token: str = Depends(get_token),
    payload: dict = Depends(get_token_payload)
):
    """
    Logout by invalidating the presented token.
    Adds token to blacklist until it would have expired anyway.
    """
    blacklisted = await redis_client.blacklist_token(token, seconds_until_expiry(payload))

    if blacklisted:
        logger.info(f"Token blacklisted for user {payload.get('user_id')}")
    else:
        logger.warning("Redis unavailable - token blacklisted in process memory only")

    return LogoutResponse(message="Logged out successfully", success=True)
