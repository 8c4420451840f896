from fastapi import Depends, HTTPException, Path, status
from fastapi.security import APIKeyHeader
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.database import get_db
from storefront.core.security import decode_access_token, TokenExpiredError, TokenInvalidError
from storefront.core.redis import redis_client
from storefront.models.user import User
from storefront.services.user_service import user_service
from typing import Optional
import logging

logger = logging.getLogger(__name__)

token_header = APIKeyHeader(name="x-auth-token", auto_error=False)


async def get_token(token: Optional[str] = Depends(token_header)) -> str:
    """Raw bearer token from the x-auth-token header"""
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No Token, authorization denied!",
        )
    return token


async def get_token_payload(token: str = Depends(get_token)) -> dict:
    """
    Decoded token claims.
    Blacklisted (logged out), expired and malformed tokens each get their own message
    so the client can tell a forced logout from a bad request.
    """
    if await redis_client.is_token_blacklisted(token):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has been invalidated, please login again",
        )

    try:
        return decode_access_token(token)
    except TokenExpiredError:
        logger.info("Rejected expired token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired, please login again",
        )
    except TokenInvalidError:
        logger.info("Rejected malformed token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )


async def get_current_user(
    payload: dict = Depends(get_token_payload),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user"""
    user = await user_service.get_by_id(db, payload["user_id"])
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


async def get_current_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    """Verify current user is admin"""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You're not allowed to do that!",
        )
    return current_user


def ensure_owner_or_admin(current_user: User, user_id: int):
    """Only the owner of a resource or an admin may touch it"""
    if current_user.id != user_id and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You're not allowed to do that!",
        )


async def get_owner_or_admin(
    user_id: int = Path(..., description="Cart owner's user id"),
    current_user: User = Depends(get_current_user)
) -> User:
    """Path-scoped variant of ensure_owner_or_admin"""
    ensure_owner_or_admin(current_user, user_id)
    return current_user
