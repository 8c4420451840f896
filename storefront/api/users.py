from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.database import get_db
from storefront.config import settings
from storefront.core.rate_limit import limiter
from storefront.services.user_service import user_service
from storefront.schemas.user import UserCreate, UserResponse
import logging

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(settings.REGISTRATION_RATE_LIMIT)
async def register_user(
    request: Request,
    user_data: UserCreate,
    db: AsyncSession = Depends(get_db)
):
    """Register user"""
    user, error = await user_service.create(db, user_data)
    if error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error)
    return UserResponse.model_validate(user)
