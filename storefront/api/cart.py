"""Cart API endpoints: one full-replace document per user"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from storefront.database import get_db
from storefront.api.deps import get_current_user, get_current_admin, get_owner_or_admin, ensure_owner_or_admin
from storefront.models.cart import Cart
from storefront.models.user import User
from storefront.services.cart_service import cart_service, CART_NOT_FOUND, VERSION_MISMATCH
from storefront.schemas.cart import CartCreate, CartUpdate, CartResponse
from typing import List, Optional
import logging

router = APIRouter()
logger = logging.getLogger(__name__)


def to_response(cart: Cart) -> CartResponse:
    return CartResponse(
        id=cart.id,
        user_id=cart.user_id,
        products=cart.products or [],
        version=cart.version,
        created_at=cart.created_at,
        updated_at=cart.updated_at,
    )


@router.get("/", response_model=List[CartResponse])
async def list_carts(
    current_admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_db)
):
    """Get carts of all users (admin only)"""
    carts = await cart_service.list_all(db)
    return [to_response(cart) for cart in carts]


@router.get("/{user_id}", response_model=Optional[CartResponse])
async def get_cart(
    user_id: int,
    current_user: User = Depends(get_owner_or_admin),
    db: AsyncSession = Depends(get_db)
):
    """Get user cart. A user without a cart gets null, not 404."""
    cart = await cart_service.get_by_user(db, user_id)
    if not cart:
        logger.info(f"[CART] No cart found for user {user_id}")
        return None
    return to_response(cart)


@router.post("/", response_model=CartResponse)
async def create_cart(
    cart_data: CartCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Create new cart. Fails with 400 if the user already has one."""
    ensure_owner_or_admin(current_user, cart_data.user_id)

    try:
        cart, error = await cart_service.create(db, cart_data.user_id, cart_data.products)
    except Exception as e:
        logger.error(f"[CART] Error creating cart for user {cart_data.user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Server Error")

    if error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error)
    return to_response(cart)


@router.put("/{user_id}", response_model=CartResponse)
async def update_cart(
    user_id: int,
    cart_data: CartUpdate,
    current_user: User = Depends(get_owner_or_admin),
    db: AsyncSession = Depends(get_db)
):
    """Replace the cart's product list, creating the cart if absent"""
    try:
        cart, error = await cart_service.replace(db, user_id, cart_data.products, cart_data.version)
    except Exception as e:
        logger.error(f"[CART] Error updating cart for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Server Error")

    if error == VERSION_MISMATCH:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=error)
    if error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error)
    return to_response(cart)


@router.delete("/{user_id}")
async def delete_cart(
    user_id: int,
    current_user: User = Depends(get_owner_or_admin),
    db: AsyncSession = Depends(get_db)
):
    """Delete cart"""
    deleted, error = await cart_service.delete(db, user_id)
    if error == CART_NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=error)

    logger.info(f"[CART] User {current_user.id} deleted cart of user {user_id}")
    return {"msg": "Cart is successfully deleted"}
