"""Cart service for server-side shopping cart persistence"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from storefront.models.cart import Cart
from storefront.core.line_items import clean_line_items, dump_line_items
from typing import Any, List, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

CART_EXISTS = "Cart already exists for this user"
CART_NOT_FOUND = "Cart not found"
VERSION_MISMATCH = "Cart was modified by another session, reload and retry"


class CartService:
    """Service for managing per-user carts. Writes always replace the whole product list."""

    @staticmethod
    def clean_products(products: Any) -> List[dict]:
        """Validate incoming line items and return their JSON form"""
        return dump_line_items(clean_line_items(products))

    @staticmethod
    async def get_by_user(db: AsyncSession, user_id: int) -> Optional[Cart]:
        """Get cart for user, None when the user has no cart yet"""
        result = await db.execute(
            select(Cart).where(Cart.user_id == user_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_all(db: AsyncSession) -> List[Cart]:
        result = await db.execute(select(Cart).order_by(Cart.id))
        return list(result.scalars().all())

    @staticmethod
    async def create(
        db: AsyncSession,
        user_id: int,
        products: Any
    ) -> Tuple[Optional[Cart], Optional[str]]:
        """
        Create cart for user. Fails if one already exists.
        Returns: (Cart, error_message)
        """
        existing = await CartService.get_by_user(db, user_id)
        if existing:
            return None, CART_EXISTS

        cart = Cart(user_id=user_id, products=CartService.clean_products(products), version=1)
        db.add(cart)
        try:
            await db.commit()
        except IntegrityError:
            # Lost a race with another create for the same user
            await db.rollback()
            return None, CART_EXISTS
        await db.refresh(cart)
        logger.info(f"[CART] Created cart {cart.id} for user {user_id} with {len(cart.products)} items")
        return cart, None

    @staticmethod
    async def replace(
        db: AsyncSession,
        user_id: int,
        products: Any,
        expected_version: Optional[int] = None
    ) -> Tuple[Optional[Cart], Optional[str]]:
        """
        Replace the product list, creating the cart if absent.
        With expected_version the write is rejected unless it matches.
        Returns: (Cart, error_message)
        """
        cleaned = CartService.clean_products(products)
        cart = await CartService.get_by_user(db, user_id)

        if not cart:
            if expected_version not in (None, 0):
                return None, VERSION_MISMATCH
            cart = Cart(user_id=user_id, products=cleaned, version=1)
            db.add(cart)
            try:
                await db.commit()
            except IntegrityError:
                # Another request created the cart first, replace that one instead
                await db.rollback()
                logger.info(f"[CART] Cart for user {user_id} created concurrently, replacing it")
                cart = await CartService.get_by_user(db, user_id)
                if not cart:
                    raise
            else:
                await db.refresh(cart)
                logger.info(f"[CART] Created cart {cart.id} for user {user_id} on update")
                return cart, None

        if expected_version is not None and expected_version != cart.version:
            logger.info(
                f"[CART] Rejected stale write for user {user_id}: "
                f"expected v{expected_version}, stored v{cart.version}"
            )
            return None, VERSION_MISMATCH

        cart.products = cleaned
        cart.version = cart.version + 1
        await db.commit()
        await db.refresh(cart)
        logger.info(f"[CART] Replaced cart {cart.id} for user {user_id}: {len(cleaned)} items, v{cart.version}")
        return cart, None

    @staticmethod
    async def delete(db: AsyncSession, user_id: int) -> Tuple[bool, Optional[str]]:
        """Delete the user's cart document"""
        cart = await CartService.get_by_user(db, user_id)
        if not cart:
            return False, CART_NOT_FOUND

        await db.delete(cart)
        await db.commit()
        logger.info(f"[CART] Deleted cart for user {user_id}")
        return True, None


cart_service = CartService()
