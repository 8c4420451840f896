"""
Server-side cart of a signed-in user.

Every mutation is read-modify-write: fetch the current document, compute the
complete new product list with the shared line item rules, then PUT it back.
"""
from typing import Any, Iterable, List, Optional
import logging

from storefront.core.line_items import (
    decrement_line_item,
    dump_line_items,
    remove_line_item,
    upsert_line_item,
)
from storefront.schemas.cart import CartLineItem, CartResponse
from storefront.client.errors import BadRequestError, ConflictError, NotFoundError
from storefront.client.http import ApiClient
from storefront.client.local_cart import as_product

logger = logging.getLogger(__name__)


class RemoteCartStore:
    """CRUD for /cart/{userId}"""

    def __init__(self, api: ApiClient):
        self.api = api

    async def fetch(self, user_id: Any) -> Optional[CartResponse]:
        """Current cart, or None when the user has no cart yet"""
        try:
            data = await self.api.get(f"/cart/{user_id}")
        except NotFoundError:
            return None
        if not data:
            return None
        return CartResponse.model_validate(data)

    async def create(self, user_id: Any, items: Iterable[CartLineItem]) -> CartResponse:
        """
        Create the user's cart.

        Raises:
            ConflictError: a cart already exists for this user
        """
        body = {"userId": user_id, "products": dump_line_items(items)}
        try:
            data = await self.api.post("/cart/", json=body)
        except BadRequestError as e:
            if "already exists" in e.message:
                raise ConflictError(e.message, status_code=e.status_code, payload=e.payload) from e
            raise
        logger.info(f"[CART] Created remote cart for user {user_id}")
        return CartResponse.model_validate(data)

    async def replace(
        self, user_id: Any, items: Iterable[CartLineItem], version: Optional[int] = None
    ) -> CartResponse:
        """Full replace of the product list; creates the cart when absent"""
        body = {"products": dump_line_items(items)}
        if version is not None:
            body["version"] = version
        data = await self.api.put(f"/cart/{user_id}", json=body)
        return CartResponse.model_validate(data)

    async def _current_items(self, user_id: Any) -> List[CartLineItem]:
        cart = await self.fetch(user_id)
        return list(cart.products) if cart else []

    async def add_item(self, user_id: Any, product: Any, quantity: int) -> CartResponse:
        items = await self._current_items(user_id)
        return await self.replace(user_id, upsert_line_item(items, as_product(product), quantity))

    async def decrement_item(self, user_id: Any, item_id: Any) -> CartResponse:
        items = await self._current_items(user_id)
        return await self.replace(user_id, decrement_line_item(items, item_id))

    async def delete_item(self, user_id: Any, item_id: Any) -> CartResponse:
        items = await self._current_items(user_id)
        return await self.replace(user_id, remove_line_item(items, item_id))

    async def clear(self, user_id: Any) -> CartResponse:
        return await self.replace(user_id, [])

    async def delete(self, user_id: Any) -> Optional[str]:
        """Drop the cart document; returns the server's confirmation message"""
        data = await self.api.delete(f"/cart/{user_id}")
        return data.get("msg") if isinstance(data, dict) else None
