"""
Guest cart to user cart reconciliation, run once per login session.

The merge is keyed by product id: the server cart seeds the result and guest
quantities are added on top (capped at 100), so the outcome never contains
duplicate lines no matter how the guest and server carts overlap.
"""
from typing import Any, Iterable, List, Literal, Optional
import logging

from pydantic import BaseModel, ConfigDict, Field

from storefront.core.datetime_utils import utc_now
from storefront.core.line_items import MAX_QUANTITY, find_line_item, make_line_item
from storefront.schemas.cart import CartLineItem, CartResponse
from storefront.client.config import ClientSettings
from storefront.client.errors import ConflictError, StorefrontClientError, describe_error
from storefront.client.remote_cart import RemoteCartStore
from storefront.client.state import ClientStore, MergeState

logger = logging.getLogger(__name__)


class MergeResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["skipped", "created", "merged", "unchanged", "failed", "discarded"]
    items: List[CartLineItem] = Field(default_factory=list)
    merged_item_count: int = 0
    error: Optional[str] = None


def merge_line_items(
    server_items: Iterable[CartLineItem], guest_items: Iterable[CartLineItem]
) -> List[CartLineItem]:
    """Server lines keep their snapshot and position; guest lines add quantity or append"""
    merged = list(server_items)
    for guest_item in guest_items:
        existing = find_line_item(merged, guest_item.id)
        if existing is None:
            merged.append(guest_item)
            continue
        quantity = min(existing.quantity + guest_item.quantity, MAX_QUANTITY)
        merged = [
            make_line_item(item.product, quantity) if item.id == existing.id else item
            for item in merged
        ]
    return merged


class CartMergeCoordinator:
    """Moves the guest cart into the server cart after sign-in"""

    def __init__(self, store: ClientStore, remote: RemoteCartStore, settings: ClientSettings):
        self.store = store
        self.remote = remote
        self.settings = settings

    def should_merge(self) -> bool:
        session = self.store.session
        return (
            session.is_authenticated
            and not session.refreshing
            and session.merge_state == MergeState.MERGE_PENDING
        )

    async def maybe_merge(self) -> MergeResult:
        if not self.should_merge():
            return MergeResult(status="skipped")

        session = self.store.session
        epoch = session.epoch
        user_id = session.user_id
        guest_items = list(self.store.cart.guest_items)

        # One shot per session, whatever the outcome
        self.store.update_session(merge_state=MergeState.MERGED)
        logger.info(f"[MERGE] Merging {len(guest_items)} guest item(s) into cart of user {user_id}")

        try:
            status, cart = await self._reconcile(user_id, guest_items)
        except StorefrontClientError as e:
            logger.warning(f"[MERGE] Merge for user {user_id} failed, guest cart kept: {e}")
            if self.store.session.epoch == epoch:
                self.store.update_cart(error=describe_error(e))
            return MergeResult(status="failed", error=str(e))

        if self.store.session.epoch != epoch:
            logger.info(f"[MERGE] Session ended while merging for user {user_id}, result discarded")
            return MergeResult(status="discarded")

        updates = {
            "user_items": list(cart.products),
            "last_synced": utc_now(),
            "error": None,
            "merged_item_count": len(guest_items),
        }
        if guest_items and self.settings.CLEAR_GUEST_CART_ON_MERGE:
            # Items added while the merge was in flight stay in the guest cart
            updates["guest_items"] = [
                item for item in self.store.cart.guest_items if item not in guest_items
            ]
        self.store.update_cart(**updates)

        logger.info(f"[MERGE] Cart of user {user_id} {status}: {len(cart.products)} line(s)")
        return MergeResult(status=status, items=list(cart.products), merged_item_count=len(guest_items))

    async def _reconcile(self, user_id: Any, guest_items: List[CartLineItem]):
        cart = await self.remote.fetch(user_id)
        if cart is None:
            try:
                return "created", await self.remote.create(user_id, guest_items)
            except ConflictError:
                # Another tab created it between our fetch and create
                logger.info(f"[MERGE] Cart for user {user_id} appeared concurrently, merging into it")
                cart = await self.remote.fetch(user_id)
                if cart is None:
                    raise

        try:
            return await self._merge_into(user_id, cart, guest_items)
        except ConflictError:
            logger.info(f"[MERGE] Cart of user {user_id} changed during merge, retrying once")
            cart = await self.remote.fetch(user_id)
            if cart is None:
                return "created", await self.remote.create(user_id, guest_items)
            return await self._merge_into(user_id, cart, guest_items)

    async def _merge_into(self, user_id: Any, cart: CartResponse, guest_items: List[CartLineItem]):
        merged = merge_line_items(cart.products, guest_items)
        if merged == list(cart.products):
            return "unchanged", cart
        return "merged", await self.remote.replace(user_id, merged, version=cart.version)
