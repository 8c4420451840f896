"""
Storefront client facade.

Wires the client store, HTTP layer, remote cart, merge coordinator and
session manager together. Cart operations go to the server cart while a user
is signed in and to the guest cart otherwise.
"""
from typing import Any, Awaitable, Callable, Dict, List, Optional
import logging

import httpx

from storefront.core.datetime_utils import utc_now
from storefront.schemas.cart import CartLineItem, CartResponse, CartTotals
from storefront.client import local_cart
from storefront.client.config import ClientSettings
from storefront.client.errors import StorefrontClientError, describe_error
from storefront.client.http import ApiClient
from storefront.client.merge import CartMergeCoordinator, MergeResult
from storefront.client.remote_cart import RemoteCartStore
from storefront.client.session import SessionManager
from storefront.client.state import AppState, ClientStore, MergeState
from storefront.client.storage import StateStorage
from storefront.client.totals import authoritative_items, compute_totals

logger = logging.getLogger(__name__)


class Storefront:
    """Cart and session client for the Miorah Collections API"""

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        storage: Optional[StateStorage] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        store: Optional[ClientStore] = None,
    ):
        self.settings = settings or ClientSettings()
        if store is None:
            store = ClientStore.load(storage or StateStorage(self.settings.STATE_FILE))
        self.store = store
        self.api = ApiClient(self.store, self.settings, transport=transport)
        self.remote = RemoteCartStore(self.api)
        self.session = SessionManager(self.store, self.api, self.settings)
        self.merger = CartMergeCoordinator(self.store, self.remote, self.settings)
        self.api.on_unauthorized = self.session.expire_session
        self._monitor = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @property
    def state(self) -> AppState:
        return self.store.state

    @property
    def totals(self) -> CartTotals:
        return compute_totals(authoritative_items(self.store.state))

    @property
    def items(self) -> List[CartLineItem]:
        return authoritative_items(self.store.state)

    @property
    def is_authenticated(self) -> bool:
        return self.store.session.is_authenticated

    async def start(self, monitor: bool = True):
        """Restore the persisted session, reconcile the cart and start token checks"""
        self._monitor = monitor
        await self.session.load_user_from_storage()
        await self.merger.maybe_merge()
        if monitor and self.store.session.token:
            await self.session.start_monitoring()

    async def sync_cart(self) -> MergeResult:
        session = self.store.session
        if session.is_authenticated and session.merge_state == MergeState.NO_SESSION:
            # Profile only cached from storage, confirm it before merging
            await self.session.load_user_from_storage()
        return await self.merger.maybe_merge()

    async def login(self, login: str, password: str, monitor: Optional[bool] = None) -> Dict[str, Any]:
        """Sign in and merge the guest cart. Token checks run if requested here or by start()"""
        user = await self.session.login(login, password)
        await self.sync_cart()
        if monitor is None:
            monitor = self._monitor
        if monitor:
            await self.session.start_monitoring()
        return user

    async def logout(self):
        self.session.stop_monitoring()
        await self.session.logout()

    async def extend_session(self) -> bool:
        return await self.session.refresh()

    def record_activity(self, event: str = "click") -> bool:
        return self.session.record_activity(event)

    async def _remote(self, operation: Callable[..., Awaitable[CartResponse]], *args) -> List[CartLineItem]:
        """Run a remote cart operation and adopt the returned cart"""
        session = self.store.session
        epoch = session.epoch
        try:
            cart = await operation(session.user_id, *args)
        except StorefrontClientError as e:
            logger.warning(f"[CART] {operation.__name__} failed for user {session.user_id}: {e}")
            if self.store.session.epoch == epoch:
                self.store.update_cart(error=describe_error(e))
            raise

        if self.store.session.epoch != epoch:
            return list(self.store.cart.user_items)
        self.store.update_cart(user_items=list(cart.products), last_synced=utc_now(), error=None)
        return list(cart.products)

    async def add_to_cart(self, product: Any, quantity: Optional[int] = None) -> List[CartLineItem]:
        if not self.is_authenticated:
            self.store.dispatch_cart(local_cart.add_item, product, quantity)
            return self.items

        amount = quantity or max(self.store.cart.quantity, 1)
        items = await self._remote(self.remote.add_item, product, amount)
        self.store.dispatch_cart(local_cart.set_show_cart, True)
        return items

    async def remove_from_cart(self, product_id: Any) -> List[CartLineItem]:
        if not self.is_authenticated:
            self.store.dispatch_cart(local_cart.remove_item, product_id)
            return self.items
        return await self._remote(self.remote.delete_item, product_id)

    async def decrement_item(self, product_id: Any) -> List[CartLineItem]:
        if not self.is_authenticated:
            self.store.dispatch_cart(local_cart.decrement_item, product_id)
            return self.items
        return await self._remote(self.remote.decrement_item, product_id)

    async def clear_cart(self) -> List[CartLineItem]:
        if not self.is_authenticated:
            self.store.dispatch_cart(local_cart.clear)
            return self.items
        return await self._remote(self.remote.clear)

    def adjust_quantity(self, action: local_cart.QuantityAction = None, delta: Optional[int] = None) -> int:
        self.store.dispatch_cart(local_cart.adjust_quantity, action, delta)
        return self.store.cart.quantity

    def set_cart_visible(self, visible: bool):
        self.store.dispatch_cart(local_cart.set_show_cart, visible)

    async def close(self):
        self.session.stop_monitoring()
        await self.api.close()
