"""
Client application state.

State objects are immutable pydantic models. Every change produces a new
AppState through model_copy(update=...), and ClientStore is the single place
that swaps the current state and persists its durable subset.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Literal, Optional
import logging

from pydantic import BaseModel, ConfigDict, Field

from storefront.core.line_items import clean_line_items, dump_line_items
from storefront.schemas.cart import CartLineItem
from storefront.client.storage import StateStorage

logger = logging.getLogger(__name__)

# Storage keys of the persisted snapshot
CART_ITEMS_KEY = "cartItems"
TOKEN_KEY = "userToken"
USER_INFO_KEY = "userInfo"
TOKEN_TIMESTAMP_KEY = "tokenTimestamp"


class MergeState(str, Enum):
    """Guest cart merge lifecycle of one login session"""
    NO_SESSION = "no_session"
    MERGE_PENDING = "merge_pending"
    MERGED = "merged"


class SessionWarning(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: Literal["warning", "expired"]
    message: str
    minutes_remaining: Optional[int] = Field(default=None, alias="minutesRemaining")


class CartState(BaseModel):
    model_config = ConfigDict(frozen=True)

    guest_items: List[CartLineItem] = Field(default_factory=list)
    user_items: List[CartLineItem] = Field(default_factory=list)
    show_cart: bool = False
    # Editable quantity field of the product page, 0..100
    quantity: int = 0
    last_synced: Optional[datetime] = None
    error: Optional[str] = None
    merged_item_count: int = 0


class SessionState(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: Optional[str] = None
    token_timestamp: Optional[datetime] = None
    user_info: Optional[Dict[str, Any]] = None
    refreshing: bool = False
    session_warning: Optional[SessionWarning] = None
    last_activity: Optional[datetime] = None
    merge_state: MergeState = MergeState.NO_SESSION
    # Bumped on every session teardown; work started under an older epoch is discarded
    epoch: int = 0

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token) and self.user_info is not None

    @property
    def user_id(self) -> Optional[Any]:
        if not self.user_info:
            return None
        return self.user_info.get("id", self.user_info.get("_id"))


class AppState(BaseModel):
    model_config = ConfigDict(frozen=True)

    cart: CartState = Field(default_factory=CartState)
    session: SessionState = Field(default_factory=SessionState)

    def to_snapshot(self) -> Dict[str, Any]:
        """Durable subset written to client storage"""
        timestamp = self.session.token_timestamp
        return {
            CART_ITEMS_KEY: dump_line_items(self.cart.guest_items),
            TOKEN_KEY: self.session.token,
            USER_INFO_KEY: self.session.user_info,
            TOKEN_TIMESTAMP_KEY: int(timestamp.timestamp() * 1000) if timestamp else None,
        }

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any]) -> "AppState":
        """Rebuild state from storage, tolerating missing or malformed values"""
        token = data.get(TOKEN_KEY)
        if not isinstance(token, str) or not token:
            token = None

        user_info = data.get(USER_INFO_KEY)
        if not isinstance(user_info, dict):
            user_info = None

        token_timestamp = None
        raw_timestamp = data.get(TOKEN_TIMESTAMP_KEY)
        if isinstance(raw_timestamp, (int, float)) and not isinstance(raw_timestamp, bool):
            try:
                token_timestamp = datetime.fromtimestamp(raw_timestamp / 1000, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                logger.warning(f"[SESSION] Ignoring invalid token timestamp {raw_timestamp!r}")

        if token is None:
            # A profile or timestamp without a token is not a session
            user_info = None
            token_timestamp = None

        return cls(
            cart=CartState(guest_items=clean_line_items(data.get(CART_ITEMS_KEY))),
            session=SessionState(
                token=token,
                user_info=user_info,
                token_timestamp=token_timestamp,
            ),
        )


Listener = Callable[[AppState], None]


class ClientStore:
    """Holds the current AppState and persists it after every change"""

    def __init__(self, state: Optional[AppState] = None, storage: Optional[StateStorage] = None):
        self._state = state or AppState()
        self._storage = storage
        self._listeners: List[Listener] = []
        self._persisted: Optional[Dict[str, Any]] = None

    @classmethod
    def load(cls, storage: StateStorage) -> "ClientStore":
        store = cls(AppState.from_snapshot(storage.load()), storage)
        store._persisted = store._state.to_snapshot()
        return store

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def cart(self) -> CartState:
        return self._state.cart

    @property
    def session(self) -> SessionState:
        return self._state.session

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_state(self, state: AppState) -> AppState:
        self._state = state
        self.persist()
        for listener in list(self._listeners):
            listener(state)
        return state

    def update_cart(self, **changes) -> AppState:
        return self.set_state(
            self._state.model_copy(update={"cart": self._state.cart.model_copy(update=changes)})
        )

    def update_session(self, **changes) -> AppState:
        return self.set_state(
            self._state.model_copy(update={"session": self._state.session.model_copy(update=changes)})
        )

    def persist(self):
        if self._storage is None:
            return
        snapshot = self._state.to_snapshot()
        if snapshot == self._persisted:
            return
        try:
            self._storage.save(snapshot)
        except OSError as e:
            # In-memory state stays authoritative until the next successful write
            logger.warning(f"[SESSION] Failed to persist client state: {e}")
            return
        self._persisted = snapshot

    def dispatch_cart(self, reducer: Callable[..., CartState], *args, **kwargs) -> AppState:
        """Run a pure cart reducer against the current cart and store the result"""
        return self.set_state(
            self._state.model_copy(update={"cart": reducer(self._state.cart, *args, **kwargs)})
        )
