"""
Token lifecycle of the storefront client.

States: no session -> authenticated -> (warning) -> (refreshing) ->
authenticated, or expired -> no session. The refreshing flag is the only
lock: it is set before the first await and always released in a finally.
"""
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional
import logging
import math

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from storefront.core.datetime_utils import ensure_aware, utc_now
from storefront.client.config import ClientSettings
from storefront.client.errors import AuthenticationError, AuthorizationError, StorefrontClientError
from storefront.client.http import ApiClient
from storefront.client.state import AppState, ClientStore, MergeState, SessionWarning

logger = logging.getLogger(__name__)

# User interaction events that count as activity
ACTIVITY_EVENTS = ("mousedown", "mousemove", "keypress", "scroll", "touchstart", "click")

EXPIRED_MESSAGE = "Your session has expired. Please log in again."


def warning_message(minutes_remaining: int) -> str:
    unit = "minute" if minutes_remaining == 1 else "minutes"
    return f"Your session will expire in {minutes_remaining} {unit}. Extend it to stay signed in."


class SessionManager:
    """Login, refresh, expiry warnings and logout for one client store"""

    def __init__(
        self,
        store: ClientStore,
        api: ApiClient,
        settings: ClientSettings,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.api = api
        self.settings = settings
        self._clock = clock
        self._scheduler: Optional[AsyncIOScheduler] = None

    @property
    def token_lifetime(self) -> timedelta:
        return timedelta(hours=self.settings.TOKEN_LIFETIME_HOURS)

    def token_age(self, now: Optional[datetime] = None) -> Optional[timedelta]:
        timestamp = self.store.session.token_timestamp
        if timestamp is None:
            return None
        return (now or self._clock()) - ensure_aware(timestamp)

    async def login(self, login: str, password: str) -> Dict[str, Any]:
        """Sign in by email or username; arms the guest cart merge"""
        data = await self.api.post(
            "/auth",
            json={"email": login, "password": password},
            token=None,
            notify_unauthorized=False,
        )
        user = data["user"]
        self.store.update_session(
            token=data["token"],
            token_timestamp=self._clock(),
            user_info=user,
            session_warning=None,
            merge_state=MergeState.MERGE_PENDING,
        )
        logger.info(f"[SESSION] User {user.get('id')} signed in")
        return user

    async def check_token_expiration(self, now: Optional[datetime] = None) -> Optional[SessionWarning]:
        """
        Compare the token age with its 24h lifetime.

        Within the warning window a "warning" is set, past the lifetime an
        "expired" warning is set and one refresh is attempted. Otherwise any
        existing warning is cleared.
        """
        session = self.store.session
        age = self.token_age(now)
        if not session.token or age is None:
            return None

        remaining = (self.token_lifetime - age).total_seconds()
        if remaining <= 0:
            warning = SessionWarning(type="expired", message=EXPIRED_MESSAGE)
            self.store.update_session(session_warning=warning)
            logger.info("[SESSION] Token expired, attempting refresh")
            if not session.refreshing:
                await self.refresh()
            return warning

        minutes_remaining = math.ceil(remaining / 60)
        if minutes_remaining <= self.settings.TOKEN_WARNING_MINUTES:
            warning = SessionWarning(
                type="warning",
                message=warning_message(minutes_remaining),
                minutes_remaining=minutes_remaining,
            )
            self.store.update_session(session_warning=warning)
            return warning

        if session.session_warning is not None:
            self.store.update_session(session_warning=None)
        return None

    async def refresh(self) -> bool:
        """Exchange the current token for a fresh one. Failure ends the session."""
        session = self.store.session
        if not session.token:
            return False
        if session.refreshing:
            logger.info("[SESSION] Refresh already in progress, skipping")
            return False

        self.store.update_session(refreshing=True)
        try:
            return await self._refresh_token(end_session_on_failure=True)
        finally:
            self.store.update_session(refreshing=False)

    async def _refresh_token(self, end_session_on_failure: bool) -> bool:
        session = self.store.session
        token = session.token
        epoch = session.epoch
        try:
            data = await self.api.post("/auth/refresh", token=token, notify_unauthorized=False)
        except StorefrontClientError as e:
            logger.warning(f"[SESSION] Token refresh failed: {e}")
            if end_session_on_failure:
                self.end_session(token, "refresh failed")
            return False

        if self.store.session.epoch != epoch or self.store.session.token != token:
            logger.info("[SESSION] Session changed during refresh, new token dropped")
            return False

        self.store.update_session(
            token=data["token"],
            token_timestamp=self._clock(),
            session_warning=None,
        )
        logger.info("[SESSION] Token refreshed")
        return True

    async def load_user_from_storage(self) -> Optional[Dict[str, Any]]:
        """
        Restore the persisted session on startup.

        A no-op while another load or refresh is running. Tokens older than the
        proactive refresh age are refreshed first; if that fails the profile is
        still fetched with the old token. Only an auth rejection clears the
        session, network trouble keeps the cached profile.
        """
        session = self.store.session
        if session.refreshing:
            logger.info("[SESSION] Session load already in progress, skipping")
            return None
        if not session.token:
            return None

        self.store.update_session(refreshing=True)
        try:
            age = self.token_age()
            if age is not None and age > timedelta(hours=self.settings.TOKEN_PROACTIVE_REFRESH_HOURS):
                logger.info("[SESSION] Stored token is old, refreshing before loading user")
                if not await self._refresh_token(end_session_on_failure=False):
                    logger.info("[SESSION] Proactive refresh failed, trying the stored token")

            token = self.store.session.token
            epoch = self.store.session.epoch
            try:
                user = await self.api.get("/auth", token=token, notify_unauthorized=False)
            except (AuthenticationError, AuthorizationError) as e:
                logger.warning(f"[SESSION] Stored token rejected: {e}")
                self.end_session(token, "stored token rejected")
                return None
            except StorefrontClientError as e:
                logger.warning(f"[SESSION] Could not load user, keeping cached profile: {e}")
                return self.store.session.user_info

            if self.store.session.epoch != epoch:
                return None

            changes = {"user_info": user}
            if self.store.session.merge_state == MergeState.NO_SESSION:
                changes["merge_state"] = MergeState.MERGE_PENDING
            self.store.update_session(**changes)
            logger.info(f"[SESSION] Restored session of user {user.get('id')}")
            return user
        finally:
            self.store.update_session(refreshing=False)

    def end_session(self, token: Optional[str], reason: str) -> bool:
        """
        Forced sign-out. Only acts while token is still the current one, so
        repeated rejections of the same token sign out once.
        """
        session = self.store.session
        if not token or session.token != token:
            return False

        logger.warning(f"[SESSION] Signing out: {reason}")
        state = self.store.state
        self.store.set_state(state.model_copy(update={
            "session": session.model_copy(update={
                "token": None,
                "token_timestamp": None,
                "user_info": None,
                "session_warning": SessionWarning(type="expired", message=EXPIRED_MESSAGE),
                "merge_state": MergeState.NO_SESSION,
                "epoch": session.epoch + 1,
            }),
            "cart": state.cart.model_copy(update={"user_items": [], "last_synced": None}),
        }))
        return True

    async def expire_session(self, token: str) -> bool:
        """Unauthorized hook for ApiClient"""
        return self.end_session(token, "token rejected by server")

    async def logout(self):
        """Clear local session and cart, then invalidate the token server side (best effort)"""
        session = self.store.session
        token = session.token

        self.store.set_state(AppState().model_copy(update={
            "session": session.model_copy(update={
                "token": None,
                "token_timestamp": None,
                "user_info": None,
                "session_warning": None,
                "refreshing": False,
                "merge_state": MergeState.NO_SESSION,
                "epoch": session.epoch + 1,
            }),
        }))

        if not token:
            return
        try:
            await self.api.post("/auth/logout", token=token, notify_unauthorized=False)
            logger.info("[SESSION] Signed out")
        except StorefrontClientError as e:
            logger.warning(f"[SESSION] Server logout failed, local session cleared anyway: {e}")

    def record_activity(self, event: str = "click", now: Optional[datetime] = None) -> bool:
        if event not in ACTIVITY_EVENTS or not self.store.session.token:
            return False
        self.store.update_session(last_activity=now or self._clock())
        return True

    async def start_monitoring(self):
        """Check the token now and then every TOKEN_CHECK_INTERVAL_MINUTES"""
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self.check_token_expiration,
            IntervalTrigger(minutes=self.settings.TOKEN_CHECK_INTERVAL_MINUTES),
            id="check_token_expiration",
            name="Check session token expiration",
            replace_existing=True
        )
        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("[SESSION] Token monitoring started")

        await self.check_token_expiration()

    def stop_monitoring(self):
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("[SESSION] Token monitoring stopped")
        self._scheduler = None

    @property
    def monitoring(self) -> bool:
        return self._scheduler is not None and self._scheduler.running
