"""
Tests for the session token lifecycle
"""
import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from storefront.core.datetime_utils import utc_now
from storefront.client.errors import BadRequestError
from storefront.client.state import MergeState


def stored_session(storefront, backend, age: timedelta, user_info=None):
    """Session as restored from storage, issued `age` ago"""
    storefront.store.update_session(
        token=backend.issue_token(),
        token_timestamp=utc_now() - age,
        user_info=user_info,
    )


class TestLogin:
    """SessionManager.login"""

    async def test_login_stores_token_and_arms_merge(self, storefront, backend):
        user = await storefront.session.login("ada@example.com", "secret123")

        session = storefront.store.session
        assert user["id"] == 7
        assert session.token in backend.valid_tokens
        assert session.token_timestamp is not None
        assert session.merge_state == MergeState.MERGE_PENDING

    async def test_login_failure(self, storefront):
        with pytest.raises(BadRequestError):
            await storefront.session.login("ada@example.com", "wrong")

        assert storefront.store.session.token is None


class TestCheckTokenExpiration:
    """Periodic expiry check"""

    async def test_fresh_token_has_no_warning(self, storefront, backend):
        stored_session(storefront, backend, timedelta(hours=2))

        assert await storefront.session.check_token_expiration() is None
        assert storefront.store.session.session_warning is None

    async def test_warning_fifteen_minutes_before_expiry(self, storefront, backend):
        stored_session(storefront, backend, timedelta(hours=23, minutes=45))
        now = storefront.store.session.token_timestamp + timedelta(hours=23, minutes=45)

        warning = await storefront.session.check_token_expiration(now=now)

        assert warning.type == "warning"
        assert warning.minutes_remaining == 15
        assert storefront.store.session.session_warning == warning

    async def test_warning_with_wall_clock(self, storefront, backend):
        stored_session(storefront, backend, timedelta(hours=23, minutes=45))

        warning = await storefront.session.check_token_expiration()

        assert warning.type == "warning"
        assert 14 <= warning.minutes_remaining <= 15

    async def test_expired_triggers_exactly_one_refresh(self, storefront, backend):
        stored_session(storefront, backend, timedelta(hours=25), user_info={"id": 7})
        old_token = storefront.store.session.token

        with patch.object(
            storefront.session, "refresh", new_callable=AsyncMock, return_value=True
        ) as mock_refresh:
            warning = await storefront.session.check_token_expiration()

        assert warning.type == "expired"
        mock_refresh.assert_awaited_once()
        assert storefront.store.session.token == old_token

    async def test_expired_refresh_over_http(self, storefront, backend):
        """Real refresh call: one POST, new token, warning cleared"""
        stored_session(storefront, backend, timedelta(hours=25), user_info={"id": 7})

        await storefront.session.check_token_expiration()

        assert backend.count("POST", "/api/auth/refresh") == 1
        session = storefront.store.session
        assert session.session_warning is None
        assert utc_now() - session.token_timestamp < timedelta(minutes=1)

    async def test_expired_while_refreshing_does_not_refresh_again(self, storefront, backend):
        stored_session(storefront, backend, timedelta(hours=25))
        storefront.store.update_session(refreshing=True)

        warning = await storefront.session.check_token_expiration()

        assert warning.type == "expired"
        assert backend.count("POST", "/api/auth/refresh") == 0

    async def test_warning_cleared_after_extend(self, storefront, backend):
        stored_session(storefront, backend, timedelta(hours=23, minutes=50), user_info={"id": 7})
        await storefront.session.check_token_expiration()
        assert storefront.store.session.session_warning is not None

        assert await storefront.extend_session() is True
        assert await storefront.session.check_token_expiration() is None
        assert storefront.store.session.session_warning is None

    async def test_no_token_no_check(self, storefront):
        assert await storefront.session.check_token_expiration() is None


class TestRefresh:
    """SessionManager.refresh"""

    async def test_refresh_failure_ends_session(self, storefront, backend):
        """Refresh failure is fatal and is not retried"""
        stored_session(storefront, backend, timedelta(hours=1), user_info={"id": 7})
        backend.fail_next("POST", "/api/auth/refresh", 500, "boom")

        assert await storefront.session.refresh() is False

        session = storefront.store.session
        assert session.token is None
        assert session.user_info is None
        assert session.token_timestamp is None
        assert session.refreshing is False
        assert backend.count("POST", "/api/auth/refresh") == 1

    async def test_refreshing_flag_released_on_unexpected_error(self, storefront, backend):
        stored_session(storefront, backend, timedelta(hours=1))

        with patch.object(storefront.api, "post", new_callable=AsyncMock, side_effect=RuntimeError("bug")):
            with pytest.raises(RuntimeError):
                await storefront.session.refresh()

        assert storefront.store.session.refreshing is False


class TestLoadUserFromStorage:
    """Startup restore of a persisted session"""

    async def test_concurrent_loads_fetch_user_once(self, storefront, backend):
        stored_session(storefront, backend, timedelta(hours=1))
        backend.auth_gate = asyncio.Event()

        first = asyncio.create_task(storefront.session.load_user_from_storage())
        second = asyncio.create_task(storefront.session.load_user_from_storage())
        await asyncio.sleep(0.05)
        backend.auth_gate.set()
        results = await asyncio.gather(first, second)

        assert backend.count("GET", "/api/auth") == 1
        assert results[0]["id"] == 7
        assert results[1] is None
        assert storefront.store.session.refreshing is False

    async def test_load_arms_merge(self, storefront, backend):
        stored_session(storefront, backend, timedelta(hours=1))

        await storefront.session.load_user_from_storage()

        assert storefront.store.session.user_info["id"] == 7
        assert storefront.store.session.merge_state == MergeState.MERGE_PENDING

    async def test_old_token_refreshed_first(self, storefront, backend):
        stored_session(storefront, backend, timedelta(hours=23, minutes=30))
        old_token = storefront.store.session.token

        await storefront.session.load_user_from_storage()

        assert backend.calls[:2] == [("POST", "/api/auth/refresh"), ("GET", "/api/auth")]
        assert storefront.store.session.token != old_token

    async def test_failed_proactive_refresh_falls_back_to_stored_token(self, storefront, backend):
        stored_session(storefront, backend, timedelta(hours=23, minutes=30))
        old_token = storefront.store.session.token
        backend.fail_next("POST", "/api/auth/refresh", 503, "busy")

        user = await storefront.session.load_user_from_storage()

        assert user["id"] == 7
        assert storefront.store.session.token == old_token

    async def test_rejected_token_clears_session(self, storefront, backend):
        stored_session(storefront, backend, timedelta(hours=1), user_info={"id": 7})
        backend.valid_tokens.clear()

        assert await storefront.session.load_user_from_storage() is None
        assert storefront.store.session.token is None
        assert storefront.store.session.user_info is None

    async def test_network_error_keeps_cached_profile(self, storefront, backend):
        stored_session(storefront, backend, timedelta(hours=1), user_info={"id": 7, "username": "ada"})
        backend.offline = True

        user = await storefront.session.load_user_from_storage()

        assert user == {"id": 7, "username": "ada"}
        assert storefront.store.session.token is not None

    async def test_nothing_stored(self, storefront, backend):
        assert await storefront.session.load_user_from_storage() is None
        assert backend.calls == []


class TestLogout:
    """SessionManager.logout"""

    async def test_logout_clears_everything(self, storefront, backend, scarf):
        await storefront.login("ada", "secret123")
        await storefront.add_to_cart(scarf, 1)
        token = storefront.store.session.token
        epoch = storefront.store.session.epoch

        await storefront.logout()

        session = storefront.store.session
        assert session.token is None
        assert session.user_info is None
        assert session.merge_state == MergeState.NO_SESSION
        assert session.epoch == epoch + 1
        assert storefront.store.cart.user_items == []
        assert storefront.store.cart.guest_items == []
        assert token not in backend.valid_tokens
        # The server cart belongs to the user and survives
        assert backend.carts[7]["products"][0]["quantity"] == 1

    async def test_logout_is_best_effort(self, storefront, backend):
        await storefront.login("ada", "secret123")
        backend.offline = True

        await storefront.logout()

        assert storefront.store.session.token is None

    async def test_login_after_logout_merges_again(self, storefront, backend, scarf):
        await storefront.login("ada", "secret123")
        await storefront.logout()
        await storefront.add_to_cart(scarf, 2)

        await storefront.login("ada", "secret123")

        assert storefront.store.session.merge_state == MergeState.MERGED
        assert storefront.items[0].quantity == 2


class TestActivityAndMonitoring:
    """Activity signal and the periodic check job"""

    async def test_record_activity(self, storefront, backend):
        assert storefront.record_activity("click") is False

        stored_session(storefront, backend, timedelta(hours=1))
        assert storefront.record_activity("resize") is False
        assert storefront.record_activity("keypress") is True
        assert storefront.store.session.last_activity is not None

    async def test_monitoring_schedules_job_and_checks_immediately(self, storefront, backend):
        stored_session(storefront, backend, timedelta(hours=23, minutes=45))

        await storefront.session.start_monitoring()
        try:
            job = storefront.session._scheduler.get_job("check_token_expiration")
            assert job is not None
            assert job.trigger.interval == timedelta(minutes=5)
            assert storefront.store.session.session_warning.type == "warning"
        finally:
            storefront.session.stop_monitoring()

        assert storefront.session.monitoring is False
