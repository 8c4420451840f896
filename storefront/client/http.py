"""Thin async HTTP layer over the storefront REST API"""
from typing import Any, Awaitable, Callable, Optional
import logging

import httpx

from storefront.client.config import ClientSettings
from storefront.client.errors import NetworkError, error_from_response
from storefront.client.state import ClientStore

logger = logging.getLogger(__name__)

UnauthorizedHook = Callable[[str], Awaitable[Any]]

# Marker for "use whatever token the store holds right now"
CURRENT_TOKEN = object()


class ApiClient:
    """
    One httpx.AsyncClient per storefront instance.

    The x-auth-token header is taken from the store at call time. A 401 on a
    request that carried a token is reported to on_unauthorized with that token,
    so a forced logout only happens while the token is still the current one.
    No retries: callers decide what to do with a failure.
    """

    def __init__(
        self,
        store: ClientStore,
        settings: ClientSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_unauthorized: Optional[UnauthorizedHook] = None,
    ):
        self._store = store
        self.on_unauthorized = on_unauthorized
        self._client = httpx.AsyncClient(
            base_url=settings.API_BASE_URL,
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        token: Any = CURRENT_TOKEN,
        notify_unauthorized: bool = True,
    ) -> Any:
        if token is CURRENT_TOKEN:
            token = self._store.session.token
        headers = {"x-auth-token": token} if token else {}

        try:
            response = await self._client.request(method, path, json=json, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning(f"{method} {path} timed out")
            raise NetworkError(f"Request timed out: {method} {path}") from e
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed without a response: {e}")
            raise NetworkError(f"Network error: {e}") from e

        if response.is_error:
            error = error_from_response(response)
            if response.status_code == 401 and token and notify_unauthorized and self.on_unauthorized:
                await self.on_unauthorized(token)
            raise error

        if not response.content:
            return None
        return response.json()

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def close(self):
        await self._client.aclose()
