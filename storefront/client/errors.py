"""
Client-side error taxonomy.

Every failed call against the storefront API surfaces as a subclass of
StorefrontClientError carrying the HTTP status and the decoded error body.
"""
from typing import Any, Optional

import httpx


class StorefrontClientError(Exception):
    """Base error for the storefront client"""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def __str__(self):
        if self.status_code:
            return f"{self.status_code}: {self.message}"
        return self.message


class NetworkError(StorefrontClientError):
    """No response: connection refused, DNS failure or timeout"""


class BadRequestError(StorefrontClientError):
    pass


class AuthenticationError(StorefrontClientError):
    pass


class AuthorizationError(StorefrontClientError):
    pass


class NotFoundError(StorefrontClientError):
    pass


class ConflictError(StorefrontClientError):
    pass


class RateLimitError(StorefrontClientError):
    pass


class ServerError(StorefrontClientError):
    pass


_STATUS_ERRORS = {
    400: BadRequestError,
    401: AuthenticationError,
    403: AuthorizationError,
    404: NotFoundError,
    409: ConflictError,
    429: RateLimitError,
}


def _error_message(response: httpx.Response, payload: Any) -> str:
    if isinstance(payload, dict):
        for key in ("detail", "msg", "message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
            if value:
                return str(value)
    if isinstance(payload, str) and payload:
        return payload
    return response.reason_phrase or f"HTTP {response.status_code}"


def error_from_response(response: httpx.Response) -> StorefrontClientError:
    """Map a non-2xx response to the matching client error"""
    try:
        payload = response.json()
    except ValueError:
        payload = response.text

    message = _error_message(response, payload)
    if response.status_code >= 500:
        error_class = ServerError
    else:
        error_class = _STATUS_ERRORS.get(response.status_code, StorefrontClientError)
    return error_class(message, status_code=response.status_code, payload=payload)


def describe_error(error: StorefrontClientError) -> str:
    """Short message suitable for showing next to the cart"""
    if isinstance(error, NetworkError):
        return "Network error. Please check your connection."
    if isinstance(error, AuthenticationError):
        return "Session expired. Please login again."
    if isinstance(error, ServerError):
        return "Server error. Please try again later."
    return error.message
