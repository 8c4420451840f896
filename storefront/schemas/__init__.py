from storefront.schemas.user import (
    UserCreate,
    UserResponse,
)
from storefront.schemas.cart import (
    ProductSnapshot,
    CartLineItem,
    CartCreate,
    CartUpdate,
    CartResponse,
    CartTotals,
)
from storefront.schemas.auth import (
    LoginRequest,
    LoginResponse,
    RefreshResponse,
    LogoutResponse,
    TokenData,
)

__all__ = [
    "UserCreate",
    "UserResponse",
    "ProductSnapshot",
    "CartLineItem",
    "CartCreate",
    "CartUpdate",
    "CartResponse",
    "CartTotals",
    "LoginRequest",
    "LoginResponse",
    "RefreshResponse",
    "LogoutResponse",
    "TokenData",
]
