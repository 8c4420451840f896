from storefront.models.user import User
from storefront.models.cart import Cart

__all__ = [
    "User",
    "Cart",
]
