"""
Guest cart reducers.

Pure functions (CartState, ...) -> CartState. They never fail and never talk
to the network; the authenticated cart lives in RemoteCartStore.
"""
from typing import Any, Optional, Union

from storefront.core.line_items import (
    MAX_QUANTITY,
    clamp_quantity,
    decrement_line_item,
    remove_line_item,
    upsert_line_item,
)
from storefront.schemas.cart import ProductSnapshot
from storefront.client.state import CartState

QuantityAction = Union[str, int, float, None]


def as_product(product: Any) -> ProductSnapshot:
    if isinstance(product, ProductSnapshot):
        return product
    return ProductSnapshot.model_validate(product)


def add_item(cart: CartState, product: Any, quantity: Optional[int] = None) -> CartState:
    """
    Add product to the guest cart and open the cart panel.
    Without an explicit quantity the editable quantity field is used, at least 1.
    """
    snapshot = as_product(product)
    if quantity:
        amount = clamp_quantity(quantity, minimum=1)
    else:
        amount = max(cart.quantity, 1)
    return cart.model_copy(update={
        "guest_items": upsert_line_item(cart.guest_items, snapshot, amount),
        "quantity": max(cart.quantity, 1),
        "show_cart": True,
    })


def remove_item(cart: CartState, product_id: Any) -> CartState:
    return cart.model_copy(update={"guest_items": remove_line_item(cart.guest_items, product_id)})


def decrement_item(cart: CartState, product_id: Any) -> CartState:
    return cart.model_copy(update={"guest_items": decrement_line_item(cart.guest_items, product_id)})


def adjust_quantity(cart: CartState, action: QuantityAction = None, delta: Optional[int] = None) -> CartState:
    """
    Edit the quantity field.

    action: "" resets to 0, "increase"/"decrease" step by one, anything else
    is parsed as an explicit value. delta adds a signed step instead.
    The result is always clamped to [0, 100].
    """
    if delta is not None:
        value = cart.quantity + int(delta)
    elif action == "" or action is None:
        value = 0
    elif action == "increase":
        value = cart.quantity + 1
    elif action == "decrease":
        value = cart.quantity - 1
    else:
        value = action
    return cart.model_copy(update={"quantity": clamp_quantity(value, minimum=0, maximum=MAX_QUANTITY)})


def clear(cart: CartState) -> CartState:
    return cart.model_copy(update={"guest_items": [], "user_items": [], "merged_item_count": 0})


def set_show_cart(cart: CartState, visible: bool) -> CartState:
    return cart.model_copy(update={"show_cart": bool(visible)})
