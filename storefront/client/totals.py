"""Cart totals, always derived from the authoritative line item list"""
from typing import Iterable, List

from storefront.schemas.cart import CartLineItem, CartTotals
from storefront.client.state import AppState


def compute_totals(items: Iterable[CartLineItem]) -> CartTotals:
    total = 0
    amount = 0.0
    for item in items:
        total += item.quantity
        amount += item.item_total
    return CartTotals(total=total, amount_total=round(amount, 2))


def authoritative_items(state: AppState) -> List[CartLineItem]:
    """User cart once it has been loaded for the signed in user, guest cart otherwise"""
    if state.session.is_authenticated and state.cart.last_synced is not None:
        return state.cart.user_items
    return state.cart.guest_items
