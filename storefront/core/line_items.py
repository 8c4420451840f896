"""
Line item rules shared by the cart service and the storefront client.

Every function here is pure: it takes a list of CartLineItem and returns a new
list. itemTotal is always recomputed from the product snapshot's regular
(undiscounted) price, never patched incrementally.
"""
import logging
import math
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError

from storefront.schemas.cart import CartLineItem, ProductSnapshot

logger = logging.getLogger(__name__)

MAX_QUANTITY = 100


def clamp_quantity(value: Any, minimum: int = 0, maximum: int = MAX_QUANTITY) -> int:
    """Coerce to an integer and clamp into [minimum, maximum]; junk becomes minimum"""
    if isinstance(value, int):
        return max(minimum, min(value, maximum))
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return minimum
    if math.isnan(number):
        return minimum
    if math.isinf(number):
        return maximum if number > 0 else minimum
    return max(minimum, min(int(math.floor(number)), maximum))


def product_price(product: Optional[ProductSnapshot]) -> float:
    # Always the regular price, discounts are not applied to cart totals
    if product is None:
        return 0.0
    return float(product.price or 0)


def line_total(product: ProductSnapshot, quantity: int) -> float:
    return round(product_price(product) * quantity, 2)


def make_line_item(product: ProductSnapshot, quantity: int) -> CartLineItem:
    quantity = clamp_quantity(quantity, minimum=1)
    return CartLineItem(
        id=product.id,
        product=product,
        quantity=quantity,
        item_total=line_total(product, quantity),
    )


def find_line_item(items: Iterable[CartLineItem], product_id: str) -> Optional[CartLineItem]:
    product_id = str(product_id)
    for item in items:
        if item.id == product_id:
            return item
    return None


def upsert_line_item(
    items: Iterable[CartLineItem], product: ProductSnapshot, quantity: int
) -> List[CartLineItem]:
    """
    Add quantity of product, merging with an existing line for the same product id.
    The stored snapshot is replaced by the given product so the total stays
    derivable from what is stored.
    """
    updated = []
    found = False
    for item in items:
        if item.id == product.id and not found:
            new_quantity = clamp_quantity(item.quantity + quantity, minimum=1)
            updated.append(make_line_item(product, new_quantity))
            found = True
        else:
            updated.append(item)
    if not found:
        updated.append(make_line_item(product, quantity))
    return updated


def remove_line_item(items: Iterable[CartLineItem], product_id: str) -> List[CartLineItem]:
    product_id = str(product_id)
    return [item for item in items if item.id != product_id]


def decrement_line_item(items: Iterable[CartLineItem], product_id: str) -> List[CartLineItem]:
    """Reduce quantity by one, dropping the line when it would reach zero"""
    product_id = str(product_id)
    updated = []
    for item in items:
        if item.id != product_id:
            updated.append(item)
        elif item.quantity > 1:
            updated.append(make_line_item(item.product, item.quantity - 1))
    return updated


def _coerce_line_item(raw: Any) -> Optional[CartLineItem]:
    if isinstance(raw, CartLineItem):
        return make_line_item(raw.product, raw.quantity)
    if not isinstance(raw, dict):
        return None

    quantity = raw.get("quantity")
    if isinstance(quantity, bool) or not isinstance(quantity, (int, float)) or quantity <= 0:
        return None
    if not raw.get("id") or not isinstance(raw.get("product"), dict):
        return None

    try:
        product = ProductSnapshot.model_validate({"id": raw["id"], **raw["product"]})
    except ValidationError:
        return None
    return make_line_item(product, clamp_quantity(quantity, minimum=1))


def clean_line_items(raw_items: Any) -> List[CartLineItem]:
    """
    Validate untrusted line items: drop malformed entries, clamp quantities to
    [1, 100], recompute totals and fold duplicate product ids into one line.
    """
    if not isinstance(raw_items, (list, tuple)):
        return []

    cleaned: List[CartLineItem] = []
    dropped = 0
    for raw in raw_items:
        item = _coerce_line_item(raw)
        if item is None:
            dropped += 1
            continue
        cleaned = upsert_line_item(cleaned, item.product, item.quantity)

    if dropped:
        logger.warning(f"[CART] Dropped {dropped} malformed line item(s)")
    return cleaned


def dump_line_items(items: Iterable[CartLineItem]) -> List[dict]:
    """Serialize to the JSON wire shape (itemTotal alias, product snapshot extras kept)"""
    return [item.model_dump(mode="json", by_alias=True) for item in items]
