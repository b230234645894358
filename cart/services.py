"""Cart services: mutations on the session-held cart.

Every operation takes the cart, mutates it, runs a full recompute and returns
it. Persisting the result is the caller's job (see ``cart.storage``).
"""

import logging
from typing import Mapping, Optional

from catalog.models import ProductRecord
from common.money import promo_price_cents, to_cents

from .models import Cart, LineItem

logger = logging.getLogger("storefront.cart")


class CartError(Exception):
    """Raised for cart mutation failures. ``code`` names the failure kind."""

    INVALID_PRODUCT = "invalid_product"
    NOT_ACTIVE = "not_active"
    OUT_OF_STOCK = "out_of_stock"
    INVALID_QUANTITY = "invalid_quantity"

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def _parse_quantity(quantity) -> int:
    try:
        return int(quantity)
    except (TypeError, ValueError):
        raise CartError(CartError.INVALID_QUANTITY, "Invalid quantity.")


def _record_stock(product: ProductRecord) -> int:
    if not product.active:
        return 0
    return max(int(product.stock or 0), 0)


def _apply_record(item: LineItem, product: ProductRecord) -> None:
    """Refresh the item's price/stock snapshot from a product record."""

    base = to_cents(product.price)
    item.title = product.title or item.title
    item.image_url = product.image_url or item.image_url
    item.unit_base_cents = base
    item.unit_final_cents = promo_price_cents(base, product.promo_enabled, product.promo_pct)
    item.stock = _record_stock(product)


def recompute(cart: Cart, products: Optional[Mapping[str, ProductRecord]] = None) -> Cart:
    """Re-derive every line and the cart totals.

    With ``products`` (``{product_id: ProductRecord}``) each line found there
    is refreshed; other lines keep their snapshot. Quantities above the
    resolved stock are lowered and flagged ``adjusted``; lines left with no
    stock or no quantity are dropped and their ids appended to
    ``cart.removed``. Running it twice in a row yields the same cart.
    """

    subtotal = discount = count = 0
    kept = []
    for item in cart.items:
        fresh = products.get(item.product_id) if products else None
        if fresh is not None:
            _apply_record(item, fresh)
        item.stock = max(int(item.stock), 0)
        item.unit_final_cents = min(max(item.unit_final_cents, 0), item.unit_base_cents)
        if 0 < item.stock < item.quantity:
            item.quantity = item.stock
            item.adjusted = True
        if item.stock <= 0 or item.quantity <= 0:
            if item.product_id not in cart.removed:
                cart.removed.append(item.product_id)
            continue
        subtotal += item.unit_base_cents * item.quantity
        discount += item.line_discount_cents
        count += item.quantity
        kept.append(item)

    cart.items = kept
    cart.subtotal_cents = subtotal
    cart.discount_cents = discount
    cart.total_cents = max(subtotal - discount, 0)
    cart.item_count = count
    if any(it.adjusted for it in kept) or cart.removed:
        logger.info(
            "cart.adjusted",
            extra={
                "event": "cart.adjusted",
                "adjusted": [it.product_id for it in kept if it.adjusted],
                "removed": list(cart.removed),
            },
        )
    return cart


def add_item(cart: Cart, product: ProductRecord, quantity=1) -> Cart:
    """Add ``quantity`` units of ``product``, merging with an existing line.

    The resulting line quantity is clamped to the product's current stock.
    """

    if product is None or not product.id:
        raise CartError(CartError.INVALID_PRODUCT, "Invalid product.")
    if not product.active:
        raise CartError(CartError.NOT_ACTIVE, "The product is not active.")
    stock = _record_stock(product)
    if stock <= 0:
        raise CartError(CartError.OUT_OF_STOCK, "The product is out of stock.")
    qty = _parse_quantity(quantity)
    if qty <= 0:
        raise CartError(CartError.INVALID_QUANTITY, "Quantity must be positive.")

    product_id = str(product.id)
    item = cart.find(product_id)
    if item is not None:
        _apply_record(item, product)
        item.quantity = min(item.quantity + qty, stock)
        event = "cart.item_updated"
    else:
        item = LineItem(
            product_id=product_id,
            title=product.title or "Product",
            unit_base_cents=0,
            unit_final_cents=0,
            quantity=min(qty, stock),
            stock=stock,
        )
        _apply_record(item, product)
        cart.items.append(item)
        event = "cart.item_added"

    recompute(cart)
    logger.info(event, extra={"event": event, "product_id": product_id, "quantity": item.quantity})
    return cart


def set_quantity(cart: Cart, product_id, quantity, product: Optional[ProductRecord] = None) -> Cart:
    """Set a line's quantity; below 1 removes the line.

    The quantity is clamped to ``product.stock`` when a fresh record is given,
    otherwise to the stock snapshot. Unknown lines are left alone.
    """

    item = cart.find(product_id)
    if item is None:
        return cart
    qty = _parse_quantity(quantity)
    if qty < 1:
        return remove_item(cart, product_id)

    if product is not None:
        _apply_record(item, product)
    ceiling = max(item.stock, 0)
    item.quantity = min(qty, ceiling)
    if item.quantity < qty:
        item.adjusted = True
    recompute(cart)
    logger.info(
        "cart.item_updated",
        extra={"event": "cart.item_updated", "product_id": item.product_id, "quantity": item.quantity},
    )
    return cart


def remove_item(cart: Cart, product_id) -> Cart:
    product_id = str(product_id)
    before = len(cart.items)
    cart.items = [it for it in cart.items if it.product_id != product_id]
    recompute(cart)
    if len(cart.items) != before:
        logger.info("cart.item_removed", extra={"event": "cart.item_removed", "product_id": product_id})
    return cart


def clear_cart(cart: Cart) -> Cart:
    cart.items = []
    cart.removed = []
    recompute(cart)
    logger.info("cart.cleared", extra={"event": "cart.cleared"})
    return cart


def consume_adjustments(cart: Cart) -> list[str]:
    """Return user-facing warnings for the last recompute and reset the flags."""

    warnings = []
    for item in cart.items:
        if item.adjusted:
            warnings.append(f'Quantity of "{item.title}" was lowered to {item.quantity} to match available stock.')
            item.adjusted = False
    if cart.removed:
        count = len(cart.removed)
        warnings.append(f"{count} product(s) are no longer available and were removed from your cart.")
        cart.removed = []
    return warnings
