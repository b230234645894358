from decimal import Decimal

from cart.services import set_quantity
from orders.services import compute_fingerprint
from orders.tests.factories import build_cart


def _cart():
    return build_cart(
        ({"id": "1", "title": "Lamp", "price": Decimal("10")}, 2),
        ({"id": "2", "title": "Desk", "price": Decimal("99.90")}, 1),
    )


def test_fingerprint_is_deterministic():
    cart = _cart()

    first = compute_fingerprint(cart, "pickup", 0)

    assert first == compute_fingerprint(cart, "pickup", 0)
    assert first == compute_fingerprint(_cart(), "pickup", 0)
    assert len(first) == 64


def test_fingerprint_changes_with_quantity():
    cart = _cart()
    before = compute_fingerprint(cart, "pickup", 0)

    set_quantity(cart, "1", 3)

    assert compute_fingerprint(cart, "pickup", 0) != before


def test_fingerprint_changes_with_price_item_set_and_shipping():
    base = compute_fingerprint(_cart(), "pickup", 0)
    repriced = build_cart(
        ({"id": "1", "title": "Lamp", "price": Decimal("10.01")}, 2),
        ({"id": "2", "title": "Desk", "price": Decimal("99.90")}, 1),
    )
    fewer = build_cart(({"id": "1", "title": "Lamp", "price": Decimal("10")}, 2))

    assert compute_fingerprint(repriced, "pickup", 0) != base
    assert compute_fingerprint(fewer, "pickup", 0) != base
    assert compute_fingerprint(_cart(), "delivery", 200000) != base
    assert compute_fingerprint(_cart(), "pickup", 100) != base


def test_fingerprint_depends_on_line_order():
    swapped = build_cart(
        ({"id": "2", "title": "Desk", "price": Decimal("99.90")}, 1),
        ({"id": "1", "title": "Lamp", "price": Decimal("10")}, 2),
    )

    assert compute_fingerprint(swapped, "pickup", 0) != compute_fingerprint(_cart(), "pickup", 0)
