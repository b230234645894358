from copy import deepcopy
from decimal import Decimal

import pytest
from cart.models import Cart
from cart.services import (
    CartError,
    add_item,
    clear_cart,
    consume_adjustments,
    recompute,
    remove_item,
    set_quantity,
)
from cart.tests.factories import ProductRecordFactory
from common.money import from_cents


def test_add_item_applies_promotion_and_totals():
    # price 1000 with a 25% promotion, two units
    product = ProductRecordFactory(price=Decimal("1000"), promo_enabled=True, promo_pct=Decimal("25"))
    cart = add_item(Cart(), product, 2)

    item = cart.items[0]
    assert from_cents(item.unit_final_cents) == Decimal("750.00")
    assert from_cents(item.line_subtotal_cents) == Decimal("1500.00")
    assert from_cents(cart.discount_cents) == Decimal("500.00")
    assert from_cents(cart.subtotal_cents) == Decimal("2000.00")
    assert from_cents(cart.total_cents) == Decimal("1500.00")
    assert cart.item_count == 2


def test_promotion_ignored_when_flag_disabled():
    product = ProductRecordFactory(price=Decimal("19.99"), promo_enabled=False, promo_pct=Decimal("50"))
    cart = add_item(Cart(), product)

    assert cart.items[0].unit_final_cents == 1999
    assert cart.discount_cents == 0


def test_add_item_merges_existing_line_and_clamps_to_stock():
    product = ProductRecordFactory(stock=5)
    cart = add_item(Cart(), product, 3)
    cart = add_item(cart, product, 4)

    assert len(cart.items) == 1
    assert cart.items[0].quantity == 5


@pytest.mark.parametrize("stock,requested", [(1, 1), (1, 7), (3, 2), (3, 3), (3, 50), (10, 1)])
def test_add_item_quantity_always_within_stock(stock, requested):
    cart = add_item(Cart(), ProductRecordFactory(stock=stock), requested)

    assert 1 <= cart.items[0].quantity <= stock


@pytest.mark.parametrize(
    "overrides,code",
    [
        ({"id": None}, CartError.INVALID_PRODUCT),
        ({"id": ""}, CartError.INVALID_PRODUCT),
        ({"active": False}, CartError.NOT_ACTIVE),
        ({"stock": 0}, CartError.OUT_OF_STOCK),
    ],
)
def test_add_item_rejects_unusable_products(overrides, code):
    cart = Cart()
    with pytest.raises(CartError) as exc:
        add_item(cart, ProductRecordFactory(**overrides))
    assert exc.value.code == code
    assert cart.items == []


@pytest.mark.parametrize("quantity", [0, -2, "abc", None])
def test_add_item_rejects_invalid_quantity(quantity):
    with pytest.raises(CartError) as exc:
        add_item(Cart(), ProductRecordFactory(), quantity)
    assert exc.value.code == CartError.INVALID_QUANTITY


def test_add_item_rejects_missing_product():
    with pytest.raises(CartError) as exc:
        add_item(Cart(), None)
    assert exc.value.code == CartError.INVALID_PRODUCT


def test_set_quantity_unknown_line_is_noop():
    cart = add_item(Cart(), ProductRecordFactory(id="1"))
    before = deepcopy(cart)

    set_quantity(cart, "999", 4)

    assert cart == before


def test_set_quantity_below_one_removes_line():
    cart = add_item(Cart(), ProductRecordFactory(id="1"), 2)

    set_quantity(cart, "1", 0)

    assert cart.is_empty
    assert cart.total_cents == 0
    assert cart.removed == []


def test_set_quantity_prefers_fresh_stock_over_snapshot():
    cart = add_item(Cart(), ProductRecordFactory(id="1", stock=10), 2)

    set_quantity(cart, "1", 8, ProductRecordFactory(id="1", stock=4))

    assert cart.items[0].quantity == 4
    assert cart.items[0].stock == 4
    assert cart.items[0].adjusted is True


def test_set_quantity_clamps_to_snapshot_without_fresh_record():
    cart = add_item(Cart(), ProductRecordFactory(id="1", stock=3), 1)

    set_quantity(cart, "1", 3)
    assert cart.items[0].quantity == 3
    assert cart.items[0].adjusted is False

    set_quantity(cart, "1", 9)
    assert cart.items[0].quantity == 3


def test_set_quantity_rejects_garbage():
    cart = add_item(Cart(), ProductRecordFactory(id="1"))
    with pytest.raises(CartError):
        set_quantity(cart, "1", "lots")


def test_remove_and_clear_recompute_totals():
    cart = add_item(Cart(), ProductRecordFactory(id="1", price=Decimal("10")), 1)
    cart = add_item(cart, ProductRecordFactory(id="2", price=Decimal("5")), 2)
    assert cart.total_cents == 2000

    remove_item(cart, "1")
    assert [it.product_id for it in cart.items] == ["2"]
    assert cart.total_cents == 1000
    assert cart.item_count == 2

    clear_cart(cart)
    assert cart.is_empty
    assert (cart.subtotal_cents, cart.discount_cents, cart.total_cents, cart.item_count) == (0, 0, 0, 0)


def test_recompute_with_fresh_products_updates_prices_and_flags_clamps():
    cart = add_item(Cart(), ProductRecordFactory(id="1", price=Decimal("10"), stock=10), 6)
    cart = add_item(cart, ProductRecordFactory(id="2", price=Decimal("4"), stock=10), 1)

    recompute(
        cart,
        {
            "1": ProductRecordFactory(id="1", price=Decimal("12"), stock=2),
            "2": ProductRecordFactory(id="2", stock=0),
        },
    )

    assert [it.product_id for it in cart.items] == ["1"]
    assert cart.items[0].quantity == 2
    assert cart.items[0].adjusted is True
    assert cart.items[0].unit_base_cents == 1200
    assert cart.removed == ["2"]
    assert cart.total_cents == 2400


def test_recompute_drops_deactivated_products():
    cart = add_item(Cart(), ProductRecordFactory(id="1"), 1)

    recompute(cart, {"1": ProductRecordFactory(id="1", active=False)})

    assert cart.is_empty
    assert cart.removed == ["1"]


def test_recompute_keeps_snapshot_for_products_missing_from_lookup():
    cart = add_item(Cart(), ProductRecordFactory(id="1", price=Decimal("10")), 2)

    recompute(cart, {})

    assert cart.items[0].unit_base_cents == 1000
    assert cart.total_cents == 2000


def test_recompute_is_idempotent():
    cart = add_item(Cart(), ProductRecordFactory(id="1", promo_enabled=True, promo_pct=Decimal("33")), 3)
    cart = add_item(cart, ProductRecordFactory(id="2", price=Decimal("0.99")), 7)
    fresh = {"1": ProductRecordFactory(id="1", stock=2, promo_enabled=True, promo_pct=Decimal("33"))}

    recompute(cart, fresh)
    first = deepcopy(cart)
    recompute(cart, fresh)

    assert cart == first


def test_consume_adjustments_reports_once():
    cart = add_item(Cart(), ProductRecordFactory(id="1", title="Lamp", stock=5), 5)
    cart = add_item(cart, ProductRecordFactory(id="2"), 1)
    recompute(
        cart,
        {"1": ProductRecordFactory(id="1", title="Lamp", stock=1), "2": ProductRecordFactory(id="2", stock=0)},
    )

    warnings = consume_adjustments(cart)

    assert len(warnings) == 2
    assert "Lamp" in warnings[0]
    assert consume_adjustments(cart) == []


def test_cart_round_trips_through_session_dict():
    cart = add_item(Cart(), ProductRecordFactory(id="1", promo_enabled=True, promo_pct=Decimal("10")), 2)

    assert Cart.from_dict(cart.to_dict()) == cart
    assert Cart.from_dict(None) == Cart()


def test_summary_uses_decimal_strings_and_null_promo():
    cart = add_item(Cart(), ProductRecordFactory(id="1", price=Decimal("10")), 1)

    summary = cart.summary()

    assert summary["items"][0]["unit_price"] == "10.00"
    assert summary["items"][0]["promo_price"] is None
    assert summary["total"] == "10.00"
    assert summary["item_count"] == 1
