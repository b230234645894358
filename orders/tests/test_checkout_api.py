from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests
from cart.tests.factories import UserFactory
from catalog.tests.factories import ProductFactory
from orders.gateway import GatewayConfig, MercadoPagoGateway
from orders.models import Order
from orders.tests.factories import OrderFactory, OrderItemFactory
from rest_framework.test import APIClient

pytestmark = pytest.mark.django_db

PREFERENCE = {
    "id": "pref-1",
    "init_point": "https://mp.example/checkout?pref_id=pref-1",
    "sandbox_init_point": "https://sandbox.mp.example/checkout?pref_id=pref-1",
}


def _gateway(payload=None, post_exc=None):
    http = MagicMock(spec=requests.Session)
    resp = MagicMock()
    resp.json.return_value = payload if payload is not None else PREFERENCE
    if post_exc is not None:
        resp.raise_for_status.side_effect = post_exc
    http.post.return_value = resp
    http.get.return_value = resp
    config = GatewayConfig(access_token="TEST-token", base_url="https://shop.example.com", sandbox=True)
    return MercadoPagoGateway(config, session=http)


@pytest.fixture
def user():
    return UserFactory()


@pytest.fixture
def client(user):
    api = APIClient()
    api.force_authenticate(user=user)
    return api


@pytest.fixture
def filled_client(client):
    product = ProductFactory(title="Lamp", price=Decimal("1000.00"), promo_enabled=True, promo_pct=Decimal("25"))
    resp = client.post("/api/v1/cart/items/", {"product_id": str(product.id), "quantity": 2}, format="json")
    assert resp.status_code == 201
    return client


def test_checkout_creates_order_and_returns_sandbox_redirect(filled_client, user):
    with patch("orders.views.get_gateway", return_value=_gateway()):
        resp = filled_client.post("/api/v1/checkout/", {"shipping_method": "pickup"}, format="json")

    assert resp.status_code == 201
    body = resp.json()
    order = Order.objects.get(user=user)
    assert body["order_id"] == order.id
    assert body["preference_id"] == "pref-1"
    assert body["redirect_url"] == PREFERENCE["sandbox_init_point"]
    assert body["env"] == "sandbox"
    assert order.payment_session_id == "pref-1"
    assert order.total_cents == 150000
    assert order.session_key


def test_double_submit_reuses_single_order(filled_client, user):
    with patch("orders.views.get_gateway", return_value=_gateway()):
        r1 = filled_client.post("/api/v1/checkout/", {"shipping_method": "delivery"}, format="json")
        r2 = filled_client.post("/api/v1/checkout/", {"shipping_method": "delivery"}, format="json")

    assert r1.status_code == r2.status_code == 201
    assert r1.json()["order_id"] == r2.json()["order_id"]
    order = Order.objects.get(user=user)
    assert order.attempt_count == 1
    assert order.shipping_fee_cents == 200000


def test_checkout_after_cart_change_abandons_previous_order(filled_client, user):
    other = ProductFactory(title="Desk")
    with patch("orders.views.get_gateway", return_value=_gateway()):
        first = filled_client.post("/api/v1/checkout/", {}, format="json").json()["order_id"]
        filled_client.post("/api/v1/cart/items/", {"product_id": str(other.id)}, format="json")
        second = filled_client.post("/api/v1/checkout/", {}, format="json").json()

    assert second["order_id"] != first
    assert Order.objects.get(pk=first).status == Order.STATUS_ABANDONED
    assert any("abandoned" in w for w in second["warnings"])


def test_checkout_empty_cart_is_structured_error(client):
    resp = client.post("/api/v1/checkout/", {"shipping_method": "pickup"}, format="json")

    assert resp.status_code == 400
    assert resp.json()["kind"] == "empty_cart"
    assert Order.objects.count() == 0


def test_checkout_unknown_shipping_method(filled_client):
    resp = filled_client.post("/api/v1/checkout/", {"shipping_method": "drone"}, format="json")

    assert resp.status_code == 400
    assert resp.json()["kind"] == "invalid_shipping"


def test_gateway_failure_leaves_order_reusable(filled_client, user):
    failing = _gateway(post_exc=requests.ConnectionError("gateway down"))
    with patch("orders.views.get_gateway", return_value=failing):
        resp = filled_client.post("/api/v1/checkout/", {}, format="json")

    assert resp.status_code == 502
    assert resp.json()["kind"] == "gateway_session_error"
    order = Order.objects.get(user=user)
    assert order.status == Order.STATUS_CREATED
    assert order.payment_session_id is None

    with patch("orders.views.get_gateway", return_value=_gateway()):
        retry = filled_client.post("/api/v1/checkout/", {}, format="json")

    assert retry.status_code == 201
    assert retry.json()["order_id"] == order.id
    assert Order.objects.filter(user=user).count() == 1


def test_checkout_requires_authentication():
    resp = APIClient().post("/api/v1/checkout/", {}, format="json")
    assert resp.status_code in (401, 403)


def test_success_return_approves_order_and_empties_cart(filled_client, user):
    with patch("orders.views.get_gateway", return_value=_gateway()):
        order_id = filled_client.post("/api/v1/checkout/", {}, format="json").json()["order_id"]

    payment = _gateway({"id": "pay-1", "status": "approved", "external_reference": str(order_id)})
    with patch("orders.views.get_gateway", return_value=payment):
        resp = filled_client.get(
            "/api/v1/checkout/success/",
            {"collection_id": "pay-1", "collection_status": "approved", "external_reference": str(order_id)},
        )

    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"
    assert resp.json()["payment_reference_id"] == "pay-1"
    assert payment.http.get.call_args.args[0].endswith("/v1/payments/pay-1")
    assert filled_client.get("/api/v1/cart/").json()["items"] == []


def test_success_return_uses_status_reported_by_gateway(client, user):
    order = OrderFactory(user=user)
    payment = _gateway({"id": "pay-2", "status": "in_process", "external_reference": str(order.id)})

    with patch("orders.views.get_gateway", return_value=payment):
        resp = client.get(
            "/api/v1/checkout/success/",
            {"payment_id": "pay-2", "status": "approved", "external_reference": str(order.id)},
        )

    assert resp.json()["status"] == Order.STATUS_PENDING


def test_anonymous_approval_without_payment_leaves_order_open():
    order = OrderFactory()

    with patch("orders.views.get_gateway") as factory:
        resp = APIClient().get("/api/v1/checkout/success/", {"external_reference": str(order.id), "status": "approved"})

    assert resp.status_code == 200
    assert resp.json()["changed"] is False
    factory.assert_not_called()
    order.refresh_from_db()
    assert order.status == Order.STATUS_CREATED
    assert order.payment_reference_id is None


def test_approval_for_payment_of_another_order_is_ignored(client, user):
    order = OrderFactory(user=user)
    other = OrderFactory()
    payment = _gateway({"id": "pay-3", "status": "approved", "external_reference": str(other.id)})

    with patch("orders.views.get_gateway", return_value=payment):
        client.get(
            "/api/v1/checkout/success/",
            {"payment_id": "pay-3", "status": "approved", "external_reference": str(order.id)},
        )

    order.refresh_from_db()
    other.refresh_from_db()
    assert order.status == Order.STATUS_CREATED
    assert order.payment_reference_id is None
    assert other.status == Order.STATUS_CREATED


def test_approval_is_not_applied_when_gateway_is_down(client, user):
    order = OrderFactory(user=user)
    failing = _gateway(post_exc=requests.ConnectionError("gateway down"))

    with patch("orders.views.get_gateway", return_value=failing):
        resp = client.get(
            "/api/v1/checkout/success/",
            {"payment_id": "pay-4", "status": "approved", "external_reference": str(order.id)},
        )

    assert resp.status_code == 200
    order.refresh_from_db()
    assert order.status == Order.STATUS_CREATED


def test_failure_return_from_another_caller_is_ignored():
    order = OrderFactory()

    APIClient().get("/api/v1/checkout/failure/", {"external_reference": str(order.id)})

    order.refresh_from_db()
    assert order.status == Order.STATUS_CREATED


def test_null_status_falls_back_to_route_default(client, user):
    order = OrderFactory(user=user)

    resp = client.get(
        "/api/v1/checkout/failure/",
        {"external_reference": str(order.id), "status": "null", "collection_status": "null", "payment_id": "null"},
    )

    assert resp.json()["status"] == Order.STATUS_REJECTED
    order.refresh_from_db()
    assert order.payment_reference_id is None


def test_stale_pending_return_after_approval_is_ignored(client, user):
    order = OrderFactory(user=user, status=Order.STATUS_APPROVED)

    resp = client.get("/api/v1/checkout/pending/", {"external_reference": str(order.id)})

    assert resp.status_code == 200
    assert resp.json()["status"] == "approved"
    assert resp.json()["changed"] is False


@pytest.mark.parametrize(
    "route,expected",
    [("success", Order.STATUS_CREATED), ("pending", Order.STATUS_PENDING), ("failure", Order.STATUS_REJECTED)],
)
def test_return_route_default_applies_without_status(client, user, route, expected):
    order = OrderFactory(user=user)

    client.get(f"/api/v1/checkout/{route}/", {"external_reference": str(order.id)})

    order.refresh_from_db()
    assert order.status == expected


def test_return_for_unknown_order_is_404(client):
    resp = client.get("/api/v1/checkout/failure/", {"external_reference": "424242"})

    assert resp.status_code == 404
    assert resp.json()["kind"] == "order_not_found"


def test_webhook_fetches_payment_and_reconciles():
    order = OrderFactory(status=Order.STATUS_PENDING)
    gateway = _gateway({"id": 987, "status": "approved", "external_reference": str(order.id)})

    with patch("orders.views.get_gateway", return_value=gateway):
        resp = APIClient().post(
            "/api/v1/checkout/webhooks/payment/", {"type": "payment", "data": {"id": "987"}}, format="json"
        )

    assert resp.status_code == 200
    order.refresh_from_db()
    assert order.status == Order.STATUS_APPROVED
    assert order.payment_reference_id == "987"
    assert gateway.http.get.call_args.args[0].endswith("/v1/payments/987")


def test_webhook_ignores_other_topics():
    with patch("orders.views.get_gateway") as factory:
        resp = APIClient().post(
            "/api/v1/checkout/webhooks/payment/", {"type": "merchant_order", "data": {"id": "1"}}, format="json"
        )

    assert resp.status_code == 200
    assert resp.json() == {"status": "ignored"}
    factory.assert_not_called()


def test_webhook_unknown_order_is_404():
    gateway = _gateway({"id": 1, "status": "approved", "external_reference": "31337"})
    with patch("orders.views.get_gateway", return_value=gateway):
        resp = APIClient().post("/api/v1/checkout/webhooks/payment/", {"type": "payment", "data": {"id": "1"}}, format="json")

    assert resp.status_code == 404
    assert resp.json()["kind"] == "order_not_found"


def test_order_list_and_detail_are_owner_scoped(client, user):
    mine = OrderFactory(user=user, status=Order.STATUS_APPROVED, total_cents=150000)
    OrderItemFactory(order=mine, title="Lamp", unit_base_cents=100000, unit_final_cents=75000, quantity=2)
    OrderFactory(user=user, status=Order.STATUS_ABANDONED)
    theirs = OrderFactory()

    listed = client.get("/api/v1/orders/", {"status": "approved"})
    assert listed.status_code == 200
    assert [o["id"] for o in listed.json()["results"]] == [mine.id]

    detail = client.get(f"/api/v1/orders/{mine.id}/").json()
    assert detail["total"] == "1500.00"
    assert detail["items"][0]["unit_price"] == "750.00"
    assert detail["items"][0]["line_subtotal"] == "1500.00"

    assert client.get(f"/api/v1/orders/{theirs.id}/").status_code == 404
