"""Order services: cart fingerprinting, order materialization and checkout.

``materialize_order`` turns the session cart into a durable ``Order`` and is
safe to call repeatedly: an unchanged cart reuses the open order instead of
creating a new one.
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

from cart.models import Cart
from common.choices import ShippingMethod
from common.money import to_cents
from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from .gateway import GatewaySessionError, MercadoPagoGateway
from .models import Order, OrderItem

logger = logging.getLogger("storefront.orders")


class CheckoutError(Exception):
    """Checkout precondition or gateway failure. ``kind`` names the failure."""

    EMPTY_CART = "empty_cart"
    MISSING_USER = "missing_user"
    INVALID_SHIPPING = "invalid_shipping"
    GATEWAY_SESSION_ERROR = "gateway_session_error"

    def __init__(self, kind: str, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


@dataclass
class Materialization:
    order: Order
    created: bool = False
    reused: bool = False
    warnings: list[str] = field(default_factory=list)


@dataclass
class CheckoutResult:
    order: Order
    preference_id: str
    redirect_url: str
    init_point: str
    sandbox_init_point: str
    env: str
    warnings: list[str] = field(default_factory=list)


def shipping_fee_cents(shipping_method) -> int:
    """Return the fee for a shipping method, rejecting unknown methods."""

    if shipping_method == ShippingMethod.PICKUP:
        return 0
    if shipping_method == ShippingMethod.DELIVERY:
        return to_cents(getattr(settings, "SHIPPING_DELIVERY_FEE", "2000.00"))
    raise CheckoutError(CheckoutError.INVALID_SHIPPING, f"Unknown shipping method: {shipping_method!r}.")


def compute_fingerprint(cart: Cart, shipping_method: str, fee_cents: int) -> str:
    """Return a SHA-256 digest of the cart lines (in order) and the shipping choice.

    Uses a sorted-keys compact JSON representation so that equal carts hash
    identically regardless of when they are computed.
    """

    payload = {
        "items": [[it.product_id, it.title, int(it.unit_final_cents), int(it.quantity)] for it in cart.items],
        "shipping_method": str(shipping_method),
        "shipping_fee_cents": int(fee_cents),
    }
    raw = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def _ttl() -> timedelta:
    return timedelta(hours=int(getattr(settings, "ORDER_TTL_HOURS", 24)))


def _write_snapshot(order: Order, cart: Cart, fee_cents: int) -> None:
    """Freeze cart lines and totals onto the order, replacing any prior snapshot."""

    order.subtotal_cents = cart.subtotal_cents
    order.discount_cents = cart.discount_cents
    order.shipping_fee_cents = fee_cents
    order.total_cents = cart.subtotal_cents - cart.discount_cents + fee_cents
    order.items.all().delete()
    OrderItem.objects.bulk_create(
        [
            OrderItem(
                order=order,
                product_id=it.product_id,
                title=it.title,
                unit_base_cents=it.unit_base_cents,
                unit_final_cents=it.unit_final_cents,
                quantity=it.quantity,
                line_subtotal_cents=it.line_subtotal_cents,
            )
            for it in cart.items
        ]
    )


def _supersede(order: Order, status: str) -> str:
    prev = order.status
    order.status = status
    order.save(update_fields=["status", "updated_at"])
    logger.info(
        "order.status_changed",
        extra={
            "event": "order.status_changed",
            "order_id": order.id,
            "user_id": order.user_id,
            "status_from": prev,
            "status_to": status,
        },
    )
    reason = "expired" if status == Order.STATUS_EXPIRED else "cart changed"
    return f"Order {order.id} {status}: {reason}."


def _materialize(*, user, cart, shipping_method, fee_cents, fingerprint, shipping_address_id, session_key, now):
    warnings = []
    open_order = (
        Order.objects.select_for_update()
        .filter(user=user, status=Order.STATUS_CREATED)
        .order_by("-created_at", "-id")
        .first()
    )
    if open_order is not None:
        if open_order.expires_at is not None and open_order.expires_at <= now:
            warnings.append(_supersede(open_order, Order.STATUS_EXPIRED))
        elif open_order.cart_fingerprint != fingerprint:
            warnings.append(_supersede(open_order, Order.STATUS_ABANDONED))
        else:
            open_order.attempt_count += 1
            open_order.last_attempt_at = now
            open_order.shipping_method = shipping_method
            open_order.shipping_address_id = shipping_address_id
            if session_key:
                open_order.session_key = session_key
            _write_snapshot(open_order, cart, fee_cents)
            open_order.save()
            logger.info(
                "order.reused",
                extra={"event": "order.reused", "order_id": open_order.id, "attempt_count": open_order.attempt_count},
            )
            return Materialization(order=open_order, reused=True, warnings=warnings)

    order = Order.objects.create(
        user=user,
        status=Order.STATUS_CREATED,
        shipping_method=shipping_method,
        shipping_address_id=shipping_address_id,
        cart_fingerprint=fingerprint,
        session_key=session_key,
        attempt_count=0,
        expires_at=now + _ttl(),
    )
    _write_snapshot(order, cart, fee_cents)
    order.save()
    logger.info(
        "order.created",
        extra={"event": "order.created", "order_id": order.id, "user_id": order.user_id, "total_cents": order.total_cents},
    )
    return Materialization(order=order, created=True, warnings=warnings)


def materialize_order(
    *,
    user,
    cart: Cart,
    shipping_method: str,
    shipping_address_id: Optional[str] = None,
    session_key: Optional[str] = None,
    now=None,
) -> Materialization:
    """Create or reuse the user's open order for the given cart.

    - No open order: create one in ``created`` status with a fresh snapshot.
    - Open order past ``expires_at``: mark it ``expired`` and create a new one.
    - Open order with a different fingerprint: mark it ``abandoned`` and create a new one.
    - Same fingerprint: bump ``attempt_count``, refresh the snapshot in place and return it.

    A concurrent submission that trips ``uniq_created_order_per_user`` is
    retried once as a reuse lookup.
    """

    if user is None or getattr(user, "pk", None) is None:
        raise CheckoutError(CheckoutError.MISSING_USER, "A signed-in user is required to check out.")
    if cart is None or cart.is_empty:
        raise CheckoutError(CheckoutError.EMPTY_CART, "The cart is empty.")
    fee = shipping_fee_cents(shipping_method)
    fingerprint = compute_fingerprint(cart, shipping_method, fee)
    now = now or timezone.now()
    kwargs = dict(
        user=user,
        cart=cart,
        shipping_method=str(shipping_method),
        fee_cents=fee,
        fingerprint=fingerprint,
        shipping_address_id=shipping_address_id or None,
        session_key=session_key,
        now=now,
    )

    try:
        with transaction.atomic():
            return _materialize(**kwargs)
    except IntegrityError:
        logger.warning("order.materialize_conflict", extra={"event": "order.materialize_conflict", "user_id": user.pk})
    with transaction.atomic():
        return _materialize(**kwargs)


def start_checkout(
    *,
    user,
    cart: Cart,
    shipping_method: str,
    shipping_address_id: Optional[str] = None,
    session_key: Optional[str] = None,
    gateway: Optional[MercadoPagoGateway] = None,
) -> CheckoutResult:
    """Materialize the order and open a payment session for it.

    Gateway failures raise ``CheckoutError`` and leave the order in ``created``
    so the next attempt reuses it.
    """

    result = materialize_order(
        user=user,
        cart=cart,
        shipping_method=shipping_method,
        shipping_address_id=shipping_address_id,
        session_key=session_key,
    )
    order = result.order
    gateway = gateway or MercadoPagoGateway.from_settings()
    try:
        session = gateway.create_preference(order)
    except GatewaySessionError as exc:
        logger.warning(
            "checkout.gateway_failed",
            extra={"event": "checkout.gateway_failed", "order_id": order.id, "error": str(exc)},
        )
        raise CheckoutError(CheckoutError.GATEWAY_SESSION_ERROR, str(exc)) from exc

    order.payment_session_id = session.id
    order.save(update_fields=["payment_session_id", "updated_at"])
    logger.info(
        "checkout.started",
        extra={"event": "checkout.started", "order_id": order.id, "preference_id": session.id},
    )
    return CheckoutResult(
        order=order,
        preference_id=session.id,
        redirect_url=gateway.redirect_url(session),
        init_point=session.init_point,
        sandbox_init_point=session.sandbox_init_point,
        env=gateway.config.env,
        warnings=result.warnings,
    )
