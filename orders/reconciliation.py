"""Map payment gateway outcomes onto order status transitions.

Inbound signals (return-URL visits and webhooks) are matched to an order by
its id, echoed back as the gateway's external reference, falling back to the
payment session id. Terminal orders never change status; their payment
identifiers are still refreshed. A payment session id is only recorded on
an order that has none.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from cart.storage import clear_cart_for_session_key
from django.db import transaction

from .models import Order

logger = logging.getLogger("storefront.orders")

ORDER_NOT_FOUND = "order_not_found"

GATEWAY_STATUS_MAP = {
    "approved": Order.STATUS_APPROVED,
    "pending": Order.STATUS_PENDING,
    "in_process": Order.STATUS_PENDING,
    "in_mediation": Order.STATUS_PENDING,
    "authorized": Order.STATUS_PENDING,
    "rejected": Order.STATUS_REJECTED,
    "cancelled": Order.STATUS_REJECTED,
    "refunded": Order.STATUS_REJECTED,
    "charged_back": Order.STATUS_REJECTED,
    "failure": Order.STATUS_REJECTED,
}

# Statuses a payment signal may still move
OPEN_STATUSES = {Order.STATUS_CREATED, Order.STATUS_PENDING}


@dataclass
class Reconciliation:
    order: Optional[Order] = None
    status_from: Optional[str] = None
    status_to: Optional[str] = None
    changed: bool = False
    cart_cleared: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def map_gateway_status(status) -> Optional[str]:
    """Return the order status for a gateway outcome, or None when unknown."""
    if not status:
        return None
    return GATEWAY_STATUS_MAP.get(str(status).strip().lower())


def find_order(order_ref, payment_session_id, *, for_update: bool = False) -> Optional[Order]:
    """Resolve an order by its id, falling back to the payment session id."""

    qs = Order.objects.select_for_update() if for_update else Order.objects.all()
    if order_ref:
        try:
            order = qs.filter(pk=int(order_ref)).first()
        except (TypeError, ValueError):
            order = None
        if order is not None:
            return order
    if payment_session_id:
        return qs.filter(payment_session_id=str(payment_session_id)).order_by("-id").first()
    return None


def reconcile_payment(
    *,
    order_ref=None,
    payment_session_id: Optional[str] = None,
    status: Optional[str] = None,
    payment_reference_id: Optional[str] = None,
) -> Reconciliation:
    """Apply a payment outcome to the matching order.

    Never raises for an unknown order; the result carries ``error`` instead.
    """

    with transaction.atomic():
        order = find_order(order_ref, payment_session_id, for_update=True)
        if order is None:
            logger.warning(
                "order.reconcile_not_found",
                extra={
                    "event": "order.reconcile_not_found",
                    "order_ref": str(order_ref or ""),
                    "payment_session_id": payment_session_id,
                },
            )
            return Reconciliation(error=ORDER_NOT_FOUND)

        prev = order.status
        fields = []
        if payment_reference_id and order.payment_reference_id != str(payment_reference_id):
            order.payment_reference_id = str(payment_reference_id)
            fields.append("payment_reference_id")
        if payment_session_id and not order.payment_session_id:
            order.payment_session_id = str(payment_session_id)
            fields.append("payment_session_id")
        elif payment_session_id and order.payment_session_id != str(payment_session_id):
            logger.warning(
                "order.payment_session_mismatch",
                extra={
                    "event": "order.payment_session_mismatch",
                    "order_id": order.id,
                    "payment_session_id": str(payment_session_id),
                },
            )

        target = map_gateway_status(status)
        if target is not None and prev in OPEN_STATUSES and target != prev:
            order.status = target
            fields.append("status")

        if fields:
            order.save(update_fields=fields + ["updated_at"])

    result = Reconciliation(order=order, status_from=prev, status_to=order.status, changed=order.status != prev)
    if result.changed:
        logger.info(
            "order.status_changed",
            extra={
                "event": "order.status_changed",
                "order_id": order.id,
                "user_id": order.user_id,
                "status_from": prev,
                "status_to": order.status,
            },
        )
        if order.status == Order.STATUS_APPROVED:
            result.cart_cleared = clear_cart_for_session_key(order.session_key)
    elif target is not None and target != prev:
        logger.info(
            "order.status_change_ignored",
            extra={
                "event": "order.status_change_ignored",
                "order_id": order.id,
                "status": prev,
                "reported": target,
            },
        )
    return result
