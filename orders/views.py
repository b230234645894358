"""Checkout and orders API endpoints.

Checkout materializes the session cart into an order and opens a payment
preference. The gateway reports outcomes back through the return URLs and
the payment webhook, which both feed the reconciler.
"""

import logging

from cart.services import consume_adjustments, recompute
from cart.storage import SessionCartStore
from catalog.selectors import get_products_map
from django.http import Http404
from django_filters import rest_framework as filters
from drf_spectacular.utils import OpenApiExample, OpenApiParameter, extend_schema, inline_serializer
from rest_framework import generics, status
from rest_framework import serializers as rf_serializers
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .gateway import GatewaySessionError, MercadoPagoGateway
from .models import Order
from .reconciliation import ORDER_NOT_FOUND, find_order, map_gateway_status, reconcile_payment
from .serializers import (
    CheckoutResultSerializer,
    CheckoutSerializer,
    OrderSerializer,
    PaymentReturnSerializer,
    ReconciliationSerializer,
)
from .services import CheckoutError, start_checkout

logger = logging.getLogger("storefront.orders")

KindError = inline_serializer(
    name="KindError",
    fields={"kind": rf_serializers.CharField(), "message": rf_serializers.CharField()},
)


def _error(kind: str, message: str, code: int) -> Response:
    return Response({"kind": kind, "message": message}, status=code)


def get_gateway() -> MercadoPagoGateway:
    return MercadoPagoGateway.from_settings()


class CheckoutView(APIView):
    """Turn the session cart into an order and open a payment preference."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "checkout"

    @extend_schema(
        tags=["Checkout"],
        summary="Start checkout",
        description=(
            "Refreshes the cart against the catalog, creates or reuses the caller's open order and returns "
            "the payment redirect. Resubmitting an unchanged cart reuses the same order."
        ),
        request=CheckoutSerializer,
        responses={201: CheckoutResultSerializer, 400: KindError, 502: KindError},
        examples=[
            OpenApiExample("Checkout", value={"shipping_method": "delivery", "shipping_address_id": "a1"}, request_only=True),
            OpenApiExample(
                "Started",
                value={
                    "order_id": 42,
                    "preference_id": "123-abc",
                    "redirect_url": "https://sandbox.mercadopago.com/checkout?pref_id=123-abc",
                    "init_point": "https://www.mercadopago.com/checkout?pref_id=123-abc",
                    "sandbox_init_point": "https://sandbox.mercadopago.com/checkout?pref_id=123-abc",
                    "env": "sandbox",
                    "warnings": [],
                },
                response_only=True,
            ),
            OpenApiExample("Empty cart", value={"kind": "empty_cart", "message": "The cart is empty."}, response_only=True),
        ],
    )
    def post(self, request):
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        store = SessionCartStore(request.session)
        cart = store.load()
        recompute(cart, get_products_map(it.product_id for it in cart.items))
        warnings = consume_adjustments(cart)
        store.save(cart)
        if not request.session.session_key:
            request.session.save()

        try:
            result = start_checkout(
                user=request.user,
                cart=cart,
                shipping_method=serializer.validated_data["shipping_method"],
                shipping_address_id=serializer.validated_data.get("shipping_address_id"),
                session_key=request.session.session_key,
                gateway=get_gateway(),
            )
        except CheckoutError as exc:
            code = status.HTTP_502_BAD_GATEWAY if exc.kind == CheckoutError.GATEWAY_SESSION_ERROR else 400
            return _error(exc.kind, exc.message, code)

        body = CheckoutResultSerializer(
            {
                "order_id": result.order.id,
                "preference_id": result.preference_id,
                "redirect_url": result.redirect_url,
                "init_point": result.init_point,
                "sandbox_init_point": result.sandbox_init_point,
                "env": result.env,
                "warnings": warnings + result.warnings,
            }
        ).data
        return Response(body, status=status.HTTP_201_CREATED)


class PaymentReturnView(APIView):
    """Base view for the gateway back URLs.

    ``default_status`` is applied only when the gateway sent no status.
    Query parameters are not trusted on their own: an approval is confirmed
    by fetching the payment from the gateway, and any other outcome is only
    applied for the order's owner. Unconfirmed signals fall back to a lookup
    that changes nothing, leaving the webhook to settle the order.
    """

    permission_classes = [AllowAny]
    throttle_scope = "checkout"
    default_status = None

    def get(self, request):
        params = PaymentReturnSerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        signal = params.to_signal()
        if not signal["status"]:
            signal["status"] = self.default_status

        result = reconcile_payment(**self.verify(request, signal))
        if not result.ok:
            return _error(ORDER_NOT_FOUND, "We could not identify the order for this payment.", 404)
        if result.changed and result.order.status == Order.STATUS_APPROVED:
            SessionCartStore(request.session).delete()
        return Response(ReconciliationSerializer(result).data)

    def verify(self, request, signal: dict) -> dict:
        order = find_order(signal["order_ref"], signal["payment_session_id"])
        if order is None:
            return signal
        if map_gateway_status(signal["status"]) == Order.STATUS_APPROVED:
            return self._confirm_payment(order, signal)
        if order.user_id is not None and order.user_id == request.user.id:
            return signal
        return self._unverified(order, signal, "not_owner")

    def _confirm_payment(self, order: Order, signal: dict) -> dict:
        payment_id = signal["payment_reference_id"]
        if not payment_id:
            return self._unverified(order, signal, "missing_payment_id")
        try:
            payment = get_gateway().get_payment(payment_id)
        except GatewaySessionError as exc:
            logger.warning(
                "payment_return.fetch_failed",
                extra={"event": "payment_return.fetch_failed", "order_id": order.id, "error": str(exc)},
            )
            return self._unverified(order, signal, "gateway_unavailable")
        if str(payment.get("external_reference") or "") != str(order.id):
            return self._unverified(order, signal, "reference_mismatch")
        return dict(signal, order_ref=str(order.id), status=payment.get("status"))

    def _unverified(self, order: Order, signal: dict, reason: str) -> dict:
        logger.warning(
            "payment_return.unverified",
            extra={
                "event": "payment_return.unverified",
                "order_id": order.id,
                "reported": signal["status"],
                "reason": reason,
            },
        )
        return {"order_ref": str(order.id), "payment_session_id": None, "status": None, "payment_reference_id": None}


RETURN_PARAMETERS = [
    OpenApiParameter(name="payment_id", description="Gateway payment id", required=False, type=str),
    OpenApiParameter(name="collection_id", description="Alias for payment_id", required=False, type=str),
    OpenApiParameter(name="status", description="Gateway payment status", required=False, type=str),
    OpenApiParameter(name="collection_status", description="Alias for status", required=False, type=str),
    OpenApiParameter(name="preference_id", description="Payment preference id", required=False, type=str),
    OpenApiParameter(name="external_reference", description="Order id echoed back", required=False, type=str),
]


class CheckoutSuccessView(PaymentReturnView):
    @extend_schema(
        tags=["Checkout"],
        summary="Payment success return",
        parameters=RETURN_PARAMETERS,
        responses={200: ReconciliationSerializer, 404: KindError},
    )
    def get(self, request):
        return super().get(request)


class CheckoutPendingView(PaymentReturnView):
    default_status = "pending"

    @extend_schema(
        tags=["Checkout"],
        summary="Payment pending return",
        parameters=RETURN_PARAMETERS,
        responses={200: ReconciliationSerializer, 404: KindError},
    )
    def get(self, request):
        return super().get(request)


class CheckoutFailureView(PaymentReturnView):
    default_status = "rejected"

    @extend_schema(
        tags=["Checkout"],
        summary="Payment failure return",
        parameters=RETURN_PARAMETERS,
        responses={200: ReconciliationSerializer, 404: KindError},
    )
    def get(self, request):
        return super().get(request)


class PaymentWebhookView(APIView):
    """Gateway notification endpoint.

    The notification only carries a payment id; the payment itself is fetched
    from the gateway before reconciling, so the body is never trusted for the
    outcome.
    """

    permission_classes = [AllowAny]
    authentication_classes = []
    throttle_scope = "webhook"

    @extend_schema(
        tags=["Checkout"],
        summary="Payment webhook",
        description="Consumes a `payment` notification, fetches the payment and reconciles the order.",
        request=inline_serializer(
            name="PaymentNotification",
            fields={"type": rf_serializers.CharField(), "data": rf_serializers.DictField()},
        ),
        responses={200: ReconciliationSerializer, 400: KindError, 404: KindError, 502: KindError},
        examples=[OpenApiExample("Notification", value={"type": "payment", "data": {"id": "123"}}, request_only=True)],
    )
    def post(self, request):
        data = request.data or {}
        topic = data.get("type") or data.get("topic") or request.query_params.get("type")
        inner = data.get("data") if isinstance(data.get("data"), dict) else {}
        payment_id = inner.get("id") or request.query_params.get("data.id")
        if topic != "payment":
            return Response({"status": "ignored"}, status=status.HTTP_200_OK)
        if not payment_id:
            return _error("invalid_notification", "Missing payment id.", 400)

        try:
            payment = get_gateway().get_payment(payment_id)
        except GatewaySessionError as exc:
            logger.warning(
                "webhook.payment_fetch_failed",
                extra={"event": "webhook.payment_fetch_failed", "payment_id": str(payment_id), "error": str(exc)},
            )
            return _error(CheckoutError.GATEWAY_SESSION_ERROR, str(exc), status.HTTP_502_BAD_GATEWAY)

        result = reconcile_payment(
            order_ref=payment.get("external_reference"),
            status=payment.get("status"),
            payment_reference_id=str(payment.get("id") or payment_id),
        )
        if not result.ok:
            return _error(ORDER_NOT_FOUND, "No order matches this payment.", 404)
        return Response(ReconciliationSerializer(result).data)


class OrderFilterSet(filters.FilterSet):
    status = filters.ChoiceFilter(choices=Order.STATUS_CHOICES)

    class Meta:
        model = Order
        fields = ["status"]


class OrderListView(generics.ListAPIView):
    """List the authenticated user's orders, newest first."""

    permission_classes = [IsAuthenticated]
    serializer_class = OrderSerializer
    filter_backends = [filters.DjangoFilterBackend]
    filterset_class = OrderFilterSet
    throttle_scope = "orders"

    def get_queryset(self):
        return Order.objects.filter(user_id=self.request.user.id).order_by("-id").prefetch_related("items")

    @extend_schema(
        tags=["Orders"],
        summary="List orders",
        parameters=[
            OpenApiParameter(name="status", description="Order status filter", required=False, type=str),
            OpenApiParameter(name="page", description="Page number", required=False, type=int),
        ],
    )
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)


class OrderDetailView(generics.RetrieveAPIView):
    """Retrieve a single order owned by the authenticated user."""

    permission_classes = [IsAuthenticated]
    serializer_class = OrderSerializer
    throttle_scope = "orders"

    def get_queryset(self):
        return Order.objects.filter(user_id=self.request.user.id).prefetch_related("items")

    def get_object(self):
        try:
            return self.get_queryset().get(id=int(self.kwargs["order_id"]))
        except (Order.DoesNotExist, ValueError):
            raise Http404("Not found.")

    @extend_schema(tags=["Orders"], summary="Get order detail")
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)
