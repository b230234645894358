"""DRF serializers for orders and checkout.

Money is stored in cents on the models and rendered as 2-place decimal
strings here.
"""

from common.choices import ShippingMethod
from common.money import format_cents
from rest_framework import serializers

from .models import Order, OrderItem


class OrderItemSerializer(serializers.ModelSerializer):
    """Frozen order line with decimal-string prices."""

    unit_price = serializers.SerializerMethodField()
    unit_base_price = serializers.SerializerMethodField()
    line_subtotal = serializers.SerializerMethodField()

    class Meta:
        model = OrderItem
        fields = ["product_id", "title", "quantity", "unit_base_price", "unit_price", "line_subtotal"]
        read_only_fields = fields

    def get_unit_price(self, obj: OrderItem) -> str:
        return format_cents(obj.unit_final_cents)

    def get_unit_base_price(self, obj: OrderItem) -> str:
        return format_cents(obj.unit_base_cents)

    def get_line_subtotal(self, obj: OrderItem) -> str:
        return format_cents(obj.line_subtotal_cents)


class OrderSerializer(serializers.ModelSerializer):
    """API representation of an order snapshot."""

    items = OrderItemSerializer(many=True, read_only=True)
    subtotal = serializers.SerializerMethodField()
    discount = serializers.SerializerMethodField()
    shipping_fee = serializers.SerializerMethodField()
    total = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "status",
            "shipping_method",
            "shipping_address_id",
            "items",
            "subtotal",
            "discount",
            "shipping_fee",
            "total",
            "payment_session_id",
            "payment_reference_id",
            "attempt_count",
            "expires_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_subtotal(self, obj: Order) -> str:
        return format_cents(obj.subtotal_cents)

    def get_discount(self, obj: Order) -> str:
        return format_cents(obj.discount_cents)

    def get_shipping_fee(self, obj: Order) -> str:
        return format_cents(obj.shipping_fee_cents)

    def get_total(self, obj: Order) -> str:
        return format_cents(obj.total_cents)


class CheckoutSerializer(serializers.Serializer):
    # Unknown methods are rejected by the checkout service as invalid_shipping
    shipping_method = serializers.CharField(default=ShippingMethod.PICKUP, max_length=16)
    shipping_address_id = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=64)


class CheckoutResultSerializer(serializers.Serializer):
    order_id = serializers.IntegerField()
    preference_id = serializers.CharField()
    redirect_url = serializers.CharField()
    init_point = serializers.CharField(allow_blank=True)
    sandbox_init_point = serializers.CharField(allow_blank=True)
    env = serializers.CharField()
    warnings = serializers.ListField(child=serializers.CharField())


class PaymentReturnSerializer(serializers.Serializer):
    """Query parameters appended by the gateway to the back URLs."""

    payment_id = serializers.CharField(required=False, allow_blank=True)
    collection_id = serializers.CharField(required=False, allow_blank=True)
    status = serializers.CharField(required=False, allow_blank=True)
    collection_status = serializers.CharField(required=False, allow_blank=True)
    preference_id = serializers.CharField(required=False, allow_blank=True)
    external_reference = serializers.CharField(required=False, allow_blank=True)

    def to_signal(self) -> dict:
        data = {key: _present(value) for key, value in self.validated_data.items()}
        return {
            "payment_reference_id": data.get("payment_id") or data.get("collection_id"),
            "status": data.get("status") or data.get("collection_status"),
            "payment_session_id": data.get("preference_id"),
            "order_ref": data.get("external_reference"),
        }


def _present(value):
    # The gateway sends the literal "null" for values it does not have
    if not value or value.strip().lower() == "null":
        return None
    return value


class ReconciliationSerializer(serializers.Serializer):
    order_id = serializers.IntegerField(source="order.id")
    status = serializers.CharField(source="order.status")
    status_from = serializers.CharField()
    changed = serializers.BooleanField()
    payment_reference_id = serializers.CharField(source="order.payment_reference_id", allow_null=True)
    total = serializers.SerializerMethodField()

    def get_total(self, obj) -> str:
        return format_cents(obj.order.total_cents)
