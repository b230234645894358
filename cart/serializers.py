"""Cart serializers for read and write operations."""

from rest_framework import serializers


class CartLineSerializer(serializers.Serializer):
    """Read serializer for one cart line."""

    product_id = serializers.CharField()
    title = serializers.CharField()
    image_url = serializers.CharField(allow_blank=True)
    quantity = serializers.IntegerField()
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    promo_price = serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True)
    line_subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    adjusted = serializers.BooleanField()


class CartReadSerializer(serializers.Serializer):
    """Read serializer for the cart summary, items and warnings."""

    items = CartLineSerializer(many=True)
    item_count = serializers.IntegerField()
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2)
    total = serializers.DecimalField(max_digits=12, decimal_places=2)
    warnings = serializers.ListField(child=serializers.CharField(), required=False)

    @classmethod
    def from_cart(cls, *, cart, warnings=None):
        return cls({**cart.summary(), "warnings": list(warnings or [])})


class AddItemSerializer(serializers.Serializer):
    """Write serializer for adding a product to the cart."""

    product_id = serializers.CharField(max_length=64)
    quantity = serializers.IntegerField(default=1)


class UpdateItemQuantitySerializer(serializers.Serializer):
    """Write serializer for setting a line quantity. Values below 1 remove the line."""

    quantity = serializers.IntegerField()
