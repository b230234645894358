"""DRF views for cart operations.

The cart lives in the caller's session; each view loads it, applies one
service call and writes it back.
"""

from catalog.selectors import get_product_record, get_products_map
from drf_spectacular.utils import OpenApiExample, extend_schema, inline_serializer
from rest_framework import serializers as rf_serializers
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .serializers import AddItemSerializer, CartReadSerializer, UpdateItemQuantitySerializer
from .services import CartError, add_item, clear_cart, consume_adjustments, recompute, remove_item, set_quantity
from .storage import SessionCartStore

CartMutationError = inline_serializer(
    name="CartMutationError",
    fields={"kind": rf_serializers.CharField(), "message": rf_serializers.CharField()},
)

CART_EXAMPLE = {
    "items": [
        {
            "product_id": "12",
            "title": "Mechanical keyboard",
            "image_url": "",
            "quantity": 2,
            "unit_price": "1000.00",
            "promo_price": "750.00",
            "line_subtotal": "1500.00",
            "adjusted": False,
        }
    ],
    "item_count": 2,
    "subtotal": "2000.00",
    "discount": "500.00",
    "total": "1500.00",
    "warnings": [],
}


def _error(exc: CartError, code=status.HTTP_400_BAD_REQUEST) -> Response:
    return Response({"kind": exc.code, "message": exc.message}, status=code)


def _cart_response(store: SessionCartStore, cart, code=status.HTTP_200_OK) -> Response:
    warnings = consume_adjustments(cart)
    store.save(cart)
    return Response(CartReadSerializer.from_cart(cart=cart, warnings=warnings).data, status=code)


class CartDetailView(APIView):
    """Return the session cart refreshed against the live catalog."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Get cart",
        description=(
            "Returns the session cart after refreshing prices, promotions and stock from the catalog. "
            "Lines lowered or dropped during the refresh are reported in `warnings`."
        ),
        responses={200: CartReadSerializer},
        examples=[OpenApiExample("Cart", value=CART_EXAMPLE)],
    )
    def get(self, request):
        store = SessionCartStore(request.session)
        cart = store.load()
        recompute(cart, get_products_map(it.product_id for it in cart.items))
        return _cart_response(store, cart)


class CartAddItemView(APIView):
    """Add a product to the cart."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Add item to cart",
        description="Adds a product to the session cart, merging with an existing line and clamping to stock.",
        request=AddItemSerializer,
        responses={201: CartReadSerializer, 400: CartMutationError, 404: CartMutationError},
        examples=[OpenApiExample("Add", value={"product_id": "12", "quantity": 2}, request_only=True)],
    )
    def post(self, request):
        serializer = AddItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        product = get_product_record(serializer.validated_data["product_id"])
        if product is None:
            return _error(CartError(CartError.INVALID_PRODUCT, "Product not found."), status.HTTP_404_NOT_FOUND)
        store = SessionCartStore(request.session)
        cart = store.load()
        try:
            add_item(cart, product, serializer.validated_data["quantity"])
        except CartError as exc:
            return _error(exc)
        return _cart_response(store, cart, status.HTTP_201_CREATED)


class CartItemUpdateView(APIView):
    """Set a cart line's quantity, or remove or drop it."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Update cart item quantity",
        description="Sets the line quantity clamped to current stock. A quantity below 1 removes the line.",
        request=UpdateItemQuantitySerializer,
        responses={200: CartReadSerializer, 400: CartMutationError},
    )
    def patch(self, request, product_id: str):
        serializer = UpdateItemQuantitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        store = SessionCartStore(request.session)
        cart = store.load()
        try:
            set_quantity(cart, product_id, serializer.validated_data["quantity"], get_product_record(product_id))
        except CartError as exc:
            return _error(exc)
        return _cart_response(store, cart)

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Delete cart item",
        description="Removes the line for the product, if present.",
        responses={204: None},
    )
    def delete(self, request, product_id: str):
        store = SessionCartStore(request.session)
        store.save(remove_item(store.load(), product_id))
        return Response(status=status.HTTP_204_NO_CONTENT)


class CartClearView(APIView):
    """Empty the cart."""

    permission_classes = [IsAuthenticated]
    throttle_scope = "cart_write"

    @extend_schema(
        tags=["Cart Endpoints"],
        summary="Clear cart",
        responses={200: inline_serializer(name="CartStatusCleared", fields={"status": rf_serializers.CharField()})},
        examples=[OpenApiExample("Cleared", value={"status": "cleared"})],
    )
    def post(self, request):
        store = SessionCartStore(request.session)
        store.save(clear_cart(store.load()))
        return Response({"status": "cleared"}, status=status.HTTP_200_OK)
