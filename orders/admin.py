from django.contrib import admin

from .models import Order, OrderItem


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    can_delete = False
    readonly_fields = (
        "product_id",
        "title",
        "unit_base_cents",
        "unit_final_cents",
        "quantity",
        "line_subtotal_cents",
    )


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "status", "shipping_method", "total", "attempt_count", "created_at")
    list_filter = ("status", "shipping_method", "created_at")
    search_fields = ("id", "user__username", "payment_session_id", "payment_reference_id")
    date_hierarchy = "created_at"
    inlines = [OrderItemInline]
    readonly_fields = (
        "user",
        "cart_fingerprint",
        "subtotal_cents",
        "discount_cents",
        "shipping_fee_cents",
        "total_cents",
        "payment_session_id",
        "payment_reference_id",
        "attempt_count",
        "last_attempt_at",
        "expires_at",
        "session_key",
        "created_at",
        "updated_at",
    )
