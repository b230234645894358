"""Admin registration for catalog models."""

from common.choices import ProductFlag
from django.contrib import admin, messages

from .models import Product
from .services import toggle_flag


def _toggle_action(flag: ProductFlag):
    def action(modeladmin, request, queryset):
        count = 0
        for product_id in queryset.values_list("id", flat=True):
            toggle_flag(product_id=product_id, flag=flag)
            count += 1
        modeladmin.message_user(request, f"Toggled '{flag.label}' on {count} product(s).", level=messages.SUCCESS)

    action.__name__ = f"toggle_{flag.value}"
    action.short_description = f"Toggle {flag.label.lower()}"
    return action


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("title", "sku", "price", "stock", "active", "featured", "promo_enabled", "promo_pct")
    search_fields = ("title", "sku")
    list_filter = ("active", "featured", "promo_enabled")
    actions = [_toggle_action(flag) for flag in ProductFlag]
