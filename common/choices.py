"""Shared enumerations and choices used across apps."""

from django.db import models


class OrderStatus(models.TextChoices):
    """Lifecycle statuses for orders."""

    CREATED = "created", "Created"
    APPROVED = "approved", "Approved"
    PENDING = "pending", "Pending"
    REJECTED = "rejected", "Rejected"
    ABANDONED = "abandoned", "Abandoned"
    EXPIRED = "expired", "Expired"


class ShippingMethod(models.TextChoices):
    PICKUP = "pickup", "Pickup"
    DELIVERY = "delivery", "Delivery"


class ProductFlag(models.TextChoices):
    """Boolean product attributes that admins may toggle."""

    ACTIVE = "active", "Active"
    FEATURED = "featured", "Featured"
    PROMO_ENABLED = "promo_enabled", "Promo enabled"
