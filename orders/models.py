from common.choices import OrderStatus, ShippingMethod
from common.money import from_cents
from django.conf import settings
from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class Order(TimeStampedModel):
    """Durable order materialized from a session cart.

    Items and totals are a frozen snapshot taken at checkout. Amounts are
    stored in integer cents. At most one order per user may be ``created``.
    """

    STATUS_CREATED = OrderStatus.CREATED
    STATUS_APPROVED = OrderStatus.APPROVED
    STATUS_PENDING = OrderStatus.PENDING
    STATUS_REJECTED = OrderStatus.REJECTED
    STATUS_ABANDONED = OrderStatus.ABANDONED
    STATUS_EXPIRED = OrderStatus.EXPIRED
    STATUS_CHOICES = OrderStatus.choices

    user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name="orders", on_delete=models.CASCADE)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_CREATED, db_index=True)

    subtotal_cents = models.BigIntegerField(default=0)
    discount_cents = models.BigIntegerField(default=0)
    shipping_fee_cents = models.BigIntegerField(default=0)
    total_cents = models.BigIntegerField(default=0)
    shipping_method = models.CharField(max_length=16, choices=ShippingMethod.choices, default=ShippingMethod.PICKUP)
    shipping_address_id = models.CharField(max_length=64, null=True, blank=True)

    cart_fingerprint = models.CharField(max_length=64, db_index=True)
    session_key = models.CharField(max_length=64, null=True, blank=True)
    payment_session_id = models.CharField(max_length=128, null=True, blank=True, db_index=True)
    payment_reference_id = models.CharField(max_length=128, null=True, blank=True, db_index=True)

    attempt_count = models.PositiveIntegerField(default=0)
    last_attempt_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-id"]
        indexes = [
            models.Index(fields=["user", "status", "created_at"], name="orders_user_status_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["user"],
                condition=models.Q(status="created"),
                name="uniq_created_order_per_user",
            ),
            models.CheckConstraint(
                name="order_total_non_negative",
                condition=models.Q(total_cents__gte=0),
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Order#{self.id} user={self.user_id} status={self.status}"

    @property
    def subtotal(self):
        return from_cents(self.subtotal_cents)

    @property
    def discount(self):
        return from_cents(self.discount_cents)

    @property
    def shipping_fee(self):
        return from_cents(self.shipping_fee_cents)

    @property
    def total(self):
        return from_cents(self.total_cents)


class OrderItem(models.Model):
    """Line snapshot within an order, decoupled from the live catalog."""

    order = models.ForeignKey(Order, related_name="items", on_delete=models.CASCADE)
    product_id = models.CharField(max_length=64)
    title = models.CharField(max_length=200)
    unit_base_cents = models.BigIntegerField()
    unit_final_cents = models.BigIntegerField()
    quantity = models.PositiveIntegerField()
    line_subtotal_cents = models.BigIntegerField()

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                name="orderitem_price_bounds",
                condition=models.Q(unit_final_cents__gte=0) & models.Q(unit_final_cents__lte=models.F("unit_base_cents")),
            ),
            models.CheckConstraint(name="orderitem_quantity_positive", condition=models.Q(quantity__gte=1)),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"OrderItem#{self.id} order={self.order_id} product={self.product_id} qty={self.quantity}"

    @property
    def unit_price(self):
        return from_cents(self.unit_final_cents)

    @property
    def line_subtotal(self):
        return from_cents(self.line_subtotal_cents)
