"""Catalog app models.

The catalog is a collaborator of the cart and checkout core: it owns the live
product record (price, promotion, stock) that carts snapshot on mutation.
"""

from dataclasses import dataclass
from decimal import Decimal

from django.db import models


class TimeStampedModel(models.Model):
    """Abstract base model adding created/updated timestamps."""

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


@dataclass(frozen=True)
class ProductRecord:
    """Product lookup result handed to the cart.

    Plain value so cart logic never touches the ORM.
    """

    id: str | None
    title: str = ""
    price: Decimal = Decimal("0.00")
    stock: int = 0
    active: bool = True
    promo_enabled: bool = False
    promo_pct: Decimal = Decimal("0")
    image_url: str = ""


class Product(TimeStampedModel):
    """Sellable product with optional percentage promotion."""

    title = models.CharField(max_length=200)
    sku = models.CharField(max_length=64, unique=True)
    price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    stock = models.PositiveIntegerField(default=0)
    active = models.BooleanField(default=True, db_index=True)
    featured = models.BooleanField(default=False, db_index=True)
    promo_enabled = models.BooleanField(default=False, db_index=True)
    promo_pct = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0"))
    image_url = models.URLField(max_length=500, blank=True)

    class Meta:
        ordering = ["title"]
        constraints = [
            models.CheckConstraint(name="product_price_non_negative", condition=models.Q(price__gte=0)),
            models.CheckConstraint(
                name="product_promo_pct_range",
                condition=models.Q(promo_pct__gte=0) & models.Q(promo_pct__lte=100),
            ),
        ]
        indexes = [
            models.Index(fields=["active", "updated_at"], name="catalog_product_active_idx"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.title} ({self.sku})"

    def save(self, *args, **kwargs):
        self.sku = (self.sku or "").strip().upper()
        if self.promo_pct is not None:
            self.promo_pct = min(max(Decimal(str(self.promo_pct)), Decimal("0")), Decimal("100"))
        super().save(*args, **kwargs)

    def to_record(self) -> ProductRecord:
        return ProductRecord(
            id=str(self.pk) if self.pk is not None else None,
            title=self.title,
            price=self.price or Decimal("0.00"),
            stock=int(self.stock or 0),
            active=bool(self.active),
            promo_enabled=bool(self.promo_enabled),
            promo_pct=self.promo_pct or Decimal("0"),
            image_url=self.image_url or "",
        )
