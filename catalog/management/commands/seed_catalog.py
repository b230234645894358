"""Seed a handful of products for local checkout runs.

Re-running is idempotent; products are matched by SKU and updated in place.
"""

from decimal import Decimal

from catalog.models import Product
from django.core.management.base import BaseCommand
from django.db import transaction

PRODUCTS = [
    {
        "sku": "LAMP-001",
        "title": "Desk Lamp",
        "price": Decimal("1000.00"),
        "stock": 12,
        "featured": True,
    },
    {
        "sku": "CHAIR-001",
        "title": "Office Chair",
        "price": Decimal("45999.90"),
        "stock": 3,
        "promo_enabled": True,
        "promo_pct": Decimal("15"),
    },
    {
        "sku": "MUG-001",
        "title": "Ceramic Mug",
        "price": Decimal("1999.99"),
        "stock": 40,
        "promo_enabled": True,
        "promo_pct": Decimal("25"),
    },
    {
        "sku": "RUG-001",
        "title": "Wool Rug",
        "price": Decimal("32000.00"),
        "stock": 0,
    },
]


class Command(BaseCommand):
    help = "Seed sample products (with stock and promotions) for development"

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write("Seeding catalog data...")
        created = 0
        for data in PRODUCTS:
            defaults = {k: v for k, v in data.items() if k != "sku"}
            _, was_created = Product.objects.update_or_create(sku=data["sku"], defaults=defaults)
            created += int(was_created)
        self.stdout.write(self.style.SUCCESS(f"Catalog ready: {created} created, {len(PRODUCTS) - created} updated."))
