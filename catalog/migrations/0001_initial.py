from decimal import Decimal

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("title", models.CharField(max_length=200)),
                ("sku", models.CharField(max_length=64, unique=True)),
                ("price", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12)),
                ("stock", models.PositiveIntegerField(default=0)),
                ("active", models.BooleanField(db_index=True, default=True)),
                ("featured", models.BooleanField(db_index=True, default=False)),
                ("promo_enabled", models.BooleanField(db_index=True, default=False)),
                ("promo_pct", models.DecimalField(decimal_places=2, default=Decimal("0"), max_digits=5)),
                ("image_url", models.URLField(blank=True, max_length=500)),
            ],
            options={
                "ordering": ["title"],
                "indexes": [models.Index(fields=["active", "updated_at"], name="catalog_product_active_idx")],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(price__gte=0), name="product_price_non_negative"),
                    models.CheckConstraint(
                        condition=models.Q(promo_pct__gte=0) & models.Q(promo_pct__lte=100),
                        name="product_promo_pct_range",
                    ),
                ],
            },
        ),
    ]
