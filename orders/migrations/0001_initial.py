import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("created", "Created"),
                            ("approved", "Approved"),
                            ("pending", "Pending"),
                            ("rejected", "Rejected"),
                            ("abandoned", "Abandoned"),
                            ("expired", "Expired"),
                        ],
                        db_index=True,
                        default="created",
                        max_length=16,
                    ),
                ),
                ("subtotal_cents", models.BigIntegerField(default=0)),
                ("discount_cents", models.BigIntegerField(default=0)),
                ("shipping_fee_cents", models.BigIntegerField(default=0)),
                ("total_cents", models.BigIntegerField(default=0)),
                (
                    "shipping_method",
                    models.CharField(
                        choices=[("pickup", "Pickup"), ("delivery", "Delivery")], default="pickup", max_length=16
                    ),
                ),
                ("shipping_address_id", models.CharField(blank=True, max_length=64, null=True)),
                ("cart_fingerprint", models.CharField(db_index=True, max_length=64)),
                ("session_key", models.CharField(blank=True, max_length=64, null=True)),
                ("payment_session_id", models.CharField(blank=True, db_index=True, max_length=128, null=True)),
                ("payment_reference_id", models.CharField(blank=True, db_index=True, max_length=128, null=True)),
                ("attempt_count", models.PositiveIntegerField(default=0)),
                ("last_attempt_at", models.DateTimeField(blank=True, null=True)),
                ("expires_at", models.DateTimeField(blank=True, null=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="orders",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-id"],
                "indexes": [models.Index(fields=["user", "status", "created_at"], name="orders_user_status_idx")],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "created")),
                        fields=("user",),
                        name="uniq_created_order_per_user",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("total_cents__gte", 0)),
                        name="order_total_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("product_id", models.CharField(max_length=64)),
                ("title", models.CharField(max_length=200)),
                ("unit_base_cents", models.BigIntegerField()),
                ("unit_final_cents", models.BigIntegerField()),
                ("quantity", models.PositiveIntegerField()),
                ("line_subtotal_cents", models.BigIntegerField()),
                (
                    "order",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="orders.order",
                    ),
                ),
            ],
            options={
                "ordering": ["id"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("unit_final_cents__gte", 0), ("unit_final_cents__lte", models.F("unit_base_cents"))
                        ),
                        name="orderitem_price_bounds",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("quantity__gte", 1)),
                        name="orderitem_quantity_positive",
                    ),
                ],
            },
        ),
    ]
