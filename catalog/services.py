"""Catalog services: admin-side product mutations."""

import logging

from common.choices import ProductFlag
from django.db import transaction

from .models import Product

logger = logging.getLogger("storefront.catalog")


@transaction.atomic
def toggle_flag(*, product_id: int, flag: ProductFlag) -> Product:
    """Flip one of the enumerated boolean attributes of a product.

    Only members of ``ProductFlag`` are accepted; any other value raises
    ``ValueError`` before touching the database.
    """

    flag = ProductFlag(flag)
    product = Product.objects.select_for_update().get(pk=product_id)
    setattr(product, flag.value, not getattr(product, flag.value))
    product.save(update_fields=[flag.value, "updated_at"])
    logger.info(
        "catalog.flag_toggled",
        extra={
            "event": "catalog.flag_toggled",
            "product_id": product.id,
            "flag": flag.value,
            "value": getattr(product, flag.value),
        },
    )
    return product
