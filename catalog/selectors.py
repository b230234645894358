"""Selectors for the catalog domain.

Read-only lookups used by the cart to refresh price, promotion and stock.
"""

from typing import Iterable, Optional

from .models import Product, ProductRecord


def get_product_record(product_id, *, active_only: bool = False) -> Optional[ProductRecord]:
    """Return the product as a ``ProductRecord``, or None if it does not exist."""

    try:
        pk = int(product_id)
    except (TypeError, ValueError):
        return None
    qs = Product.objects.all()
    if active_only:
        qs = qs.filter(active=True)
    product = qs.filter(pk=pk).first()
    return product.to_record() if product else None


def get_products_map(product_ids: Iterable[str]) -> dict[str, ProductRecord]:
    """Return ``{product_id: ProductRecord}`` for the products among ``product_ids``.

    Deactivated products are included so the cart can drop them; deleted ones
    are absent and the cart falls back to its snapshot.
    """

    pks = []
    for product_id in product_ids:
        try:
            pks.append(int(product_id))
        except (TypeError, ValueError):
            continue
    if not pks:
        return {}
    return {str(p.pk): p.to_record() for p in Product.objects.filter(pk__in=pks)}
