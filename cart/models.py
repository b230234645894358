"""Cart app models.

The cart is session-scoped and never stored in the database. It is a typed
value kept in the session through ``cart.storage.SessionCartStore``; every
amount is held in integer cents.
"""

from dataclasses import asdict, dataclass, field

from common.money import format_cents


@dataclass
class LineItem:
    """One product line, snapshotting price and stock at the last mutation."""

    product_id: str
    title: str
    unit_base_cents: int
    unit_final_cents: int
    quantity: int
    stock: int
    image_url: str = ""
    # Set when a recompute lowered the quantity to the available stock
    adjusted: bool = False

    @property
    def unit_discount_cents(self) -> int:
        return max(self.unit_base_cents - self.unit_final_cents, 0)

    @property
    def line_subtotal_cents(self) -> int:
        return max(self.unit_final_cents * self.quantity, 0)

    @property
    def line_discount_cents(self) -> int:
        return self.unit_discount_cents * self.quantity

    @property
    def promo_applied(self) -> bool:
        return self.unit_final_cents != self.unit_base_cents

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "LineItem":
        return cls(
            product_id=str(data["product_id"]),
            title=str(data.get("title") or ""),
            unit_base_cents=int(data.get("unit_base_cents") or 0),
            unit_final_cents=int(data.get("unit_final_cents") or 0),
            quantity=int(data.get("quantity") or 0),
            stock=int(data.get("stock") or 0),
            image_url=str(data.get("image_url") or ""),
            adjusted=bool(data.get("adjusted", False)),
        )


@dataclass
class Cart:
    """Ordered collection of line items, unique by product id.

    Totals are derived by ``cart.services.recompute`` and never set directly.
    ``subtotal`` is the undiscounted sum, ``discount`` the promotional
    reduction and ``total`` their difference (the sum of line subtotals).
    """

    items: list[LineItem] = field(default_factory=list)
    subtotal_cents: int = 0
    discount_cents: int = 0
    total_cents: int = 0
    item_count: int = 0
    # Product ids dropped by the last recompute (no stock, inactive, qty <= 0)
    removed: list[str] = field(default_factory=list)

    def find(self, product_id) -> LineItem | None:
        product_id = str(product_id)
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    @property
    def is_empty(self) -> bool:
        return not self.items

    def summary(self) -> dict:
        """Presentation-safe view of the cart with decimal strings."""

        return {
            "items": [
                {
                    "product_id": it.product_id,
                    "title": it.title,
                    "image_url": it.image_url,
                    "quantity": it.quantity,
                    "unit_price": format_cents(it.unit_base_cents),
                    "promo_price": format_cents(it.unit_final_cents) if it.promo_applied else None,
                    "line_subtotal": format_cents(it.line_subtotal_cents),
                    "adjusted": it.adjusted,
                }
                for it in self.items
            ],
            "item_count": self.item_count,
            "subtotal": format_cents(self.subtotal_cents),
            "discount": format_cents(self.discount_cents),
            "total": format_cents(self.total_cents),
        }

    def to_dict(self) -> dict:
        return {
            "items": [it.to_dict() for it in self.items],
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "item_count": self.item_count,
            "removed": list(self.removed),
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "Cart":
        if not data:
            return cls()
        return cls(
            items=[LineItem.from_dict(it) for it in data.get("items") or []],
            subtotal_cents=int(data.get("subtotal_cents") or 0),
            discount_cents=int(data.get("discount_cents") or 0),
            total_cents=int(data.get("total_cents") or 0),
            item_count=int(data.get("item_count") or 0),
            removed=[str(p) for p in data.get("removed") or []],
        )
