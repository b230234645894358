"""Fixed-point money helpers.

All arithmetic runs on integer minor units (cents). Conversion to and from
``Decimal`` happens only at input/output boundaries. Rounding is
ROUND_HALF_UP everywhere so line subtotals and cart totals never drift.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
HUNDRED = Decimal(100)


def to_cents(value) -> int:
    """Convert a decimal-ish amount (``"12.345"``, ``12.3``, ``Decimal``) to cents.

    Unparsable input is treated as zero.
    """

    if value is None:
        return 0
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return 0
    if not amount.is_finite():
        return 0
    return int((amount * HUNDRED).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return (Decimal(int(cents)) / HUNDRED).quantize(CENT)


def format_cents(cents: int) -> str:
    return str(from_cents(cents))


def clamp_pct(pct) -> Decimal:
    try:
        value = Decimal(str(pct))
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not value.is_finite():
        return Decimal(0)
    return min(max(value, Decimal(0)), HUNDRED)


def promo_price_cents(base_cents: int, promo_enabled: bool, promo_pct) -> int:
    """Return the unit price after promotion, in cents.

    ``round(base * (1 - clamp(pct, 0, 100) / 100))`` when the promotion flag is
    set and the percentage is positive; otherwise the base price.
    """

    pct = clamp_pct(promo_pct)
    if not promo_enabled or pct <= 0:
        return int(base_cents)
    final = (Decimal(int(base_cents)) * (HUNDRED - pct) / HUNDRED).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return max(min(int(final), int(base_cents)), 0)
