"""Deterministic pricing for tailored garments."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from models.catalog import Fabric, Product
from models.order import OrderItem


def round_currency(amount: Decimal) -> int:
    """Round to the nearest whole currency unit, halves away from zero."""

    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def quote_price(product: Optional[Product], fabric: Optional[Fabric]) -> Optional[int]:
    """Unit price of ``product`` cut from ``fabric``.

    Multipliers are converted through ``str`` so that ``1.5`` is exactly one
    and a half; the result for 2499 x 1.5 is therefore 3749, not 3748.
    Returns ``None`` when either input is missing.
    """

    if product is None or fabric is None:
        return None
    amount = Decimal(product.base_price) * Decimal(str(fabric.price_multiplier))
    return round_currency(amount)


def line_total(unit_price: int, quantity: int) -> int:
    if quantity < 1:
        raise ValueError("quantity must be a positive integer")
    return unit_price * quantity


def order_total(items: Iterable[OrderItem]) -> int:
    return sum(item.total_price for item in items)


__all__ = ["round_currency", "quote_price", "line_total", "order_total"]
