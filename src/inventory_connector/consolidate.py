"""Reduce ShipStation line items to per-SKU quantity totals."""

from __future__ import annotations

import re
from typing import Any, Dict, Iterable

from inventory_connector.model import ShipmentLineItem, sku_key

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_quantity(value: Any) -> int:
    """Leniently parse a quantity; anything unusable becomes 0.

    Leading integers are honoured (``"3 units"`` -> 3, ``2.7`` -> 2) and
    negative values are clamped to 0.
    """

    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float):
        if value != value:  # NaN
            return 0
        return max(int(value), 0)
    match = _LEADING_INT.match(str(value))
    if match is None:
        return 0
    return max(int(match.group(1)), 0)


def consolidate(line_items: Iterable[ShipmentLineItem]) -> Dict[str, int]:
    """Sum quantities per SKU in first-seen order.

    SKUs that differ only in case are one product; the total is reported under
    the spelling seen first (``abc``, ``ABC`` -> ``{"abc": ...}``).
    """

    totals: Dict[str, int] = {}
    spelling: Dict[str, str] = {}
    for item in line_items:
        key = spelling.setdefault(sku_key(item.sku), item.sku)
        totals[key] = totals.get(key, 0) + parse_quantity(item.quantity)
    return totals


__all__ = ["consolidate", "parse_quantity"]
