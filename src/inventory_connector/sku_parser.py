"""Parse a pasted QuickBooks item list into new SKUs."""

from __future__ import annotations

from typing import List

from inventory_connector.model import NewSku


def parse_sku_line(line: str) -> NewSku | None:
    """``"CATEGORY:SKU"`` or a bare ``"SKU"``; blank lines give ``None``.

    Only the first ``:`` separates the category, so ``"A:B:C"`` keeps
    ``"B:C"`` as the name.
    """

    line = line.strip()
    if not line:
        return None
    if ":" in line:
        category, name = line.split(":", 1)
        category, name = category.strip(), name.strip()
        if not name:
            return None
        return NewSku(name=name, category=category or None)
    return NewSku(name=line, category=None)


def parse_sku_text(text: str | None) -> List[NewSku]:
    """One SKU per line, in input order.

    Repeats are kept; the store decides which of them are duplicates so the
    import report can say so.
    """

    if not text:
        return []
    return [sku for sku in map(parse_sku_line, text.splitlines()) if sku is not None]


__all__ = ["parse_sku_line", "parse_sku_text"]
