from __future__ import annotations
from typing import Iterable, List, Mapping

from inventory_connector.model import ReconciledItem, ReconciliationSummary, Sku
from inventory_connector.resolver import AliasResolver


def reconcile(
    consolidated: Mapping[str, int],
    skus: Iterable[Sku | str],
    aliases: Mapping[str, str],
) -> List[ReconciledItem]:
    """Classify every consolidated SKU as matched or unmatched.

    One record per input SKU, in the mapping's iteration order. Unmatched SKUs
    are kept; dropping them is the exporter's job.
    """

    resolver = AliasResolver(skus, aliases)

    items: List[ReconciledItem] = []
    for sku, quantity in consolidated.items():
        qb_item = resolver.resolve(sku)
        items.append(
            ReconciledItem(
                sku=sku,
                qb_item=qb_item,
                quantity=quantity,
                matched=qb_item is not None,
            )
        )
    return items


def summarise(items: Iterable[ReconciledItem]) -> ReconciliationSummary:
    total = matched = quantity = 0
    for item in items:
        total += 1
        quantity += item.quantity
        if item.matched:
            matched += 1
    return ReconciliationSummary(
        total=total,
        matched=matched,
        unmatched=total - matched,
        total_quantity=quantity,
    )


def unmatched_skus(items: Iterable[ReconciledItem]) -> List[str]:
    return [item.sku for item in items if not item.matched]


__all__ = ["reconcile", "summarise", "unmatched_skus"]
