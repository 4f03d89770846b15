"""Resolve ShipStation SKUs to QuickBooks item names.

Resolution is two-tier. An alias (keyed by the case-folded ShipStation SKU)
wins when present; its target is mapped onto the canonical casing of a stored
SKU if one matches, otherwise the target is trusted verbatim. Without an alias
the SKU is looked up directly, case-insensitively, against the stored SKUs.
"""

from __future__ import annotations

from typing import Dict, Iterable, Mapping

from inventory_connector.model import Sku, sku_key


class AliasResolver:
    """Lookup tables built once per sync from a store snapshot."""

    def __init__(self, skus: Iterable[Sku | str], aliases: Mapping[str, str]):
        self._canonical: Dict[str, str] = {}
        for sku in skus:
            name = sku if isinstance(sku, str) else sku.name
            self._canonical.setdefault(sku_key(name), name)
        # Stored alias keys are already folded; hand-built mappings may not be.
        self._aliases: Dict[str, str] = {
            sku_key(key): target for key, target in aliases.items()
        }

    def resolve(self, raw_sku: str) -> str | None:
        key = sku_key(raw_sku)
        target = self._aliases.get(key)
        if target:
            return self._canonical.get(sku_key(target), target)
        return self._canonical.get(key)

    def has_alias(self, raw_sku: str) -> bool:
        return sku_key(raw_sku) in self._aliases

    def __len__(self) -> int:
        return len(self._canonical)


__all__ = ["AliasResolver"]
