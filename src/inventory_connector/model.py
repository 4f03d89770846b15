"""Domain models for ShipStation to QuickBooks inventory reconciliation.

These dataclasses represent the entities shared throughout the tool: stored
SKUs, transient line items pulled from ShipStation, reconciled items, audit
history and the outcome records returned by the service layer.
"""

from __future__ import annotations  # Postponed evaluation of annotations (PEP 563)

from dataclasses import dataclass, field  # Dataclass utilities
from typing import Any, Literal  # Constrained string types for clarity

SkuOrigin = Literal["manual", "imported"]  # How a SKU entered the store
HistoryType = Literal[
    "sync",
    "export",
    "import",
    "add-sku",
    "add-alias",
    "delete-sku",
    "delete-alias",
]  # Kind of audit entry
ImportStatus = Literal["imported", "duplicate", "failed"]  # Per-item import result
IIFMode = Literal["per-item", "single"]  # One transaction per item, or one shared

UNKNOWN_SKU = "UNKNOWN"  # Stand-in for line items without a SKU
NOT_FOUND = "Not Found"  # Display placeholder that must never reach an IIF file


def sku_key(name: str) -> str:
    """Comparison key for SKU names and alias keys (Unicode case folding)."""
    return name.casefold()


@dataclass(slots=True)
class Sku:
    """A QuickBooks inventory item name known to the store."""

    sku_id: str  # Backend-assigned identifier
    name: str  # Canonical casing as entered or imported
    category: str | None  # Optional "CATEGORY:" prefix from the item list
    origin: SkuOrigin  # "manual" or "imported"
    created_at: str  # ISO-8601 timestamp

    def __str__(self) -> str:
        return f"sku(id={self.sku_id}, name={self.name}, category={self.category})"


@dataclass(slots=True, frozen=True)
class NewSku:
    """A parsed SKU that has not been persisted yet."""

    name: str
    category: str | None = None


@dataclass(slots=True, frozen=True)
class ShipmentLineItem:
    """One (sku, quantity) pair taken from an order or shipment."""

    sku: str
    quantity: int


@dataclass(slots=True)
class FetchResult:
    """Everything the fetcher collected for one date window."""

    line_items: list[ShipmentLineItem] = field(default_factory=list)
    total_records: int = 0  # Orders/shipments accepted after status filtering
    excluded_records: int = 0  # Orders/shipments dropped by the status filter
    status_counts: dict[str, int] = field(default_factory=dict)
    pages_fetched: int = 0
    halted_early: bool = False  # A page failed; results are partial
    error: str | None = None


@dataclass(slots=True)
class ReconciledItem:
    """A consolidated ShipStation SKU and the QuickBooks item it resolved to."""

    sku: str
    qb_item: str | None
    quantity: int
    matched: bool


@dataclass(slots=True, frozen=True)
class ReconciliationSummary:
    total: int
    matched: int
    unmatched: int
    total_quantity: int


@dataclass(slots=True)
class HistoryEntry:
    """Append-only audit record; the store keeps the newest 100."""

    entry_id: str
    entry_type: HistoryType
    message: str
    data: dict[str, Any]
    timestamp: str


@dataclass(slots=True)
class Settings:
    inventory_account: str
    last_updated: str | None = None


@dataclass(slots=True, frozen=True)
class ImportOutcome:
    """What happened to a single SKU during a bulk import."""

    name: str
    category: str | None
    status: ImportStatus
    reason: str | None = None


@dataclass(slots=True)
class ImportReport:
    """Per-item outcomes of a bulk import, in input order."""

    outcomes: list[ImportOutcome] = field(default_factory=list)

    @property
    def imported(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "imported")

    @property
    def skipped(self) -> int:
        return len(self.outcomes) - self.imported

    def names(self, status: ImportStatus) -> list[str]:
        return [o.name for o in self.outcomes if o.status == status]


@dataclass(slots=True)
class IIFDocument:
    """A generated IIF file ready to be downloaded or written to disk."""

    content: str
    filename: str
    item_count: int
    mime_type: str = "text/plain"


@dataclass(slots=True)
class SyncSession:
    """The most recent sync, kept so that an export can follow it."""

    start_date: str
    end_date: str
    fetch: FetchResult
    items: list[ReconciledItem]


__all__ = [
    "FetchResult",
    "HistoryEntry",
    "HistoryType",
    "IIFDocument",
    "IIFMode",
    "ImportOutcome",
    "ImportReport",
    "ImportStatus",
    "NOT_FOUND",
    "NewSku",
    "ReconciledItem",
    "ReconciliationSummary",
    "Settings",
    "ShipmentLineItem",
    "Sku",
    "SkuOrigin",
    "SyncSession",
    "UNKNOWN_SKU",
    "sku_key",
]
