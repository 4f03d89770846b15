from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable

from inventory_connector.model import FetchResult, ReconciledItem, ReconciliationSummary


def iso_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _serialise_item(item: ReconciledItem) -> Dict[str, Any]:
    return {
        "sku": item.sku,
        "qb_item": item.qb_item,
        "quantity": item.quantity,
        "matched": item.matched,
    }


def build_sync_payload(
    start_date: str,
    end_date: str,
    fetch: FetchResult | None,
    items: Iterable[ReconciledItem],
    summary: ReconciliationSummary | None,
    *,
    iif_path: Path | None = None,
    error: str | None = None,
) -> Dict[str, Any]:
    """Build the JSON payload describing one sync run."""

    items = list(items)
    return {
        "status": "error" if error else "success",
        "timestamp": iso_timestamp(),
        "date_range": {"start": start_date, "end": end_date},
        "total_orders": fetch.total_records if fetch else 0,
        "excluded_orders": fetch.excluded_records if fetch else 0,
        "order_statuses": dict(fetch.status_counts) if fetch else {},
        "partial": bool(fetch and fetch.halted_early),
        "summary": asdict(summary) if summary else None,
        "unmatched_skus": [item.sku for item in items if not item.matched],
        "items": [_serialise_item(item) for item in items],
        "iif_file": str(iif_path) if iif_path else None,
        "error": error,
    }


def write_sync_report(payload: Dict[str, Any], output_path: Path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    return output_path
