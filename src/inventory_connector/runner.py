"""Operator-facing actions wired to the store and the reconciliation pipeline.

Every action returns an :class:`OperationResult`; failures are reported in the
result rather than raised, and timeouts are flagged separately so a caller can
tell "retry with a smaller range" apart from "something is broken".
"""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict

import requests

from inventory_connector import excel_reader, iif_writer, settings, shipstation_gateway
from inventory_connector.consolidate import consolidate
from inventory_connector.errors import (
    ConnectorError,
    NotFoundError,
    OperationTimeoutError,
    ValidationError,
)
from inventory_connector.model import HistoryType, IIFMode, SyncSession
from inventory_connector.reconcile import reconcile, summarise
from inventory_connector.sku_parser import parse_sku_text
from inventory_connector.store import SkuStore

logger = logging.getLogger(__name__)


class Action(str, Enum):
    # Store reads
    LIST_SKUS = "skus"
    LIST_ALIASES = "aliases"
    LIST_HISTORY = "history"
    GET_SETTINGS = "settings"
    STATS = "stats"
    # Store writes
    IMPORT_SKUS = "import-skus"
    ADD_SKU = "add-sku"
    ADD_ALIAS = "add-alias"
    ADD_HISTORY = "add-history"
    UPDATE_SETTINGS = "update-settings"
    DELETE_SKU = "delete-sku"
    DELETE_ALIAS = "delete-alias"
    # Pipeline
    IMPORT_WORKBOOK = "import-workbook"
    SYNC = "sync"
    EXPORT = "export"
    CLEAR = "clear"


@dataclass(slots=True)
class OperationResult:
    success: bool
    message: str
    data: Any = None
    timed_out: bool = False
    errors: list[str] = field(default_factory=list)

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "OperationResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, *, timed_out: bool = False) -> "OperationResult":
        return cls(success=False, message=message, timed_out=timed_out, errors=[message])


def _guarded(action: Action):
    """Convert exceptions raised by an action into a failed OperationResult."""

    def decorator(func: Callable[..., OperationResult]) -> Callable[..., OperationResult]:
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs) -> OperationResult:
            try:
                return func(self, *args, **kwargs)
            except OperationTimeoutError as exc:
                logger.error("%s timed out: %s", action.value, exc)
                return OperationResult.fail(
                    f"{action.value} timed out ({exc}); try a smaller date range",
                    timed_out=True,
                )
            except NotFoundError as exc:
                return OperationResult.fail(str(exc))
            except ValueError as exc:
                logger.warning("%s rejected: %s", action.value, exc)
                return OperationResult.fail(str(exc))
            except (ConnectorError, OSError, requests.RequestException) as exc:
                logger.error("%s failed: %s", action.value, exc)
                return OperationResult.fail(f"{action.value} failed: {exc}")
            except Exception as exc:  # noqa: BLE001
                logger.exception("%s failed unexpectedly", action.value)
                return OperationResult.fail(f"{action.value} failed: {exc}")

        return wrapper

    return decorator


class InventorySyncService:
    """Owns one store and the most recent sync session.

    ``fetcher`` is called as ``fetcher(start_date, end_date, **options)`` and
    must return a :class:`FetchResult`; it defaults to the ShipStation gateway.
    """

    def __init__(
        self,
        store: SkuStore,
        *,
        fetcher: Callable[..., Any] | None = None,
        iif_mode: IIFMode = settings.IIF_MODE,  # type: ignore[assignment]
        output_dir: Path | str | None = None,
    ) -> None:
        self.store = store
        self.fetcher = fetcher or shipstation_gateway.fetch_line_items
        self.iif_mode = iif_mode
        self.output_dir = Path(output_dir) if output_dir else settings.OUTPUT_DIR
        self.last_sync: SyncSession | None = None
        self._handlers: Dict[Action, Callable[..., OperationResult]] = {
            Action.LIST_SKUS: self.list_skus,
            Action.LIST_ALIASES: self.list_aliases,
            Action.LIST_HISTORY: self.list_history,
            Action.GET_SETTINGS: self.get_settings,
            Action.STATS: self.stats,
            Action.IMPORT_SKUS: self.import_skus,
            Action.ADD_SKU: self.add_sku,
            Action.ADD_ALIAS: self.add_alias,
            Action.ADD_HISTORY: self.add_history,
            Action.UPDATE_SETTINGS: self.update_settings,
            Action.DELETE_SKU: self.delete_sku,
            Action.DELETE_ALIAS: self.delete_alias,
            Action.IMPORT_WORKBOOK: self.import_workbook,
            Action.SYNC: self.sync,
            Action.EXPORT: self.export,
            Action.CLEAR: self.clear,
        }

    def dispatch(self, action: Action | str, **payload: Any) -> OperationResult:
        try:
            action = Action(action)
        except ValueError:
            return OperationResult.fail(f"Invalid action: {action}")
        return self._handlers[action](**payload)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    @_guarded(Action.LIST_SKUS)
    def list_skus(self, search: str | None = None) -> OperationResult:
        skus = self.store.search_skus(search) if search else self.store.list_skus()
        return OperationResult.ok(f"{len(skus)} SKUs", skus)

    @_guarded(Action.LIST_ALIASES)
    def list_aliases(self, search: str | None = None) -> OperationResult:
        aliases = self.store.search_aliases(search) if search else self.store.list_aliases()
        return OperationResult.ok(f"{len(aliases)} aliases", aliases)

    @_guarded(Action.LIST_HISTORY)
    def list_history(self, limit: int | None = None) -> OperationResult:
        history = self.store.list_history(limit)
        return OperationResult.ok(f"{len(history)} history entries", history)

    @_guarded(Action.GET_SETTINGS)
    def get_settings(self) -> OperationResult:
        return OperationResult.ok("Settings loaded", self.store.get_settings())

    @_guarded(Action.STATS)
    def stats(self) -> OperationResult:
        return OperationResult.ok("Stats loaded", self.store.stats())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    @_guarded(Action.IMPORT_SKUS)
    def import_skus(self, sku_text: str | None = None) -> OperationResult:
        """Import one SKU per line; ``CATEGORY:SKU`` lines keep their category."""
        new_skus = parse_sku_text(sku_text)
        if not new_skus:
            raise ValidationError("No SKUs found in the supplied text")
        report = self.store.import_skus(new_skus)
        return OperationResult.ok(
            f"Imported {report.imported} SKUs ({report.skipped} skipped)", report
        )

    @_guarded(Action.IMPORT_WORKBOOK)
    def import_workbook(self, workbook_path: str | Path, sheet_name: str = "items") -> OperationResult:
        new_skus = excel_reader.extract_skus(Path(workbook_path), sheet_name=sheet_name)
        if not new_skus:
            raise ValidationError(f"No SKUs found in worksheet '{sheet_name}'")
        report = self.store.import_skus(new_skus)
        return OperationResult.ok(
            f"Imported {report.imported} SKUs ({report.skipped} skipped)", report
        )

    @_guarded(Action.ADD_SKU)
    def add_sku(self, name: str | None = None, category: str | None = None) -> OperationResult:
        sku = self.store.create_sku(name, category)
        return OperationResult.ok(f"Added SKU: {sku.name}", sku)

    @_guarded(Action.ADD_ALIAS)
    def add_alias(
        self, shipstation_sku: str | None = None, quickbooks_sku: str | None = None
    ) -> OperationResult:
        self.store.upsert_alias(shipstation_sku, quickbooks_sku)
        return OperationResult.ok(f"Added alias: {shipstation_sku} → {quickbooks_sku}")

    @_guarded(Action.ADD_HISTORY)
    def add_history(
        self, entry_type: HistoryType = "sync", message: str = "", data: dict | None = None
    ) -> OperationResult:
        entry = self.store.append_history(entry_type, message, data)
        return OperationResult.ok("History entry added", entry)

    @_guarded(Action.UPDATE_SETTINGS)
    def update_settings(self, inventory_account: str | None = None) -> OperationResult:
        updated = self.store.update_settings(inventory_account=inventory_account)
        return OperationResult.ok("Settings updated", updated)

    @_guarded(Action.DELETE_SKU)
    def delete_sku(self, sku_id: str | None = None) -> OperationResult:
        removed = self.store.delete_sku(sku_id)
        return OperationResult.ok(f"Deleted SKU: {removed.name}", removed)

    @_guarded(Action.DELETE_ALIAS)
    def delete_alias(self, shipstation_sku: str | None = None) -> OperationResult:
        target = self.store.delete_alias(shipstation_sku)
        return OperationResult.ok(f"Deleted alias: {shipstation_sku} → {target}")

    @_guarded(Action.CLEAR)
    def clear(self) -> OperationResult:
        defaults = self.store.clear()
        self.last_sync = None
        return OperationResult.ok("Database cleared successfully", defaults)

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------
    @_guarded(Action.SYNC)
    def sync(self, start_date: str | None = None, end_date: str | None = None, **fetch_options: Any) -> OperationResult:
        """Fetch, consolidate and reconcile one date window.

        The result's data is the new :class:`SyncSession`, which also becomes
        ``last_sync`` for a following :meth:`export`.
        """
        if not start_date or not end_date:
            raise ValidationError("Please select a date range")
        skus = self.store.list_skus()
        if not skus:
            raise ValidationError("Please import SKUs first")

        fetched = self.fetcher(start_date, end_date, **fetch_options)
        consolidated = consolidate(fetched.line_items)
        items = reconcile(consolidated, skus, self.store.list_aliases())
        summary = summarise(items)

        self.last_sync = SyncSession(
            start_date=start_date, end_date=end_date, fetch=fetched, items=items
        )

        message = (
            f"Synced {fetched.total_records} orders, {summary.total} unique SKUs "
            f"({summary.matched} matched, {summary.unmatched} unmatched)"
        )
        if fetched.halted_early:
            message += f"; results are partial ({fetched.error})"
        self.store.append_history(
            "sync",
            message,
            {
                "orders": fetched.total_records,
                "excluded": fetched.excluded_records,
                "skus": summary.total,
                "matched": summary.matched,
                "order_statuses": dict(fetched.status_counts),
                "date_range": {"start_date": start_date, "end_date": end_date},
                "partial": fetched.halted_early,
            },
        )
        logger.info(message)
        return OperationResult.ok(message, self.last_sync)

    @_guarded(Action.EXPORT)
    def export(self, *, write: bool = False, today: datetime | None = None) -> OperationResult:
        """Build the IIF document from the most recent sync.

        With ``write=True`` the file is also written under ``output_dir`` and
        the path is attached to the returned document's data.
        """
        if self.last_sync is None:
            raise ValidationError("No sync data available; run a sync first")

        account = self.store.get_settings().inventory_account
        document = iif_writer.export_iif(
            self.last_sync.items,
            account,
            (self.last_sync.start_date, self.last_sync.end_date),
            mode=self.iif_mode,
            today=today,
        )
        data: Dict[str, Any] = {"document": document, "path": None}
        if write:
            data["path"] = iif_writer.write_iif(document, self.output_dir)

        self.store.append_history(
            "export",
            f"Exported IIF file with {document.item_count} items",
            {"items": document.item_count, "filename": document.filename},
        )
        return OperationResult.ok(
            f"IIF file generated with {document.item_count} items", data
        )


def run_inventory_sync(
    store: SkuStore,
    start_date: str,
    end_date: str,
    *,
    output_dir: Path | str | None = None,
    **fetch_options: Any,
) -> OperationResult:
    """Sync a window and write the IIF file in one call."""

    service = InventorySyncService(store, output_dir=output_dir)
    synced = service.sync(start_date, end_date, **fetch_options)
    if not synced.success:
        return synced
    return service.export(write=True)


__all__ = ["Action", "InventorySyncService", "OperationResult", "run_inventory_sync"]
