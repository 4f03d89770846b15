"""SKU, alias, history and settings storage.

:class:`SkuStore` holds every business rule: case-insensitive SKU uniqueness,
case-folded alias keys, the batch-then-individual import fallback, history
trimming and settings bookkeeping. Backends only implement the small set of
primitive ``_hooks`` below, so an in-memory store, a JSON file and a SQL
database all behave identically.
"""

from __future__ import annotations

import copy
import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, get_args

from inventory_connector import settings
from inventory_connector.errors import NotFoundError, StoreWriteError, ValidationError
from inventory_connector.model import (
    HistoryEntry,
    HistoryType,
    ImportOutcome,
    ImportReport,
    NewSku,
    Settings,
    Sku,
    SkuOrigin,
    sku_key,
)
from inventory_connector.report import iso_timestamp

logger = logging.getLogger(__name__)

HISTORY_TYPES: tuple[str, ...] = get_args(HistoryType)


class SkuStore(ABC):
    """Store contract shared by every backend."""

    history_limit = settings.HISTORY_LIMIT

    def __init__(
        self,
        *,
        default_account: str = settings.DEFAULT_INVENTORY_ACCOUNT,
        batch_size: int = settings.IMPORT_BATCH_SIZE,
    ) -> None:
        self.default_account = default_account
        self.batch_size = max(1, batch_size)

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------
    @abstractmethod
    def _all_skus(self) -> List[Sku]: ...

    @abstractmethod
    def _insert_skus(self, skus: List[Sku]) -> None:
        """Insert all of ``skus`` or none; raise :class:`StoreWriteError`."""

    @abstractmethod
    def _remove_sku(self, sku_id: str) -> Sku | None: ...

    @abstractmethod
    def _all_aliases(self) -> Dict[str, str]: ...

    @abstractmethod
    def _put_alias(self, key: str, target: str) -> None: ...

    @abstractmethod
    def _remove_alias(self, key: str) -> str | None: ...

    @abstractmethod
    def _push_history(
        self, entry_type: HistoryType, message: str, data: Dict[str, Any], timestamp: str
    ) -> HistoryEntry: ...

    @abstractmethod
    def _recent_history(self, limit: int) -> List[HistoryEntry]: ...

    @abstractmethod
    def _trim_history(self, keep: int) -> None: ...

    @abstractmethod
    def _read_settings(self) -> Settings | None: ...

    @abstractmethod
    def _write_settings(self, value: Settings) -> None: ...

    @abstractmethod
    def _wipe(self) -> None: ...

    def close(self) -> None:
        """Release backend resources."""

    def __enter__(self) -> "SkuStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def list_skus(self) -> List[Sku]:
        return self._all_skus()

    def list_aliases(self) -> Dict[str, str]:
        return self._all_aliases()

    def search_skus(self, query: str) -> List[Sku]:
        """SKUs whose name or category contains ``query``, ignoring case."""
        needle = sku_key(query.strip())
        return [
            s
            for s in self._all_skus()
            if needle in sku_key(s.name) or (s.category and needle in sku_key(s.category))
        ]

    def search_aliases(self, query: str) -> Dict[str, str]:
        """Aliases whose ShipStation key or QuickBooks target contains ``query``."""
        needle = sku_key(query.strip())
        return {
            key: target
            for key, target in self._all_aliases().items()
            if needle in key or needle in sku_key(target)
        }

    def list_history(self, limit: int | None = None) -> List[HistoryEntry]:
        """Newest first; ``limit`` is capped at ``history_limit``."""
        if limit is None:
            return self._recent_history(self.history_limit)
        return self._recent_history(max(0, min(limit, self.history_limit)))

    def get_settings(self) -> Settings:
        return self._read_settings() or Settings(inventory_account=self.default_account)

    def stats(self) -> Dict[str, Any]:
        history = self.list_history()
        last_sync = next((h.timestamp for h in history if h.entry_type == "sync"), None)
        last_export = next((h.timestamp for h in history if h.entry_type == "export"), None)
        return {
            "total_skus": len(self._all_skus()),
            "total_aliases": len(self._all_aliases()),
            "last_sync": last_sync,
            "last_export": last_export,
        }

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def update_settings(self, *, inventory_account: str | None = None) -> Settings:
        current = self.get_settings()
        if inventory_account is not None:
            inventory_account = inventory_account.strip()
            if not inventory_account:
                raise ValidationError("Inventory account cannot be empty")
            current.inventory_account = inventory_account
        current.last_updated = iso_timestamp()
        self._write_settings(current)
        return current

    def _touch(self) -> None:
        current = self.get_settings()
        current.last_updated = iso_timestamp()
        self._write_settings(current)

    def _new_sku(self, name: str, category: str | None, origin: SkuOrigin) -> Sku:
        return Sku(
            sku_id=uuid.uuid4().hex,
            name=name,
            category=category,
            origin=origin,
            created_at=iso_timestamp(),
        )

    def create_sku(self, name: str | None, category: str | None = None) -> Sku:
        """Add one SKU by hand; duplicates (ignoring case) are rejected."""
        name = (name or "").strip()
        if not name:
            raise ValidationError("SKU name is required")
        existing = {sku_key(s.name) for s in self._all_skus()}
        if sku_key(name) in existing:
            raise ValidationError(f"SKU already exists: {name}")

        sku = self._new_sku(name, (category or "").strip() or None, "manual")
        self._insert_skus([sku])
        self._touch()
        self.append_history("add-sku", f"Added SKU: {sku.name}", asdict(sku))
        return sku

    def import_skus(self, new_skus: Iterable[NewSku]) -> ImportReport:
        """Bulk-add SKUs, skipping names already stored or repeated in the input.

        Inserts run in batches of ``batch_size``. A batch that fails is
        retried one SKU at a time; SKUs that still fail are reported as
        ``"failed"`` and do not stop the import.
        """

        new_skus = list(new_skus)
        existing = {sku_key(s.name) for s in self._all_skus()}
        seen: set[str] = set()
        outcomes: List[ImportOutcome | None] = [None] * len(new_skus)
        pending: List[tuple[int, Sku]] = []

        for idx, new in enumerate(new_skus):
            name = new.name.strip()
            key = sku_key(name)
            if not name:
                outcomes[idx] = ImportOutcome(new.name, new.category, "failed", "empty name")
            elif key in existing:
                outcomes[idx] = ImportOutcome(name, new.category, "duplicate", "already exists")
            elif key in seen:
                outcomes[idx] = ImportOutcome(
                    name, new.category, "duplicate", "repeated in this import"
                )
            else:
                seen.add(key)
                pending.append((idx, self._new_sku(name, new.category, "imported")))

        logger.info(
            "Found %d new SKUs to import (%d skipped before insert)",
            len(pending),
            len(new_skus) - len(pending),
        )

        for start in range(0, len(pending), self.batch_size):
            batch = pending[start : start + self.batch_size]
            batch_no = start // self.batch_size + 1
            try:
                self._insert_skus([sku for _, sku in batch])
            except StoreWriteError as exc:
                logger.warning("Batch %d failed, trying individual inserts: %s", batch_no, exc)
                for idx, sku in batch:
                    try:
                        self._insert_skus([sku])
                    except StoreWriteError as item_exc:
                        outcomes[idx] = ImportOutcome(sku.name, sku.category, "failed", str(item_exc))
                    else:
                        outcomes[idx] = ImportOutcome(sku.name, sku.category, "imported")
            else:
                for idx, sku in batch:
                    outcomes[idx] = ImportOutcome(sku.name, sku.category, "imported")
                logger.info("Batch %d imported %d SKUs", batch_no, len(batch))

        report = ImportReport(outcomes=[o for o in outcomes if o is not None])
        if report.imported:
            self._touch()
        self.append_history(
            "import",
            f"Imported {report.imported} new SKUs ({report.skipped} duplicates skipped)",
            {
                "imported": report.imported,
                "duplicates": report.skipped,
                "total": len(new_skus),
            },
        )
        return report

    def delete_sku(self, sku_id: str | None) -> Sku:
        if not sku_id:
            raise ValidationError("SKU ID is required")
        removed = self._remove_sku(sku_id)
        if removed is None:
            raise NotFoundError(f"SKU not found: {sku_id}")
        self._touch()
        self.append_history("delete-sku", f"Deleted SKU: {removed.name}", asdict(removed))
        return removed

    def upsert_alias(self, shipstation_sku: str | None, quickbooks_sku: str | None) -> None:
        """Map a ShipStation SKU (any case) to a QuickBooks item; last write wins."""
        shipstation_sku = (shipstation_sku or "").strip()
        quickbooks_sku = (quickbooks_sku or "").strip()
        if not shipstation_sku or not quickbooks_sku:
            raise ValidationError("Both SKUs are required")
        self._put_alias(sku_key(shipstation_sku), quickbooks_sku)
        self._touch()
        self.append_history(
            "add-alias",
            f"Added alias: {shipstation_sku} → {quickbooks_sku}",
            {"shipstation_sku": shipstation_sku, "quickbooks_sku": quickbooks_sku},
        )

    def delete_alias(self, shipstation_sku: str | None) -> str:
        shipstation_sku = (shipstation_sku or "").strip()
        if not shipstation_sku:
            raise ValidationError("ShipStation SKU is required")
        target = self._remove_alias(sku_key(shipstation_sku))
        if target is None:
            raise NotFoundError(f"Alias not found: {shipstation_sku}")
        self._touch()
        self.append_history(
            "delete-alias",
            f"Deleted alias: {shipstation_sku} → {target}",
            {"shipstation_sku": shipstation_sku, "quickbooks_sku": target},
        )
        return target

    def append_history(
        self, entry_type: HistoryType, message: str, data: Mapping[str, Any] | None = None
    ) -> HistoryEntry:
        if entry_type not in HISTORY_TYPES:
            raise ValidationError(
                f"Unknown history type {entry_type!r}; expected one of {', '.join(HISTORY_TYPES)}"
            )
        entry = self._push_history(entry_type, message, dict(data or {}), iso_timestamp())
        self._trim_history(self.history_limit)
        return entry

    def clear(self) -> Settings:
        """Remove every SKU, alias and history entry and restore default settings."""
        logger.info("Clearing all stored data")
        self._wipe()
        defaults = Settings(inventory_account=self.default_account, last_updated=iso_timestamp())
        self._write_settings(defaults)
        return defaults


# ----------------------------------------------------------------------
# Serialisation shared by snapshot-based backends
# ----------------------------------------------------------------------
def sku_from_dict(raw: Mapping[str, Any]) -> Sku:
    return Sku(
        sku_id=str(raw["sku_id"]),
        name=raw["name"],
        category=raw.get("category"),
        origin=raw.get("origin", "imported"),
        created_at=raw.get("created_at", ""),
    )


def history_from_dict(raw: Mapping[str, Any]) -> HistoryEntry:
    return HistoryEntry(
        entry_id=str(raw["entry_id"]),
        entry_type=raw["entry_type"],
        message=raw.get("message", ""),
        data=dict(raw.get("data") or {}),
        timestamp=raw.get("timestamp", ""),
    )


class MemorySkuStore(SkuStore):
    """Process-local store, optionally seeded from a snapshot.

    The snapshot layout is the one :meth:`snapshot` returns and the JSON file
    backend persists: ``{"skus": [...], "aliases": {...}, "history": [...],
    "settings": {...}}``.
    """

    def __init__(self, snapshot: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._load_snapshot(snapshot or {})

    def _load_snapshot(self, snapshot: Mapping[str, Any]) -> None:
        self._skus: List[Sku] = [sku_from_dict(s) for s in snapshot.get("skus", [])]
        self._aliases: Dict[str, str] = {
            sku_key(k): v for k, v in (snapshot.get("aliases") or {}).items()
        }
        self._history: List[HistoryEntry] = [
            history_from_dict(h) for h in snapshot.get("history", [])
        ]
        raw_settings = snapshot.get("settings")
        self._settings: Settings | None = (
            Settings(
                inventory_account=raw_settings.get("inventory_account", self.default_account),
                last_updated=raw_settings.get("last_updated"),
            )
            if raw_settings
            else None
        )

    def snapshot(self) -> Dict[str, Any]:
        return {
            "skus": [asdict(s) for s in self._skus],
            "aliases": dict(self._aliases),
            "history": [asdict(h) for h in self._history],
            "settings": asdict(self._settings) if self._settings else None,
        }

    def _persist(self) -> None:
        """Hook for durable subclasses; the memory store keeps nothing."""

    @contextmanager
    def _changing(self) -> Iterator[None]:
        """Apply a change, persist it, and roll memory back if persisting fails."""
        backup = copy.deepcopy(self.snapshot())
        try:
            yield
            self._persist()
        except Exception:
            self._load_snapshot(backup)
            raise

    def _all_skus(self) -> List[Sku]:
        return list(self._skus)

    def _insert_skus(self, skus: List[Sku]) -> None:
        taken = {sku_key(s.name) for s in self._skus}
        for sku in skus:
            key = sku_key(sku.name)
            if key in taken:
                raise StoreWriteError(f"duplicate SKU name: {sku.name}")
            taken.add(key)
        with self._changing():
            self._skus.extend(skus)

    def _remove_sku(self, sku_id: str) -> Sku | None:
        for idx, sku in enumerate(self._skus):
            if sku.sku_id == sku_id:
                with self._changing():
                    del self._skus[idx]
                return sku
        return None

    def _all_aliases(self) -> Dict[str, str]:
        return dict(self._aliases)

    def _put_alias(self, key: str, target: str) -> None:
        with self._changing():
            self._aliases[key] = target

    def _remove_alias(self, key: str) -> str | None:
        if key not in self._aliases:
            return None
        with self._changing():
            target = self._aliases.pop(key)
        return target

    def _push_history(
        self, entry_type: HistoryType, message: str, data: Dict[str, Any], timestamp: str
    ) -> HistoryEntry:
        entry = HistoryEntry(
            entry_id=uuid.uuid4().hex,
            entry_type=entry_type,
            message=message,
            data=data,
            timestamp=timestamp,
        )
        with self._changing():
            self._history.insert(0, entry)
        return entry

    def _recent_history(self, limit: int) -> List[HistoryEntry]:
        return list(self._history[:limit])

    def _trim_history(self, keep: int) -> None:
        if len(self._history) > keep:
            with self._changing():
                del self._history[keep:]

    def _read_settings(self) -> Settings | None:
        return copy.copy(self._settings) if self._settings else None

    def _write_settings(self, value: Settings) -> None:
        with self._changing():
            self._settings = copy.copy(value)

    def _wipe(self) -> None:
        with self._changing():
            self._skus, self._aliases, self._history = [], {}, []
            self._settings = None


def open_store(
    backend: str = settings.SKU_STORE_BACKEND,
    *,
    path: Path | str | None = None,
    url: str | None = None,
    **kwargs: Any,
) -> SkuStore:
    """Build the configured backend: ``memory``, ``file`` or ``sql``."""
    if backend == "memory":
        return MemorySkuStore(**kwargs)
    if backend == "file":
        from inventory_connector.json_store import JsonFileSkuStore

        return JsonFileSkuStore(path or settings.SKU_STORE_PATH, **kwargs)
    if backend == "sql":
        from inventory_connector.sql_store import SqlSkuStore

        return SqlSkuStore(url or settings.SKU_STORE_URL, **kwargs)
    raise ValidationError(f"Unknown store backend {backend!r}; expected memory, file or sql")


__all__ = [
    "MemorySkuStore",
    "SkuStore",
    "history_from_dict",
    "open_store",
    "sku_from_dict",
]
