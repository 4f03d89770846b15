"""Relational store built on SQLAlchemy Core.

Works against any database SQLAlchemy can reach; the default URL is a local
SQLite file. SKU names carry a unique index on ``lower(name)`` so the database
itself rejects case-insensitive duplicates inside a batch insert.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlalchemy import (
    JSON,
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from inventory_connector.errors import StoreWriteError
from inventory_connector.model import HistoryEntry, HistoryType, Settings, Sku
from inventory_connector.store import SkuStore

logger = logging.getLogger(__name__)

metadata = MetaData()

skus_table = Table(
    "skus",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("category", String(255)),
    Column("type", String(16), nullable=False),
    Column("created_at", String(40), nullable=False),
)
Index("ux_skus_name_lower", func.lower(skus_table.c.name), unique=True)

aliases_table = Table(
    "aliases",
    metadata,
    Column("shipstation_sku", String(255), primary_key=True),  # case-folded
    Column("quickbooks_sku", String(255), nullable=False),
)

history_table = Table(
    "history",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("type", String(16), nullable=False),
    Column("message", Text, nullable=False),
    Column("data", JSON),
    Column("created_at", String(40), nullable=False),
)

settings_table = Table(
    "settings",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("inventory_account", String(255), nullable=False),
    Column("last_updated", String(40)),
)

_SETTINGS_ROW = 1


class SqlSkuStore(SkuStore):
    def __init__(self, url: str | Engine, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._engine = url if isinstance(url, Engine) else create_engine(url)
        metadata.create_all(self._engine)

    def close(self) -> None:
        self._engine.dispose()

    def _write(self, statements) -> None:
        """Run ``statements`` in one transaction; any failure rolls all back."""
        try:
            with self._engine.begin() as conn:
                for stmt in statements:
                    conn.execute(stmt)
        except SQLAlchemyError as exc:
            logger.warning("Database write failed: %s", exc.__cause__ or exc)
            raise StoreWriteError(str(exc.__cause__ or exc)) from exc

    @staticmethod
    def _row_to_sku(row) -> Sku:
        return Sku(
            sku_id=row.id,
            name=row.name,
            category=row.category,
            origin=row.type,
            created_at=row.created_at,
        )

    def _all_skus(self) -> List[Sku]:
        with self._engine.connect() as conn:
            rows = conn.execute(select(skus_table).order_by(skus_table.c.created_at))
            return [self._row_to_sku(row) for row in rows]

    def _insert_skus(self, skus: List[Sku]) -> None:
        if not skus:
            return
        self._write(
            [
                insert(skus_table).values(
                    [
                        {
                            "id": sku.sku_id,
                            "name": sku.name,
                            "category": sku.category,
                            "type": sku.origin,
                            "created_at": sku.created_at,
                        }
                        for sku in skus
                    ]
                )
            ]
        )

    def _remove_sku(self, sku_id: str) -> Sku | None:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(skus_table).where(skus_table.c.id == sku_id)
            ).first()
        if row is None:
            return None
        self._write([delete(skus_table).where(skus_table.c.id == sku_id)])
        return self._row_to_sku(row)

    def _all_aliases(self) -> Dict[str, str]:
        with self._engine.connect() as conn:
            rows = conn.execute(select(aliases_table))
            return {row.shipstation_sku: row.quickbooks_sku for row in rows}

    def _put_alias(self, key: str, target: str) -> None:
        try:
            with self._engine.begin() as conn:
                result = conn.execute(
                    update(aliases_table)
                    .where(aliases_table.c.shipstation_sku == key)
                    .values(quickbooks_sku=target)
                )
                if result.rowcount == 0:
                    conn.execute(
                        insert(aliases_table).values(shipstation_sku=key, quickbooks_sku=target)
                    )
        except SQLAlchemyError as exc:
            raise StoreWriteError(str(exc)) from exc

    def _remove_alias(self, key: str) -> str | None:
        with self._engine.connect() as conn:
            target = conn.execute(
                select(aliases_table.c.quickbooks_sku).where(aliases_table.c.shipstation_sku == key)
            ).scalar_one_or_none()
        if target is None:
            return None
        self._write([delete(aliases_table).where(aliases_table.c.shipstation_sku == key)])
        return target

    def _push_history(
        self, entry_type: HistoryType, message: str, data: Dict[str, Any], timestamp: str
    ) -> HistoryEntry:
        try:
            with self._engine.begin() as conn:
                result = conn.execute(
                    insert(history_table).values(
                        type=entry_type, message=message, data=data, created_at=timestamp
                    )
                )
                entry_id = result.inserted_primary_key[0]
        except SQLAlchemyError as exc:
            raise StoreWriteError(str(exc)) from exc
        return HistoryEntry(
            entry_id=str(entry_id),
            entry_type=entry_type,
            message=message,
            data=data,
            timestamp=timestamp,
        )

    def _recent_history(self, limit: int) -> List[HistoryEntry]:
        with self._engine.connect() as conn:
            rows = conn.execute(
                select(history_table).order_by(history_table.c.id.desc()).limit(limit)
            )
            return [
                HistoryEntry(
                    entry_id=str(row.id),
                    entry_type=row.type,
                    message=row.message,
                    data=dict(row.data or {}),
                    timestamp=row.created_at,
                )
                for row in rows
            ]

    def _trim_history(self, keep: int) -> None:
        # Ids only grow, so everything at or below the first id past the
        # newest ``keep`` rows can go.
        with self._engine.connect() as conn:
            cutoff = conn.execute(
                select(history_table.c.id)
                .order_by(history_table.c.id.desc())
                .offset(keep)
                .limit(1)
            ).scalar_one_or_none()
        if cutoff is None:
            return
        self._write([delete(history_table).where(history_table.c.id <= cutoff)])

    def _read_settings(self) -> Settings | None:
        with self._engine.connect() as conn:
            row = conn.execute(
                select(settings_table).where(settings_table.c.id == _SETTINGS_ROW)
            ).first()
        if row is None:
            return None
        return Settings(inventory_account=row.inventory_account, last_updated=row.last_updated)

    def _write_settings(self, value: Settings) -> None:
        self._write(
            [
                delete(settings_table).where(settings_table.c.id == _SETTINGS_ROW),
                insert(settings_table).values(
                    id=_SETTINGS_ROW,
                    inventory_account=value.inventory_account,
                    last_updated=value.last_updated,
                ),
            ]
        )

    def _wipe(self) -> None:
        self._write(
            [
                delete(history_table),
                delete(aliases_table),
                delete(skus_table),
                delete(settings_table),
            ]
        )


__all__ = ["SqlSkuStore", "metadata"]
