"""Command-line interface for the ShipStation inventory connector."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

from . import settings, shipstation_gateway
from .errors import ConnectorError
from .logger import setup_logger
from .reconcile import summarise
from .report import build_sync_payload, write_sync_report
from .runner import Action, InventorySyncService, OperationResult
from .store import SkuStore, open_store


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inventory-connector",
        description="Reconcile ShipStation sales with QuickBooks inventory items",
    )
    parser.add_argument(
        "--backend",
        choices=("memory", "file", "sql"),
        default=settings.SKU_STORE_BACKEND,
        help="SKU store backend (default from SKU_STORE_BACKEND)",
    )
    parser.add_argument("--store-path", help="JSON store file for the 'file' backend")
    parser.add_argument("--store-url", help="Database URL for the 'sql' backend")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL)

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("import-skus", help="Import SKUs from a text file, one per line")
    p.add_argument("source", help="Text file of SKUs ('-' reads stdin)")

    p = sub.add_parser("import-workbook", help="Import SKUs from an Excel item list")
    p.add_argument("workbook", help="Excel workbook containing the item list")
    p.add_argument("--sheet", default="items", help="Worksheet name (default: items)")

    p = sub.add_parser("add-sku", help="Add one SKU")
    p.add_argument("name")
    p.add_argument("--category")

    p = sub.add_parser("delete-sku", help="Delete a SKU by id")
    p.add_argument("sku_id")

    p = sub.add_parser("add-alias", help="Map a ShipStation SKU to a QuickBooks item")
    p.add_argument("shipstation_sku")
    p.add_argument("quickbooks_sku")

    p = sub.add_parser("delete-alias", help="Remove a ShipStation SKU alias")
    p.add_argument("shipstation_sku")

    p = sub.add_parser("list", help="List stored SKUs or aliases")
    p.add_argument("what", choices=("skus", "aliases"), nargs="?", default="skus")
    p.add_argument("--search", help="Only entries whose name, category or alias contains TEXT")

    p = sub.add_parser("sync", help="Fetch sales for a date range and reconcile them")
    p.add_argument("--start", required=True, help="Start date (YYYY-MM-DD)")
    p.add_argument("--end", required=True, help="End date (YYYY-MM-DD)")
    p.add_argument(
        "--source",
        choices=("orders", "shipments"),
        default=settings.SHIPSTATION_SOURCE,
    )
    p.add_argument(
        "--include-cancelled",
        action="store_true",
        help="Keep cancelled, rejected and voided records",
    )
    p.add_argument("--export", action="store_true", help="Write the IIF file after syncing")
    p.add_argument("--mode", choices=("per-item", "single"), default=settings.IIF_MODE)
    p.add_argument("--output-dir", help="Directory for the IIF file")
    p.add_argument("--report", help="Optional JSON report path")

    p = sub.add_parser("clear", help="Delete every SKU, alias and history entry")
    p.add_argument("--yes", action="store_true", help="Confirm the wipe")

    p = sub.add_parser("history", help="Show recent activity")
    p.add_argument("--limit", type=int, default=20)

    p = sub.add_parser("settings", help="Show or change settings")
    p.add_argument("--account", help="QuickBooks inventory account for adjustments")

    sub.add_parser("stats", help="Show store totals and last sync/export times")
    sub.add_parser("check", help="Confirm ShipStation credentials and connectivity")

    return parser


def _print_result(result: OperationResult) -> int:
    stream = sys.stdout if result.success else sys.stderr
    print(result.message, file=stream)
    return 0 if result.success else 1


def _read_source(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _sync(service: InventorySyncService, args: argparse.Namespace) -> int:
    result = service.sync(
        args.start,
        args.end,
        source=args.source,
        include_cancelled=args.include_cancelled,
    )
    code = _print_result(result)
    session = result.data if result.success else None
    if session is not None:
        for item in session.items:
            target = item.qb_item if item.matched else "UNMATCHED"
            print(f"  {item.sku:<30} {item.quantity:>6}  {target}")

    iif_path = None
    if session is not None and args.export:
        exported = service.export(write=True)
        code = _print_result(exported) or code
        if exported.success:
            iif_path = exported.data["path"]
            print(f"IIF written to {iif_path}")

    if args.report:
        payload = build_sync_payload(
            args.start,
            args.end,
            session.fetch if session else None,
            session.items if session else [],
            summarise(session.items) if session else None,
            iif_path=iif_path,
            error=None if result.success else result.message,
        )
        path = write_sync_report(payload, Path(args.report))
        print(f"Report written to {path}")
    return code


def _run(service: InventorySyncService, args: argparse.Namespace) -> int:
    command = args.command

    if command == "import-skus":
        try:
            text = _read_source(args.source)
        except OSError as exc:
            print(f"Cannot read {args.source}: {exc}", file=sys.stderr)
            return 1
        result = service.import_skus(text)
        code = _print_result(result)
        if result.success:
            for outcome in result.data.outcomes:
                if outcome.status != "imported":
                    print(f"  skipped {outcome.name}: {outcome.reason}")
        return code
    if command == "import-workbook":
        return _print_result(service.import_workbook(args.workbook, sheet_name=args.sheet))
    if command == "add-sku":
        return _print_result(service.add_sku(args.name, args.category))
    if command == "delete-sku":
        return _print_result(service.delete_sku(args.sku_id))
    if command == "add-alias":
        return _print_result(service.add_alias(args.shipstation_sku, args.quickbooks_sku))
    if command == "delete-alias":
        return _print_result(service.delete_alias(args.shipstation_sku))
    if command == "list":
        if args.what == "aliases":
            result = service.dispatch(Action.LIST_ALIASES, search=args.search)
            for key, target in sorted((result.data or {}).items()):
                print(f"{key} -> {target}")
        else:
            result = service.dispatch(Action.LIST_SKUS, search=args.search)
            for sku in result.data or []:
                print(f"{sku.name}\t{sku.category or ''}\t{sku.sku_id}")
        return _print_result(result)
    if command == "sync":
        return _sync(service, args)
    if command == "clear":
        if not args.yes:
            print("Refusing to clear without --yes", file=sys.stderr)
            return 1
        return _print_result(service.clear())
    if command == "history":
        result = service.list_history(args.limit)
        for entry in result.data or []:
            print(f"{entry.timestamp}  {entry.entry_type:<12} {entry.message}")
        return _print_result(result)
    if command == "settings":
        if args.account:
            result = service.update_settings(args.account)
        else:
            result = service.get_settings()
        if result.success:
            print(f"Inventory account: {result.data.inventory_account}")
        return _print_result(result)
    if command == "stats":
        result = service.stats()
        for key, value in (result.data or {}).items():
            print(f"{key}: {value}")
        return _print_result(result)
    if command == "check":
        try:
            status = shipstation_gateway.check_connection()
        except ConnectorError as exc:
            print(exc, file=sys.stderr)
            return 1
        if not status["ok"]:
            print(f"ShipStation unreachable: {status['error']}", file=sys.stderr)
            return 1
        print(f"ShipStation OK: {status['total']} orders available")
        return 0
    print(f"Unknown command: {command}", file=sys.stderr)
    return 2


def main(argv: Sequence[str] | None = None, *, store: SkuStore | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logger("inventory_connector", args.log_level)

    if store is None:
        try:
            store = open_store(args.backend, path=args.store_path, url=args.store_url)
        except ConnectorError as exc:
            print(f"Cannot open SKU store: {exc}", file=sys.stderr)
            return 1
    output_dir = getattr(args, "output_dir", None)
    service = InventorySyncService(
        store, iif_mode=getattr(args, "mode", settings.IIF_MODE), output_dir=output_dir
    )
    with store:
        return _run(service, args)


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
