from datetime import datetime
from unittest.mock import Mock, patch

import pytest
import requests

from inventory_connector.errors import OperationTimeoutError
from inventory_connector.iif_writer import parse_split_lines
from inventory_connector.model import FetchResult, ShipmentLineItem, SyncSession
from inventory_connector.runner import (
    Action,
    InventorySyncService,
    OperationResult,
    run_inventory_sync,
)
from inventory_connector.store import MemorySkuStore


def _fetch_result(*pairs, **kwargs):
    return FetchResult(
        line_items=[ShipmentLineItem(sku, qty) for sku, qty in pairs],
        total_records=kwargs.pop("total_records", len(pairs)),
        status_counts=kwargs.pop("status_counts", {"shipped": len(pairs)}),
        **kwargs,
    )


@pytest.fixture
def store():
    return MemorySkuStore()


@pytest.fixture
def fetcher():
    return Mock(
        return_value=_fetch_result(("abc", 3), ("ABC", 2), ("xyz", 5), ("Parts-W", 1))
    )


@pytest.fixture
def service(store, fetcher, tmp_path):
    return InventorySyncService(store, fetcher=fetcher, output_dir=tmp_path)


# --------------------------------------------------------------------
# DISPATCH TESTS
# --------------------------------------------------------------------
def test_every_action_has_a_handler(service):
    assert set(service._handlers) == set(Action)


def test_dispatch_accepts_action_values(service):
    result = service.dispatch("add-sku", name="Widget")
    assert result.success
    assert result.message == "Added SKU: Widget"
    listed = service.dispatch(Action.LIST_SKUS)
    assert [s.name for s in listed.data] == ["Widget"]


def test_dispatch_unknown_action(service):
    result = service.dispatch("teleport")
    assert not result.success
    assert "Invalid action" in result.message


def test_dispatch_bad_payload_is_reported(service):
    result = service.dispatch(Action.ADD_SKU, colour="red")
    assert not result.success
    assert result.errors == [result.message]


def test_validation_errors_become_results(service):
    result = service.add_alias("ss-1", None)
    assert not result.success
    assert result.message == "Both SKUs are required"
    assert not result.timed_out


def test_not_found_becomes_result(service):
    result = service.dispatch(Action.DELETE_SKU, sku_id="missing")
    assert not result.success
    assert "SKU not found" in result.message


def test_store_actions_round_trip(service):
    assert service.dispatch(Action.ADD_ALIAS, shipstation_sku="SS-1", quickbooks_sku="Widget").success
    assert service.dispatch(Action.LIST_ALIASES).data == {"ss-1": "Widget"}
    assert service.dispatch(Action.DELETE_ALIAS, shipstation_sku="ss-1").success
    assert service.dispatch(Action.UPDATE_SETTINGS, inventory_account="Stock").success
    assert service.dispatch(Action.GET_SETTINGS).data.inventory_account == "Stock"
    assert service.dispatch(Action.ADD_HISTORY, entry_type="sync", message="manual").success
    history = service.dispatch(Action.LIST_HISTORY, limit=1).data
    assert history[0].message == "manual"
    assert service.dispatch(Action.STATS).data["total_aliases"] == 0


def test_import_skus_text(service):
    result = service.dispatch(Action.IMPORT_SKUS, sku_text="A\nCAT1:B\nA\n")
    assert result.success
    assert result.message == "Imported 2 SKUs (1 skipped)"
    assert result.data.names("duplicate") == ["A"]


def test_import_skus_requires_text(service):
    result = service.import_skus("\n\n")
    assert not result.success


def test_import_workbook_missing_file(service, tmp_path):
    result = service.import_workbook(tmp_path / "missing.xlsx")
    assert not result.success
    assert "import-workbook failed" in result.message


# --------------------------------------------------------------------
# SYNC / EXPORT TESTS
# --------------------------------------------------------------------
def test_sync_requires_skus(service, fetcher):
    result = service.sync("2025-01-01", "2025-01-31")
    assert not result.success
    assert result.message == "Please import SKUs first"
    fetcher.assert_not_called()


def test_sync_requires_dates(service):
    service.add_sku("ABC")
    assert not service.sync("", "2025-01-31").success


def test_sync_reconciles_and_records_history(service, store, fetcher):
    service.add_sku("ABC")
    service.add_sku("Widget")
    service.add_alias("parts-w", "Parts:Widget")

    result = service.sync("2025-01-01", "2025-01-31", include_cancelled=True)

    assert result.success
    fetcher.assert_called_once_with("2025-01-01", "2025-01-31", include_cancelled=True)
    session = result.data
    assert isinstance(session, SyncSession)
    assert [(i.sku, i.qb_item, i.quantity) for i in session.items] == [
        ("abc", "ABC", 5),
        ("xyz", None, 5),
        ("Parts-W", "Parts:Widget", 1),
    ]
    assert service.last_sync is session
    assert "2 matched, 1 unmatched" in result.message

    entry = store.list_history()[0]
    assert entry.entry_type == "sync"
    assert entry.data["orders"] == 4
    assert entry.data["matched"] == 2
    assert entry.data["order_statuses"] == {"shipped": 4}
    assert entry.data["date_range"] == {"start_date": "2025-01-01", "end_date": "2025-01-31"}


def test_sync_partial_result_is_flagged(service, fetcher):
    service.add_sku("ABC")
    fetcher.return_value = _fetch_result(("abc", 1), halted_early=True, error="page 3: 502")

    result = service.sync("2025-01-01", "2025-01-31")

    assert result.success
    assert "partial" in result.message
    assert "page 3: 502" in result.message


def test_sync_timeout_is_distinct(service, fetcher):
    service.add_sku("ABC")
    fetcher.side_effect = OperationTimeoutError("ShipStation fetch timed out after 120s")

    result = service.sync("2025-01-01", "2025-12-31")

    assert not result.success
    assert result.timed_out
    assert "smaller date range" in result.message


def test_sync_network_failure(service, fetcher):
    service.add_sku("ABC")
    fetcher.side_effect = requests.ConnectionError("unreachable")

    result = service.sync("2025-01-01", "2025-01-31")

    assert not result.success
    assert not result.timed_out
    assert "sync failed" in result.message


def test_export_requires_sync(service):
    result = service.export()
    assert not result.success
    assert "run a sync first" in result.message


def test_export_after_sync(service, store, tmp_path):
    service.add_sku("ABC")
    service.add_sku("Widget")
    service.add_alias("parts-w", "Parts:Widget")
    service.update_settings("1500 · Inventory")
    service.sync("2025-01-01", "2025-01-31")

    result = service.export(write=True, today=datetime(2025, 2, 1))

    assert result.success
    assert result.message == "IIF file generated with 2 items"
    document = result.data["document"]
    assert parse_split_lines(document.content) == [("ABC", -5), ("Widget", -1)]
    path = result.data["path"]
    assert path == tmp_path / "inventory_adjustment_2025-02-01.iif"
    assert path.read_text(encoding="utf-8") == document.content
    assert store.list_history()[0].entry_type == "export"
    assert store.stats()["last_export"] is not None


def test_export_nothing_matched(service, fetcher):
    service.add_sku("Other")
    service.sync("2025-01-01", "2025-01-31")
    result = service.export()
    assert not result.success
    assert "No matched items" in result.message


def test_clear_forgets_last_sync(service):
    service.add_sku("ABC")
    service.sync("2025-01-01", "2025-01-31")
    result = service.dispatch(Action.CLEAR)
    assert result.success
    assert service.last_sync is None
    assert service.list_skus().data == []


def test_operation_result_helpers():
    ok = OperationResult.ok("done", 1)
    assert ok.success and ok.data == 1 and ok.errors == []
    failed = OperationResult.fail("nope", timed_out=True)
    assert not failed.success and failed.timed_out and failed.errors == ["nope"]


@patch("inventory_connector.runner.shipstation_gateway.fetch_line_items")
def test_run_inventory_sync_writes_file(mock_fetch, tmp_path):
    mock_fetch.return_value = _fetch_result(("Widget", 2))
    store = MemorySkuStore()
    store.create_sku("Widget")

    result = run_inventory_sync(store, "2025-01-01", "2025-01-31", output_dir=tmp_path)

    assert result.success
    assert result.data["path"].exists()


def test_add_history_rejects_unknown_type(service, store):
    result = service.dispatch(Action.ADD_HISTORY, entry_type="teleport", message="x")
    assert not result.success
    assert "Unknown history type" in result.message
    assert store.list_history() == []


def test_list_skus_with_search(service):
    service.add_sku("Blue Widget")
    service.add_sku("Gadget")
    result = service.dispatch(Action.LIST_SKUS, search="widget")
    assert [s.name for s in result.data] == ["Blue Widget"]
