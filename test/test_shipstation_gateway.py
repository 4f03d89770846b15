from unittest.mock import Mock, patch

import pytest
import requests

from inventory_connector import shipstation_gateway
from inventory_connector.errors import OperationTimeoutError, ValidationError
from inventory_connector.model import ShipmentLineItem


def _response(payload):
    response = Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def _order(status, *items, **extra):
    return {
        "orderStatus": status,
        "items": [{"sku": sku, "quantity": qty} for sku, qty in items],
        **extra,
    }


@pytest.fixture
def session():
    return Mock(spec=requests.Session)


def _fetch(session, **kwargs):
    kwargs.setdefault("sleep", lambda _: None)
    return shipstation_gateway.fetch_line_items(
        "2025-01-01", "2025-01-31", session=session, **kwargs
    )


# --------------------------------------------------------------------
# HELPER TESTS
# --------------------------------------------------------------------
def test_window_bounds_expands_plain_dates():
    assert shipstation_gateway.window_bounds("2025-01-01", "2025-01-31") == (
        "2025-01-01T00:00:01",
        "2025-01-31T23:59:59",
    )


def test_window_bounds_keeps_timestamps():
    start, end = shipstation_gateway.window_bounds("2025-01-01T08:00:00", "2025-01-02T08:00:00")
    assert start == "2025-01-01T08:00:00"
    assert end == "2025-01-02T08:00:00"


def test_window_bounds_requires_both_dates():
    with pytest.raises(ValidationError):
        shipstation_gateway.window_bounds("", "2025-01-31")


@pytest.mark.parametrize(
    "status, excluded",
    [
        ("cancelled", True),
        ("Cancelled", True),
        ("rejected_fulfillment", True),
        ("voided", True),
        ("shipped", False),
        ("awaiting_shipment", False),
    ],
)
def test_is_excluded_status(status, excluded):
    assert shipstation_gateway.is_excluded_status(status, ("cancelled", "rejected", "void")) is excluded


def test_record_status_prefers_voided_flag():
    assert shipstation_gateway.record_status({"voided": True, "shipmentStatus": "shipped"}) == "voided"
    assert shipstation_gateway.record_status({"orderStatus": "shipped"}) == "shipped"
    assert shipstation_gateway.record_status({}) == ""


def test_extract_line_items_uses_sentinel_and_lenient_quantity():
    record = {"items": [{"sku": "", "quantity": "2"}, {"sku": "A", "quantity": None}, "junk"]}
    assert shipstation_gateway.extract_line_items(record, "items") == [
        ShipmentLineItem("UNKNOWN", 2),
        ShipmentLineItem("A", 0),
    ]


def test_build_session_requires_credentials():
    with pytest.raises(ValidationError):
        shipstation_gateway.build_session("", "")


def test_build_session_sets_basic_auth():
    session = shipstation_gateway.build_session("key", "secret")
    assert session.auth.username == "key"
    assert session.auth.password == "secret"


# --------------------------------------------------------------------
# FETCH TESTS (Mocked)
# --------------------------------------------------------------------
def test_fetch_single_page_excludes_cancelled(session):
    session.get.return_value = _response(
        {
            "orders": [
                _order("shipped", ("A", 2), ("B", 1)),
                _order("cancelled", ("A", 10)),
                _order("awaiting_shipment", ("A", 1)),
            ]
        }
    )

    result = _fetch(session)

    assert result.line_items == [
        ShipmentLineItem("A", 2),
        ShipmentLineItem("B", 1),
        ShipmentLineItem("A", 1),
    ]
    assert result.total_records == 2
    assert result.excluded_records == 1
    assert result.status_counts == {"shipped": 1, "awaiting_shipment": 1}
    assert result.pages_fetched == 1
    assert not result.halted_early

    _, kwargs = session.get.call_args
    assert kwargs["params"]["orderDateStart"] == "2025-01-01T00:00:01"
    assert kwargs["params"]["orderDateEnd"] == "2025-01-31T23:59:59"
    assert kwargs["params"]["page"] == 1


def test_fetch_include_cancelled_keeps_everything(session):
    session.get.return_value = _response({"orders": [_order("cancelled", ("A", 10))]})
    result = _fetch(session, include_cancelled=True)
    assert result.line_items == [ShipmentLineItem("A", 10)]
    assert result.excluded_records == 0


def test_fetch_paginates_while_pages_are_full(session):
    session.get.side_effect = [
        _response({"orders": [_order("shipped", ("A", 1)), _order("shipped", ("B", 1))]}),
        _response({"orders": [_order("shipped", ("C", 1))]}),
    ]
    sleep = Mock()

    result = _fetch(session, page_size=2, page_delay=0.25, sleep=sleep)

    assert [i.sku for i in result.line_items] == ["A", "B", "C"]
    assert result.pages_fetched == 2
    assert [c.kwargs["params"]["page"] for c in session.get.call_args_list] == [1, 2]
    sleep.assert_called_once_with(0.25)


def test_fetch_page_failure_returns_partial(session):
    failing = Mock()
    failing.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
    session.get.side_effect = [
        _response({"orders": [_order("shipped", ("A", 1)), _order("shipped", ("B", 1))]}),
        failing,
    ]

    result = _fetch(session, page_size=2)

    assert [i.sku for i in result.line_items] == ["A", "B"]
    assert result.halted_early
    assert result.error.startswith("page 2:")


def test_fetch_malformed_json_halts(session):
    bad = Mock()
    bad.raise_for_status.return_value = None
    bad.json.side_effect = ValueError("Expecting value")
    session.get.return_value = bad

    result = _fetch(session)
    assert result.halted_early
    assert result.line_items == []


def test_fetch_shipments_source(session):
    session.get.return_value = _response(
        {
            "shipments": [
                {"shipmentStatus": "shipped", "shipmentItems": [{"sku": "S", "quantity": 4}]},
                {"voided": True, "shipmentItems": [{"sku": "V", "quantity": 1}]},
            ]
        }
    )

    result = _fetch(session, source="shipments", base_url="https://example.test/")

    assert result.line_items == [ShipmentLineItem("S", 4)]
    assert result.excluded_records == 1
    args, kwargs = session.get.call_args
    assert args[0] == "https://example.test/shipments"
    assert kwargs["params"]["includeShipmentItems"] == "true"
    assert "shipDateStart" in kwargs["params"]


def test_fetch_unknown_source(session):
    with pytest.raises(ValidationError):
        _fetch(session, source="invoices")


def test_fetch_deadline_raises_timeout(session):
    session.get.return_value = _response({"orders": [_order("shipped", ("A", 1))]})
    ticks = iter([0.0, 0.0, 200.0])

    with pytest.raises(OperationTimeoutError, match="smaller date range"):
        _fetch(session, page_size=1, operation_timeout=120, clock=lambda: next(ticks))


def test_fetch_request_timeout_past_deadline_is_fatal(session):
    session.get.side_effect = requests.Timeout("read timed out")
    ticks = iter([0.0, 0.0, 500.0])

    with pytest.raises(OperationTimeoutError):
        _fetch(session, operation_timeout=120, clock=lambda: next(ticks))


def test_fetch_request_timeout_before_deadline_is_partial(session):
    session.get.side_effect = requests.Timeout("read timed out")
    result = _fetch(session, clock=lambda: 0.0)
    assert result.halted_early


@patch("inventory_connector.shipstation_gateway.build_session")
def test_fetch_opens_and_closes_own_session(mock_build):
    owned = Mock()
    owned.get.return_value = _response({"orders": []})
    mock_build.return_value = owned

    shipstation_gateway.fetch_line_items("2025-01-01", "2025-01-02", sleep=lambda _: None)

    mock_build.assert_called_once_with()
    owned.close.assert_called_once_with()


def test_check_connection_ok(session):
    session.get.return_value = _response({"orders": [], "total": 42, "pages": 42})
    assert shipstation_gateway.check_connection(session=session) == {
        "ok": True,
        "total": 42,
        "pages": 42,
    }
    _, kwargs = session.get.call_args
    assert kwargs["params"] == {"page": 1, "pageSize": 1}


def test_check_connection_reports_failure(session):
    session.get.side_effect = requests.ConnectionError("refused")
    status = shipstation_gateway.check_connection(session=session)
    assert status["ok"] is False
    assert "refused" in status["error"]
