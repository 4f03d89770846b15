"""ShipStation REST gateway helpers for order and shipment line items.

This module pages through the ShipStation ``/orders`` or ``/shipments``
endpoint over a date window using ``requests``. Records whose status matches
the exclusion set are dropped, and the remaining line items are returned in
fetch order. A failing page stops pagination but keeps whatever was collected
before it; only the overall operator deadline is fatal.
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

import logging
import re
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Iterator, List

import requests
from requests.auth import HTTPBasicAuth

from inventory_connector import settings
from inventory_connector.consolidate import parse_quantity
from inventory_connector.errors import OperationTimeoutError, ValidationError
from inventory_connector.model import FetchResult, ShipmentLineItem, UNKNOWN_SKU

logger = logging.getLogger(__name__)

_PLAIN_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True, slots=True)
class Endpoint:
    """Where a record type lives and how its payload is shaped."""

    path: str
    start_param: str
    end_param: str
    records_key: str
    items_key: str
    extra_params: tuple[tuple[str, Any], ...] = ()


ENDPOINTS = {
    # Orders capture every sale, including freight-only shipments.
    "orders": Endpoint(
        path="/orders",
        start_param="orderDateStart",
        end_param="orderDateEnd",
        records_key="orders",
        items_key="items",
    ),
    "shipments": Endpoint(
        path="/shipments",
        start_param="shipDateStart",
        end_param="shipDateEnd",
        records_key="shipments",
        items_key="shipmentItems",
        extra_params=(("includeShipmentItems", "true"),),
    ),
}


def build_session(api_key: str | None = None, api_secret: str | None = None) -> requests.Session:
    """Return a session authenticated with ShipStation basic auth."""
    api_key = api_key if api_key is not None else settings.SHIPSTATION_API_KEY
    api_secret = api_secret if api_secret is not None else settings.SHIPSTATION_API_SECRET
    if not api_key or not api_secret:
        raise ValidationError(
            "ShipStation credentials are missing; set SHIPSTATION_API_KEY and SHIPSTATION_API_SECRET"
        )
    session = requests.Session()
    session.auth = HTTPBasicAuth(api_key, api_secret)
    session.headers.update({"Content-Type": "application/json"})
    return session


@contextmanager
def _shipstation_session(session: requests.Session | None) -> Iterator[requests.Session]:
    """Use the caller's session, or open one from settings and close it afterwards."""
    if session is not None:
        yield session
        return
    owned = build_session()
    try:
        yield owned
    finally:
        owned.close()


def window_bounds(start_date: str, end_date: str) -> tuple[str, str]:
    """Expand plain ``YYYY-MM-DD`` dates to cover the whole of both days."""
    if not start_date or not end_date:
        raise ValidationError("Start date and end date are required")
    start = f"{start_date}T00:00:01" if _PLAIN_DATE.match(start_date) else start_date
    end = f"{end_date}T23:59:59" if _PLAIN_DATE.match(end_date) else end_date
    return start, end


def record_status(record: dict) -> str:
    """Return the status label used for exclusion and reporting."""
    if record.get("voided"):
        return "voided"
    status = record.get("orderStatus") or record.get("shipmentStatus") or ""
    return str(status)


def is_excluded_status(status: str, exclusions: Iterable[str]) -> bool:
    """Case-insensitive substring test; tolerates label variants such as
    ``rejected_fulfillment`` or ``Cancelled``."""
    lowered = status.lower()
    return any(term and term.lower() in lowered for term in exclusions)


def extract_line_items(record: dict, items_key: str) -> List[ShipmentLineItem]:
    """Pull (sku, quantity) pairs out of one order/shipment record."""
    raw_items = record.get(items_key)
    if not isinstance(raw_items, list):
        return []
    items: List[ShipmentLineItem] = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            continue
        sku = raw.get("sku") or UNKNOWN_SKU  # Missing/blank SKUs share a sentinel
        items.append(
            ShipmentLineItem(sku=str(sku), quantity=parse_quantity(raw.get("quantity")))
        )
    return items


def _fetch_page(
    session: requests.Session,
    url: str,
    params: dict,
    timeout: float,
) -> dict:
    """GET one page and return the decoded payload; raises on any failure."""
    response = session.get(url, params=params, timeout=timeout)
    response.raise_for_status()
    payload = response.json()
    if not isinstance(payload, dict):
        raise ValueError("ShipStation response is not a JSON object")
    return payload


def fetch_line_items(
    start_date: str,
    end_date: str,
    *,
    source: str = settings.SHIPSTATION_SOURCE,
    exclude_statuses: Iterable[str] = settings.EXCLUDED_STATUSES,
    include_cancelled: bool = False,
    session: requests.Session | None = None,
    base_url: str = settings.SHIPSTATION_BASE_URL,
    page_size: int = settings.PAGE_SIZE,
    page_delay: float = settings.PAGE_DELAY_SECONDS,
    request_timeout: float = settings.REQUEST_TIMEOUT_SECONDS,
    operation_timeout: float = settings.OPERATION_TIMEOUT_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> FetchResult:
    """Return every accepted line item between ``start_date`` and ``end_date``.

    Pages are requested one at a time with ``page_delay`` seconds between
    them, and pagination continues while a page comes back full. A request
    or decoding error halts pagination and the partial result is returned
    with ``halted_early`` set. Running past ``operation_timeout`` raises
    :class:`OperationTimeoutError`.
    """

    try:
        endpoint = ENDPOINTS[source]
    except KeyError as exc:
        raise ValidationError(
            f"Unknown ShipStation source {source!r}; expected one of {sorted(ENDPOINTS)}"
        ) from exc

    start, end = window_bounds(start_date, end_date)
    exclusions = () if include_cancelled else tuple(exclude_statuses)
    url = base_url.rstrip("/") + endpoint.path
    deadline = clock() + operation_timeout

    result = FetchResult()
    page = 1
    with _shipstation_session(session) as active:
        while True:
            remaining = deadline - clock()
            if remaining <= 0:
                raise OperationTimeoutError(
                    f"ShipStation fetch timed out after {operation_timeout:g}s "
                    f"({result.pages_fetched} pages read); try a smaller date range"
                )

            params = {
                endpoint.start_param: start,
                endpoint.end_param: end,
                "page": page,
                "pageSize": page_size,
                **dict(endpoint.extra_params),
            }
            logger.info("Fetching ShipStation %s page %d (%s to %s)", source, page, start, end)

            try:
                payload = _fetch_page(active, url, params, min(request_timeout, remaining))
            except requests.Timeout as exc:
                if deadline - clock() <= 0:
                    raise OperationTimeoutError(
                        f"ShipStation fetch timed out after {operation_timeout:g}s; "
                        "try a smaller date range"
                    ) from exc
                logger.error("Error fetching %s page %d: %s", source, page, exc)
                result.halted_early, result.error = True, f"page {page}: {exc}"
                break
            except (requests.RequestException, ValueError) as exc:
                logger.error("Error fetching %s page %d: %s", source, page, exc)
                result.halted_early, result.error = True, f"page {page}: {exc}"
                break

            records = payload.get(endpoint.records_key) or []
            result.pages_fetched += 1
            accepted = 0
            for record in records:
                if not isinstance(record, dict):
                    continue
                status = record_status(record)
                if exclusions and is_excluded_status(status, exclusions):
                    result.excluded_records += 1
                    continue
                accepted += 1
                label = status or "unknown"
                result.status_counts[label] = result.status_counts.get(label, 0) + 1
                result.line_items.extend(extract_line_items(record, endpoint.items_key))
            result.total_records += accepted

            logger.info(
                "Page %d: %d records, %d accepted (%d excluded so far)",
                page,
                len(records),
                accepted,
                result.excluded_records,
            )

            if len(records) < page_size:
                break
            page += 1
            sleep(page_delay)

    logger.info(
        "Fetched %d %s, %d line items across %d pages%s",
        result.total_records,
        source,
        len(result.line_items),
        result.pages_fetched,
        " (partial)" if result.halted_early else "",
    )
    return result


def check_connection(
    *,
    session: requests.Session | None = None,
    base_url: str = settings.SHIPSTATION_BASE_URL,
    request_timeout: float = settings.REQUEST_TIMEOUT_SECONDS,
) -> dict:
    """Request a single small page of orders to confirm credentials and reachability.

    Returns ``{"ok": True, "total": n, "pages": p}`` from the response, or
    ``{"ok": False, "error": message}``.
    """

    url = base_url.rstrip("/") + ENDPOINTS["orders"].path
    with _shipstation_session(session) as active:
        try:
            payload = _fetch_page(active, url, {"page": 1, "pageSize": 1}, request_timeout)
        except (requests.RequestException, ValueError) as exc:
            logger.error("ShipStation connection check failed: %s", exc)
            return {"ok": False, "error": str(exc)}
    return {"ok": True, "total": payload.get("total", 0), "pages": payload.get("pages", 0)}


__all__ = [
    "ENDPOINTS",
    "build_session",
    "check_connection",
    "extract_line_items",
    "fetch_line_items",
    "is_excluded_status",
    "record_status",
    "window_bounds",
]


if __name__ == "__main__":  # manual test run
    import sys

    try:
        fetched = fetch_line_items(sys.argv[1], sys.argv[2])
        for line in fetched.line_items:
            print(line)
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)
