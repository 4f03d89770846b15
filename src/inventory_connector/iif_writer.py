"""QuickBooks IIF (Intuit Interchange Format) generation for inventory adjustments.

The document has three parts:

1. ``!HDR``/``HDR`` - product, version and the time the file was produced.
2. ``!TRNS``/``!SPL``/``!ENDTRNS`` - the field order of the transaction and
   split lines that follow.
3. One or more ``TRNS`` blocks of type ``INVADJ``, each followed by its
   ``SPL`` lines and closed by ``ENDTRNS``.

QuickBooks rejects the whole import when an item or account does not exist,
so only matched items with a positive quantity are written, and item names
are stripped of any ``CATEGORY:`` prefix. Amounts are always zero: this is a
quantity-only adjustment and negative quantities reduce stock.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Tuple

from inventory_connector import settings
from inventory_connector.errors import NothingToExportError, ValidationError
from inventory_connector.model import IIFDocument, IIFMode, NOT_FOUND, ReconciledItem

logger = logging.getLogger(__name__)

HDR_FIELDS = (
    "PROD",
    "VER",
    "REL",
    "IIFVER",
    "DATE",
    "TIME",
    "ACCNTNT",
    "ACCNTNTSPLITTIME",
)
TRNS_FIELDS = (
    "TRNSID",
    "TRNSTYPE",
    "DATE",
    "ACCNT",
    "NAME",
    "CLASS",
    "AMOUNT",
    "DOCNUM",
    "MEMO",
)
SPL_FIELDS = (
    "SPLID",
    "TRNSTYPE",
    "DATE",
    "ACCNT",
    "NAME",
    "CLASS",
    "AMOUNT",
    "DOCNUM",
    "MEMO",
    "INVITEM",
    "QNTY",
)

TRNS_TYPE = "INVADJ"
DOCNUM_PREFIX = "SS-ADJ"
SPLIT_MEMO = "Sold via ShipStation"
ZERO_AMOUNT = "0"


def _line(*fields: object) -> str:
    return "\t".join("" if f is None else str(f) for f in fields)


def _check_field(value: str, label: str) -> str:
    """Tabs and newlines would shift every following column."""
    if "\t" in value or "\n" in value or "\r" in value:
        raise ValidationError(f"{label} contains a tab or line break: {value!r}")
    return value


def clean_item_name(name: str) -> str:
    """Drop a ``CATEGORY:`` prefix; QuickBooks matches the bare item name."""
    if ":" in name:
        return name.rsplit(":", 1)[-1].strip()
    return name.strip()


def eligible_items(items: Iterable[ReconciledItem]) -> List[ReconciledItem]:
    """Only matched, named, positive-quantity items may be exported."""
    return [
        item
        for item in items
        if item.matched
        and item.qb_item
        and item.qb_item != NOT_FOUND
        and clean_item_name(item.qb_item)
        and item.quantity > 0
    ]


def iif_filename(today: datetime | None = None) -> str:
    today = today or datetime.now()
    return f"inventory_adjustment_{today:%Y-%m-%d}.iif"


def _header_lines(now: datetime) -> List[str]:
    return [
        _line("!HDR", *HDR_FIELDS),
        _line(
            "HDR",
            "QuickBooks Pro",
            "Version 2023",
            "Release R1",
            1,
            f"{now:%m/%d/%Y}",
            f"{now:%H:%M:%S}",
            "N",
            0,
        ),
        _line("!TRNS", *TRNS_FIELDS),
        _line("!SPL", *SPL_FIELDS),
        "!ENDTRNS",
    ]


def export_iif(
    items: Iterable[ReconciledItem],
    account_name: str | None,
    date_range: Tuple[str, str],
    *,
    mode: IIFMode = "per-item",
    today: datetime | None = None,
) -> IIFDocument:
    """Serialise the exportable subset of ``items`` to an IIF document.

    ``mode="per-item"`` writes one transaction per item with document numbers
    ``SS-ADJ-<date>-<n>``. ``mode="single"`` writes one transaction holding a
    split line per item under the shared number ``SS-ADJ-<date>``.

    Raises :class:`NothingToExportError` when no item qualifies.
    """

    items = list(items)
    exportable = eligible_items(items)
    logger.info(
        "Generating IIF for %d matched items (filtered from %d total)",
        len(exportable),
        len(items),
    )
    if not exportable:
        raise NothingToExportError(
            "No matched items to export; create aliases for unmatched SKUs first"
        )
    if mode not in ("per-item", "single"):
        raise ValidationError(f"Unknown IIF mode {mode!r}")

    now = today or datetime.now()
    account = _check_field(account_name or settings.DEFAULT_INVENTORY_ACCOUNT, "Account")
    adjustment_date = f"{now:%m/%d/%Y}"
    start, end = date_range
    memo = _check_field(f"ShipStation sync {start} to {end}", "Memo")
    stamp = f"{now:%Y-%m-%d}"

    lines = _header_lines(now)

    if mode == "single":
        docnum = f"{DOCNUM_PREFIX}-{stamp}"
        lines.append(
            _line("TRNS", 1, TRNS_TYPE, adjustment_date, account, "", "", ZERO_AMOUNT, docnum, memo)
        )
        for split_id, item in enumerate(exportable, start=1):
            lines.append(_split_line(split_id, item, adjustment_date, account, docnum))
        lines.append("ENDTRNS")
    else:
        for trns_id, item in enumerate(exportable, start=1):
            docnum = f"{DOCNUM_PREFIX}-{stamp}-{trns_id}"
            lines.append(
                _line("TRNS", trns_id, TRNS_TYPE, adjustment_date, account, "", "", ZERO_AMOUNT, docnum, memo)
            )
            lines.append(_split_line(trns_id, item, adjustment_date, account, docnum))
            lines.append("ENDTRNS")

    return IIFDocument(
        content="\n".join(lines) + "\n",
        filename=iif_filename(now),
        item_count=len(exportable),
    )


def _split_line(
    split_id: int, item: ReconciledItem, adjustment_date: str, account: str, docnum: str
) -> str:
    item_name = _check_field(clean_item_name(item.qb_item or ""), "Item name")
    return _line(
        "SPL",
        split_id,
        TRNS_TYPE,
        adjustment_date,
        account,
        "",
        "",
        ZERO_AMOUNT,
        docnum,
        SPLIT_MEMO,
        item_name,
        -item.quantity,
    )


def parse_split_lines(content: str) -> List[Tuple[str, int]]:
    """Read back ``(INVITEM, QNTY)`` pairs from the ``SPL`` lines of a document.

    Field positions come from the document's own ``!SPL`` header line.
    """

    columns: dict[str, int] | None = None
    pairs: List[Tuple[str, int]] = []
    for raw in content.splitlines():
        fields = raw.split("\t")
        if fields[0] == "!SPL":
            columns = {name: idx for idx, name in enumerate(fields)}
        elif fields[0] == "SPL":
            if columns is None:
                raise ValueError("SPL line found before the !SPL header")
            pairs.append(
                (fields[columns["INVITEM"]], int(fields[columns["QNTY"]]))
            )
    return pairs


def write_iif(document: IIFDocument, output_dir: Path | str | None = None) -> Path:
    """Write ``document`` under ``output_dir`` and return the path."""
    directory = Path(output_dir) if output_dir else settings.OUTPUT_DIR
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / document.filename
    with path.open("w", encoding="utf-8", newline="") as f:
        f.write(document.content)
    return path


__all__ = [
    "clean_item_name",
    "eligible_items",
    "export_iif",
    "iif_filename",
    "parse_split_lines",
    "write_iif",
]
