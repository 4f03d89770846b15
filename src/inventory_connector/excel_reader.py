"""Excel extraction for QuickBooks item lists.

This module reads the ``items`` worksheet from an Excel workbook using
``openpyxl`` and converts rows into :class:`NewSku` objects ready for a bulk
import. The worksheet needs a ``Name`` (or ``Item``) column; a ``Category``
column is optional. Names written as ``CATEGORY:ITEM`` are split the same way
as pasted text.
"""

from __future__ import annotations

from pathlib import Path  # Filesystem path management
from typing import List  # Concrete list type for return value

from openpyxl import load_workbook  # Excel file loader

from inventory_connector.model import NewSku  # Domain model used as output
from inventory_connector.sku_parser import parse_sku_line

NAME_HEADERS = ("Name", "Item")


def extract_skus(workbook_path: Path | str, sheet_name: str = "items") -> List[NewSku]:
    """Return SKUs parsed from the Excel workbook.

    Raises :class:`FileNotFoundError` if the workbook cannot be located and
    :class:`ValueError` if the worksheet or its name column is missing.
    """

    workbook_path = Path(workbook_path)  # Ensure we have a Path instance
    if not workbook_path.exists():  # Validate the file exists
        raise FileNotFoundError(f"Workbook not found: {workbook_path}")

    # Open in read-only mode for performance and safety; use cell values only
    workbook = load_workbook(filename=workbook_path, read_only=True, data_only=True)
    try:
        try:
            sheet = workbook[sheet_name]  # Access the required worksheet by name
        except KeyError as exc:
            raise ValueError(f"Worksheet '{sheet_name}' not found in workbook") from exc

        rows = sheet.iter_rows(values_only=True)  # Iterate rows as tuples of raw values
        headers_row = next(rows, None)  # First row should contain column headers
        if headers_row is None:  # Empty sheet edge case
            return []

        headers = [
            str(header).strip() if header is not None else "" for header in headers_row
        ]
        header_index = {header: idx for idx, header in enumerate(headers)}
        name_column = next((h for h in NAME_HEADERS if h in header_index), None)
        if name_column is None:
            raise ValueError(
                f"Worksheet '{sheet_name}' needs a 'Name' or 'Item' column"
            )

        def _value(row, column_name: str):  # Helper to safely access a column
            idx = header_index.get(column_name)
            if idx is None or idx >= len(row):
                return None
            return row[idx]

        skus: List[NewSku] = []
        for row in rows:
            raw_name = _value(row, name_column)
            if raw_name is None:
                continue  # Skip rows without a name
            if isinstance(raw_name, float) and raw_name.is_integer():
                raw_name = int(raw_name)  # Normalise numerics (e.g., 1001.0 -> "1001")
            parsed = parse_sku_line(str(raw_name))
            if parsed is None:
                continue  # Skip blank names

            category = _value(row, "Category")
            if category not in (None, ""):
                parsed = NewSku(name=parsed.name, category=str(category).strip())
            skus.append(parsed)
    finally:
        workbook.close()  # Always close the workbook handle

    return skus


__all__ = ["extract_skus"]  # Public API
