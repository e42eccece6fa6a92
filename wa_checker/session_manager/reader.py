"""Read phone numbers from an uploaded spreadsheet."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any

from openpyxl import load_workbook


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    # Excel stores long numbers as floats: 15550001.0 -> "15550001"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def read_phone_numbers(filepath: Path) -> list[str]:
    """Return the first-column values below the header row, in order.

    Values are returned as text without trimming or filtering blanks;
    sanitation belongs to the job engine.
    """
    filepath = Path(filepath)
    suffix = filepath.suffix.lower()

    if suffix == ".csv":
        with open(filepath, encoding="utf-8-sig", newline="") as f:
            rows = [row[:1] for row in csv.reader(f)]
    elif suffix in (".xlsx", ".xlsm"):
        wb = load_workbook(filepath, read_only=True, data_only=True)
        try:
            ws = wb.worksheets[0]
            rows = list(ws.iter_rows(min_col=1, max_col=1, values_only=True))
        finally:
            wb.close()
    else:
        raise ValueError(f"Unsupported input file type: {filepath.suffix or filepath.name}")

    numbers = []
    for row in rows[1:]:
        if not row or row[0] is None:
            continue
        numbers.append(_cell_text(row[0]))
    return numbers
