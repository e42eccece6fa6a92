"""Write job results to a timestamped spreadsheet and find the latest one."""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import Iterable, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from ..config import RESULTS_DIR
from ..constants import (
    ERROR_LABEL,
    NOT_AVAILABLE,
    RESULT_COLUMNS,
    RESULT_FILE_PREFIX,
    RESULT_FILE_SUFFIX,
    RESULT_SHEET_NAME,
)
from ..models.job import Artifact
from ..models.lookup import LookupResult

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)

HEADER_FILL = PatternFill(start_color="1F4E79", end_color="1F4E79", fill_type="solid")
HEADER_FONT = Font(bold=True, color="FFFFFF", size=11)


def registered_label(result: LookupResult) -> str:
    if result.is_error:
        return ERROR_LABEL
    return "Yes" if result.is_registered is True else "No"


def result_row(result: LookupResult) -> list[str]:
    """One output row, in RESULT_COLUMNS order."""
    return [
        result.phone_number,
        registered_label(result),
        result.name,
        result.profile_pic_url or NOT_AVAILABLE,
        result.profile_pic_path or NOT_AVAILABLE,
    ]


class ResultExporter:
    """Each write() produces exactly one new file; existing files are never touched."""

    def __init__(self, results_dir: Path = RESULTS_DIR):
        self._results_dir = results_dir

    @property
    def results_dir(self) -> Path:
        return self._results_dir

    def _new_path(self) -> Path:
        stamp = int(time.time() * 1000)
        path = self._results_dir / f"{RESULT_FILE_PREFIX}{stamp}{RESULT_FILE_SUFFIX}"
        while path.exists():
            stamp += 1
            path = self._results_dir / f"{RESULT_FILE_PREFIX}{stamp}{RESULT_FILE_SUFFIX}"
        return path

    def write(self, records: Iterable[LookupResult]) -> Artifact:
        records = list(records)
        self._results_dir.mkdir(parents=True, exist_ok=True)

        wb = Workbook()
        ws = wb.active
        ws.title = RESULT_SHEET_NAME

        for col_idx, (label, width) in enumerate(RESULT_COLUMNS, 1):
            cell = ws.cell(row=1, column=col_idx, value=label)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.alignment = Alignment(horizontal="center")
            ws.column_dimensions[get_column_letter(col_idx)].width = width

        for result in records:
            ws.append(result_row(result))

        ws.freeze_panes = "A2"

        path = self._new_path()
        wb.save(path)
        logger.info(f"Results written to {path} ({len(records)} rows)")
        return Artifact(filename=path.name, path=str(path), row_count=len(records))

    def latest(self) -> Optional[Path]:
        """Most recently modified result file, or None."""
        if not self._results_dir.is_dir():
            return None
        candidates = [
            p for p in self._results_dir.iterdir()
            if p.is_file() and p.suffix == RESULT_FILE_SUFFIX
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda p: (p.stat().st_mtime, p.name))
