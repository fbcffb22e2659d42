import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Sequence

from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

logger = logging.getLogger(__name__)

SHEET_TITLE = "Google Merchant Feed"
HEADER_FILL = PatternFill(start_color="FFE0E0E0", end_color="FFE0E0E0", fill_type="solid")
ALTERNATE_ROW_FILL = PatternFill(start_color="FFF8F8F8", end_color="FFF8F8F8", fill_type="solid")
MAX_COLUMN_WIDTH = 50


def _cell_value(value: Any) -> Any:
    # openpyxl rejects control characters in strings
    if isinstance(value, str):
        return ILLEGAL_CHARACTERS_RE.sub("", value)
    return value


class FeedWorkbookWriter:
    """Writes feed rows to an xlsx workbook, replacing the target file atomically."""

    def __init__(self, columns: Sequence[str], batch_size: int = 500):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.columns = list(columns)
        self.batch_size = batch_size

    def write(self, rows: List[Dict[str, Any]], filepath: Path) -> int:
        """
        Render ``rows`` and move the finished workbook to ``filepath``.

        The workbook is saved next to the target first, so readers never see
        a partially written file.

        Returns:
            int: Size in bytes of the written file
        """
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = SHEET_TITLE

        sheet.append(self.columns)
        for cell in sheet[1]:
            cell.font = Font(bold=True)
            cell.fill = HEADER_FILL

        widths = [len(column) for column in self.columns]
        for start in range(0, len(rows), self.batch_size):
            batch = rows[start : start + self.batch_size]
            for row in batch:
                values = [_cell_value(row.get(column, "")) for column in self.columns]
                sheet.append(values)
                for index, value in enumerate(values):
                    widths[index] = max(widths[index], len(str(value)) if value is not None else 0)
            logger.debug(f"Wrote feed rows {start + 1}-{start + len(batch)} of {len(rows)}")

        # Filas de datos pares (la cabecera es la fila 1)
        for row_index in range(2, sheet.max_row + 1):
            if row_index % 2 == 0:
                for cell in sheet[row_index]:
                    cell.fill = ALTERNATE_ROW_FILL

        for index, width in enumerate(widths, start=1):
            sheet.column_dimensions[get_column_letter(index)].width = min(width + 2, MAX_COLUMN_WIDTH)

        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = filepath.with_name(filepath.name + ".tmp")
        try:
            workbook.save(tmp_path)
            os.replace(tmp_path, filepath)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()

        size = filepath.stat().st_size
        logger.info(f"📄 Feed workbook written: {filepath.name} ({len(rows)} rows, {size} bytes)")
        return size
