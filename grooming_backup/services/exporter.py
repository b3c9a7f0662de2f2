from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

from ..config.loader import ExportSettings
from ..db.statements import select_all
from ..models.schema import MUTABLE_TABLES

"""Workbook export.

export_workbook() dumps every allow-listed table into one sheet each
(SELECT * ORDER BY "Id"), header row styled bold on a light-gray fill, columns
20 wide. Headers come from the cursor description so empty tables still get a
header row. Any failure raises ExportError; no partial workbook is returned.
"""

__all__ = [
    "ExportError",
    "ExportedWorkbook",
    "export_workbook",
    "build_filename",
    "XLSX_MIME",
]

logger = logging.getLogger(__name__)

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
HEADER_FILL = PatternFill(start_color="FFE0E0E0", end_color="FFE0E0E0", fill_type="solid")
HEADER_FONT = Font(bold=True)
COLUMN_WIDTH = 20


class ExportError(Exception):
    """Raised when the backup workbook cannot be produced."""


@dataclass(frozen=True)
class ExportedWorkbook:
    content: bytes
    filename: str
    mime_type: str = XLSX_MIME
    row_counts: dict[str, int] | None = None


def build_filename(prefix: str = "4loki_backup", day: date | None = None) -> str:
    day = day or date.today()
    return f"{prefix}_{day.isoformat()}.xlsx"


def _cell_value(value: Any) -> Any:
    # xlsx has no timezone support
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (bytes, memoryview)):
        return None
    return value


def _write_sheet(wb: Workbook, table: str, columns: list[str], records: list[tuple[Any, ...]]) -> None:
    ws = wb.create_sheet(title=table)
    ws.append(columns)
    for idx in range(1, len(columns) + 1):
        cell = ws.cell(row=1, column=idx)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        ws.column_dimensions[get_column_letter(idx)].width = COLUMN_WIDTH
    for record in records:
        ws.append([_cell_value(v) for v in record])


def export_workbook(provider: Any, settings: ExportSettings | None = None) -> ExportedWorkbook:
    """Export all mutable tables to an xlsx document.

    Args:
        provider: ConnectionProvider (get_connection / release)
        settings: filename prefix and workbook creator

    Raises:
        ExportError: on any storage or serialization failure
    """
    settings = settings or ExportSettings()
    conn = None
    try:
        conn = provider.get_connection()
        cursor = conn.cursor()
        wb = Workbook()
        wb.remove(wb.active)
        wb.properties.creator = settings.creator
        counts: dict[str, int] = {}
        for table in MUTABLE_TABLES:
            select_all(cursor, table)
            columns = [d[0] for d in (cursor.description or [])]
            records = list(cursor.fetchall())
            _write_sheet(wb, table, columns, records)
            counts[table] = len(records)
            logger.debug("exported table=%s rows=%d", table, len(records))
        # read-only transaction; nothing to keep
        conn.rollback()
        buffer = io.BytesIO()
        wb.save(buffer)
    except Exception as e:
        logger.error("export failed: %s", e)
        if conn is not None:
            try:
                conn.rollback()
            except Exception:
                logger.debug("rollback after failed export also failed", exc_info=True)
        raise ExportError(f"Failed to export backup: {e}") from e
    finally:
        if conn is not None:
            provider.release(conn)

    logger.info("export complete tables=%d rows=%d", len(counts), sum(counts.values()))
    return ExportedWorkbook(
        content=buffer.getvalue(),
        filename=build_filename(settings.filename_prefix),
        row_counts=counts,
    )
