from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any

import numpy as np

from ..excel.normalizer import normalize_value
from ..excel.reader import WorkbookReadError, normalize_sheet, read_workbook
from ..models.row_data import RowData
from ..models.schema import (
    CUSTOMER_REFERENCE,
    CUSTOMER_REFERENCE_TABLES,
    MUTABLE_TABLES,
    canonical_lookup,
    customer_reference_aliases,
    resolve_table_name,
)
from ..models.validation import RowValidationResult, ValidationError
from .field_mapping import coerce_reference, promote_customer_reference, remap_fields
from .validator import check_required_reference, validate_row

"""Workbook preview.

preview_workbook() parses an uploaded backup workbook into canonical rows per
table and collects validation diagnostics without touching storage. Invalid
rows are kept: the caller decides whether to import after reviewing the
diagnostics, and the importer re-validates every row anyway.

Steps per sheet:
1. sheet name -> allow-listed table (case-insensitive), otherwise skipped
2. header = first row; sheets without any header cell are skipped
3. customer reference column read first (raw text, coerced to a number)
4. remaining cells typed by kind and normalized keyed by header
5. canonical remap + customer reference promotion
6. presence check + row validation merged into one result per invalid row
"""

__all__ = [
    "PreviewError",
    "PreviewResult",
    "preview_workbook",
    "build_row",
]

logger = logging.getLogger(__name__)

_TIME_HEADER_HINTS = ("time", "start", "end")


class PreviewError(Exception):
    """Raised when the uploaded workbook cannot be previewed at all."""


@dataclass(frozen=True)
class PreviewResult:
    rows_by_table: dict[str, tuple[RowData, ...]]
    validation_results: tuple[RowValidationResult, ...] = ()
    skipped_sheets: tuple[str, ...] = ()
    missing_sheets: tuple[str, ...] = ()
    created_at: datetime = field(default_factory=datetime.now, compare=False)

    @property
    def total_rows(self) -> int:
        return sum(len(rows) for rows in self.rows_by_table.values())

    def to_response(self) -> dict[str, Any]:
        return {
            "message": "Backup preview generated successfully",
            "preview": {
                table: [r.to_preview() for r in rows] for table, rows in self.rows_by_table.items()
            },
            "validationResults": [r.to_dict() for r in self.validation_results],
            "skippedSheets": list(self.skipped_sheets),
            "missingSheets": list(self.missing_sheets),
        }


def _cell_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _read_cell(value: Any, header: str) -> Any:
    """Type a raw cell the way the normalizer expects it."""
    if isinstance(value, np.generic):
        value = value.item()
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (datetime, date, time)):
        return value
    if isinstance(value, (int, float)):
        if any(hint in header.lower() for hint in _TIME_HEADER_HINTS):
            # day fractions stay numeric for the time conversion
            return value if value < 1 else _cell_text(value)
        return value
    return _cell_text(value)


def _find_reference_column(table: str, columns: list[str]) -> int | None:
    if table not in CUSTOMER_REFERENCE_TABLES:
        return None
    aliases = customer_reference_aliases()
    for idx, header in enumerate(columns):
        if header and header.lower() in aliases:
            return idx
    return None


def build_row(table: str, columns: list[str], cells: list[Any], ref_idx: int | None) -> dict[str, Any]:
    """Normalize one sheet row into a canonical row dict."""
    values: dict[str, Any] = {}
    lookup = canonical_lookup(table)
    eager = None
    if ref_idx is not None and ref_idx < len(cells):
        eager = coerce_reference(normalize_value(_cell_text(cells[ref_idx]), CUSTOMER_REFERENCE))
        if eager is not None:
            values[CUSTOMER_REFERENCE] = eager
    for idx, header in enumerate(columns):
        if not header or idx == ref_idx:
            continue
        raw = cells[idx] if idx < len(cells) else None
        # normalize under the canonical name so aliased boolean / time fields are recognized
        field_name = lookup.get(header.lower(), header)
        values[header] = normalize_value(_read_cell(raw, field_name), field_name)
    return promote_customer_reference(table, remap_fields(table, values), eager)


def _diagnose(table: str, row: dict[str, Any], row_number: int) -> RowValidationResult:
    errors: list[ValidationError] = []
    reference_error = check_required_reference(table, row)
    if reference_error is not None:
        errors.append(reference_error)
    seen = {e.field for e in errors}
    for error in validate_row(table, row, row_number).errors:
        if error.field not in seen:
            errors.append(error)
            seen.add(error.field)
    return RowValidationResult(table=table, row_number=row_number, errors=tuple(errors))


def preview_workbook(content: bytes) -> PreviewResult:
    try:
        raw_sheets = read_workbook(content)
    except WorkbookReadError as e:
        raise PreviewError(str(e)) from e

    rows_by_table: dict[str, tuple[RowData, ...]] = {}
    results: list[RowValidationResult] = []
    skipped: list[str] = []
    present: set[str] = set()

    for sheet_name, df in raw_sheets.items():
        table = resolve_table_name(sheet_name)
        if table is None:
            logger.warning("skipping sheet '%s': not an allow-listed table", sheet_name)
            skipped.append(sheet_name)
            continue
        present.add(table)
        sheet = normalize_sheet(df, sheet_name)
        if not sheet.has_header:
            logger.warning("no valid headers found for table %s", table)
            continue

        ref_idx = _find_reference_column(table, sheet.columns)
        rows: list[RowData] = []
        for row_number, cells in sheet.rows:
            values = build_row(table, sheet.columns, cells, ref_idx)
            result = _diagnose(table, values, row_number)
            if not result.valid:
                if any(e.kind == "missing_reference" for e in result.errors):
                    logger.warning("row %d in table %s is missing %s", row_number, table, CUSTOMER_REFERENCE)
                results.append(result)
            rows.append(RowData(row_number=row_number, values=values, sheet_name=sheet_name))
        rows_by_table[table] = tuple(rows)
        logger.debug("previewed table=%s rows=%d", table, len(rows))

    missing = tuple(t for t in MUTABLE_TABLES if t not in present)
    ordered = {t: rows_by_table[t] for t in MUTABLE_TABLES if t in rows_by_table}
    logger.info(
        "preview complete tables=%d rows=%d invalid_rows=%d",
        len(ordered),
        sum(len(r) for r in ordered.values()),
        len(results),
    )
    return PreviewResult(
        rows_by_table=ordered,
        validation_results=tuple(results),
        skipped_sheets=tuple(skipped),
        missing_sheets=missing,
    )
