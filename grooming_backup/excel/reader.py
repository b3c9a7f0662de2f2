from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Any

import pandas as pd

"""Workbook reader.

The backup workbook has one sheet per table: row 1 is the header, data starts
at row 2. pandas (openpyxl engine) is used with header=None so the header row
is handled here, and with dtype=object / keep_default_na=False so strings like
"NA" survive and native cell types (datetime, time, float, bool) reach the
normalizer untouched.
"""

__all__ = [
    "WorkbookReadError",
    "SheetData",
    "read_workbook",
    "normalize_sheet",
]


class WorkbookReadError(Exception):
    """Raised when the uploaded bytes cannot be parsed as an xlsx workbook."""


@dataclass
class SheetData:
    sheet_name: str
    columns: list[str]
    rows: list[tuple[int, list[Any]]]  # (excel row number, raw cells aligned with columns)

    @property
    def has_header(self) -> bool:
        return any(c for c in self.columns)


def read_workbook(content: bytes) -> dict[str, pd.DataFrame]:
    """Read every sheet of an xlsx document into raw DataFrames keyed by sheet name."""
    try:
        xls = pd.ExcelFile(io.BytesIO(content), engine="openpyxl")
        dfs: dict[str, pd.DataFrame] = {}
        for name in xls.sheet_names:
            dfs[str(name)] = xls.parse(name, header=None, dtype=object, keep_default_na=False)
        return dfs
    except Exception as e:
        raise WorkbookReadError(f"failed to read workbook: {e}") from e


def _blank(val: Any) -> bool:
    if val is None:
        return True
    if isinstance(val, str):
        return val.strip() == ""
    try:
        return bool(pd.isna(val))
    except (TypeError, ValueError):
        return False


def normalize_sheet(df: pd.DataFrame, sheet_name: str) -> SheetData:
    """Split a raw DataFrame into header (first row) and data rows.

    Steps:
    1. Empty sheet -> no columns, no rows
    2. Header = first row, cells stripped (blank header cells become "")
    3. Fully blank data rows are skipped
    4. Row numbers are Excel row numbers (index 0 = row 1)
    """
    if df.shape[0] == 0:
        return SheetData(sheet_name=sheet_name, columns=[], rows=[])
    columns = ["" if _blank(c) else str(c).strip() for c in df.iloc[0].tolist()]
    rows: list[tuple[int, list[Any]]] = []
    for idx, raw in df.iloc[1:].iterrows():
        cells = [None if _blank(v) else v for v in raw.tolist()]
        if all(c is None for c in cells):
            continue
        rows.append((int(idx) + 1, cells))
    return SheetData(sheet_name=sheet_name, columns=columns, rows=rows)
