from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""One data row of an allow-listed backup sheet."""

__all__ = [
    "RowData",
]


@dataclass(frozen=True)
class RowData:
    """Row values keyed by canonical field name, already normalized.

    row_number counts like Excel does: the header is row 1, data starts at 2.
    sheet_name keeps the sheet title as written in the workbook (it may differ
    in case from the table name). Remap and format steps never mutate values;
    they build new dicts from it.
    """
    row_number: int
    values: dict[str, Any]
    sheet_name: str | None = field(default=None, compare=False)

    def to_preview(self) -> dict[str, Any]:
        return dict(self.values)
