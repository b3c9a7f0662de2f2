from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .error_record import DetailedError

"""Import outcome models.

TableOutcome counts successes and failures for one logical table while the
importer walks the staged rows; ImportOutcome aggregates them into the report
returned to the caller:

    {"status": "success" | "partial" | "error", "message": ..., "report": {...}}
"""

__all__ = [
    "TableOutcome",
    "ImportOutcome",
]


@dataclass
class TableOutcome:
    """Mutable accumulator for one table (filled row by row)."""
    success: int = 0
    failed: int = 0
    errors: list[DetailedError] = field(default_factory=list)

    def record_success(self) -> None:
        self.success += 1

    def record_failure(self, error: DetailedError) -> None:
        self.failed += 1
        self.errors.append(error)


@dataclass(frozen=True)
class ImportOutcome:
    """Aggregated result of one import call.

    When transaction_error is set the whole batch was rolled back and the
    per-table counts describe what was attempted, not what was stored.
    """
    tables: dict[str, TableOutcome]
    start_time: datetime
    end_time: datetime
    committed: bool
    missing_sheets: tuple[str, ...] = ()
    transaction_error: DetailedError | None = None
    rolled_back_failures: bool = False  # all-or-nothing policy rejected the batch

    @property
    def total_success(self) -> int:
        return sum(t.success for t in self.tables.values())

    @property
    def total_failed(self) -> int:
        return sum(t.failed for t in self.tables.values())

    @property
    def elapsed_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    @property
    def status(self) -> str:
        if self.transaction_error is not None or self.rolled_back_failures:
            return "error"
        return "partial" if self.total_failed > 0 else "success"

    @property
    def errors(self) -> list[DetailedError]:
        collected = [e for t in self.tables.values() for e in t.errors]
        if self.transaction_error is not None:
            collected.append(self.transaction_error)
        return collected

    def status_message(self) -> str:
        if self.transaction_error is not None:
            return "Failed to import backup due to a transaction error"
        success, failed = self.total_success, self.total_failed
        if self.rolled_back_failures:
            return (
                f"Import rolled back: {failed} records failed and partial imports are disabled; "
                "no data was imported."
            )
        if failed == 0:
            return f"Import successful: {success} records imported without errors."
        if success == 0:
            return f"Import failed: All {failed} records failed to import."
        return f"Import partially successful: {success} records imported, {failed} records failed."

    def to_response(self) -> dict[str, Any]:
        if self.transaction_error is not None:
            return {
                "status": "error",
                "message": self.status_message(),
                "error": self.transaction_error.sql_error or self.transaction_error.message,
                "details": "The transaction was rolled back - no data was imported.",
            }
        return {
            "status": self.status,
            "message": self.status_message(),
            "report": {
                "summary": {
                    "total": {"success": self.total_success, "failed": self.total_failed},
                    "tables": {
                        name: {"success": t.success, "failed": t.failed}
                        for name, t in self.tables.items()
                    },
                    "missingSheets": list(self.missing_sheets),
                },
                "errorsByTable": [
                    {
                        "tableName": name,
                        "count": t.failed,
                        "items": [e.to_dict() for e in t.errors],
                    }
                    for name, t in self.tables.items()
                    if t.failed > 0
                ],
            },
        }
