from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .validation import ValidationError

"""DetailedError model for import reporting and error logging.

A DetailedError describes why one staged row did not make it into storage.
row_number=-1 is used for batch-level (transaction) errors where no single row
is to blame.

The same record is used twice:
- serialized into the import report returned to the caller (to_dict)
- appended to the JSON Lines error log (to_json_line)
"""

__all__ = [
    "ErrorKind",
    "DetailedError",
]


class ErrorKind(Enum):
    """Error classification tags used in the import report."""
    VALIDATION_ERROR = "validation_error"
    MISSING_REFERENCE = "missing_reference"
    DATABASE_ERROR = "database_error"
    PROCESSING_ERROR = "processing_error"
    TRANSACTION_ERROR = "transaction_error"


@dataclass(frozen=True)
class DetailedError:
    """Structured per-row import failure.

    Attributes:
        table: Logical table the row belongs to
        row_number: Excel row number, -1 when not attributable to a row
        row_identifier: Human readable label built from business fields
        fields: Offending field names (may be empty)
        kind: Error classification
        message: Full human readable message
        details: Business fields echoed back for display
        validation_errors: Field-level messages for validation failures
        sql_error: Driver message for database failures
    """
    table: str
    row_number: int
    row_identifier: str
    fields: tuple[str, ...]
    kind: ErrorKind
    message: str
    details: dict[str, Any]
    validation_errors: tuple[ValidationError, ...] = ()
    sql_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "message": self.message,
            "rowIdentifier": self.row_identifier,
            "rowNumber": self.row_number,
            "fields": list(self.fields),
            "errorType": self.kind.value,
            "details": self.details,
        }
        if self.validation_errors:
            data["validationErrors"] = [e.to_dict() for e in self.validation_errors]
        if self.sql_error is not None:
            data["sqlError"] = self.sql_error
        return data

    def to_json_line(self) -> str:
        """Serialize for the JSON Lines error log (one object per line)."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        record = {"timestamp": ts, "table": self.table, **self.to_dict()}
        return json.dumps(record, ensure_ascii=False, default=str)
