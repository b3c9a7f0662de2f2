from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import DetailedError

"""Import error log.

Every failed row of a restore (and a transaction failure, if any) is kept in
memory while the import runs and written afterwards as JSON Lines:

    <logs_directory>/import-errors-YYYYMMDD-HHMMSS.log   (UTC)

Nothing is created for a clean import.
"""

__all__ = [
    "ErrorLogBuffer",
]

DEFAULT_LOGS_DIR = Path("./logs")
FILE_STAMP = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """Collects DetailedError records for one restore run (not thread safe)."""

    def __init__(self, logs_dir: Path | str | None = None) -> None:
        self.logs_dir = Path(logs_dir) if logs_dir is not None else DEFAULT_LOGS_DIR
        self._pending: list[DetailedError] = []
        self._target: Path | None = None

    @property
    def file_path(self) -> Path:
        # fixed on first use so repeated flushes append to the same file
        if self._target is None:
            stamp = datetime.now(UTC).strftime(FILE_STAMP)
            self._target = self.logs_dir / f"import-errors-{stamp}.log"
        return self._target

    def append(self, record: DetailedError) -> None:
        self._pending.append(record)

    def extend(self, records: Iterable[DetailedError]) -> None:
        self._pending.extend(records)

    def counts_by_kind(self) -> dict[str, int]:
        """Pending records per errorType, e.g. {"validation_error": 2}."""
        return dict(Counter(r.kind.value for r in self._pending))

    def __len__(self) -> int:
        return len(self._pending)

    def flush(self) -> Path | None:
        """Append pending records to the log file.

        Returns:
            The file written, or None when there was nothing to write
        """
        if not self._pending:
            return None
        target = self.file_path
        target.parent.mkdir(parents=True, exist_ok=True)
        lines = "".join(r.to_json_line() + "\n" for r in self._pending)
        with target.open("a", encoding="utf-8") as f:
            f.write(lines)
        self._pending.clear()
        return target
