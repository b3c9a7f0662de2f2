from __future__ import annotations

import logging
from typing import Any

from ..config.loader import AppConfig
from ..logging.error_log import ErrorLogBuffer
from ..models.import_outcome import ImportOutcome
from .cleaner import ClearDatabaseError, clear_database
from .exporter import ExportedWorkbook, ExportError, export_workbook
from .importer import import_staged
from .previewer import PreviewError, PreviewResult, preview_workbook
from .staging import DEFAULT_SESSION, PreviewStaging, StagingError

"""Backup service facade.

The narrow surface an HTTP layer (or the CLI) calls. Each operation returns
(status_code, body) where body is JSON-serializable:

- export   -> ExportedWorkbook (raises ExportError)
- preview  -> 200 preview body | 400 no file | 500 unreadable workbook
- restore  -> 200 success/partial | 400 nothing staged | 500 transaction error
- clear    -> 200 {message} | 500 {error, details}
"""

__all__ = [
    "BackupService",
]

logger = logging.getLogger(__name__)


class BackupService:
    def __init__(
        self,
        provider: Any,
        config: AppConfig | None = None,
        staging: PreviewStaging | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.provider = provider
        self.config = config or AppConfig()
        self.staging = staging or PreviewStaging()
        self.error_log = error_log
        self.last_outcome: ImportOutcome | None = None

    def export(self) -> ExportedWorkbook:
        return export_workbook(self.provider, self.config.export)

    def preview(self, content: bytes | None, session: str = DEFAULT_SESSION) -> tuple[int, dict[str, Any]]:
        if not content:
            return 400, {"error": "No file uploaded"}
        try:
            result = preview_workbook(content)
        except PreviewError as e:
            logger.error("preview failed: %s", e)
            return 500, {"error": "Failed to preview backup", "details": str(e)}
        self.staging.stage(result, session)
        return 200, result.to_response()

    def staged_preview(self, session: str = DEFAULT_SESSION) -> PreviewResult | None:
        return self.staging.peek(session)

    def restore(self, session: str = DEFAULT_SESSION) -> tuple[int, dict[str, Any]]:
        try:
            preview = self.staging.consume(session)
        except StagingError as e:
            return 400, {"error": str(e)}
        outcome = import_staged(preview, self.provider, self.config.import_settings, self.error_log)
        self.last_outcome = outcome
        body = outcome.to_response()
        if outcome.transaction_error is not None:
            return 500, body
        return 200, body

    def clear(self) -> tuple[int, dict[str, Any]]:
        try:
            clear_database(self.provider)
        except ClearDatabaseError as e:
            cause = e.__cause__ if e.__cause__ is not None else e
            return 500, {"error": "Failed to clear database", "details": str(cause)}
        return 200, {"message": "Database cleared successfully"}

    def export_response(self) -> tuple[int, ExportedWorkbook | dict[str, Any]]:
        try:
            return 200, self.export()
        except ExportError as e:
            cause = e.__cause__ if e.__cause__ is not None else e
            return 500, {"error": "Failed to export backup", "details": str(cause)}
