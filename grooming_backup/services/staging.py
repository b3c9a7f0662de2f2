from __future__ import annotations

import logging
import threading

from .previewer import PreviewResult

"""Preview staging.

Holds the latest preview per caller session between the preview and import
steps. A new preview for the same session replaces the previous one; import
consumes (pops) the staged preview under the lock, so consume-and-clear is
atomic and a concurrent preview from another session never touches it.
"""

__all__ = [
    "StagingError",
    "PreviewStaging",
    "DEFAULT_SESSION",
]

logger = logging.getLogger(__name__)

DEFAULT_SESSION = "default"


class StagingError(Exception):
    """Raised when an import is requested but nothing is staged."""


class PreviewStaging:
    def __init__(self) -> None:
        self._previews: dict[str, PreviewResult] = {}
        self._lock = threading.Lock()

    def stage(self, preview: PreviewResult, session: str = DEFAULT_SESSION) -> None:
        with self._lock:
            replaced = session in self._previews
            self._previews[session] = preview
        logger.debug("staged preview session=%s rows=%d replaced=%s", session, preview.total_rows, replaced)

    def peek(self, session: str = DEFAULT_SESSION) -> PreviewResult | None:
        with self._lock:
            return self._previews.get(session)

    def consume(self, session: str = DEFAULT_SESSION) -> PreviewResult:
        with self._lock:
            preview = self._previews.pop(session, None)
        if preview is None or not preview.rows_by_table:
            raise StagingError("No preview data available. Please preview the backup file first.")
        return preview

    def clear(self, session: str = DEFAULT_SESSION) -> None:
        with self._lock:
            self._previews.pop(session, None)

    def __contains__(self, session: object) -> bool:
        with self._lock:
            return session in self._previews
