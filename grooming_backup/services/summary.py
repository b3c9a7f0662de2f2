from __future__ import annotations

from ..models.import_outcome import ImportOutcome

"""SUMMARY line rendering for the CLI.

Format:
SUMMARY status={status} success={n} failed={m} tables={t} committed={yes|no}
missing_sheets={k} elapsed_sec={elapsed}
"""

__all__ = [
    "render_summary_line",
    "format_elapsed",
]


def format_elapsed(seconds: float) -> str:
    """Elapsed seconds without scientific notation; integers lose the decimal point."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return f"{seconds:.3f}".rstrip("0").rstrip(".")


def render_summary_line(outcome: ImportOutcome) -> str:
    """Render the SUMMARY line for one import.

    Examples:
        >>> from datetime import datetime, timezone
        >>> from grooming_backup.models.import_outcome import TableOutcome
        >>> start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> outcome = ImportOutcome(
        ...     tables={"Customer": TableOutcome(success=3)},
        ...     start_time=start, end_time=end, committed=True,
        ... )
        >>> render_summary_line(outcome)
        'SUMMARY status=success success=3 failed=0 tables=1 committed=yes missing_sheets=0 elapsed_sec=2'
    """
    touched = sum(1 for t in outcome.tables.values() if t.success or t.failed)
    return (
        f"SUMMARY status={outcome.status} "
        f"success={outcome.total_success} "
        f"failed={outcome.total_failed} "
        f"tables={touched} "
        f"committed={'yes' if outcome.committed else 'no'} "
        f"missing_sheets={len(outcome.missing_sheets)} "
        f"elapsed_sec={format_elapsed(outcome.elapsed_seconds)}"
    )
