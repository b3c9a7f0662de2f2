from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Restore progress bar (tqdm, interactive terminals only).

One bar for the whole import, counted in rows. The description names the
table being imported and the postfix shows the running number of failed rows.
Without a TTY (CI, redirected output) no bar is created and the tracker only
counts.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    def __init__(self, total_rows: int, *, description: str = "Importing rows") -> None:
        self.total_rows = total_rows
        self.description = description
        self.done = 0
        self.failed = 0
        self.table: str | None = None

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None = None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def start_table(self, table: str) -> None:
        self.table = table
        if self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({table})")

    def advance(self, *, failed: bool = False) -> None:
        """Count one processed row."""
        self.done += 1
        if failed:
            self.failed += 1
        if self.pbar is None:
            return
        self.pbar.update(1)
        if failed:
            self.pbar.set_postfix(failed=self.failed)

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
