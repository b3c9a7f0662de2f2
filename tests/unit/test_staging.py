from __future__ import annotations

import pytest

from grooming_backup.models.row_data import RowData
from grooming_backup.services.previewer import PreviewResult
from grooming_backup.services.staging import DEFAULT_SESSION, PreviewStaging, StagingError


def _preview(name: str) -> PreviewResult:
    return PreviewResult(rows_by_table={"Customer": (RowData(row_number=2, values={"Naam": name}),)})


def test_consume_returns_and_clears():
    staging = PreviewStaging()
    preview = _preview("Jansen")
    staging.stage(preview)
    assert DEFAULT_SESSION in staging
    assert staging.consume() is preview
    assert DEFAULT_SESSION not in staging
    with pytest.raises(StagingError, match="Please preview the backup file first"):
        staging.consume()


def test_new_preview_replaces_previous():
    staging = PreviewStaging()
    staging.stage(_preview("first"))
    second = _preview("second")
    staging.stage(second)
    assert staging.peek() is second
    assert staging.consume() is second


def test_sessions_are_isolated():
    staging = PreviewStaging()
    a, b = _preview("a"), _preview("b")
    staging.stage(a, session="alice")
    staging.stage(b, session="bob")
    assert staging.consume("alice") is a
    assert staging.peek("bob") is b
    staging.clear("bob")
    assert staging.peek("bob") is None


def test_empty_preview_cannot_be_imported():
    staging = PreviewStaging()
    staging.stage(PreviewResult(rows_by_table={}))
    with pytest.raises(StagingError):
        staging.consume()
    # the empty preview is discarded as well
    assert DEFAULT_SESSION not in staging
