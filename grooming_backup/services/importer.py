from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import psycopg2
import psycopg2.errors

from ..config.loader import ImportSettings
from ..db.statements import (
    advance_sequence,
    insert_row,
    release_savepoint,
    rollback_to_savepoint,
    savepoint,
)
from ..excel.normalizer import format_date, format_time, format_timestamp
from ..logging.error_log import ErrorLogBuffer
from ..models.error_record import DetailedError, ErrorKind
from ..models.import_outcome import ImportOutcome, TableOutcome
from ..models.row_data import RowData
from ..models.schema import CUSTOMER_REFERENCE, MUTABLE_TABLES, TIMESTAMP_FIELDS
from .field_mapping import coerce_booleans, promote_customer_reference, remap_fields
from .previewer import PreviewResult
from .progress import ProgressTracker
from .validator import check_required_reference, find_value, validate_row

"""Transactional import of a staged preview.

One connection, one transaction. Tables are processed in registry order
(parents before children), rows in sheet order. Every row runs in its own
savepoint so a failing INSERT is undone without aborting the transaction:

    SAVEPOINT import_row
    INSERT ...            -> ok: RELEASE SAVEPOINT import_row
                          -> error: ROLLBACK TO SAVEPOINT import_row

Row failures are classified (missing_reference, validation_error,
database_error, processing_error) and counted; they never stop the batch.
Failures of the transaction itself (connect, savepoint, sequence adjustment,
commit) roll everything back and are reported as one transaction_error.

After the row loop the serial sequence of every table that received explicit
ids is moved past MAX("Id"), then the transaction commits. With
commit_partial=False any failed row rolls the whole batch back instead.
"""

__all__ = [
    "TransactionError",
    "import_staged",
    "prepare_row",
    "format_row",
    "row_identifier",
]

logger = logging.getLogger(__name__)

_LEGACY_TIMESTAMP_KEYS = {"created_at", "updated_at"}
_APPOINTMENT_DATE_FIELDS = {"Date", "DateEnd"}
_APPOINTMENT_TIME_FIELDS = {"TimeStart", "TimeEnd"}


class TransactionError(Exception):
    """Raised when the import transaction itself cannot proceed."""


def prepare_row(table: str, values: Mapping[str, Any]) -> dict[str, Any]:
    """Re-apply canonical remap, customer reference promotion and boolean coercion."""
    return coerce_booleans(promote_customer_reference(table, remap_fields(table, values)))


def format_row(table: str, values: Mapping[str, Any]) -> dict[str, Any]:
    """Database formatting; None values are left out so column defaults apply."""
    result: dict[str, Any] = {}
    for key, value in values.items():
        lower = key.lower()
        if lower in _LEGACY_TIMESTAMP_KEYS:
            continue
        if table == "Appointment" and key in _APPOINTMENT_DATE_FIELDS:
            value = format_date(value)
        elif table == "Appointment" and key in _APPOINTMENT_TIME_FIELDS:
            value = format_time(value)
        elif table == "Dog" and key == "Birthday":
            value = format_date(value)
        elif lower in TIMESTAMP_FIELDS:
            value = format_timestamp(value)
        if value is None:
            continue
        result[key] = value
    return result


def _reference_label(values: Mapping[str, Any]) -> str:
    ref = values.get(CUSTOMER_REFERENCE)
    return "missing" if ref in (None, "") else str(ref)


def row_identifier(table: str, values: Mapping[str, Any] | Any, row_number: int) -> str:
    """Human readable row label built from business fields (never raises)."""
    try:
        if table == "Customer":
            name = find_value(values, "Naam") or find_value(values, "name")
            if name:
                return f'Customer "{name}"'
        elif table == "Dog":
            name = find_value(values, "Name") or "unnamed"
            return f'Dog "{name}" (CustomerId: {_reference_label(values)})'
        elif table == "Appointment":
            day = find_value(values, "Date") or "unknown date"
            start = find_value(values, "TimeStart") or "unknown time"
            return f"Appointment on {day} at {start} (CustomerId: {_reference_label(values)})"
    except Exception:
        logger.debug("could not build identifier for row %d in %s", row_number, table, exc_info=True)
    return f"Row {row_number} in {table}"


def _details(values: Any) -> dict[str, Any]:
    if isinstance(values, Mapping):
        return {str(k): v for k, v in values.items()}
    return {"value": repr(values)}


def _duplicate_customer_message(row_number: int, values: Mapping[str, Any]) -> str:
    parts = []
    for label, field_name in (("Name", "Naam"), ("Email", "Emailadres"), ("Phone", "Telefoonnummer")):
        value = find_value(values, field_name)
        if value:
            parts.append(f"{label}: {value}")
    suffix = f" - {', '.join(parts)}" if parts else ""
    return f"Duplicate customer entry at row {row_number}{suffix}"


def _restore_savepoint(cursor: Any) -> None:
    # ROLLBACK TO leaves the savepoint defined; every row ends with it released
    try:
        rollback_to_savepoint(cursor)
        release_savepoint(cursor)
    except psycopg2.Error as e:
        raise TransactionError(f"failed to roll back to savepoint: {e}") from e


def _insert_with_savepoint(cursor: Any, table: str, row: dict[str, Any]) -> None:
    try:
        savepoint(cursor)
    except psycopg2.Error as e:
        raise TransactionError(f"failed to create savepoint: {e}") from e
    try:
        insert_row(cursor, table, row)
    except Exception:
        _restore_savepoint(cursor)
        raise
    try:
        release_savepoint(cursor)
    except psycopg2.Error as e:
        raise TransactionError(f"failed to release savepoint: {e}") from e


def _import_row(cursor: Any, table: str, row: RowData) -> tuple[DetailedError | None, bool]:
    """Process one staged row. Returns (error or None, inserted an explicit id)."""
    values: Any = row.values
    try:
        values = prepare_row(table, row.values)
        identifier = row_identifier(table, values, row.row_number)

        reference_error = check_required_reference(table, values)
        if reference_error is not None:
            return DetailedError(
                table=table,
                row_number=row.row_number,
                row_identifier=identifier,
                fields=(reference_error.field,),
                kind=ErrorKind.MISSING_REFERENCE,
                message=f"{identifier}: {reference_error.error}",
                details=_details(values),
                validation_errors=(reference_error,),
            ), False

        result = validate_row(table, values, row.row_number)
        if not result.valid:
            messages = "; ".join(e.describe() for e in result.errors)
            return DetailedError(
                table=table,
                row_number=row.row_number,
                row_identifier=identifier,
                fields=tuple(e.field for e in result.errors),
                kind=ErrorKind.VALIDATION_ERROR,
                message=f"Validation failed for {identifier}: {messages}",
                details=_details(values),
                validation_errors=result.errors,
            ), False

        formatted = format_row(table, values)
        try:
            _insert_with_savepoint(cursor, table, formatted)
        except psycopg2.Error as e:
            driver_message = str(e).strip()
            if table == "Customer" and isinstance(e, psycopg2.errors.UniqueViolation):
                message = _duplicate_customer_message(row.row_number, values)
            else:
                message = f"Database error for {identifier}: {driver_message}"
            diag = getattr(e, "diag", None)
            column = getattr(diag, "column_name", None) if diag is not None else None
            return DetailedError(
                table=table,
                row_number=row.row_number,
                row_identifier=identifier,
                fields=(column,) if column else (),
                kind=ErrorKind.DATABASE_ERROR,
                message=message,
                details=_details(values),
                sql_error=driver_message,
            ), False
        return None, formatted.get("Id") is not None
    except TransactionError:
        raise
    except Exception as e:
        identifier = row_identifier(table, values, row.row_number)
        logger.warning("processing error for %s: %s", identifier, e)
        return DetailedError(
            table=table,
            row_number=row.row_number,
            row_identifier=identifier,
            fields=(),
            kind=ErrorKind.PROCESSING_ERROR,
            message=f"Error processing {identifier}: {e}",
            details=_details(values),
        ), False


def _transaction_error(e: Exception) -> DetailedError:
    return DetailedError(
        table="*",
        row_number=-1,
        row_identifier="transaction",
        fields=(),
        kind=ErrorKind.TRANSACTION_ERROR,
        message=f"Transaction failed: {e}",
        details={},
        sql_error=str(e),
    )


def _rollback(conn: Any) -> None:
    try:
        conn.rollback()
    except psycopg2.Error as e:
        logger.error("rollback failed: %s", e)


def import_staged(
    preview: PreviewResult,
    provider: Any,
    settings: ImportSettings | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> ImportOutcome:
    """Insert every staged row inside one transaction (see module docstring).

    Args:
        preview: Preview consumed from staging
        provider: ConnectionProvider (get_connection / release)
        settings: Import policy; defaults to best-effort partial commit
        error_log: Optional buffer receiving every row / transaction failure

    Returns:
        ImportOutcome with per-table counts and diagnostics
    """
    settings = settings or ImportSettings()
    start_time = datetime.now(UTC)
    tables = {t: TableOutcome() for t in MUTABLE_TABLES}
    tx_error: DetailedError | None = None
    committed = False
    rolled_back_failures = False
    conn = None

    try:
        try:
            conn = provider.get_connection()
            cursor = conn.cursor()
        except Exception as e:
            raise TransactionError(f"failed to open connection: {e}") from e

        id_tables: list[str] = []
        with ProgressTracker(preview.total_rows) as progress:
            for table in MUTABLE_TABLES:
                rows = preview.rows_by_table.get(table, ())
                if not rows:
                    continue
                progress.start_table(table)
                outcome = tables[table]
                for row in rows:
                    error, has_id = _import_row(cursor, table, row)
                    if error is None:
                        outcome.record_success()
                        if has_id and table not in id_tables:
                            id_tables.append(table)
                    else:
                        outcome.record_failure(error)
                        logger.debug(
                            "row failed table=%s sheet=%s row=%d kind=%s",
                            table, row.sheet_name, row.row_number, error.kind.value,
                        )
                    progress.advance(failed=error is not None)
                logger.info("table %s: success=%d failed=%d", table, outcome.success, outcome.failed)

        failed = sum(t.failed for t in tables.values())
        if failed and not settings.commit_partial:
            logger.warning("%d rows failed and partial commit is disabled: rolling back", failed)
            _rollback(conn)
            rolled_back_failures = True
        else:
            for table in id_tables:
                try:
                    advance_sequence(cursor, table)
                except psycopg2.Error as e:
                    raise TransactionError(f"failed to adjust id sequence for {table}: {e}") from e
            try:
                conn.commit()
            except psycopg2.Error as e:
                raise TransactionError(f"commit failed: {e}") from e
            committed = True
    except (TransactionError, psycopg2.Error) as e:
        logger.error("import transaction failed: %s", e)
        if conn is not None:
            _rollback(conn)
        tx_error = _transaction_error(e)
    finally:
        if conn is not None:
            provider.release(conn)

    outcome = ImportOutcome(
        tables=tables,
        start_time=start_time,
        end_time=datetime.now(UTC),
        committed=committed,
        missing_sheets=preview.missing_sheets,
        transaction_error=tx_error,
        rolled_back_failures=rolled_back_failures,
    )
    if error_log is not None:
        error_log.extend(outcome.errors)
    return outcome
