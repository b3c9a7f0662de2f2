from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

"""SQL statement helpers.

Identifiers (table and column names) cannot be passed as query parameters, so
they are double-quoted into the statement after checking they are plain
identifiers. Values always travel as %s parameters.

Row-level isolation uses one savepoint per row: a failed INSERT is rolled back
to the savepoint and the surrounding transaction stays usable.
"""

__all__ = [
    "IdentifierError",
    "quote_ident",
    "insert_row",
    "select_all",
    "delete_all",
    "advance_sequence",
    "savepoint",
    "rollback_to_savepoint",
    "release_savepoint",
    "SAVEPOINT_NAME",
]

SAVEPOINT_NAME = "import_row"

_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class IdentifierError(ValueError):
    """Raised for table / column names that are not plain identifiers."""


def quote_ident(name: str) -> str:
    if not isinstance(name, str) or not _IDENT_RE.match(name):
        raise IdentifierError(f"invalid identifier: {name!r}")
    return f'"{name}"'


def insert_row(cursor: Any, table: str, row: Mapping[str, Any]) -> None:
    """INSERT one row. Columns are the row keys in order."""
    columns: Sequence[str] = list(row.keys())
    if not columns:
        raise IdentifierError(f"row for table {table} has no columns")
    cols_sql = ", ".join(quote_ident(c) for c in columns)
    placeholders = ", ".join(["%s"] * len(columns))
    sql = f"INSERT INTO {quote_ident(table)} ({cols_sql}) VALUES ({placeholders})"
    cursor.execute(sql, [row[c] for c in columns])


def select_all(cursor: Any, table: str) -> None:
    cursor.execute(f'SELECT * FROM {quote_ident(table)} ORDER BY "Id"')


def delete_all(cursor: Any, table: str) -> None:
    cursor.execute(f"DELETE FROM {quote_ident(table)}")


def advance_sequence(cursor: Any, table: str, column: str = "Id") -> None:
    """Move the serial sequence past the highest explicitly inserted id."""
    qt, qc = quote_ident(table), quote_ident(column)
    cursor.execute(
        f"SELECT setval(pg_get_serial_sequence(%s, %s), "
        f"COALESCE((SELECT MAX({qc}) FROM {qt}), 0) + 1, false)",
        (qt, column),
    )


def savepoint(cursor: Any) -> None:
    cursor.execute(f"SAVEPOINT {SAVEPOINT_NAME}")


def rollback_to_savepoint(cursor: Any) -> None:
    cursor.execute(f"ROLLBACK TO SAVEPOINT {SAVEPOINT_NAME}")


def release_savepoint(cursor: Any) -> None:
    cursor.execute(f"RELEASE SAVEPOINT {SAVEPOINT_NAME}")
