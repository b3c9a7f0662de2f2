# Shared pytest fixtures
from __future__ import annotations

import copy
import io
import re
from pathlib import Path
from typing import Any

import pytest
from openpyxl import Workbook

from grooming_backup.models.schema import MUTABLE_TABLES


_INSERT_RE = re.compile(r'^INSERT INTO "(\w+)" \((.*)\) VALUES \((.*)\)$')
_SELECT_RE = re.compile(r'^SELECT \* FROM "(\w+)" ORDER BY "Id"$')
_DELETE_RE = re.compile(r'^DELETE FROM "(\w+)"$')
_SETVAL_RE = re.compile(r'^SELECT setval\(pg_get_serial_sequence')


class FakeDatabase:
    """In-memory stand-in for PostgreSQL understanding the engine's statements.

    - committed state is only replaced on commit()
    - savepoints snapshot the connection's working copy
    - fail_on(fragment, exc): raise exc for any statement whose SQL or
      parameters contain fragment
    """

    def __init__(self, columns: dict[str, list[str]] | None = None) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {t: [] for t in MUTABLE_TABLES}
        self.columns: dict[str, list[str]] = columns or {}
        self.sequences: dict[str, int] = {}
        self.statements: list[tuple[str, Any]] = []
        self.commits = 0
        self.rollbacks = 0
        self._failures: list[tuple[str, Exception]] = []

    def fail_on(self, fragment: str, exc: Exception) -> None:
        self._failures.append((fragment, exc))

    def check_failure(self, sql: str, params: Any) -> None:
        haystack = f"{sql} {params!r}"
        for fragment, exc in self._failures:
            if fragment in haystack:
                raise exc

    def seed(self, table: str, rows: list[dict[str, Any]]) -> None:
        self.tables[table] = [dict(r) for r in rows]
        if rows and table not in self.columns:
            self.columns[table] = list(rows[0].keys())


class FakeCursor:
    def __init__(self, conn: FakeConnection) -> None:
        self.conn = conn
        self.description: list[tuple[str, ...]] | None = None
        self._result: list[tuple[Any, ...]] = []

    def execute(self, sql: str, params: Any = None) -> None:
        db = self.conn.db
        db.statements.append((sql, params))
        db.check_failure(sql, params)
        work = self.conn.working

        m = _INSERT_RE.match(sql)
        if m:
            table = m.group(1)
            cols = [c.strip().strip('"') for c in m.group(2).split(",")]
            work.setdefault(table, []).append(dict(zip(cols, params, strict=True)))
            return
        m = _SELECT_RE.match(sql)
        if m:
            table = m.group(1)
            rows = sorted(work.get(table, []), key=lambda r: r.get("Id") or 0)
            cols = db.columns.get(table) or (list(rows[0].keys()) if rows else [])
            self.description = [(c, None, None, None, None, None, None) for c in cols]
            self._result = [tuple(r.get(c) for c in cols) for r in rows]
            return
        m = _DELETE_RE.match(sql)
        if m:
            work[m.group(1)] = []
            return
        if _SETVAL_RE.match(sql):
            table = params[0].strip('"')
            ids = [r.get("Id") for r in work.get(table, []) if r.get("Id") is not None]
            db.sequences[table] = max(ids, default=0) + 1
            return
        if sql == "SAVEPOINT import_row":
            self.conn.savepoints.append(copy.deepcopy(work))
            return
        if sql == "ROLLBACK TO SAVEPOINT import_row":
            self.conn.working = copy.deepcopy(self.conn.savepoints[-1])
            return
        if sql == "RELEASE SAVEPOINT import_row":
            self.conn.savepoints.pop()
            return
        raise AssertionError(f"unexpected SQL: {sql}")

    def fetchall(self) -> list[tuple[Any, ...]]:
        return list(self._result)

    def close(self) -> None:
        pass


class FakeConnection:
    def __init__(self, db: FakeDatabase) -> None:
        self.db = db
        self.working = copy.deepcopy(db.tables)
        self.savepoints: list[dict[str, list[dict[str, Any]]]] = []
        self.autocommit = False
        self.closed = 0
        self.commit_error: Exception | None = None

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def commit(self) -> None:
        if self.commit_error is not None:
            raise self.commit_error
        self.db.tables = copy.deepcopy(self.working)
        self.db.commits += 1

    def rollback(self) -> None:
        self.working = copy.deepcopy(self.db.tables)
        self.savepoints.clear()
        self.db.rollbacks += 1


class FakeProvider:
    """ConnectionProvider double counting connections taken and released."""

    def __init__(self, db: FakeDatabase, connect_error: Exception | None = None) -> None:
        self.db = db
        self.connect_error = connect_error
        self.taken = 0
        self.released = 0
        self.last_connection: FakeConnection | None = None

    def get_connection(self) -> FakeConnection:
        if self.connect_error is not None:
            raise self.connect_error
        self.taken += 1
        self.last_connection = FakeConnection(self.db)
        return self.last_connection

    def release(self, conn: FakeConnection) -> None:
        self.released += 1


def build_workbook(sheets: dict[str, list[list[Any]]]) -> bytes:
    """xlsx bytes with one sheet per entry; first list is the header row."""
    wb = Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture()
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture()
def provider(fake_db: FakeDatabase) -> FakeProvider:
    return FakeProvider(fake_db)


@pytest.fixture()
def temp_workdir(monkeypatch, tmp_path: Path) -> Path:
    (tmp_path / "config").mkdir()
    (tmp_path / "logs").mkdir()
    monkeypatch.chdir(tmp_path)
    for var in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
        monkeypatch.delenv(var, raising=False)
    return tmp_path


@pytest.fixture()
def sample_config_yaml() -> str:
    return """database:
  host: localhost
  port: 5432
  user: groomer
  password: secret
  database: grooming
import:
  commit_partial: true
export:
  filename_prefix: 4loki_backup
  creator: Test Salon
logs_directory: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "backup.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def sample_workbook() -> bytes:
    """Customer + Dog + Appointment workbook; every row valid."""
    from datetime import datetime, time

    return build_workbook(
        {
            "Customer": [
                ["Id", "Naam", "Emailadres", "Telefoonnummer", "CreatedOn"],
                [1, "Jansen", "jansen@example.nl", "0612345678", datetime(2023, 5, 1, 9, 30)],
                [2, "De Vries", None, None, None],
            ],
            "Dog": [
                ["Id", "Name", "Breed", "CustomerId", "Birthday"],
                [10, "Bello", "Poedel", 1, datetime(2019, 3, 14)],
                [11, "Max", None, 2, None],
            ],
            "Appointment": [
                ["Id", "Date", "TimeStart", "TimeEnd", "CustomerId", "AppointmentStatusId", "IsPaidInCash"],
                [100, datetime(2024, 2, 1), time(9, 0), time(10, 30), 1, "Pln", 1],
            ],
        }
    )


@pytest.fixture(autouse=True)
def _reset_app_logging():
    # module loggers must reach caplog; the CLI turns propagation off
    from grooming_backup.logging.init import reset_logging

    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def workbook_factory():
    return build_workbook
