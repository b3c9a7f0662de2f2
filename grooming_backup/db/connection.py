from __future__ import annotations

import logging
import os
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import psycopg2
import psycopg2.extensions
from psycopg2.pool import ThreadedConnectionPool

from ..config.loader import DatabaseConfig

"""PostgreSQL connection provider.

The engine only needs two capabilities from storage: take a connection for
the duration of one transaction, and give it back. ConnectionProvider wraps a
psycopg2 ThreadedConnectionPool (created lazily on first use) and hands out
connections with autocommit disabled, so every caller owns an explicit
transaction boundary (commit / rollback).

Connection parameter precedence (.env is loaded with override=True by the CLI):
    1. DATABASE_URL / PGDSN (whole DSN)
    2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
    3. the database section of the YAML config (fallback for anything unset)
"""

__all__ = [
    "ConnectionProvider",
    "resolve_dsn",
]

logger = logging.getLogger(__name__)


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


class ConnectionProvider:
    """Hands out pooled psycopg2 connections (one per transaction)."""

    def __init__(self, dsn: str, *, minconn: int = 1, maxconn: int = 4) -> None:
        self._dsn = dsn
        self._minconn = minconn
        self._maxconn = maxconn
        self._pool: ThreadedConnectionPool | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, db_cfg: DatabaseConfig) -> ConnectionProvider:
        return cls(resolve_dsn(db_cfg), minconn=db_cfg.pool_min, maxconn=db_cfg.pool_max)

    def _get_pool(self) -> ThreadedConnectionPool:
        with self._lock:
            if self._pool is None:
                logger.debug("opening connection pool min=%d max=%d", self._minconn, self._maxconn)
                self._pool = ThreadedConnectionPool(self._minconn, self._maxconn, self._dsn)
            return self._pool

    def get_connection(self) -> Any:
        conn = self._get_pool().getconn()
        conn.autocommit = False
        return conn

    def release(self, conn: Any) -> None:
        if self._pool is None:
            return
        # a connection left mid-transaction must not go back to the pool dirty
        close = conn.closed or conn.get_transaction_status() != psycopg2.extensions.TRANSACTION_STATUS_IDLE
        self._pool.putconn(conn, close=bool(close))

    @contextmanager
    def connection(self) -> Iterator[Any]:
        conn = self.get_connection()
        try:
            yield conn
        finally:
            self.release(conn)

    def close(self) -> None:
        with self._lock:
            if self._pool is not None:
                self._pool.closeall()
                self._pool = None
