"""
Connection and schema utilities for the keypair store.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

import psycopg

TABLE_NAME = "sol_keypairs"

SQLITE_SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
  public_key VARCHAR PRIMARY KEY,
  private_key BLOB NOT NULL,
  created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);
"""

POSTGRES_SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
  public_key VARCHAR PRIMARY KEY,
  private_key BYTEA NOT NULL,
  created_at TIMESTAMPTZ DEFAULT now()
)
"""

_POSTGRES_SCHEMES = ("postgres://", "postgresql://")
_SQLITE_SCHEME = "sqlite:///"

Backend = Literal["sqlite", "postgres"]


class StoreError(RuntimeError):
    """Any failure to reach or write to the keypair store."""


@dataclass(frozen=True)
class StoreLocation:
    backend: Backend
    target: str

    @property
    def placeholder(self) -> str:
        return "?" if self.backend == "sqlite" else "%s"


def parse_database_url(url: str) -> StoreLocation:
    """Map a connection descriptor onto a backend.

    ``postgres://`` and ``postgresql://`` URLs are handed to psycopg as-is;
    ``sqlite:///path`` opens a local database file (``sqlite:///:memory:`` is
    accepted for tests).
    """
    url = url.strip()
    if not url:
        raise StoreError("DATABASE_URL is not set")
    if url.startswith(_POSTGRES_SCHEMES):
        return StoreLocation("postgres", url)
    if url.startswith(_SQLITE_SCHEME):
        path = url[len(_SQLITE_SCHEME):]
        if not path:
            raise StoreError(f"SQLite URL has no path: {url}")
        return StoreLocation("sqlite", path)
    scheme = url.split("://", 1)[0] if "://" in url else url
    raise StoreError(f"Unsupported store scheme: {scheme}")


def _connect_sqlite(path: str) -> sqlite3.Connection:
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(path, isolation_level=None)
    connection.row_factory = sqlite3.Row
    return connection


def connect(location: StoreLocation) -> Any:
    """Open an autocommit connection with the schema in place."""
    try:
        if location.backend == "sqlite":
            connection = _connect_sqlite(location.target)
            schema_sql = SQLITE_SCHEMA_SQL
        else:
            connection = psycopg.connect(location.target, autocommit=True)
            schema_sql = POSTGRES_SCHEMA_SQL
    except (sqlite3.Error, psycopg.Error, OSError) as exc:
        raise StoreError(f"Cannot open {location.backend} store: {exc}") from exc

    try:
        if location.backend == "sqlite":
            _ = connection.executescript(schema_sql)
        else:
            _ = connection.execute(schema_sql)
    except (sqlite3.Error, psycopg.Error) as exc:
        connection.close()
        raise StoreError(f"Cannot create {TABLE_NAME} table: {exc}") from exc
    return connection
