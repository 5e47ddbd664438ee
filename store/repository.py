"""
Idempotent keypair repository.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Any

import psycopg

from .database import TABLE_NAME, StoreError, StoreLocation, connect, parse_database_url

logger = logging.getLogger(__name__)

PRIVATE_KEY_LENGTH = 64

_STORE_ERRORS = (sqlite3.Error, psycopg.Error, OSError)


@dataclass(frozen=True)
class KeypairRecord:
    public_key: str
    private_key: bytes

    def __post_init__(self) -> None:
        if not self.public_key:
            raise ValueError("public_key is required")
        if len(self.private_key) != PRIVATE_KEY_LENGTH:
            raise ValueError(
                f"private_key must be {PRIVATE_KEY_LENGTH} bytes, got {len(self.private_key)}"
            )

    @property
    def private_key_hex(self) -> str:
        return self.private_key.hex()

    @classmethod
    def from_hex(cls, public_key: str, private_key_hex: str) -> "KeypairRecord":
        return cls(public_key=public_key, private_key=bytes.fromhex(private_key_hex))


class KeypairStore:
    """
    Insert-or-ignore access to the ``sol_keypairs`` table.

    The connection is opened on first use and kept for the life of the
    process. An empty descriptor only fails when something is actually
    written. After a storage error the connection is dropped so the next call
    reconnects.
    """

    def __init__(self, database_url: str) -> None:
        self.database_url: str = database_url
        self._location: StoreLocation | None = None
        self._connection: Any = None

    @property
    def location(self) -> StoreLocation:
        if self._location is None:
            self._location = parse_database_url(self.database_url)
        return self._location

    def _get_connection(self) -> Any:
        if self._connection is None:
            self._connection = connect(self.location)
        return self._connection

    def ensure_schema(self) -> None:
        _ = self._get_connection()

    def insert(self, record: KeypairRecord) -> bool:
        """Insert ``record``; return False when the public key already exists.

        An existing row is never touched, so the first stored private key for
        a public key always wins.
        """
        mark = self.location.placeholder
        sql = (
            f"INSERT INTO {TABLE_NAME} (public_key, private_key) "
            f"VALUES ({mark}, {mark}) ON CONFLICT (public_key) DO NOTHING"
        )
        try:
            cursor = self._get_connection().execute(
                sql, (record.public_key, record.private_key)
            )
        except _STORE_ERRORS as exc:
            self._reset()
            raise StoreError(f"{self.location.backend} insert error: {exc}") from exc
        return cursor.rowcount == 1

    def get(self, public_key: str) -> KeypairRecord | None:
        mark = self.location.placeholder
        try:
            row = self._get_connection().execute(
                f"SELECT public_key, private_key FROM {TABLE_NAME} WHERE public_key = {mark}",
                (public_key,),
            ).fetchone()
        except _STORE_ERRORS as exc:
            self._reset()
            raise StoreError(f"Lookup failed for {public_key}: {exc}") from exc
        if row is None:
            return None
        return KeypairRecord(public_key=str(row[0]), private_key=bytes(row[1]))

    def count(self) -> int:
        try:
            row = self._get_connection().execute(f"SELECT COUNT(*) FROM {TABLE_NAME}").fetchone()
        except _STORE_ERRORS as exc:
            self._reset()
            raise StoreError(f"Count failed: {exc}") from exc
        return int(row[0]) if row is not None else 0

    def close(self) -> None:
        if self._connection is None:
            return
        try:
            self._connection.close()
        except _STORE_ERRORS as exc:
            logger.warning("Error closing store connection: %s", exc)
        finally:
            self._connection = None

    def _reset(self) -> None:
        self.close()

    def __enter__(self) -> "KeypairStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
