"""Relational system-of-record store used by the merge engine."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
import logging
import sqlite3
import threading
from typing import Any, Iterator

from budgetsync.exceptions import NotFoundError
from budgetsync.schema import COLLECTIONS, CollectionDescriptor, get_descriptor

logger = logging.getLogger(__name__)

IMMUTABLE_COLUMNS = ("createdAt",)
# Stays below the default SQLite host parameter limit.
ID_CHUNK_SIZE = 500

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS budgets (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        type TEXT NOT NULL,
        periodType TEXT,
        periodStartDay INTEGER,
        createdAt INTEGER,
        updatedAt INTEGER NOT NULL,
        deleted INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS categories (
        id TEXT PRIMARY KEY,
        budgetId TEXT NOT NULL REFERENCES budgets (id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        color TEXT,
        targetAmount NUMERIC,
        sortOrder INTEGER,
        createdAt INTEGER,
        updatedAt INTEGER NOT NULL,
        deleted INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS entries (
        id TEXT PRIMARY KEY,
        budgetId TEXT NOT NULL REFERENCES budgets (id) ON DELETE CASCADE,
        categoryId TEXT NOT NULL REFERENCES categories (id) ON DELETE CASCADE,
        date TEXT NOT NULL,
        quantity NUMERIC,
        startTime TEXT,
        endTime TEXT,
        note TEXT,
        createdAt INTEGER,
        updatedAt INTEGER NOT NULL,
        deleted INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS transactions (
        id TEXT PRIMARY KEY,
        budgetId TEXT NOT NULL REFERENCES budgets (id) ON DELETE CASCADE,
        categoryId TEXT REFERENCES categories (id) ON DELETE SET NULL,
        date TEXT NOT NULL,
        amount NUMERIC NOT NULL,
        payee TEXT,
        memo TEXT,
        externalId TEXT,
        sourceType TEXT,
        createdAt INTEGER,
        updatedAt INTEGER NOT NULL,
        deleted INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS period_overrides (
        id TEXT PRIMARY KEY,
        budgetId TEXT NOT NULL REFERENCES budgets (id) ON DELETE CASCADE,
        categoryId TEXT NOT NULL REFERENCES categories (id) ON DELETE CASCADE,
        periodStart TEXT NOT NULL,
        targetAmount NUMERIC,
        createdAt INTEGER,
        updatedAt INTEGER NOT NULL,
        deleted INTEGER NOT NULL DEFAULT 0
    )
    """,
]


class AuthoritativeStore:
    """SQLite-backed system of record.

    Two mutation paths exist and are deliberately kept apart:

    - ``sync_upsert``: last-writer-wins by ``updatedAt``, tombstone aware, run
      with foreign keys off so orphaned children from other devices still land.
    - ``admin_cascade_delete``: immediate hard delete with foreign-key
      cascades, never replicated as tombstones.

    Both run under the same lock and ``BEGIN IMMEDIATE`` so a direct delete
    cannot interleave with a sync transaction.
    """

    def __init__(self, db_path: str | Path, timeout: float = 30.0) -> None:
        self.db_path = Path(db_path)
        self.timeout = timeout
        self.connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def connect(self) -> None:
        """Open the database connection and create missing tables."""
        with self._lock:
            if self.connection is None:
                self.connection = sqlite3.connect(
                    str(self.db_path),
                    timeout=self.timeout,
                    isolation_level=None,
                    check_same_thread=False,
                )
                self.connection.row_factory = sqlite3.Row
                for statement in SCHEMA_STATEMENTS:
                    self.connection.execute(statement)
                for descriptor in COLLECTIONS.values():
                    self.connection.execute(
                        f"CREATE INDEX IF NOT EXISTS idx_{descriptor.table}_updatedAt "
                        f"ON {descriptor.table} (updatedAt)"
                    )

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self.connection is not None:
                self.connection.close()
                self.connection = None

    def __enter__(self) -> "AuthoritativeStore":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def begin_transaction(self, enforce_foreign_keys: bool = False) -> None:
        """Begin a write transaction.

        The foreign key pragma is ignored inside a transaction, so it is set
        before BEGIN.
        """
        self._ensure_connection()
        self.connection.execute(
            f"PRAGMA foreign_keys = {'ON' if enforce_foreign_keys else 'OFF'}"
        )
        self.connection.execute("BEGIN IMMEDIATE")

    def commit(self) -> None:
        """Commit the current transaction."""
        self._ensure_connection()
        self.connection.execute("COMMIT")

    def rollback(self) -> None:
        """Rollback the current transaction."""
        self._ensure_connection()
        if self.connection.in_transaction:
            self.connection.execute("ROLLBACK")

    @contextmanager
    def transaction(self, enforce_foreign_keys: bool = False) -> Iterator["AuthoritativeStore"]:
        """Run a block of statements atomically under the store lock."""
        with self._lock:
            self.begin_transaction(enforce_foreign_keys=enforce_foreign_keys)
            try:
                yield self
            except Exception:
                self.rollback()
                raise
            self.commit()

    def sync_upsert(self, descriptor: CollectionDescriptor, record: dict[str, Any]) -> bool:
        """Insert or overwrite a row when the incoming updatedAt is strictly newer.

        The comparison and the write are one statement. Returns True when the
        row was written.
        """
        self._ensure_connection()
        columns = descriptor.columns
        placeholders = ", ".join("?" for _ in columns)
        assignments = ", ".join(
            f"{column} = COALESCE({descriptor.table}.{column}, excluded.{column})"
            if column in IMMUTABLE_COLUMNS
            else f"{column} = excluded.{column}"
            for column in descriptor.data_columns
        )
        cursor = self.connection.execute(
            f"""
            INSERT INTO {descriptor.table} ({', '.join(columns)})
            VALUES ({placeholders})
            ON CONFLICT(id) DO UPDATE SET {assignments}
            WHERE excluded.updatedAt > {descriptor.table}.updatedAt
            """,
            self._record_values(descriptor, record),
        )
        return cursor.rowcount > 0

    def changed_since(self, descriptor: CollectionDescriptor, cursor: int) -> list[dict[str, Any]]:
        """Return every row, tombstones included, updated after the cursor."""
        self._ensure_connection()
        rows = self.connection.execute(
            f"""
            SELECT {', '.join(descriptor.columns)}
            FROM {descriptor.table}
            WHERE updatedAt > ?
            ORDER BY updatedAt, id
            """,
            (cursor,),
        ).fetchall()
        return [self._row_to_record(descriptor, row) for row in rows]

    def get_many(self, descriptor: CollectionDescriptor, record_ids: list[str]) -> list[dict[str, Any]]:
        """Return the stored rows, tombstones included, for the given ids."""
        self._ensure_connection()
        records: list[dict[str, Any]] = []
        unique_ids = list(dict.fromkeys(record_ids))
        for start in range(0, len(unique_ids), ID_CHUNK_SIZE):
            chunk = unique_ids[start:start + ID_CHUNK_SIZE]
            rows = self.connection.execute(
                f"""
                SELECT {', '.join(descriptor.columns)}
                FROM {descriptor.table}
                WHERE id IN ({', '.join('?' for _ in chunk)})
                """,
                chunk,
            ).fetchall()
            records.extend(self._row_to_record(descriptor, row) for row in rows)
        return records

    def high_water_mark(self) -> int:
        """Return the largest updatedAt held in any collection."""
        self._ensure_connection()
        union = " UNION ALL ".join(
            f"SELECT MAX(updatedAt) AS value FROM {descriptor.table}"
            for descriptor in COLLECTIONS.values()
        )
        row = self.connection.execute(
            f"SELECT COALESCE(MAX(value), 0) AS value FROM ({union})"
        ).fetchone()
        return int(row["value"])

    def get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        """Fetch a row by id, tombstones included."""
        descriptor = get_descriptor(collection)
        with self._lock:
            self._ensure_connection()
            row = self.connection.execute(
                f"SELECT {', '.join(descriptor.columns)} FROM {descriptor.table} WHERE id = ?",
                (record_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_record(descriptor, row)

    def count(self, collection: str) -> int:
        descriptor = get_descriptor(collection)
        with self._lock:
            self._ensure_connection()
            row = self.connection.execute(
                f"SELECT COUNT(*) AS total FROM {descriptor.table}"
            ).fetchone()
        return int(row["total"])

    def admin_cascade_delete(self, collection: str, record_id: str) -> None:
        """Hard delete a row and every descendant through foreign keys.

        No tombstones are written. A device still holding unsynced edits to a
        removed descendant re-inserts it on its next sync.
        """
        descriptor = get_descriptor(collection)
        with self.transaction(enforce_foreign_keys=True):
            cursor = self.connection.execute(
                f"DELETE FROM {descriptor.table} WHERE id = ?",
                (record_id,),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"{collection} record {record_id} not found")
        logger.info("Hard deleted %s %s with cascades", collection, record_id)

    def _ensure_connection(self) -> None:
        if self.connection is None:
            raise RuntimeError("Authoritative store connection is not open")

    @staticmethod
    def _record_values(descriptor: CollectionDescriptor, record: dict[str, Any]) -> list[object]:
        values: list[object] = []
        for column in descriptor.columns:
            value = record.get(column)
            if column in descriptor.boolean_columns:
                value = int(bool(value))
            values.append(value)
        return values

    @staticmethod
    def _row_to_record(descriptor: CollectionDescriptor, row: sqlite3.Row) -> dict[str, Any]:
        record = {column: row[column] for column in descriptor.columns}
        for column in descriptor.boolean_columns:
            record[column] = bool(record[column])
        return record
