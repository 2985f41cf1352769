"""SQLite record store for the local replica."""

from __future__ import annotations

from pathlib import Path
import json
import logging
import sqlite3
import threading
from typing import Any

from budgetsync.exceptions import NotFoundError
from budgetsync.persistence import RecordStore
from budgetsync.schema import (
    COLLECTIONS,
    DIRTY_FIELD,
    CollectionDescriptor,
    get_descriptor,
)

logger = logging.getLogger(__name__)

INDEXED_COLUMNS = ("budgetId", "categoryId")


class LocalRepository(RecordStore):
    """SQLite-backed keyed store of records with dirty and tombstone flags.

    Each collection table keeps the full record as a JSON body next to the
    indexed columns the store queries on, so the body always round-trips the
    record verbatim.
    """

    def __init__(self, db_path: str | Path) -> None:
        """Create a repository for the given database path."""
        self.db_path = Path(db_path)
        self.connection: sqlite3.Connection | None = None
        self._lock = threading.RLock()

    def connect(self) -> None:
        """Open the database connection and create missing tables."""
        with self._lock:
            if self.connection is None:
                self.connection = sqlite3.connect(
                    str(self.db_path), check_same_thread=False
                )
                self.connection.row_factory = sqlite3.Row
                self._create_tables()

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self.connection is not None:
                self.connection.close()
                self.connection = None

    def __enter__(self) -> "LocalRepository":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _create_tables(self) -> None:
        with self.connection:
            for descriptor in COLLECTIONS.values():
                self.connection.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {descriptor.table} (
                        id TEXT PRIMARY KEY,
                        budgetId TEXT,
                        categoryId TEXT,
                        updatedAt INTEGER NOT NULL,
                        deleted INTEGER NOT NULL DEFAULT 0,
                        dirty INTEGER NOT NULL DEFAULT 0,
                        body TEXT NOT NULL
                    )
                    """
                )
                for column in (*INDEXED_COLUMNS, "dirty"):
                    self.connection.execute(
                        f"CREATE INDEX IF NOT EXISTS idx_{descriptor.table}_{column} "
                        f"ON {descriptor.table} ({column})"
                    )
            self.connection.execute(
                "CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT)"
            )

    def _ensure_connection(self) -> None:
        if self.connection is None:
            raise RuntimeError("Repository connection is not open")

    def get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        """Fetch a live record by id."""
        record = self.get_including_deleted(collection, record_id)
        if record is None or record.get("deleted"):
            return None
        record.pop(DIRTY_FIELD, None)
        return record

    def get_including_deleted(self, collection: str, record_id: str) -> dict[str, Any] | None:
        """Fetch a record by id, tombstones included, with its dirty flag."""
        descriptor = get_descriptor(collection)
        with self._lock:
            self._ensure_connection()
            row = self.connection.execute(
                f"SELECT body, dirty FROM {descriptor.table} WHERE id = ?",
                (record_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_record(row)

    def query_by_parent(self, collection: str, parent_id: str | None) -> list[dict[str, Any]]:
        """List live records for a budget, or every live budget."""
        descriptor = get_descriptor(collection)
        params: list[object] = []
        where_clause = "WHERE deleted = 0"
        if descriptor.parent_key is not None:
            where_clause += f" AND {descriptor.parent_key} = ?"
            params.append(parent_id)
        with self._lock:
            self._ensure_connection()
            rows = self.connection.execute(
                f"SELECT body FROM {descriptor.table} {where_clause} ORDER BY rowid",
                params,
            ).fetchall()
        return [json.loads(row["body"]) for row in rows]

    def put(self, collection: str, record: dict[str, Any]) -> None:
        """Write a record and mark it dirty."""
        descriptor = get_descriptor(collection)
        with self._lock:
            self._ensure_connection()
            with self.connection:
                self._write(descriptor, record, dirty=True)

    def put_clean(self, collection: str, record: dict[str, Any]) -> bool:
        """Write server confirmed state as clean.

        A local copy that is still dirty and carries a newer updatedAt was
        edited after the sync batch was read; it is kept and False returned.
        """
        descriptor = get_descriptor(collection)
        incoming_updated_at = self._require_updated_at(record)
        if not record.get("id"):
            raise ValueError(f"{collection} record requires an id")
        with self._lock:
            self._ensure_connection()
            with self.connection:
                row = self.connection.execute(
                    f"SELECT updatedAt, dirty FROM {descriptor.table} WHERE id = ?",
                    (record["id"],),
                ).fetchone()
                if row is not None and row["dirty"] and row["updatedAt"] > incoming_updated_at:
                    logger.debug(
                        "Keeping newer local %s %s over server copy",
                        collection,
                        record["id"],
                    )
                    return False
                self._write(descriptor, record, dirty=False)
        return True

    def soft_delete(self, collection: str, record_id: str, timestamp: int) -> dict[str, Any]:
        """Tombstone a record in place and return it."""
        descriptor = get_descriptor(collection)
        with self._lock:
            self._ensure_connection()
            with self.connection:
                row = self.connection.execute(
                    f"SELECT body FROM {descriptor.table} WHERE id = ?",
                    (record_id,),
                ).fetchone()
                if row is None:
                    raise NotFoundError(f"{collection} record {record_id} not found")
                record = json.loads(row["body"])
                record["deleted"] = True
                record["updatedAt"] = timestamp
                self._write(descriptor, record, dirty=True)
        return record

    def list_dirty(self, collection: str) -> list[dict[str, Any]]:
        """List dirty records with their local dirty flag."""
        descriptor = get_descriptor(collection)
        with self._lock:
            self._ensure_connection()
            rows = self.connection.execute(
                f"SELECT body, dirty FROM {descriptor.table} WHERE dirty = 1 ORDER BY rowid"
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def get_meta(self, key: str) -> Any:
        with self._lock:
            self._ensure_connection()
            row = self.connection.execute(
                "SELECT value FROM meta WHERE key = ?", (key,)
            ).fetchone()
        if row is None:
            return None
        return json.loads(row["value"])

    def set_meta(self, key: str, value: Any) -> None:
        with self._lock:
            self._ensure_connection()
            with self.connection:
                self.connection.execute(
                    "INSERT INTO meta (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, json.dumps(value)),
                )

    def _write(self, descriptor: CollectionDescriptor, record: dict[str, Any], dirty: bool) -> None:
        body = {key: value for key, value in record.items() if key != DIRTY_FIELD}
        if not body.get("id"):
            raise ValueError(f"{descriptor.name} record requires an id")
        updated_at = self._require_updated_at(body)
        body["deleted"] = bool(body.get("deleted", False))
        self.connection.execute(
            f"""
            INSERT INTO {descriptor.table} (
                id,
                budgetId,
                categoryId,
                updatedAt,
                deleted,
                dirty,
                body
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                budgetId = excluded.budgetId,
                categoryId = excluded.categoryId,
                updatedAt = excluded.updatedAt,
                deleted = excluded.deleted,
                dirty = excluded.dirty,
                body = excluded.body
            """,
            (
                body["id"],
                body.get("budgetId"),
                body.get("categoryId"),
                updated_at,
                int(body["deleted"]),
                int(dirty),
                json.dumps(body),
            ),
        )

    @staticmethod
    def _require_updated_at(record: dict[str, Any]) -> int:
        updated_at = record.get("updatedAt")
        if isinstance(updated_at, bool) or not isinstance(updated_at, int):
            raise ValueError("Record updatedAt must be an integer timestamp")
        return updated_at

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> dict[str, Any]:
        record = json.loads(row["body"])
        record[DIRTY_FIELD] = bool(row["dirty"])
        return record
