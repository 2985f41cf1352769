"""Server-side conflict resolution for sync rounds."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, NoReturn

from budgetsync.authority import AuthoritativeStore
from budgetsync.exceptions import MalformedBatchError
from budgetsync.models import SyncRequest, SyncResult
from budgetsync.schema import COLLECTIONS, CollectionDescriptor

logger = logging.getLogger(__name__)


class MergeEngine:
    """Apply client batches with last-writer-wins and report changes.

    Every call is one transaction: either every incoming record is applied
    (or discarded as stale) or nothing is.
    """

    def __init__(self, store: AuthoritativeStore) -> None:
        self.store = store

    def sync(
        self,
        last_sync_at: int,
        batches: dict[str, list[dict[str, Any]]],
    ) -> SyncResult:
        """Upsert incoming records, then return everything newer than the cursor.

        The stored row for every pushed id is returned as well, accepted or
        not. The cursor can sit above a pushed ``updatedAt`` when another
        device's clock runs ahead, and the pusher must still end the round
        holding exactly what the server holds.
        """
        validated = self._validate(batches)
        applied = 0
        discarded = 0
        try:
            with self.store.transaction():
                for descriptor, records in validated:
                    for record in records:
                        if self.store.sync_upsert(descriptor, record):
                            applied += 1
                        else:
                            discarded += 1
                pushed_ids = {
                    descriptor.name: [record["id"] for record in records]
                    for descriptor, records in validated
                }
                changed = {
                    descriptor.name: self._changed_rows(
                        descriptor,
                        last_sync_at,
                        pushed_ids.get(descriptor.name, []),
                    )
                    for descriptor in COLLECTIONS.values()
                }
                synced_at = max(last_sync_at, self.store.high_water_mark())
        except sqlite3.IntegrityError as exc:
            self._reject(f"Batch violates store constraints: {exc}", {"error": str(exc)})
        result = SyncResult(changed=changed, synced_at=synced_at)
        logger.debug(
            "Merged batch: applied=%d discarded=%d returned=%d synced_at=%d",
            applied,
            discarded,
            result.record_count,
            synced_at,
        )
        return result

    def handle(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Run a sync round from a wire payload and return the wire response."""
        if not isinstance(payload, dict):
            raise MalformedBatchError("Sync request must be an object", {})
        try:
            request = SyncRequest.from_payload(payload)
        except ValueError as exc:
            raise MalformedBatchError(str(exc), {"field": "lastSyncAt"}) from exc
        return self.sync(request.last_sync_at, request.batches).to_payload()

    def _changed_rows(
        self,
        descriptor: CollectionDescriptor,
        last_sync_at: int,
        pushed_ids: list[str],
    ) -> list[dict[str, Any]]:
        rows = self.store.changed_since(descriptor, last_sync_at)
        seen = {row["id"] for row in rows}
        missing = [record_id for record_id in pushed_ids if record_id not in seen]
        if not missing:
            return rows
        rows.extend(self.store.get_many(descriptor, missing))
        return sorted(rows, key=lambda row: (row["updatedAt"], row["id"]))

    def _validate(
        self,
        batches: dict[str, list[dict[str, Any]]],
    ) -> list[tuple[CollectionDescriptor, list[dict[str, Any]]]]:
        validated = []
        for name, records in batches.items():
            descriptor = COLLECTIONS.get(name)
            if descriptor is None:
                self._reject(f"Unknown collection: {name}", {"collection": name})
            if records is None:
                continue
            if not isinstance(records, list):
                self._reject(
                    f"Batch for {name} must be a list",
                    {"collection": name},
                )
            for index, record in enumerate(records):
                self._validate_record(descriptor, index, record)
            validated.append((descriptor, records))
        return validated

    def _validate_record(self, descriptor: CollectionDescriptor, index: int, record: Any) -> None:
        if not isinstance(record, dict):
            self._reject(
                f"{descriptor.name}[{index}] must be an object",
                {"collection": descriptor.name, "index": index},
            )
        missing = [
            name
            for name in descriptor.required
            if record.get(name) is None or record.get(name) == ""
        ]
        if missing:
            self._reject(
                f"{descriptor.name}[{index}] is missing required fields",
                {"collection": descriptor.name, "index": index, "missing": missing},
            )
        updated_at = record["updatedAt"]
        if isinstance(updated_at, bool) or not isinstance(updated_at, int):
            self._reject(
                f"{descriptor.name}[{index}] updatedAt must be an integer",
                {"collection": descriptor.name, "index": index, "field": "updatedAt"},
            )
        for column in descriptor.boolean_columns:
            value = record.get(column)
            if value is not None and value not in (True, False):
                self._reject(
                    f"{descriptor.name}[{index}] {column} must be a boolean",
                    {"collection": descriptor.name, "index": index, "field": column},
                )

    @staticmethod
    def _reject(message: str, details: dict[str, Any]) -> NoReturn:
        logger.warning("Rejected sync batch: %s", message)
        raise MalformedBatchError(message, details)
