"""Dirty-set view over a local record store."""

from __future__ import annotations

from typing import Any

from budgetsync.persistence import RecordStore
from budgetsync.schema import COLLECTION_NAMES, DIRTY_FIELD


def strip_local_fields(record: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of the record without fields that never leave the device."""
    return {key: value for key, value in record.items() if key != DIRTY_FIELD}


class ChangeTracker:
    """Expose records created or changed locally since their last sync.

    The store is the change log: a record edited several times before a sync
    contributes only its latest state, once.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def dirty_records(self, collection: str) -> list[dict[str, Any]]:
        return [strip_local_fields(record) for record in self.store.list_dirty(collection)]

    def build_batches(self) -> dict[str, list[dict[str, Any]]]:
        """Collect the outgoing batch for every collection."""
        return {name: self.dirty_records(name) for name in COLLECTION_NAMES}

    def pending_counts(self) -> dict[str, int]:
        return {name: len(self.store.list_dirty(name)) for name in COLLECTION_NAMES}

    def pending_count(self) -> int:
        return sum(self.pending_counts().values())

    def has_pending(self) -> bool:
        return any(self.store.list_dirty(name) for name in COLLECTION_NAMES)
