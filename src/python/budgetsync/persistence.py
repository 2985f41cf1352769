"""Persistence interfaces for local record stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any


class RecordStore(ABC):
    """Abstract interface for a local replica of the synced collections."""

    @abstractmethod
    def __init__(self, db_path: str | Path) -> None:
        """Initialize the store with a storage path."""

    @abstractmethod
    def connect(self) -> None:
        """Open the store, creating its tables when missing."""

    @abstractmethod
    def close(self) -> None:
        """Close the store."""

    @abstractmethod
    def get(self, collection: str, record_id: str) -> dict[str, Any] | None:
        """Return a live record, or None when absent or tombstoned."""

    @abstractmethod
    def query_by_parent(self, collection: str, parent_id: str | None) -> list[dict[str, Any]]:
        """Return live records owned by the given budget id."""

    @abstractmethod
    def put(self, collection: str, record: dict[str, Any]) -> None:
        """Write a locally mutated record and mark it dirty."""

    @abstractmethod
    def put_clean(self, collection: str, record: dict[str, Any]) -> bool:
        """Write server confirmed state without marking it dirty."""

    @abstractmethod
    def soft_delete(self, collection: str, record_id: str, timestamp: int) -> dict[str, Any]:
        """Tombstone a record, bump its updatedAt and mark it dirty."""

    @abstractmethod
    def list_dirty(self, collection: str) -> list[dict[str, Any]]:
        """Return dirty records, tombstones included."""

    @abstractmethod
    def get_meta(self, key: str) -> Any:
        """Return a metadata value or None."""

    @abstractmethod
    def set_meta(self, key: str, value: Any) -> None:
        """Persist a metadata value."""
