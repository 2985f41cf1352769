"""Custom exception types for budgetsync."""

from __future__ import annotations

from typing import Any


class SyncError(Exception):
    """Base class for replication failures."""


class TransportError(SyncError):
    """Raised when a sync request cannot reach the server or is rejected."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedBatchError(SyncError):
    """Raised when an incoming sync batch cannot be applied."""

    def __init__(self, message: str, details: dict[str, Any]) -> None:
        super().__init__(message)
        self.details = details


class NotFoundError(Exception):
    """Raised when a requested record does not exist."""
