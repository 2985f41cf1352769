"""Public budgetsync package exports."""

from __future__ import annotations

from budgetsync.__version__ import __version__
from budgetsync.authority import AuthoritativeStore
from budgetsync.client import BudgetClient
from budgetsync.exceptions import (
    MalformedBatchError,
    NotFoundError,
    SyncError,
    TransportError,
)
from budgetsync.merge import MergeEngine
from budgetsync.models import (
    BudgetDTO,
    CategoryDTO,
    EntryDTO,
    PeriodOverrideDTO,
    SyncRequest,
    SyncResult,
    TransactionDTO,
)
from budgetsync.persistence import RecordStore
from budgetsync.repository import LocalRepository
from budgetsync.sync import SyncClient
from budgetsync.tracker import ChangeTracker
from budgetsync.transport import HttpTransport, LocalTransport, Transport

__all__ = [
    "__version__",
    "AuthoritativeStore",
    "BudgetClient",
    "MalformedBatchError",
    "NotFoundError",
    "SyncError",
    "TransportError",
    "MergeEngine",
    "BudgetDTO",
    "CategoryDTO",
    "EntryDTO",
    "PeriodOverrideDTO",
    "SyncRequest",
    "SyncResult",
    "TransactionDTO",
    "RecordStore",
    "LocalRepository",
    "SyncClient",
    "ChangeTracker",
    "HttpTransport",
    "LocalTransport",
    "Transport",
]
