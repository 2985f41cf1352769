"""Domain models, data transfer objects and sync payload types."""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
import datetime as dt
from decimal import Decimal
import time
from typing import Any
import uuid

from budgetsync.schema import (
    BUDGET_TYPES,
    COLLECTION_NAMES,
    PERIOD_TYPES,
    SOURCE_TYPES,
)

Record = dict[str, Any]

TIME_PATTERN_PARTS = 2
MINUTES_PER_DAY = 24 * 60


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def next_timestamp(previous: int | None = None) -> int:
    """Return a timestamp strictly greater than ``previous``."""
    current = now_ms()
    if previous is not None and current <= previous:
        return previous + 1
    return current


def new_id() -> str:
    """Generate a client-side globally unique record id."""
    return str(uuid.uuid4())


def _ensure_date(value: dt.date | dt.datetime | str) -> dt.date:
    """Normalize a date, datetime or ISO string to a date."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        try:
            return dt.date.fromisoformat(value)
        except ValueError as exc:
            raise ValueError("Date must use YYYY-MM-DD format") from exc
    raise ValueError("Date must be a datetime.date")


def _ensure_non_empty(value: str, field_name: str) -> str:
    """Validate required text fields."""
    if not value or not value.strip():
        raise ValueError(f"{field_name} is required")
    return value.strip()


def _ensure_choice(value: str, choices: set[str], field_name: str) -> str:
    if value not in choices:
        allowed = ", ".join(sorted(choices))
        raise ValueError(f"{field_name} must be one of: {allowed}")
    return value


def _ensure_number(
    value: Decimal | str | int | float | None,
    field_name: str,
    allow_negative: bool = True,
) -> float | None:
    """Parse a numeric field into a JSON friendly float."""
    if value is None:
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except Exception as exc:
        raise ValueError(f"{field_name} must be a number") from exc
    if not allow_negative and amount < Decimal("0"):
        raise ValueError(f"{field_name} must not be negative")
    return float(amount)


def _ensure_clock_time(value: str | None, field_name: str) -> str | None:
    """Validate an optional HH:MM clock time."""
    if value is None:
        return None
    parts = value.split(":")
    if len(parts) != TIME_PATTERN_PARTS or not all(part.isdigit() for part in parts):
        raise ValueError(f"{field_name} must use HH:MM format")
    hours, minutes = int(parts[0]), int(parts[1])
    if hours > 23 or minutes > 59:
        raise ValueError(f"{field_name} must use HH:MM format")
    return f"{hours:02d}:{minutes:02d}"


def calc_hours(start_time: str | None, end_time: str | None) -> float | None:
    """Return hours between two HH:MM times, wrapping past midnight."""
    if not start_time or not end_time:
        return None
    start_hours, start_minutes = (int(part) for part in start_time.split(":"))
    end_hours, end_minutes = (int(part) for part in end_time.split(":"))
    diff = (end_hours * 60 + end_minutes) - (start_hours * 60 + start_minutes)
    if diff < 0:
        diff += MINUTES_PER_DAY
    return round(diff / 60, 2)


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _month_start(year: int, month: int, start_day: int) -> dt.date:
    last_day = calendar.monthrange(year, month)[1]
    return dt.date(year, month, min(max(start_day, 1), last_day))


def period_bounds(
    period_type: str,
    period_start_day: int,
    reference: dt.date | str,
) -> tuple[dt.date, dt.date]:
    """Return the first and last day of the budget period containing ``reference``.

    Weekly periods start on ``period_start_day`` counted from Sunday = 0.
    Monthly periods start on that day of the month, clamped to the month's
    length; 0 means the first.
    """
    day = _ensure_date(reference)
    if period_type == "monthly":
        start = _month_start(day.year, day.month, period_start_day)
        if start > day:
            start = _month_start(*_shift_month(day.year, day.month, -1), period_start_day)
        following = _month_start(*_shift_month(start.year, start.month, 1), period_start_day)
        return start, following - dt.timedelta(days=1)
    offset = ((day.weekday() + 1) % 7 - period_start_day % 7) % 7
    start = day - dt.timedelta(days=offset)
    return start, start + dt.timedelta(days=6)


def _base_record(record_id: str, timestamp: int) -> Record:
    return {
        "id": record_id,
        "createdAt": timestamp,
        "updatedAt": timestamp,
        "deleted": False,
    }


@dataclass(frozen=True)
class BudgetDTO:
    """Validated budget input."""
    name: str
    type: str = "time"
    period_type: str = "weekly"
    period_start_day: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "name", _ensure_non_empty(self.name, "Name"))
        _ensure_choice(self.type, BUDGET_TYPES, "Budget type")
        _ensure_choice(self.period_type, PERIOD_TYPES, "Period type")
        if not 0 <= int(self.period_start_day) <= 31:
            raise ValueError("Period start day must be between 0 and 31")

    def to_record(self, record_id: str, timestamp: int) -> Record:
        return {
            **_base_record(record_id, timestamp),
            "name": self.name,
            "type": self.type,
            "periodType": self.period_type,
            "periodStartDay": int(self.period_start_day),
        }


@dataclass(frozen=True)
class CategoryDTO:
    """Validated category input."""
    budget_id: str
    name: str
    color: str = "#60a5fa"
    target_amount: Decimal | str | int | float = 0
    sort_order: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "budget_id", _ensure_non_empty(self.budget_id, "Budget id"))
        object.__setattr__(self, "name", _ensure_non_empty(self.name, "Name"))
        object.__setattr__(
            self,
            "target_amount",
            _ensure_number(self.target_amount, "Target amount", allow_negative=False),
        )

    def to_record(self, record_id: str, timestamp: int) -> Record:
        return {
            **_base_record(record_id, timestamp),
            "budgetId": self.budget_id,
            "name": self.name,
            "color": self.color,
            "targetAmount": self.target_amount,
            "sortOrder": int(self.sort_order),
        }


@dataclass(frozen=True)
class EntryDTO:
    """Validated time entry input.

    When both start and end times are given the quantity is derived from them.
    """
    budget_id: str
    category_id: str
    date: dt.date
    quantity: Decimal | str | int | float = 0
    start_time: str | None = None
    end_time: str | None = None
    note: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "budget_id", _ensure_non_empty(self.budget_id, "Budget id"))
        object.__setattr__(
            self, "category_id", _ensure_non_empty(self.category_id, "Category id")
        )
        object.__setattr__(self, "date", _ensure_date(self.date))
        object.__setattr__(self, "start_time", _ensure_clock_time(self.start_time, "Start time"))
        object.__setattr__(self, "end_time", _ensure_clock_time(self.end_time, "End time"))
        quantity = calc_hours(self.start_time, self.end_time)
        if quantity is None:
            quantity = _ensure_number(self.quantity, "Quantity", allow_negative=False)
        object.__setattr__(self, "quantity", quantity)

    def to_record(self, record_id: str, timestamp: int) -> Record:
        return {
            **_base_record(record_id, timestamp),
            "budgetId": self.budget_id,
            "categoryId": self.category_id,
            "date": self.date.isoformat(),
            "quantity": self.quantity,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "note": self.note,
        }


@dataclass(frozen=True)
class TransactionDTO:
    """Validated money transaction input. Amounts are signed."""
    budget_id: str
    date: dt.date
    amount: Decimal | str | int | float
    payee: str = ""
    memo: str = ""
    category_id: str | None = None
    external_id: str | None = None
    source_type: str = "manual"

    def __post_init__(self) -> None:
        object.__setattr__(self, "budget_id", _ensure_non_empty(self.budget_id, "Budget id"))
        object.__setattr__(self, "date", _ensure_date(self.date))
        if self.amount is None:
            raise ValueError("Amount is required")
        object.__setattr__(self, "amount", _ensure_number(self.amount, "Amount"))
        object.__setattr__(self, "category_id", self.category_id or None)
        object.__setattr__(self, "external_id", self.external_id or None)
        _ensure_choice(self.source_type, SOURCE_TYPES, "Source type")

    def to_record(self, record_id: str, timestamp: int) -> Record:
        return {
            **_base_record(record_id, timestamp),
            "budgetId": self.budget_id,
            "categoryId": self.category_id,
            "date": self.date.isoformat(),
            "amount": self.amount,
            "payee": self.payee or "",
            "memo": self.memo or "",
            "externalId": self.external_id,
            "sourceType": self.source_type,
        }


@dataclass(frozen=True)
class PeriodOverrideDTO:
    """Validated per-period category target override."""
    budget_id: str
    category_id: str
    period_start: dt.date
    target_amount: Decimal | str | int | float

    def __post_init__(self) -> None:
        object.__setattr__(self, "budget_id", _ensure_non_empty(self.budget_id, "Budget id"))
        object.__setattr__(
            self, "category_id", _ensure_non_empty(self.category_id, "Category id")
        )
        object.__setattr__(self, "period_start", _ensure_date(self.period_start))
        object.__setattr__(
            self,
            "target_amount",
            _ensure_number(self.target_amount, "Target amount", allow_negative=False),
        )

    def to_record(self, record_id: str, timestamp: int) -> Record:
        return {
            **_base_record(record_id, timestamp),
            "budgetId": self.budget_id,
            "categoryId": self.category_id,
            "periodStart": self.period_start.isoformat(),
            "targetAmount": self.target_amount,
        }


def _ensure_cursor(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer")
    return value


@dataclass(frozen=True)
class SyncRequest:
    """One push of dirty records plus the client's cursor."""
    last_sync_at: int
    batches: dict[str, list[Record]] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"lastSyncAt": self.last_sync_at}
        for name in COLLECTION_NAMES:
            payload[name] = list(self.batches.get(name, []))
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "SyncRequest":
        """Split a wire payload into cursor and collection batches.

        Batch contents are validated by the merge engine, not here.
        """
        last_sync_at = _ensure_cursor(payload.get("lastSyncAt", 0) or 0, "lastSyncAt")
        batches = {
            key: value
            for key, value in payload.items()
            if key != "lastSyncAt" and value is not None
        }
        return cls(last_sync_at=last_sync_at, batches=batches)


@dataclass(frozen=True)
class SyncResult:
    """Server response: every record changed after the cursor."""
    changed: dict[str, list[Record]]
    synced_at: int

    @property
    def record_count(self) -> int:
        return sum(len(records) for records in self.changed.values())

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            name: list(self.changed.get(name, [])) for name in COLLECTION_NAMES
        }
        payload["syncedAt"] = self.synced_at
        return payload

    @classmethod
    def from_payload(cls, payload: Any) -> "SyncResult":
        if not isinstance(payload, dict):
            raise ValueError("Sync response must be a JSON object")
        synced_at = _ensure_cursor(payload.get("syncedAt"), "syncedAt")
        changed: dict[str, list[Record]] = {}
        for name in COLLECTION_NAMES:
            records = payload.get(name) or []
            if not isinstance(records, list):
                raise ValueError(f"Sync response field {name} must be a list")
            for record in records:
                if not isinstance(record, dict) or not record.get("id"):
                    raise ValueError(f"Sync response field {name} holds a record without id")
                _ensure_cursor(record.get("updatedAt"), f"{name} updatedAt")
            changed[name] = records
        return cls(changed=changed, synced_at=synced_at)
