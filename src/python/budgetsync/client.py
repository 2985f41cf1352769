"""Client orchestration layer for budgetsync."""

from __future__ import annotations

from pathlib import Path
from typing import Any
import datetime as dt
import logging
import os

from budgetsync.config import load_config, load_sync_config
from budgetsync.exceptions import NotFoundError
from budgetsync.models import (
    BudgetDTO,
    CategoryDTO,
    EntryDTO,
    PeriodOverrideDTO,
    Record,
    TransactionDTO,
    new_id,
    next_timestamp,
    now_ms,
    period_bounds,
)
from budgetsync.persistence import RecordStore
from budgetsync.repository import LocalRepository
from budgetsync.schema import COLLECTION_NAMES
from budgetsync.sync import SyncClient
from budgetsync.transport import HttpTransport, Transport

# Configure logging
package_logger = logging.getLogger("budgetsync")
log_level = os.environ.get("LOGGING_LEVEL", "INFO").upper()
package_logger.setLevel(getattr(logging, log_level, logging.INFO))
if not package_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s - %(name)s - %(message)s"))
    package_logger.addHandler(handler)

logger = logging.getLogger(__name__)

DEFAULT_TIME_CATEGORIES = [
    {"name": "Sleep", "color": "#6366f1", "target": 56},
    {"name": "Work", "color": "#f59e0b", "target": 40},
    {"name": "Exercise", "color": "#10b981", "target": 5},
    {"name": "Leisure", "color": "#ec4899", "target": 10},
]
DEFAULT_BUDGET_NAME = "Weekly Time Budget"


class BudgetClient:
    """Coordinate local mutations and replication for one device.

    The client owns the local record store and the sync client; there is no
    process-wide state, so several clients (devices) can live side by side.
    """

    def __init__(
        self,
        db_path: str | Path | None = None,
        enable_sync: bool = True,
        repository: RecordStore | None = None,
        transport: Transport | None = None,
        config_path: str | Path | None = None,
    ) -> None:
        """Initialize the client with a local store and a sync transport.

        Args:
            db_path: Path to the local replica database
            enable_sync: Whether local mutations schedule background sync rounds
            repository: Optional custom record store
            transport: Optional transport, defaults to HTTP using the config
            config_path: Optional JSON config file path
        """
        self.config = load_config(config_path)
        self.sync_config = load_sync_config(self.config)
        self.enable_sync = enable_sync
        self.db_path = self._resolve_db_path(db_path, repository)
        self.repository = repository or LocalRepository(self.db_path)
        self.sync_client = SyncClient(
            self.repository,
            transport or HttpTransport(self.sync_config),
            self.sync_config,
        )

    def __enter__(self) -> "BudgetClient":
        """Open the repository connection."""
        self.repository.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        """Stop sync triggers and close the repository connection."""
        self.close()

    def close(self) -> None:
        self.sync_client.stop()
        self.repository.close()

    def _resolve_db_path(
        self,
        db_path: str | Path | None,
        repository: RecordStore | None,
    ) -> Path:
        """Resolve the database path from arguments or config."""
        if repository is not None and db_path is None:
            return Path("")
        if db_path is not None:
            return Path(db_path)
        resolved = self.config.get("db_path")
        if not resolved:
            raise ValueError("db_path is required when the config file does not set one")
        return Path(resolved).expanduser()

    # Sync

    def start_sync(self) -> None:
        """Begin automatic syncing: startup round, interval and debounce triggers."""
        self.sync_client.start()

    def sync_now(self) -> str | None:
        """Run one round and return its status, None if one was already running."""
        return self.sync_client.sync()

    def notify_online(self) -> None:
        self.sync_client.notify_online()

    def sync_status(self) -> dict[str, Any]:
        """Summarize cursor, last status and pending records per collection."""
        return {
            "status": self.sync_client.status,
            "lastSyncAt": self.sync_client.last_sync_at,
            "pending": self.sync_client.tracker.pending_counts(),
        }

    # Shared mutation helpers

    def _after_mutation(self) -> None:
        if self.enable_sync:
            self.sync_client.request_sync_after_mutation()

    def _require(self, collection: str, record_id: str) -> Record:
        record = self.repository.get(collection, record_id)
        if record is None:
            raise NotFoundError(f"{collection} record {record_id} not found")
        return record

    def _create(self, collection: str, dto: Any) -> Record:
        record = dto.to_record(new_id(), now_ms())
        self.repository.put(collection, record)
        self._after_mutation()
        return record

    def _replace(
        self,
        collection: str,
        current: Record,
        dto: Any,
        timestamp: int | None = None,
    ) -> Record:
        """Write a validated new state for an existing record."""
        record = dto.to_record(
            current["id"],
            timestamp if timestamp is not None else next_timestamp(current["updatedAt"]),
        )
        record["createdAt"] = current.get("createdAt", record["createdAt"])
        self.repository.put(collection, record)
        return record

    def _soft_delete(self, collection: str, record_id: str) -> Record:
        current = self._require(collection, record_id)
        record = self.repository.soft_delete(
            collection, record_id, next_timestamp(current["updatedAt"])
        )
        self._after_mutation()
        return record

    # Budgets

    def add_budget(self, budget: BudgetDTO) -> Record:
        return self._create("budgets", budget)

    def get_budget(self, budget_id: str) -> Record:
        return self._require("budgets", budget_id)

    def list_budgets(self) -> list[Record]:
        return self.repository.query_by_parent("budgets", None)

    def rename_budget(self, budget_id: str, name: str) -> Record:
        current = self._require("budgets", budget_id)
        dto = BudgetDTO(
            name=name,
            type=current["type"],
            period_type=current.get("periodType") or "weekly",
            period_start_day=current.get("periodStartDay") or 0,
        )
        record = self._replace("budgets", current, dto)
        self._after_mutation()
        return record

    def delete_budget(self, budget_id: str) -> None:
        """Tombstone a budget together with everything it owns.

        All tombstones share one timestamp newer than every affected record.
        """
        budget = self._require("budgets", budget_id)
        children = [
            (collection, record)
            for collection in COLLECTION_NAMES
            if collection != "budgets"
            for record in self.repository.query_by_parent(collection, budget_id)
        ]
        latest = max(
            [budget["updatedAt"], *(record["updatedAt"] for _, record in children)]
        )
        timestamp = next_timestamp(latest)
        for collection, record in children:
            self.repository.soft_delete(collection, record["id"], timestamp)
        self.repository.soft_delete("budgets", budget_id, timestamp)
        logger.debug("Soft deleted budget %s and %d children", budget_id, len(children))
        self._after_mutation()

    def seed_default_budget(self) -> Record | None:
        """Create the starter time budget when the device has no budgets."""
        if self.list_budgets():
            return None
        timestamp = now_ms()
        budget = BudgetDTO(name=DEFAULT_BUDGET_NAME).to_record(new_id(), timestamp)
        self.repository.put("budgets", budget)
        for index, default in enumerate(DEFAULT_TIME_CATEGORIES):
            category = CategoryDTO(
                budget_id=budget["id"],
                name=default["name"],
                color=default["color"],
                target_amount=default["target"],
                sort_order=index,
            ).to_record(new_id(), timestamp)
            self.repository.put("categories", category)
        self._after_mutation()
        return budget

    # Categories

    def add_category(self, category: CategoryDTO) -> Record:
        self._require("budgets", category.budget_id)
        return self._create("categories", category)

    def get_category(self, category_id: str) -> Record:
        return self._require("categories", category_id)

    def list_categories(self, budget_id: str) -> list[Record]:
        categories = self.repository.query_by_parent("categories", budget_id)
        return sorted(categories, key=lambda record: record.get("sortOrder") or 0)

    def update_category(
        self,
        category_id: str,
        name: str | None = None,
        color: str | None = None,
        target_amount: Any = None,
        sort_order: int | None = None,
    ) -> Record:
        current = self._require("categories", category_id)
        dto = CategoryDTO(
            budget_id=current["budgetId"],
            name=name if name is not None else current["name"],
            color=color if color is not None else current.get("color"),
            target_amount=(
                target_amount if target_amount is not None else current.get("targetAmount") or 0
            ),
            sort_order=sort_order if sort_order is not None else current.get("sortOrder") or 0,
        )
        record = self._replace("categories", current, dto)
        self._after_mutation()
        return record

    def reorder_categories(self, budget_id: str, ordered_ids: list[str]) -> list[Record]:
        """Rewrite sortOrder so categories follow the given id order."""
        updated = []
        for index, category_id in enumerate(ordered_ids):
            current = self._require("categories", category_id)
            if current["budgetId"] != budget_id:
                raise ValueError(f"Category {category_id} does not belong to budget {budget_id}")
            dto = CategoryDTO(
                budget_id=budget_id,
                name=current["name"],
                color=current.get("color"),
                target_amount=current.get("targetAmount") or 0,
                sort_order=index,
            )
            updated.append(self._replace("categories", current, dto))
        self._after_mutation()
        return updated

    def delete_category(self, category_id: str) -> Record:
        return self._soft_delete("categories", category_id)

    # Entries

    def add_entry(self, entry: EntryDTO) -> Record:
        self._require("categories", entry.category_id)
        return self._create("entries", entry)

    def get_entry(self, entry_id: str) -> Record:
        return self._require("entries", entry_id)

    def list_entries(
        self,
        budget_id: str,
        start_date: dt.date | None = None,
        end_date: dt.date | None = None,
    ) -> list[Record]:
        """List entries, optionally filtered by date range."""
        entries = self._filter_dates(
            self.repository.query_by_parent("entries", budget_id), start_date, end_date
        )
        return sorted(entries, key=lambda record: (record["date"], record.get("createdAt") or 0))

    def update_entry(self, entry_id: str, **changes: Any) -> Record:
        """Update entry fields.

        Changing start or end time recomputes the quantity; setting quantity
        alone clears the times.
        """
        current = self._require("entries", entry_id)
        start_time = changes.get("start_time", current.get("startTime"))
        end_time = changes.get("end_time", current.get("endTime"))
        if "quantity" in changes and not ({"start_time", "end_time"} & changes.keys()):
            start_time = None
            end_time = None
        dto = EntryDTO(
            budget_id=current["budgetId"],
            category_id=changes.get("category_id", current["categoryId"]),
            date=changes.get("date", current["date"]),
            quantity=changes.get("quantity", current.get("quantity") or 0),
            start_time=start_time,
            end_time=end_time,
            note=changes.get("note", current.get("note")),
        )
        record = self._replace("entries", current, dto)
        self._after_mutation()
        return record

    def delete_entry(self, entry_id: str) -> Record:
        return self._soft_delete("entries", entry_id)

    # Transactions

    def add_transaction(self, transaction: TransactionDTO) -> Record:
        self._require("budgets", transaction.budget_id)
        return self._create("transactions", transaction)

    def get_transaction(self, transaction_id: str) -> Record:
        return self._require("transactions", transaction_id)

    def list_transactions(
        self,
        budget_id: str,
        start_date: dt.date | None = None,
        end_date: dt.date | None = None,
    ) -> list[Record]:
        """List transactions newest first, optionally filtered by date range."""
        transactions = self._filter_dates(
            self.repository.query_by_parent("transactions", budget_id), start_date, end_date
        )
        return sorted(
            transactions,
            key=lambda record: (record["date"], record.get("createdAt") or 0),
            reverse=True,
        )

    def update_transaction(self, transaction_id: str, **changes: Any) -> Record:
        current = self._require("transactions", transaction_id)
        dto = TransactionDTO(
            budget_id=current["budgetId"],
            date=changes.get("date", current["date"]),
            amount=changes.get("amount", current["amount"]),
            payee=changes.get("payee", current.get("payee") or ""),
            memo=changes.get("memo", current.get("memo") or ""),
            category_id=changes.get("category_id", current.get("categoryId")),
            external_id=current.get("externalId"),
            source_type=current.get("sourceType") or "manual",
        )
        record = self._replace("transactions", current, dto)
        self._after_mutation()
        return record

    def delete_transaction(self, transaction_id: str) -> Record:
        return self._soft_delete("transactions", transaction_id)

    def import_transactions(
        self,
        budget_id: str,
        parsed: list[dict[str, Any]],
    ) -> list[Record]:
        """Store already-parsed bank statement rows as transactions.

        Rows whose external id (OFX FITID) is already present in the budget,
        or repeated within the import, are skipped.
        """
        self._require("budgets", budget_id)
        seen = {
            record["externalId"]
            for record in self.repository.query_by_parent("transactions", budget_id)
            if record.get("externalId")
        }
        timestamp = now_ms()
        imported = []
        for row in parsed:
            external_id = row.get("externalId") or row.get("fitid") or None
            if external_id and external_id in seen:
                logger.debug("Skipping already imported transaction %s", external_id)
                continue
            dto = TransactionDTO(
                budget_id=budget_id,
                date=row["date"],
                amount=row["amount"],
                payee=row.get("payee") or "",
                memo=row.get("memo") or "",
                external_id=external_id,
                source_type="ofx",
            )
            record = dto.to_record(new_id(), timestamp)
            self.repository.put("transactions", record)
            imported.append(record)
            if external_id:
                seen.add(external_id)
        logger.info("Imported %d of %d transactions", len(imported), len(parsed))
        if imported:
            self._after_mutation()
        return imported

    # Period overrides

    def set_period_override(
        self,
        budget_id: str,
        category_id: str,
        period_start: dt.date | str,
        target_amount: Any,
    ) -> Record:
        """Set the target for one category in one period, creating it if needed."""
        dto = PeriodOverrideDTO(
            budget_id=budget_id,
            category_id=category_id,
            period_start=period_start,
            target_amount=target_amount,
        )
        self._require("categories", category_id)
        for current in self.repository.query_by_parent("periodOverrides", budget_id):
            if (
                current["categoryId"] == category_id
                and current["periodStart"] == dto.period_start.isoformat()
            ):
                record = self._replace("periodOverrides", current, dto)
                self._after_mutation()
                return record
        return self._create("periodOverrides", dto)

    def list_overrides(self, budget_id: str) -> list[Record]:
        return self.repository.query_by_parent("periodOverrides", budget_id)

    def delete_override(self, override_id: str) -> Record:
        return self._soft_delete("periodOverrides", override_id)

    # Period reports

    def period_summary(
        self,
        budget_id: str,
        reference_date: dt.date | str | None = None,
    ) -> dict[str, Any]:
        """Compare actual against target per category for one budget period.

        Time budgets sum entry hours. Money budgets sum spending (negative
        amounts; income is ignored) and report spending without a live
        category as uncategorized. An override for the period replaces the
        category target.

        Args:
            budget_id: Budget to report on
            reference_date: Any day inside the period, defaults to today

        Returns:
            Period bounds, per-category target/actual/remaining rows, daily
            totals and overall totals
        """
        budget = self._require("budgets", budget_id)
        start, end = period_bounds(
            budget.get("periodType") or "weekly",
            int(budget.get("periodStartDay") or 0),
            reference_date or dt.date.today(),
        )
        categories = self.list_categories(budget_id)
        overrides = {
            override["categoryId"]: override.get("targetAmount")
            for override in self.list_overrides(budget_id)
            if override["periodStart"] == start.isoformat()
        }
        actual = {category["id"]: 0.0 for category in categories}
        daily = {
            (start + dt.timedelta(days=offset)).isoformat(): 0.0
            for offset in range((end - start).days + 1)
        }
        uncategorized = 0.0

        if budget["type"] == "money":
            amounts = [
                (record["date"], record.get("categoryId"), -float(record["amount"]))
                for record in self.list_transactions(budget_id, start, end)
                if float(record["amount"]) < 0
            ]
        else:
            amounts = [
                (record["date"], record["categoryId"], float(record.get("quantity") or 0))
                for record in self.list_entries(budget_id, start, end)
            ]
        for date, category_id, value in amounts:
            daily[date] += value
            if category_id in actual:
                actual[category_id] += value
            else:
                uncategorized += value

        rows = []
        for category in categories:
            target = float(overrides.get(category["id"], category.get("targetAmount")) or 0)
            spent = actual[category["id"]]
            rows.append(
                {
                    "categoryId": category["id"],
                    "name": category["name"],
                    "color": category.get("color"),
                    "target": round(target, 2),
                    "actual": round(spent, 2),
                    "remaining": round(target - spent, 2),
                    "overridden": category["id"] in overrides,
                }
            )
        return {
            "budgetId": budget_id,
            "type": budget["type"],
            "periodStart": start.isoformat(),
            "periodEnd": end.isoformat(),
            "categories": rows,
            "uncategorized": round(uncategorized, 2),
            "daily": {date: round(value, 2) for date, value in daily.items()},
            "totalTarget": round(sum(row["target"] for row in rows), 2),
            "totalActual": round(sum(actual.values()) + uncategorized, 2),
        }

    def period_history(self, budget_id: str) -> list[dict[str, Any]]:
        """Summaries of every period holding entries or transactions, newest first."""
        budget = self._require("budgets", budget_id)
        collection = "transactions" if budget["type"] == "money" else "entries"
        starts = {
            period_bounds(
                budget.get("periodType") or "weekly",
                int(budget.get("periodStartDay") or 0),
                record["date"],
            )[0]
            for record in self.repository.query_by_parent(collection, budget_id)
        }
        return [self.period_summary(budget_id, start) for start in sorted(starts, reverse=True)]

    @staticmethod
    def _filter_dates(
        records: list[Record],
        start_date: dt.date | None,
        end_date: dt.date | None,
    ) -> list[Record]:
        if start_date is not None:
            records = [record for record in records if record["date"] >= start_date.isoformat()]
        if end_date is not None:
            records = [record for record in records if record["date"] <= end_date.isoformat()]
        return records
