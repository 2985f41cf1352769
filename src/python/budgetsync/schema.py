"""Collection descriptors and storage constants."""

from __future__ import annotations

from dataclasses import dataclass

DIRTY_FIELD = "_dirty"
META_LAST_SYNC_AT = "lastSyncAt"

STATUS_IDLE = "idle"
STATUS_SYNCING = "syncing"
STATUS_SYNCED = "synced"
STATUS_OFFLINE = "offline"

BUDGET_TYPES = {"time", "money"}
PERIOD_TYPES = {"weekly", "monthly"}
SOURCE_TYPES = {"manual", "ofx"}

SYNC_COLUMNS = ["createdAt", "updatedAt", "deleted"]


@dataclass(frozen=True)
class CollectionDescriptor:
    """Describe how one record collection maps onto storage.

    Attributes:
        name: Wire key of the collection in sync payloads
        table: Table name in both local and authoritative stores
        columns: Every record field, id first, sync columns last
        required: Fields an incoming record must carry
        parent_key: Field holding the owning budget id, None for budgets
        boolean_columns: Columns stored as 0/1 and read back as bool
    """

    name: str
    table: str
    columns: tuple[str, ...]
    required: tuple[str, ...]
    parent_key: str | None = None
    boolean_columns: tuple[str, ...] = ("deleted",)

    @property
    def data_columns(self) -> tuple[str, ...]:
        return tuple(column for column in self.columns if column != "id")


BUDGETS = CollectionDescriptor(
    name="budgets",
    table="budgets",
    columns=(
        "id",
        "name",
        "type",
        "periodType",
        "periodStartDay",
        *SYNC_COLUMNS,
    ),
    required=("id", "name", "type", "updatedAt"),
)

CATEGORIES = CollectionDescriptor(
    name="categories",
    table="categories",
    columns=(
        "id",
        "budgetId",
        "name",
        "color",
        "targetAmount",
        "sortOrder",
        *SYNC_COLUMNS,
    ),
    required=("id", "budgetId", "name", "updatedAt"),
    parent_key="budgetId",
)

ENTRIES = CollectionDescriptor(
    name="entries",
    table="entries",
    columns=(
        "id",
        "budgetId",
        "categoryId",
        "date",
        "quantity",
        "startTime",
        "endTime",
        "note",
        *SYNC_COLUMNS,
    ),
    required=("id", "budgetId", "categoryId", "date", "updatedAt"),
    parent_key="budgetId",
)

TRANSACTIONS = CollectionDescriptor(
    name="transactions",
    table="transactions",
    columns=(
        "id",
        "budgetId",
        "categoryId",
        "date",
        "amount",
        "payee",
        "memo",
        "externalId",
        "sourceType",
        *SYNC_COLUMNS,
    ),
    required=("id", "budgetId", "date", "amount", "updatedAt"),
    parent_key="budgetId",
)

PERIOD_OVERRIDES = CollectionDescriptor(
    name="periodOverrides",
    table="period_overrides",
    columns=(
        "id",
        "budgetId",
        "categoryId",
        "periodStart",
        "targetAmount",
        *SYNC_COLUMNS,
    ),
    required=("id", "budgetId", "categoryId", "periodStart", "updatedAt"),
    parent_key="budgetId",
)

COLLECTIONS: dict[str, CollectionDescriptor] = {
    descriptor.name: descriptor
    for descriptor in (BUDGETS, CATEGORIES, ENTRIES, TRANSACTIONS, PERIOD_OVERRIDES)
}

COLLECTION_NAMES = list(COLLECTIONS)


def get_descriptor(collection: str) -> CollectionDescriptor:
    """Return the descriptor for a collection wire key."""
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection}") from None
