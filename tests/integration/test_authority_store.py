from __future__ import annotations

import pytest

from budgetsync.exceptions import NotFoundError
from budgetsync.schema import BUDGETS, CATEGORIES, ENTRIES, PERIOD_OVERRIDES, TRANSACTIONS


def _seed(authority) -> None:
    with authority.transaction():
        authority.sync_upsert(
            BUDGETS,
            {"id": "b1", "name": "Trip", "type": "money", "updatedAt": 100, "deleted": False},
        )
        authority.sync_upsert(
            CATEGORIES,
            {"id": "c1", "budgetId": "b1", "name": "Food", "updatedAt": 100, "deleted": False},
        )
        authority.sync_upsert(
            ENTRIES,
            {
                "id": "e1",
                "budgetId": "b1",
                "categoryId": "c1",
                "date": "2026-02-16",
                "quantity": 2,
                "updatedAt": 100,
                "deleted": False,
            },
        )
        authority.sync_upsert(
            TRANSACTIONS,
            {
                "id": "t1",
                "budgetId": "b1",
                "categoryId": "c1",
                "date": "2026-02-16",
                "amount": -12.5,
                "updatedAt": 100,
                "deleted": False,
            },
        )
        authority.sync_upsert(
            PERIOD_OVERRIDES,
            {
                "id": "o1",
                "budgetId": "b1",
                "categoryId": "c1",
                "periodStart": "2026-02-16",
                "targetAmount": 20,
                "updatedAt": 100,
                "deleted": False,
            },
        )


@pytest.mark.sit
def test_sync_upsert_last_writer_wins(authority) -> None:
    _seed(authority)

    with authority.transaction():
        stale = authority.sync_upsert(
            BUDGETS, {"id": "b1", "name": "Old", "type": "money", "updatedAt": 90}
        )
        tie = authority.sync_upsert(
            BUDGETS, {"id": "b1", "name": "Tie", "type": "money", "updatedAt": 100}
        )
        newer = authority.sync_upsert(
            BUDGETS, {"id": "b1", "name": "New", "type": "money", "updatedAt": 110}
        )

    assert (stale, tie, newer) == (False, False, True)
    assert authority.get("budgets", "b1")["name"] == "New"


@pytest.mark.sit
def test_changed_since_includes_tombstones(authority) -> None:
    _seed(authority)
    with authority.transaction():
        authority.sync_upsert(
            BUDGETS,
            {"id": "b1", "name": "Trip", "type": "money", "updatedAt": 150, "deleted": True},
        )

    changed = authority.changed_since(BUDGETS, 100)

    assert [record["id"] for record in changed] == ["b1"]
    assert changed[0]["deleted"] is True
    assert authority.changed_since(CATEGORIES, 100) == []
    assert authority.high_water_mark() == 150


@pytest.mark.sit
def test_high_water_mark_empty(authority) -> None:
    assert authority.high_water_mark() == 0


@pytest.mark.sit
def test_orphans_are_accepted_during_sync(authority) -> None:
    with authority.transaction():
        authority.sync_upsert(
            CATEGORIES,
            {"id": "c9", "budgetId": "gone", "name": "Orphan", "updatedAt": 100},
        )

    assert authority.get("categories", "c9")["budgetId"] == "gone"
    assert authority.get("budgets", "gone") is None


@pytest.mark.sit
def test_admin_delete_budget_cascades(authority) -> None:
    _seed(authority)

    authority.admin_cascade_delete("budgets", "b1")

    for collection in ("budgets", "categories", "entries", "transactions", "periodOverrides"):
        assert authority.count(collection) == 0


@pytest.mark.sit
def test_admin_delete_category_nulls_transactions(authority) -> None:
    _seed(authority)

    authority.admin_cascade_delete("categories", "c1")

    assert authority.get("budgets", "b1") is not None
    assert authority.get("entries", "e1") is None
    assert authority.get("periodOverrides", "o1") is None
    transaction = authority.get("transactions", "t1")
    assert transaction["categoryId"] is None
    assert transaction["updatedAt"] == 100


@pytest.mark.sit
def test_admin_delete_missing(authority) -> None:
    with pytest.raises(NotFoundError):
        authority.admin_cascade_delete("budgets", "missing")


@pytest.mark.sit
def test_failed_transaction_rolls_back(authority) -> None:
    with pytest.raises(RuntimeError):
        with authority.transaction():
            authority.sync_upsert(
                BUDGETS, {"id": "b1", "name": "Trip", "type": "money", "updatedAt": 100}
            )
            raise RuntimeError("abort")

    assert authority.get("budgets", "b1") is None
