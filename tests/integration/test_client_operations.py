from __future__ import annotations

import datetime as dt
import json
import threading

import pytest

from budgetsync.client import DEFAULT_BUDGET_NAME, BudgetClient
from budgetsync.exceptions import NotFoundError
from budgetsync.models import BudgetDTO, CategoryDTO, EntryDTO, TransactionDTO
from budgetsync.schema import STATUS_SYNCED


def _make_budget(client: BudgetClient, budget_type: str = "time") -> dict:
    return client.add_budget(BudgetDTO(name="Week", type=budget_type))


def _make_category(client: BudgetClient, budget_id: str, name: str = "Work", order: int = 0) -> dict:
    return client.add_category(
        CategoryDTO(budget_id=budget_id, name=name, target_amount=40, sort_order=order)
    )


@pytest.mark.sit
def test_rename_budget_bumps_updated_at(make_device) -> None:
    client = make_device("a")
    budget = _make_budget(client)

    renamed = client.rename_budget(budget["id"], "Fortnight")

    assert renamed["name"] == "Fortnight"
    assert renamed["updatedAt"] > budget["updatedAt"]
    assert renamed["createdAt"] == budget["createdAt"]
    assert client.get_budget(budget["id"])["name"] == "Fortnight"


@pytest.mark.sit
def test_delete_budget_tombstones_children(make_device) -> None:
    client = make_device("a")
    budget = _make_budget(client)
    category = _make_category(client, budget["id"])
    entry = client.add_entry(
        EntryDTO(budget_id=budget["id"], category_id=category["id"], date="2026-02-16", quantity=2)
    )
    override = client.set_period_override(budget["id"], category["id"], "2026-02-16", 30)

    client.delete_budget(budget["id"])

    tombstones = [
        client.repository.get_including_deleted(collection, record["id"])
        for collection, record in (
            ("budgets", budget),
            ("categories", category),
            ("entries", entry),
            ("periodOverrides", override),
        )
    ]
    assert all(record["deleted"] for record in tombstones)
    assert len({record["updatedAt"] for record in tombstones}) == 1
    assert tombstones[0]["updatedAt"] > max(entry["updatedAt"], override["updatedAt"])
    assert client.list_budgets() == []
    with pytest.raises(NotFoundError):
        client.get_budget(budget["id"])


@pytest.mark.sit
def test_seed_default_budget_once(make_device) -> None:
    client = make_device("a")

    budget = client.seed_default_budget()

    assert budget["name"] == DEFAULT_BUDGET_NAME
    names = [record["name"] for record in client.list_categories(budget["id"])]
    assert names == ["Sleep", "Work", "Exercise", "Leisure"]
    assert client.seed_default_budget() is None


@pytest.mark.sit
def test_category_requires_live_budget(make_device) -> None:
    client = make_device("a")

    with pytest.raises(NotFoundError):
        _make_category(client, "missing")


@pytest.mark.sit
def test_update_and_reorder_categories(make_device) -> None:
    client = make_device("a")
    budget = _make_budget(client)
    first = _make_category(client, budget["id"], "Work", 0)
    second = _make_category(client, budget["id"], "Sleep", 1)

    updated = client.update_category(first["id"], target_amount=35, color="#000000")
    client.reorder_categories(budget["id"], [second["id"], first["id"]])

    assert updated["targetAmount"] == 35.0
    assert updated["name"] == "Work"
    assert [record["name"] for record in client.list_categories(budget["id"])] == ["Sleep", "Work"]
    with pytest.raises(ValueError):
        client.reorder_categories("other", [first["id"]])


@pytest.mark.sit
def test_entries_by_date_and_quantity_edits(make_device) -> None:
    client = make_device("a")
    budget = _make_budget(client)
    category = _make_category(client, budget["id"])
    early = client.add_entry(
        EntryDTO(
            budget_id=budget["id"],
            category_id=category["id"],
            date=dt.date(2026, 2, 9),
            start_time="09:00",
            end_time="12:00",
        )
    )
    client.add_entry(
        EntryDTO(budget_id=budget["id"], category_id=category["id"], date=dt.date(2026, 2, 16), quantity=1)
    )

    in_range = client.list_entries(budget["id"], start_date=dt.date(2026, 2, 10))
    assert [record["date"] for record in in_range] == ["2026-02-16"]
    assert early["quantity"] == 3.0

    moved = client.update_entry(early["id"], end_time="13:30")
    assert moved["quantity"] == 4.5

    manual = client.update_entry(early["id"], quantity=2)
    assert manual["quantity"] == 2.0
    assert manual["startTime"] is None
    assert manual["endTime"] is None

    client.delete_entry(early["id"])
    assert len(client.list_entries(budget["id"])) == 1


@pytest.mark.sit
def test_transactions_newest_first(make_device) -> None:
    client = make_device("a")
    budget = _make_budget(client, "money")
    older = client.add_transaction(
        TransactionDTO(budget_id=budget["id"], date=dt.date(2026, 2, 1), amount=-10)
    )
    client.add_transaction(
        TransactionDTO(budget_id=budget["id"], date=dt.date(2026, 2, 15), amount=2500, payee="Employer")
    )

    listed = client.list_transactions(budget["id"])
    assert [record["payee"] for record in listed] == ["Employer", ""]

    updated = client.update_transaction(older["id"], memo="Coffee", amount="-12.40")
    assert updated["memo"] == "Coffee"
    assert updated["amount"] == -12.4

    client.delete_transaction(older["id"])
    assert len(client.list_transactions(budget["id"])) == 1


@pytest.mark.sit
def test_import_skips_known_external_ids(make_device) -> None:
    client = make_device("a")
    budget = _make_budget(client, "money")
    rows = [
        {"date": "2026-02-01", "amount": "-4.50", "payee": "Cafe", "fitid": "F1"},
        {"date": "2026-02-02", "amount": "-20", "payee": "Fuel", "fitid": "F2"},
        {"date": "2026-02-02", "amount": "-20", "payee": "Fuel", "fitid": "F2"},
    ]

    first = client.import_transactions(budget["id"], rows)
    second = client.import_transactions(budget["id"], rows)

    assert [record["externalId"] for record in first] == ["F1", "F2"]
    assert all(record["sourceType"] == "ofx" for record in first)
    assert second == []
    assert len(client.list_transactions(budget["id"])) == 2


@pytest.mark.sit
def test_period_override_is_updated_in_place(make_device) -> None:
    client = make_device("a")
    budget = _make_budget(client)
    category = _make_category(client, budget["id"])

    created = client.set_period_override(budget["id"], category["id"], dt.date(2026, 2, 16), 30)
    updated = client.set_period_override(budget["id"], category["id"], "2026-02-16", 45)

    assert updated["id"] == created["id"]
    overrides = client.list_overrides(budget["id"])
    assert len(overrides) == 1
    assert overrides[0]["targetAmount"] == 45.0

    client.delete_override(created["id"])
    assert client.list_overrides(budget["id"]) == []


@pytest.mark.sit
def test_sync_status_summary(make_device) -> None:
    client = make_device("a")
    _make_budget(client)

    summary = client.sync_status()

    assert summary["lastSyncAt"] == 0
    assert summary["pending"]["budgets"] == 1

    client.sync_now()
    summary = client.sync_status()
    assert summary["status"] == STATUS_SYNCED
    assert summary["pending"]["budgets"] == 0


@pytest.mark.sit
def test_mutations_schedule_background_sync(tmp_path, transport, authority) -> None:
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps({"db_path": str(tmp_path / "auto.db"), "sync": {"debounce_seconds": 0.05}}),
        encoding="utf-8",
    )
    synced = threading.Event()

    with BudgetClient(transport=transport, config_path=config_path) as client:
        client.sync_client.on_status(lambda status: status == STATUS_SYNCED and synced.set())
        budget = _make_budget(client)
        assert synced.wait(timeout=5)

    assert authority.get("budgets", budget["id"])["name"] == "Week"


@pytest.mark.sit
def test_db_path_is_required(tmp_path) -> None:
    with pytest.raises(ValueError):
        BudgetClient(config_path=tmp_path / "missing.json")


@pytest.mark.sit
def test_period_summary_for_time_budget(make_device) -> None:
    client = make_device("a")
    budget = _make_budget(client)
    work = _make_category(client, budget["id"], "Work", 0)
    sleep = _make_category(client, budget["id"], "Sleep", 1)
    client.set_period_override(budget["id"], work["id"], "2026-02-15", 30)
    client.add_entry(EntryDTO(budget_id=budget["id"], category_id=work["id"], date="2026-02-16", quantity=8))
    client.add_entry(
        EntryDTO(
            budget_id=budget["id"],
            category_id=work["id"],
            date="2026-02-17",
            start_time="09:00",
            end_time="12:30",
        )
    )
    client.add_entry(EntryDTO(budget_id=budget["id"], category_id=sleep["id"], date="2026-02-15", quantity=7))
    client.add_entry(EntryDTO(budget_id=budget["id"], category_id=work["id"], date="2026-02-22", quantity=5))

    summary = client.period_summary(budget["id"], "2026-02-18")

    assert (summary["periodStart"], summary["periodEnd"]) == ("2026-02-15", "2026-02-21")
    rows = {row["name"]: row for row in summary["categories"]}
    assert rows["Work"]["target"] == 30
    assert rows["Work"]["overridden"] is True
    assert rows["Work"]["actual"] == 11.5
    assert rows["Work"]["remaining"] == 18.5
    assert rows["Sleep"]["target"] == 40
    assert rows["Sleep"]["actual"] == 7
    assert summary["totalTarget"] == 70
    assert summary["totalActual"] == 18.5
    assert len(summary["daily"]) == 7
    assert summary["daily"]["2026-02-16"] == 8
    assert summary["daily"]["2026-02-21"] == 0


@pytest.mark.sit
def test_period_summary_for_money_budget(make_device) -> None:
    client = make_device("a")
    budget = client.add_budget(
        BudgetDTO(name="Household", type="money", period_type="monthly", period_start_day=25)
    )
    food = client.add_category(CategoryDTO(budget_id=budget["id"], name="Food", target_amount=200))
    old = client.add_category(CategoryDTO(budget_id=budget["id"], name="Old", target_amount=50))
    for date, amount, category_id in (
        ("2026-02-27", "-45.50", food["id"]),
        ("2026-03-01", "-20", None),
        ("2026-03-01", "1000", None),
        ("2026-03-02", "-10", old["id"]),
        ("2026-03-26", "-30", food["id"]),
    ):
        client.add_transaction(
            TransactionDTO(budget_id=budget["id"], date=date, amount=amount, category_id=category_id)
        )
    client.delete_category(old["id"])

    summary = client.period_summary(budget["id"], dt.date(2026, 3, 3))

    assert (summary["periodStart"], summary["periodEnd"]) == ("2026-02-25", "2026-03-24")
    assert [row["name"] for row in summary["categories"]] == ["Food"]
    assert summary["categories"][0]["actual"] == 45.5
    assert summary["categories"][0]["remaining"] == 154.5
    assert summary["uncategorized"] == 30
    assert summary["totalActual"] == 75.5
    assert summary["daily"]["2026-03-01"] == 20


@pytest.mark.sit
def test_period_history_newest_first(make_device) -> None:
    client = make_device("a")
    budget = _make_budget(client)
    category = _make_category(client, budget["id"])
    for date in ("2026-02-02", "2026-02-16", "2026-02-17", "2026-02-09"):
        client.add_entry(EntryDTO(budget_id=budget["id"], category_id=category["id"], date=date, quantity=2))

    history = client.period_history(budget["id"])

    assert [summary["periodStart"] for summary in history] == ["2026-02-15", "2026-02-08", "2026-02-01"]
    assert [summary["totalActual"] for summary in history] == [4, 2, 2]
