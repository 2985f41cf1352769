from __future__ import annotations

import pytest

from budgetsync.exceptions import NotFoundError
from budgetsync.repository import LocalRepository
from budgetsync.schema import DIRTY_FIELD


@pytest.mark.sit
def test_put_marks_dirty(local_repo, sample_budget_record) -> None:
    local_repo.put("budgets", sample_budget_record)

    stored = local_repo.get_including_deleted("budgets", "b1")

    assert stored[DIRTY_FIELD] is True
    assert local_repo.get("budgets", "b1") == sample_budget_record


@pytest.mark.sit
def test_put_clean_clears_dirty(local_repo, sample_budget_record) -> None:
    local_repo.put("budgets", sample_budget_record)

    assert local_repo.put_clean("budgets", sample_budget_record) is True
    assert local_repo.get_including_deleted("budgets", "b1")[DIRTY_FIELD] is False
    assert local_repo.list_dirty("budgets") == []


@pytest.mark.sit
def test_put_clean_keeps_newer_dirty_copy(local_repo, sample_budget_record) -> None:
    local_repo.put("budgets", {**sample_budget_record, "name": "Edited", "updatedAt": 2000})

    applied = local_repo.put_clean("budgets", sample_budget_record)

    stored = local_repo.get_including_deleted("budgets", "b1")
    assert applied is False
    assert stored["name"] == "Edited"
    assert stored[DIRTY_FIELD] is True


@pytest.mark.sit
def test_put_clean_overwrites_older_dirty_copy(local_repo, sample_budget_record) -> None:
    local_repo.put("budgets", {**sample_budget_record, "name": "Stale", "updatedAt": 900})

    assert local_repo.put_clean("budgets", sample_budget_record) is True
    assert local_repo.get("budgets", "b1")["name"] == "Trip"


@pytest.mark.sit
def test_soft_delete_keeps_fields(local_repo, sample_budget_record) -> None:
    local_repo.put_clean("budgets", sample_budget_record)

    tombstone = local_repo.soft_delete("budgets", "b1", 1500)

    assert tombstone["deleted"] is True
    assert tombstone["updatedAt"] == 1500
    assert tombstone["name"] == "Trip"
    assert local_repo.get("budgets", "b1") is None
    stored = local_repo.get_including_deleted("budgets", "b1")
    assert stored["deleted"] is True
    assert stored[DIRTY_FIELD] is True
    assert [record["id"] for record in local_repo.list_dirty("budgets")] == ["b1"]


@pytest.mark.sit
def test_soft_delete_missing_record(local_repo) -> None:
    with pytest.raises(NotFoundError):
        local_repo.soft_delete("budgets", "missing", 1)


@pytest.mark.sit
def test_query_by_parent_filters(local_repo, sample_category_record) -> None:
    local_repo.put("categories", sample_category_record)
    local_repo.put("categories", {**sample_category_record, "id": "c2", "budgetId": "b2"})
    local_repo.put("categories", {**sample_category_record, "id": "c3"})
    local_repo.soft_delete("categories", "c3", 1100)

    records = local_repo.query_by_parent("categories", "b1")

    assert [record["id"] for record in records] == ["c1"]
    assert DIRTY_FIELD not in records[0]


@pytest.mark.sit
def test_query_budgets_ignores_parent(local_repo, sample_budget_record) -> None:
    local_repo.put("budgets", sample_budget_record)
    local_repo.put("budgets", {**sample_budget_record, "id": "b2"})

    assert len(local_repo.query_by_parent("budgets", None)) == 2


@pytest.mark.sit
def test_put_requires_integer_updated_at(local_repo, sample_budget_record) -> None:
    with pytest.raises(ValueError):
        local_repo.put("budgets", {**sample_budget_record, "updatedAt": "1000"})

    with pytest.raises(ValueError):
        local_repo.put("budgets", {**sample_budget_record, "id": ""})


@pytest.mark.sit
def test_meta_values(local_repo) -> None:
    assert local_repo.get_meta("lastSyncAt") is None

    local_repo.set_meta("lastSyncAt", 1010)
    local_repo.set_meta("lastSyncAt", 1020)

    assert local_repo.get_meta("lastSyncAt") == 1020


@pytest.mark.sit
def test_state_survives_reconnect(tmp_path, sample_budget_record) -> None:
    path = tmp_path / "persist.db"
    with LocalRepository(path) as repo:
        repo.put("budgets", sample_budget_record)
        repo.set_meta("lastSyncAt", 5)

    with LocalRepository(path) as repo:
        assert repo.get("budgets", "b1")["name"] == "Trip"
        assert len(repo.list_dirty("budgets")) == 1
        assert repo.get_meta("lastSyncAt") == 5


@pytest.mark.sit
def test_closed_repository_raises(tmp_path) -> None:
    repo = LocalRepository(tmp_path / "closed.db")

    with pytest.raises(RuntimeError):
        repo.get("budgets", "b1")
