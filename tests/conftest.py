"""Pytest configuration and fixtures for replication tests.

Every fixture builds throwaway SQLite files under ``tmp_path``: one
authoritative store per test and one local replica per simulated device.
"""
from __future__ import annotations

from pathlib import Path
import sys
from typing import Callable, Iterator

import pytest

SRC_DIR = Path(__file__).resolve().parents[1] / "src" / "python"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from budgetsync.authority import AuthoritativeStore  # noqa: E402
from budgetsync.client import BudgetClient  # noqa: E402
from budgetsync.merge import MergeEngine  # noqa: E402
from budgetsync.repository import LocalRepository  # noqa: E402
from budgetsync.transport import LocalTransport, Transport  # noqa: E402


@pytest.fixture()
def authority(tmp_path: Path) -> Iterator[AuthoritativeStore]:
    """Authoritative store standing in for the server database."""
    store = AuthoritativeStore(tmp_path / "server.db")
    store.connect()
    yield store
    store.close()


@pytest.fixture()
def engine(authority: AuthoritativeStore) -> MergeEngine:
    return MergeEngine(authority)


@pytest.fixture()
def transport(engine: MergeEngine) -> LocalTransport:
    return LocalTransport(engine)


@pytest.fixture()
def local_repo(tmp_path: Path) -> Iterator[LocalRepository]:
    """Local replica store for a single device."""
    repo = LocalRepository(tmp_path / "device.db")
    repo.connect()
    yield repo
    repo.close()


@pytest.fixture()
def make_device(
    tmp_path: Path,
    transport: LocalTransport,
) -> Iterator[Callable[..., BudgetClient]]:
    """Factory for device clients talking to the same server.

    Background triggers are off; tests drive rounds with ``sync_now``.
    """
    clients: list[BudgetClient] = []

    def factory(name: str, device_transport: Transport | None = None) -> BudgetClient:
        client = BudgetClient(
            db_path=tmp_path / f"{name}.db",
            enable_sync=False,
            transport=device_transport or transport,
            config_path=tmp_path / "missing-config.json",
        )
        client.repository.connect()
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()


@pytest.fixture()
def sample_budget_record() -> dict:
    return {
        "id": "b1",
        "name": "Trip",
        "type": "money",
        "periodType": "monthly",
        "periodStartDay": 1,
        "createdAt": 1000,
        "updatedAt": 1000,
        "deleted": False,
    }


@pytest.fixture()
def sample_category_record() -> dict:
    return {
        "id": "c1",
        "budgetId": "b1",
        "name": "Food",
        "color": "#60a5fa",
        "targetAmount": 300,
        "sortOrder": 0,
        "createdAt": 1000,
        "updatedAt": 1000,
        "deleted": False,
    }
