# tests/conftest.py

from __future__ import annotations

from pathlib import Path

import pytest

from db.connection import ConnectionManager
from storage import Storage


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "tasks.db"


@pytest.fixture()
def manager(db_path: Path):
    """A bare pool with no schema applied."""
    mgr = ConnectionManager.open(db_path)
    yield mgr
    mgr.close()


@pytest.fixture()
def storage(db_path: Path):
    """Storage with the full built-in schema applied."""
    store = Storage.open(db_path)
    yield store
    store.close()


@pytest.fixture()
def owner_id(storage: Storage) -> int:
    return storage.users.create("owner@example.com", "hash-owner")


@pytest.fixture()
def other_owner_id(storage: Storage) -> int:
    return storage.users.create("other@example.com", "hash-other")
