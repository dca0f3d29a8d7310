# tests/test_main.py

from __future__ import annotations

from pathlib import Path

import pytest

import db.retry
import main
from db.connection import ConnectionManager
from db.errors import DatabaseConnectionError


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(db.retry.time, "sleep", lambda _: None)


def test_open_storage_migrates_to_latest(db_path: Path) -> None:
    store = main.open_storage(str(db_path), attempts=1)
    try:
        assert store.schema_version() == 4
    finally:
        store.close()


def test_open_storage_retries_transient_connection_failures(db_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    real_open = ConnectionManager.open.__func__
    calls: list[int] = []

    def flaky_open(cls, path, pool_config=None):
        calls.append(1)
        if len(calls) < 3:
            raise DatabaseConnectionError("not yet")
        return real_open(cls, path, pool_config)

    monkeypatch.setattr(ConnectionManager, "open", classmethod(flaky_open))

    store = main.open_storage(str(db_path), attempts=3)
    try:
        assert len(calls) == 3
        assert store.schema_version() == 4
    finally:
        store.close()


def test_open_storage_gives_up_after_attempts(tmp_path: Path) -> None:
    # A directory can never be opened as a database.
    with pytest.raises(DatabaseConnectionError):
        main.open_storage(str(tmp_path), attempts=2)
