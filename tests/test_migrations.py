# tests/test_migrations.py

from __future__ import annotations

import sqlite3

import pytest

from db.connection import ConnectionManager
from db.errors import ConstraintViolationError, MigrationError, to_storage_error
from db.init_db import create_tables, default_migrations
from db.migrations import Migration, Migrator

V1 = Migration(1, "create_a", "CREATE TABLE a (id INTEGER PRIMARY KEY);", "DROP TABLE a;")
V2_BROKEN = Migration(
    2,
    "broken",
    "CREATE TABLE b (id INTEGER PRIMARY KEY);\nCREATE TABLEE c (id INTEGER);",
    "DROP TABLE b;",
)
V3 = Migration(3, "create_d", "CREATE TABLE d (id INTEGER PRIMARY KEY);")


def _tables(manager: ConnectionManager) -> set[str]:
    with manager.connection() as conn:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    return {r[0] for r in rows}


def _ledger_count(manager: ConnectionManager) -> int:
    with manager.connection() as conn:
        return conn.execute("SELECT COUNT(*) FROM schema_migrations").fetchone()[0]


def test_fresh_database_is_at_version_zero(manager: ConnectionManager) -> None:
    migrator = Migrator(manager)
    assert migrator.get_current_version() == 0
    assert migrator.applied_versions() == []
    assert "schema_migrations" in _tables(manager)


def test_apply_runs_pending_in_order(manager: ConnectionManager) -> None:
    migrator = Migrator(manager, [V1, V3])
    assert [m.version for m in migrator.pending_migrations()] == [1, 3]

    assert migrator.apply_migrations() == [1, 3]
    assert migrator.get_current_version() == 3
    assert [r.version for r in migrator.applied_versions()] == [1, 3]
    assert all(r.applied_at is not None for r in migrator.applied_versions())
    assert {"a", "d"} <= _tables(manager)


def test_apply_twice_is_a_noop(manager: ConnectionManager) -> None:
    migrator = Migrator(manager, [V1, V3])
    migrator.apply_migrations()
    rows_before = _ledger_count(manager)

    assert migrator.apply_migrations() == []
    assert migrator.apply_migrations() == []
    assert _ledger_count(manager) == rows_before == 2


def test_failed_migration_is_rolled_back_and_stops_the_run(manager: ConnectionManager) -> None:
    migrator = Migrator(manager, [V1, V2_BROKEN, V3])

    with pytest.raises(MigrationError) as info:
        migrator.apply_migrations()

    assert info.value.version == 2
    assert info.value.cause is not None
    assert migrator.get_current_version() == 1
    assert [r.version for r in migrator.applied_versions()] == [1]
    tables = _tables(manager)
    assert "a" in tables
    # Statements of the failed migration that did run are rolled back too.
    assert "b" not in tables
    # Nothing after the failure is attempted.
    assert "d" not in tables


def test_rerun_after_fix_resumes_from_failure(manager: ConnectionManager) -> None:
    with pytest.raises(MigrationError):
        Migrator(manager, [V1, V2_BROKEN]).apply_migrations()

    fixed = Migration(2, "fixed", "CREATE TABLE b (id INTEGER PRIMARY KEY);")
    migrator = Migrator(manager, [V1, fixed, V3])
    assert migrator.apply_migrations() == [2, 3]
    assert migrator.get_current_version() == 3


def test_new_migration_added_later_is_applied(manager: ConnectionManager) -> None:
    migrator = Migrator(manager, [V1])
    migrator.apply_migrations()
    migrator.add_migration(V3)
    assert migrator.apply_migrations() == [3]


def test_down_scripts_are_never_run(manager: ConnectionManager) -> None:
    Migrator(manager, [V1]).apply_migrations()
    assert "a" in _tables(manager)


@pytest.mark.parametrize(
    "bad",
    [
        Migration(1, "duplicate", "SELECT 1;"),
        Migration(0, "zero", "SELECT 1;"),
    ],
)
def test_duplicate_or_non_positive_versions_are_rejected(manager: ConnectionManager, bad: Migration) -> None:
    migrator = Migrator(manager, [V1])
    with pytest.raises(ValueError):
        migrator.add_migration(bad)
    assert migrator.migrations == (V1,)


def test_out_of_order_registration_is_rejected(manager: ConnectionManager) -> None:
    with pytest.raises(ValueError):
        Migrator(manager, [V3, V1])


def test_default_schema(manager: ConnectionManager) -> None:
    assert create_tables(manager) == [1, 2, 3, 4]
    assert create_tables(manager) == []
    assert {"tasks", "users", "schema_migrations"} <= _tables(manager)

    with manager.connection() as conn:
        columns = {r["name"] for r in conn.execute("PRAGMA table_info(tasks)").fetchall()}
        fks = conn.execute("PRAGMA foreign_key_list(tasks)").fetchall()
    assert columns == {"id", "user_id", "description", "done", "created_at", "updated_at"}
    assert len(fks) == 1
    assert fks[0]["table"] == "users"
    assert fks[0]["on_delete"] == "CASCADE"


def test_rebuild_keeps_owned_tasks_and_drops_orphans(manager: ConnectionManager) -> None:
    history = default_migrations()
    Migrator(manager, history[:3]).apply_migrations()

    with manager.connection() as conn:
        user_id = conn.execute(
            "INSERT INTO users (email, password_hash) VALUES ('a@example.com', 'h')"
        ).lastrowid
        conn.execute("INSERT INTO tasks (description, user_id) VALUES ('owned', ?)", (user_id,))
        conn.execute("INSERT INTO tasks (description, user_id) VALUES ('orphan', NULL)")
        conn.execute("INSERT INTO tasks (description, user_id) VALUES ('dangling', 999)")
        conn.commit()

    assert Migrator(manager, history).apply_migrations() == [4]

    with manager.connection() as conn:
        rows = conn.execute("SELECT description, user_id FROM tasks").fetchall()
    assert [(r["description"], r["user_id"]) for r in rows] == [("owned", user_id)]


def test_user_delete_cascades_to_tasks(manager: ConnectionManager) -> None:
    create_tables(manager)
    with manager.connection() as conn:
        user_id = conn.execute(
            "INSERT INTO users (email, password_hash) VALUES ('a@example.com', 'h')"
        ).lastrowid
        conn.execute("INSERT INTO tasks (user_id, description) VALUES (?, 'task 1')", (user_id,))
        conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
        conn.commit()
        assert conn.execute("SELECT COUNT(*) FROM tasks").fetchone()[0] == 0


def test_ledger_rejects_double_application(manager: ConnectionManager) -> None:
    Migrator(manager, [V1]).apply_migrations()
    with manager.connection() as conn:
        with pytest.raises(sqlite3.IntegrityError) as info:
            conn.execute("INSERT INTO schema_migrations (version) VALUES (1)")
        conn.rollback()
    assert isinstance(to_storage_error(info.value), ConstraintViolationError)


def test_versions_recorded_by_another_process_are_skipped(manager: ConnectionManager, monkeypatch: pytest.MonkeyPatch) -> None:
    Migrator(manager, [V1, V3]).apply_migrations()

    # A second migrator that read the ledger before the first one committed.
    late = Migrator(manager, [V1, V3])
    monkeypatch.setattr(Migrator, "_read_version", staticmethod(lambda conn: 0))

    assert late.apply_migrations() == []
    assert _ledger_count(manager) == 2
    assert {"a", "d"} <= _tables(manager)


def test_stale_reader_still_applies_what_is_new(manager: ConnectionManager, monkeypatch: pytest.MonkeyPatch) -> None:
    Migrator(manager, [V1]).apply_migrations()

    monkeypatch.setattr(Migrator, "_read_version", staticmethod(lambda conn: 0))
    assert Migrator(manager, [V1, V3]).apply_migrations() == [3]
    assert "d" in _tables(manager)
