"""
db/migrations.py
----------------
Versioned schema migrations.

The Migrator keeps an ordered list of Migration objects and records every
successfully applied version in the `schema_migrations` ledger. Each
migration runs in its own transaction together with its ledger row, so the
ledger always reflects exactly which versions made it in and a failed run
can simply be repeated once the broken migration is fixed.
"""

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from db.connection import ConnectionManager
from db.errors import MigrationError, to_storage_error
from utils.logger import get_logger
from utils.timestamps import parse_timestamp

logger = get_logger(__name__)

LEDGER_SQL = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        version     INTEGER PRIMARY KEY,
        applied_at  DATETIME DEFAULT CURRENT_TIMESTAMP
    );
"""


@dataclass(frozen=True)
class Migration:
    """
    A single schema change.

    Attributes:
        version: Ordering key; applied in ascending order, at most once.
        name: Short human-readable label.
        up: SQL script applying the change. Must not manage transactions itself.
        down: SQL script reverting the change. Kept for operators, never run here.
    """
    version: int
    name: str
    up: str
    down: str = ""


@dataclass(frozen=True)
class SchemaVersionRecord:
    """One row of the migration ledger."""
    version: int
    applied_at: Optional[datetime]


class Migrator:
    """Applies pending migrations to the database behind a ConnectionManager."""

    def __init__(self, manager: ConnectionManager, migrations: Iterable[Migration] = ()):
        self._manager = manager
        self._migrations: list[Migration] = []
        for migration in migrations:
            self.add_migration(migration)

    @property
    def migrations(self) -> tuple[Migration, ...]:
        return tuple(self._migrations)

    def add_migration(self, migration: Migration) -> None:
        """
        Register a migration after the ones already known.

        Raises:
            ValueError: If the version is not a positive integer or does not
                sort strictly after every registered version.
        """
        version = migration.version
        if not isinstance(version, int) or isinstance(version, bool) or version < 1:
            raise ValueError(f"Migration version must be a positive integer, got {version!r}")
        if self._migrations and version <= self._migrations[-1].version:
            last = self._migrations[-1]
            if any(m.version == version for m in self._migrations):
                raise ValueError(f"Migration version {version} ({migration.name}) is already registered")
            raise ValueError(
                f"Migration {version} ({migration.name}) registered after "
                f"{last.version} ({last.name}); versions must be ascending"
            )
        self._migrations.append(migration)

    # ── LEDGER ────────────────────────────────────────────

    def get_current_version(self) -> int:
        """
        Highest applied version, or 0 when nothing has been applied.

        Raises:
            StorageError: Classified failure reading the ledger.
        """
        with self._manager.connection() as conn:
            try:
                self._ensure_ledger(conn)
                return self._read_version(conn)
            except sqlite3.Error as e:
                logger.error(f"Failed to read schema version: {e}")
                raise to_storage_error(e) from e

    def applied_versions(self) -> list[SchemaVersionRecord]:
        """All ledger rows in ascending version order."""
        with self._manager.connection() as conn:
            try:
                self._ensure_ledger(conn)
                rows = conn.execute(
                    "SELECT version, applied_at FROM schema_migrations ORDER BY version;"
                ).fetchall()
            except sqlite3.Error as e:
                logger.error(f"Failed to read migration ledger: {e}")
                raise to_storage_error(e) from e
        return [SchemaVersionRecord(int(r["version"]), parse_timestamp(r["applied_at"])) for r in rows]

    def pending_migrations(self) -> list[Migration]:
        """Registered migrations newer than the current version, ascending."""
        current = self.get_current_version()
        return self._pending_after(current)

    # ── APPLY ─────────────────────────────────────────────

    def apply_migrations(self) -> list[int]:
        """
        Apply every pending migration, oldest first.

        Each migration's script and its ledger insert share one transaction.
        The first failure is rolled back and stops the run; nothing after it
        is attempted. A version that another process recorded after the
        pending list was computed is skipped rather than treated as a failure.

        Returns:
            Versions applied by this call (empty when already up to date).

        Raises:
            MigrationError: If the ledger cannot be read or a migration fails.
        """
        applied: list[int] = []
        with self._manager.connection() as conn:
            try:
                self._ensure_ledger(conn)
                current = self._read_version(conn)
            except sqlite3.Error as e:
                cause = to_storage_error(e)
                logger.error(f"Failed to prepare migration ledger: {e}")
                raise MigrationError(f"cannot read migration ledger: {e}", cause=cause) from e

            pending = self._pending_after(current)
            if not pending:
                logger.debug(f"Schema is up to date at version {current}.")
                return applied

            for migration in pending:
                try:
                    conn.executescript(self._transaction_script(migration))
                except sqlite3.Error as e:
                    conn.rollback()
                    if self._is_recorded(conn, migration.version):
                        logger.info(
                            f"Migration {migration.version} ({migration.name}) "
                            "was already applied by another process; skipping."
                        )
                        continue
                    cause = to_storage_error(e)
                    logger.error(f"Migration {migration.version} ({migration.name}) failed: {e}")
                    raise MigrationError(
                        f"migration {migration.version} ({migration.name}) failed: {e}",
                        version=migration.version,
                        cause=cause,
                    ) from e
                applied.append(migration.version)
                logger.info(f"Applied migration {migration.version} ({migration.name}).")

        return applied

    # ── HELPERS ───────────────────────────────────────────

    def _pending_after(self, current: int) -> list[Migration]:
        return sorted(
            (m for m in self._migrations if m.version > current),
            key=lambda m: m.version,
        )

    @staticmethod
    def _ensure_ledger(conn) -> None:
        conn.execute(LEDGER_SQL)
        conn.commit()

    @staticmethod
    def _read_version(conn) -> int:
        version = conn.execute("SELECT MAX(version) FROM schema_migrations;").fetchone()[0]
        return int(version) if version is not None else 0

    @staticmethod
    def _is_recorded(conn, version: int) -> bool:
        try:
            row = conn.execute(
                "SELECT 1 FROM schema_migrations WHERE version = ?;", (version,)
            ).fetchone()
        except sqlite3.Error as e:
            logger.warning(f"Could not re-check ledger for version {version}: {e}")
            return False
        return row is not None

    @staticmethod
    def _transaction_script(migration: Migration) -> str:
        # executescript() commits any open transaction before running, so the
        # transaction boundaries live inside the script itself. The ledger row
        # goes in first: once the write lock is held, a version another process
        # already recorded fails on the primary key before its script runs.
        return (
            "BEGIN IMMEDIATE;\n"
            f"INSERT INTO schema_migrations (version) VALUES ({int(migration.version)});\n"
            f"{migration.up}\n;\n"
            "COMMIT;\n"
        )
