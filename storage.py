"""
storage.py
----------
Single entry point for the storage core.

`Storage.open()` opens the connection pool, brings the schema up to date and
hands back repositories that are ready to use. `close()` releases the pool.
"""

from pathlib import Path
from typing import Iterable, Optional

from db.connection import ConnectionManager, PoolConfig
from db.init_db import default_migrations
from db.migrations import Migration, Migrator
from repositories.task_repo import TaskRepository
from repositories.user_repo import UserRepository
from utils.logger import get_logger

logger = get_logger(__name__)


class Storage:
    """Ready-to-use handle on one task database."""

    def __init__(self, manager: ConnectionManager, migrator: Migrator):
        self.manager = manager
        self.migrator = migrator
        self.tasks = TaskRepository(manager)
        self.users = UserRepository(manager)

    @classmethod
    def open(
        cls,
        path: str | Path,
        pool_config: Optional[PoolConfig] = None,
        migrations: Optional[Iterable[Migration]] = None,
    ) -> "Storage":
        """
        Open the database at `path` and apply pending migrations.

        Args:
            path: SQLite file location.
            pool_config: Pool limits; defaults come from config.py.
            migrations: Schema history to apply; the built-in one when None.

        Raises:
            StorageError: If the database cannot be opened.
            MigrationError: If a migration fails (the pool is closed first).
        """
        manager = ConnectionManager.open(path, pool_config)
        try:
            return cls.from_manager(manager, migrations)
        except Exception:
            manager.close()
            raise

    @classmethod
    def from_manager(
        cls,
        manager: ConnectionManager,
        migrations: Optional[Iterable[Migration]] = None,
    ) -> "Storage":
        """Wrap an already opened manager, applying pending migrations first."""
        migrator = Migrator(manager, default_migrations() if migrations is None else migrations)
        applied = migrator.apply_migrations()
        if applied:
            logger.info(f"Applied migrations {applied} to {manager.path}")
        return cls(manager, migrator)

    @property
    def path(self) -> Path:
        return self.manager.path

    def schema_version(self) -> int:
        return self.migrator.get_current_version()

    def close(self) -> None:
        self.manager.close()

    def __enter__(self) -> "Storage":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
