"""
main.py
-------
Startup entry point for the task storage core.

Responsibilities:
    - Open the database pool, retrying transient failures.
    - Apply pending schema migrations (the process refuses to start if one fails).
    - Report the schema version and pool status, then release the pool.
"""

import sys

from config import DB_STARTUP_ATTEMPTS, TASK_DB_PATH
from db.connection import ConnectionManager, PoolConfig
from db.errors import DatabaseConnectionError, DatabaseLockedError, MigrationError, StorageError
from db.retry import retry
from storage import Storage
from utils.logger import get_logger

logger = get_logger(__name__)


def open_storage(path: str = TASK_DB_PATH, attempts: int = DB_STARTUP_ATTEMPTS) -> Storage:
    """
    Open the database at `path`, ready for repository traffic.

    Only the connection probe is retried; migrations run once and fail fast.
    """
    manager = retry(
        lambda: ConnectionManager.open(path, PoolConfig()),
        attempts,
        retry_on=(DatabaseConnectionError, DatabaseLockedError),
    )
    try:
        return Storage.from_manager(manager)
    except Exception:
        manager.close()
        raise


def main() -> int:
    """Initialize the storage and report its state."""

    # ── 1. Database setup ─────────────────────────────────
    logger.info(f"Opening task database at {TASK_DB_PATH}...")
    try:
        storage = open_storage()
    except MigrationError as e:
        logger.error(f"Schema migration failed, refusing to start: {e}")
        return 1
    except StorageError as e:
        logger.error(f"Database unavailable: {e}")
        return 1

    # ── 2. Report ─────────────────────────────────────────
    with storage:
        logger.info(f"Schema version: {storage.schema_version()}")
        logger.info(f"Pool status: {storage.manager.status()}")

    logger.info("Task storage stopped.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
