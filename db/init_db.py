"""
db/init_db.py
-------------
The schema history of the task database, expressed as ordered migrations.
Run this module directly to bring the configured database up to date:
    python -m db.init_db
"""

from db.connection import ConnectionManager
from db.migrations import Migration, Migrator
from utils.logger import get_logger

logger = get_logger(__name__)

# Tasks table: one row per to-do item
CREATE_TASKS_TABLE = Migration(
    version=1,
    name="create_tasks_table",
    up="""
        CREATE TABLE tasks (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            description     TEXT NOT NULL,
            done            BOOLEAN NOT NULL DEFAULT FALSE,
            created_at      DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at      DATETIME DEFAULT CURRENT_TIMESTAMP
        );
        CREATE INDEX idx_tasks_done ON tasks(done);
        CREATE INDEX idx_tasks_created_at ON tasks(created_at);
    """,
    down="""
        DROP INDEX IF EXISTS idx_tasks_created_at;
        DROP INDEX IF EXISTS idx_tasks_done;
        DROP TABLE IF EXISTS tasks;
    """,
)

# Users table: registered accounts, one per email address
CREATE_USERS_TABLE = Migration(
    version=2,
    name="create_users_table",
    up="""
        CREATE TABLE users (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            email           TEXT NOT NULL UNIQUE,
            password_hash   TEXT NOT NULL,
            created_at      DATETIME DEFAULT CURRENT_TIMESTAMP
        );
        CREATE INDEX idx_users_email ON users(email);
    """,
    down="""
        DROP INDEX IF EXISTS idx_users_email;
        DROP TABLE IF EXISTS users;
    """,
)

# Tasks gain an owner column (nullable until the rebuild below)
TASK_USER_ASSOCIATION = Migration(
    version=3,
    name="task_user_association",
    up="""
        ALTER TABLE tasks ADD COLUMN user_id INTEGER;
        CREATE INDEX idx_tasks_user_id ON tasks(user_id);
    """,
    down="""
        DROP INDEX IF EXISTS idx_tasks_user_id;
    """,
)

# SQLite cannot add a foreign key to an existing table, so tasks is rebuilt.
# Rows without a valid owner are dropped.
FIX_TASKS_CONSTRAINTS = Migration(
    version=4,
    name="fix_tasks_constraints",
    up="""
        CREATE TABLE tasks_new (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id         INTEGER NOT NULL,
            description     TEXT NOT NULL,
            done            BOOLEAN NOT NULL DEFAULT FALSE,
            created_at      DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at      DATETIME DEFAULT CURRENT_TIMESTAMP,
            FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
        );
        INSERT INTO tasks_new (id, user_id, description, done, created_at, updated_at)
        SELECT id, user_id, description, done, created_at, updated_at FROM tasks
        WHERE user_id IN (SELECT id FROM users);

        DROP TABLE tasks;
        ALTER TABLE tasks_new RENAME TO tasks;

        CREATE INDEX idx_tasks_user_done ON tasks(user_id, done);
        CREATE INDEX idx_tasks_created_at ON tasks(created_at);
    """,
    down="""
        CREATE TABLE tasks_old (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            description     TEXT NOT NULL,
            done            BOOLEAN NOT NULL DEFAULT FALSE,
            user_id         INTEGER,
            created_at      DATETIME DEFAULT CURRENT_TIMESTAMP,
            updated_at      DATETIME DEFAULT CURRENT_TIMESTAMP
        );
        INSERT INTO tasks_old (id, description, done, user_id, created_at, updated_at)
        SELECT id, description, done, user_id, created_at, updated_at FROM tasks;
        DROP TABLE tasks;
        ALTER TABLE tasks_old RENAME TO tasks;

        CREATE INDEX idx_tasks_done ON tasks(done);
        CREATE INDEX idx_tasks_user_id ON tasks(user_id);
        CREATE INDEX idx_tasks_created_at ON tasks(created_at);
    """,
)


def default_migrations() -> list[Migration]:
    """The full schema history, oldest first."""
    return [
        CREATE_TASKS_TABLE,
        CREATE_USERS_TABLE,
        TASK_USER_ASSOCIATION,
        FIX_TASKS_CONSTRAINTS,
    ]


def create_tables(manager: ConnectionManager) -> list[int]:
    """
    Apply every default migration the database has not seen yet.
    Safe to call multiple times (already-applied versions are skipped).

    Returns:
        Versions applied by this call.
    """
    migrator = Migrator(manager, default_migrations())
    applied = migrator.apply_migrations()
    logger.info(f"Database schema at version {migrator.get_current_version()}.")
    return applied


if __name__ == "__main__":
    from config import TASK_DB_PATH

    manager = ConnectionManager.open(TASK_DB_PATH)
    try:
        applied = create_tables(manager)
    finally:
        manager.close()
    print(f"✅ Database schema ready ({len(applied)} migration(s) applied).")
