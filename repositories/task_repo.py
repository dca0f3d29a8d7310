"""
repositories/task_repo.py
-------------------------
Data access layer for tasks.
All SQL queries related to the `tasks` table live here.

Every query is scoped by owner: a task that belongs to someone else is
reported exactly like a task that does not exist.
"""

import sqlite3

from db.connection import ConnectionManager
from db.errors import TaskNotFoundError, to_storage_error
from models.task import Task
from utils.logger import get_logger
from utils.timestamps import parse_timestamp

logger = get_logger(__name__)

# Millisecond precision so consecutive writes get distinct timestamps.
_NOW = "strftime('%Y-%m-%d %H:%M:%f', 'now')"

_COLUMNS = "id, user_id, description, done, created_at, updated_at"


class TaskRepository:
    """Repository for owner-scoped CRUD operations on the tasks table."""

    def __init__(self, db: ConnectionManager):
        self._db = db

    # ── CREATE ────────────────────────────────────────────

    def create(self, description: str, owner_id: int) -> int:
        """
        Insert a new, not-done task.

        Args:
            description: Task text.
            owner_id: ID of an existing user.

        Returns:
            The ID assigned by the database.

        Raises:
            ConstraintViolationError: If owner_id does not reference a user.
        """
        sql = f"""
            INSERT INTO tasks (user_id, description, done, created_at, updated_at)
            VALUES (?, ?, ?, {_NOW}, {_NOW});
        """
        conn = self._db.get_connection()
        try:
            cur = conn.execute(sql, (owner_id, description, False))
            conn.commit()
            task_id = int(cur.lastrowid)
            logger.info(f"Created task #{task_id} for user {owner_id}")
            return task_id
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Failed to create task for user {owner_id}: {e}")
            raise to_storage_error(e) from e
        finally:
            self._db.release_connection(conn)

    # ── READ ──────────────────────────────────────────────

    def get_by_id(self, task_id: int, owner_id: int) -> Task:
        """
        Fetch a single task by ID, scoped to its owner.

        Raises:
            TaskNotFoundError: If no such task exists for this owner.
        """
        sql = f"SELECT {_COLUMNS} FROM tasks WHERE id = ? AND user_id = ?;"
        conn = self._db.get_connection()
        try:
            row = conn.execute(sql, (task_id, owner_id)).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Failed to fetch task #{task_id}: {e}")
            raise to_storage_error(e) from e
        finally:
            self._db.release_connection(conn)

        if row is None:
            raise TaskNotFoundError(f"task {task_id} not found")
        return self._row_to_task(row)

    def list_by_owner(self, owner_id: int) -> list[Task]:
        """
        Fetch all tasks of one owner.

        Returns:
            List of Task objects ordered by ID ascending (empty if none).
        """
        sql = f"SELECT {_COLUMNS} FROM tasks WHERE user_id = ? ORDER BY id ASC;"
        conn = self._db.get_connection()
        try:
            return [self._row_to_task(r) for r in conn.execute(sql, (owner_id,)).fetchall()]
        except sqlite3.Error as e:
            logger.error(f"Failed to list tasks for user {owner_id}: {e}")
            raise to_storage_error(e) from e
        finally:
            self._db.release_connection(conn)

    def count_by_owner(self, owner_id: int) -> int:
        sql = "SELECT COUNT(*) FROM tasks WHERE user_id = ?;"
        conn = self._db.get_connection()
        try:
            return int(conn.execute(sql, (owner_id,)).fetchone()[0])
        except sqlite3.Error as e:
            logger.error(f"Failed to count tasks for user {owner_id}: {e}")
            raise to_storage_error(e) from e
        finally:
            self._db.release_connection(conn)

    # ── UPDATE ────────────────────────────────────────────

    def update(self, task: Task, owner_id: int) -> None:
        """
        Replace a task's description and done flag and refresh updated_at.

        Args:
            task: Task with updated fields (must have id set).
            owner_id: The owner the task must belong to.

        Raises:
            ValueError: If task.id is not set.
            TaskNotFoundError: If no row matched the ID and owner.
        """
        if task.id is None:
            raise ValueError("Cannot update a task without an id")

        sql = f"""
            UPDATE tasks
            SET description = ?, done = ?, updated_at = {_NOW}
            WHERE id = ? AND user_id = ?;
        """
        conn = self._db.get_connection()
        try:
            cur = conn.execute(sql, (task.description, bool(task.done), task.id, owner_id))
            updated = cur.rowcount > 0
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Failed to update task #{task.id}: {e}")
            raise to_storage_error(e) from e
        finally:
            self._db.release_connection(conn)

        if not updated:
            raise TaskNotFoundError(f"task {task.id} not found")
        logger.debug(f"Updated task #{task.id} for user {owner_id}")

    # ── DELETE ────────────────────────────────────────────

    def delete(self, task_id: int, owner_id: int) -> None:
        """
        Delete a task by ID, scoped to its owner.

        Raises:
            TaskNotFoundError: If no row matched the ID and owner.
        """
        sql = "DELETE FROM tasks WHERE id = ? AND user_id = ?;"
        conn = self._db.get_connection()
        try:
            cur = conn.execute(sql, (task_id, owner_id))
            deleted = cur.rowcount > 0
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Failed to delete task #{task_id}: {e}")
            raise to_storage_error(e) from e
        finally:
            self._db.release_connection(conn)

        if not deleted:
            raise TaskNotFoundError(f"task {task_id} not found")
        logger.info(f"Deleted task #{task_id} for user {owner_id}")

    # ── HELPERS ───────────────────────────────────────────

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        """Convert a database row to a Task domain object."""
        return Task(
            id=int(row["id"]),
            owner_id=int(row["user_id"]),
            description=row["description"],
            done=bool(row["done"]),
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )
