"""
repositories/user_repo.py
--------------------------
Data access layer for user records.
"""

import sqlite3

from db.connection import ConnectionManager
from db.errors import UserNotFoundError, to_storage_error
from models.user import User
from utils.logger import get_logger
from utils.timestamps import parse_timestamp

logger = get_logger(__name__)

_COLUMNS = "id, email, password_hash, created_at"


class UserRepository:
    """Repository for CRUD operations on the users table."""

    def __init__(self, db: ConnectionManager):
        self._db = db

    def create(self, email: str, password_hash: str) -> int:
        """
        Insert a new user.

        The UNIQUE constraint on email is the authoritative duplicate check;
        email_exists() is only a courtesy pre-check and can race.

        Returns:
            The ID assigned by the database.

        Raises:
            ConstraintViolationError: If the email is already registered.
        """
        sql = "INSERT INTO users (email, password_hash, created_at) VALUES (?, ?, CURRENT_TIMESTAMP);"
        conn = self._db.get_connection()
        try:
            cur = conn.execute(sql, (email, password_hash))
            conn.commit()
            user_id = int(cur.lastrowid)
            logger.info(f"Created user #{user_id}")
            return user_id
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Failed to create user {email}: {e}")
            raise to_storage_error(e) from e
        finally:
            self._db.release_connection(conn)

    def get_by_email(self, email: str) -> User:
        """
        Fetch a user by email.

        Raises:
            UserNotFoundError: If nobody registered with this email.
        """
        return self._fetch_one(f"SELECT {_COLUMNS} FROM users WHERE email = ?;", email)

    def get_by_id(self, user_id: int) -> User:
        """
        Fetch a user by ID.

        Raises:
            UserNotFoundError: If the ID is unknown.
        """
        return self._fetch_one(f"SELECT {_COLUMNS} FROM users WHERE id = ?;", user_id)

    def email_exists(self, email: str) -> bool:
        sql = "SELECT EXISTS (SELECT 1 FROM users WHERE email = ?);"
        conn = self._db.get_connection()
        try:
            return bool(conn.execute(sql, (email,)).fetchone()[0])
        except sqlite3.Error as e:
            logger.error(f"Failed to check email {email}: {e}")
            raise to_storage_error(e) from e
        finally:
            self._db.release_connection(conn)

    def delete(self, user_id: int) -> None:
        """
        Delete a user. Their tasks are removed by ON DELETE CASCADE.

        Raises:
            UserNotFoundError: If the ID is unknown.
        """
        sql = "DELETE FROM users WHERE id = ?;"
        conn = self._db.get_connection()
        try:
            deleted = conn.execute(sql, (user_id,)).rowcount > 0
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Failed to delete user #{user_id}: {e}")
            raise to_storage_error(e) from e
        finally:
            self._db.release_connection(conn)

        if not deleted:
            raise UserNotFoundError(f"user {user_id} not found")
        logger.info(f"Deleted user #{user_id} and their tasks")

    # ── HELPERS ───────────────────────────────────────────

    def _fetch_one(self, sql: str, param) -> User:
        conn = self._db.get_connection()
        try:
            row = conn.execute(sql, (param,)).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Failed to fetch user {param}: {e}")
            raise to_storage_error(e) from e
        finally:
            self._db.release_connection(conn)

        if row is None:
            raise UserNotFoundError(f"user {param} not found")
        return User(
            id=int(row["id"]),
            email=row["email"],
            password_hash=row["password_hash"],
            created_at=parse_timestamp(row["created_at"]),
        )
