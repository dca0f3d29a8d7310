"""
db/connection.py
----------------
Manages the SQLite connection pool.
Uses SQLAlchemy's QueuePool around plain sqlite3 connections so that
concurrent callers share a bounded set of handles to the database file.
"""

import sqlite3
import time
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import event, exc as sa_exc
from sqlalchemy.pool import QueuePool

from config import (
    DB_BUSY_TIMEOUT_MS,
    DB_CONN_MAX_IDLE_TIME,
    DB_CONN_MAX_LIFETIME,
    DB_MAX_IDLE_CONNS,
    DB_MAX_OPEN_CONNS,
    DB_POOL_TIMEOUT,
)
from db.errors import DatabaseConnectionError, StorageError, to_storage_error
from utils.logger import get_logger

logger = get_logger(__name__)

_CHECKED_IN_AT = "checked_in_at"


@dataclass
class PoolConfig:
    """
    Connection pool limits.

    Attributes:
        max_open: Maximum connections open at once (<= 0 means unlimited).
        max_idle: Maximum connections kept open while unused.
        max_lifetime: Seconds after which a connection is replaced (<= 0 disables).
        max_idle_time: Seconds a connection may sit unused in the pool (<= 0 disables).
        busy_timeout_ms: How long SQLite waits on a lock before failing.
        pool_timeout: Seconds a caller waits for a free connection.
    """
    max_open: int = DB_MAX_OPEN_CONNS
    max_idle: int = DB_MAX_IDLE_CONNS
    max_lifetime: float = DB_CONN_MAX_LIFETIME
    max_idle_time: float = DB_CONN_MAX_IDLE_TIME
    busy_timeout_ms: int = DB_BUSY_TIMEOUT_MS
    pool_timeout: float = DB_POOL_TIMEOUT

    def pool_size(self) -> int:
        """Number of idle connections QueuePool keeps (0 would mean unlimited there)."""
        size = max(1, self.max_idle)
        if self.max_open > 0:
            size = min(size, self.max_open)
        return size

    def max_overflow(self) -> int:
        """Connections allowed on top of pool_size (-1 means unlimited)."""
        if self.max_open <= 0:
            return -1
        return self.max_open - self.pool_size()


class ConnectionManager:
    """Owns the pool for one database file."""

    def __init__(self, path: str | Path, pool_config: Optional[PoolConfig] = None):
        self.path = Path(path)
        self.config = pool_config or PoolConfig()
        self._pool: Optional[QueuePool] = None

    # ── LIFECYCLE ─────────────────────────────────────────

    @classmethod
    def open(cls, path: str | Path, pool_config: Optional[PoolConfig] = None) -> "ConnectionManager":
        """
        Open a pooled handle to the database file and verify it is reachable.

        Args:
            path: Location of the SQLite file (created if missing).
            pool_config: Pool limits; defaults come from config.py.

        Returns:
            A ready ConnectionManager.

        Raises:
            StorageError: Classified failure from opening or probing the file.
        """
        manager = cls(path, pool_config)
        try:
            manager.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Cannot create directory for {manager.path}: {e}")
            raise DatabaseConnectionError(f"cannot create directory for {manager.path}") from e

        manager._pool = manager._build_pool()
        try:
            manager.ping()
        except StorageError as e:
            manager.close()
            logger.error(f"Failed to open database {manager.path}: {e}")
            raise

        logger.info(
            f"Connection pool opened for {manager.path} "
            f"(max_open={manager.config.max_open}, max_idle={manager.config.pool_size()})"
        )
        return manager

    def close(self) -> None:
        """Close all idle connections and refuse further checkouts."""
        if self._pool is None:
            return
        self._pool.dispose()
        self._pool = None
        logger.info(f"Connection pool closed for {self.path}.")

    @property
    def closed(self) -> bool:
        return self._pool is None

    # ── CHECKOUT ──────────────────────────────────────────

    def get_connection(self):
        """
        Get a connection from the pool, waiting if all are in use.

        Returns:
            A pooled sqlite3 connection proxy. Hand it back with
            release_connection() when done.

        Raises:
            DatabaseConnectionError: If the manager has been closed.
            StorageError: Classified failure from opening a new connection.
        """
        if self._pool is None:
            raise DatabaseConnectionError(f"connection pool for {self.path} is closed")
        try:
            return self._pool.connect()
        except (sqlite3.Error, sa_exc.SQLAlchemyError) as e:
            logger.error(f"Failed to check out a connection for {self.path}: {e}")
            raise to_storage_error(e) from e

    def release_connection(self, conn) -> None:
        """Return a connection to the pool (rolled back if left mid-transaction)."""
        conn.close()

    @contextmanager
    def connection(self) -> Iterator:
        conn = self.get_connection()
        try:
            yield conn
        finally:
            self.release_connection(conn)

    def ping(self) -> None:
        """Run a trivial query to prove the database answers."""
        with self.connection() as conn:
            try:
                conn.execute("SELECT 1").fetchone()
            except sqlite3.Error as e:
                raise to_storage_error(e) from e

    def status(self) -> dict:
        """Pool diagnostics: checked-out, idle and overflow counts."""
        if self._pool is None:
            return {"closed": True, "checked_out": 0, "idle": 0, "overflow": 0}
        return {
            "closed": False,
            "checked_out": self._pool.checkedout(),
            "idle": self._pool.checkedin(),
            "overflow": self._pool.overflow(),
        }

    # ── INTERNALS ─────────────────────────────────────────

    def _connect(self) -> sqlite3.Connection:
        """Pool creator: one configured sqlite3 connection."""
        conn = sqlite3.connect(
            str(self.path),
            timeout=self.config.busy_timeout_ms / 1000.0,
            check_same_thread=False,
        )
        try:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute(f"PRAGMA busy_timeout = {int(self.config.busy_timeout_ms)}")
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def _build_pool(self) -> QueuePool:
        cfg = self.config
        pool = QueuePool(
            self._connect,
            pool_size=cfg.pool_size(),
            max_overflow=cfg.max_overflow(),
            timeout=cfg.pool_timeout,
            recycle=cfg.max_lifetime if cfg.max_lifetime > 0 else -1,
            reset_on_return="rollback",
        )
        if cfg.max_idle_time > 0:
            self._install_idle_timeout(pool, cfg.max_idle_time)
        return pool

    @staticmethod
    def _install_idle_timeout(pool: QueuePool, max_idle_time: float) -> None:
        """Replace connections that sat unused in the pool for too long."""

        @event.listens_for(pool, "checkin")
        def _on_checkin(dbapi_connection, connection_record):
            if dbapi_connection is not None:
                connection_record.info[_CHECKED_IN_AT] = time.monotonic()

        @event.listens_for(pool, "checkout")
        def _on_checkout(dbapi_connection, connection_record, connection_proxy):
            checked_in_at = connection_record.info.pop(_CHECKED_IN_AT, None)
            if checked_in_at is not None and time.monotonic() - checked_in_at > max_idle_time:
                logger.debug("Discarding connection idle for longer than %.1fs", max_idle_time)
                # The pool invalidates this record and connects a fresh one.
                raise sa_exc.DisconnectionError("connection exceeded max idle time")
