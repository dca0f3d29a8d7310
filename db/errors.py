"""
db/errors.py
------------
Storage error taxonomy and the classifier that maps raw SQLite failures onto it.

Every error that leaves the db/ and repositories/ layers is a StorageError
subclass. Callers branch on the exception type (or its `kind`) and never see
sqlite3 or SQLAlchemy exceptions directly; the raw error stays reachable
through `__cause__`.
"""

import sqlite3
from enum import Enum
from typing import Optional

from sqlalchemy import exc as sa_exc


class ErrorKind(str, Enum):
    """Stable failure vocabulary shared by all storage callers."""

    CONNECTION_FAILURE = "connection_failure"
    CONSTRAINT_VIOLATION = "constraint_violation"
    RESOURCE_LOCKED = "resource_locked"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    NOT_FOUND = "not_found"
    MIGRATION_FAILURE = "migration_failure"
    UNKNOWN = "unknown"


# ── Exception hierarchy ───────────────────────────────────

class StorageError(Exception):
    """Base class for all storage errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    default_message = "database operation failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)


class DatabaseConnectionError(StorageError):
    """The database file could not be opened, probed or read."""

    kind = ErrorKind.CONNECTION_FAILURE
    default_message = "database connection failed"


class ConstraintViolationError(StorageError):
    """A UNIQUE, NOT NULL or FOREIGN KEY constraint rejected a write."""

    kind = ErrorKind.CONSTRAINT_VIOLATION
    default_message = "database constraint violation"


class DatabaseLockedError(StorageError):
    """The busy timeout expired while waiting for a lock."""

    kind = ErrorKind.RESOURCE_LOCKED
    default_message = "database is locked"


class ResourceExhaustedError(StorageError):
    """The disk is full or no pooled connection became available in time."""

    kind = ErrorKind.RESOURCE_EXHAUSTED
    default_message = "database resources exhausted"


class NotFoundError(StorageError):
    kind = ErrorKind.NOT_FOUND
    default_message = "record not found"


class TaskNotFoundError(NotFoundError):
    default_message = "task not found"


class UserNotFoundError(NotFoundError):
    default_message = "user not found"


class MigrationError(StorageError):
    """
    A schema migration could not be applied.

    Attributes:
        version: The migration version that failed (None when the ledger
            itself could not be read or created).
        cause: The classified error that aborted the migration.
    """

    kind = ErrorKind.MIGRATION_FAILURE
    default_message = "database migration failed"

    def __init__(
        self,
        message: Optional[str] = None,
        version: Optional[int] = None,
        cause: Optional[StorageError] = None,
    ):
        super().__init__(message)
        self.version = version
        self.cause = cause


class UnknownDatabaseError(StorageError):
    kind = ErrorKind.UNKNOWN


# ── Classification ────────────────────────────────────────

# SQLite primary result codes (https://sqlite.org/rescode.html)
SQLITE_PERM = 3
SQLITE_BUSY = 5
SQLITE_LOCKED = 6
SQLITE_IOERR = 10
SQLITE_CORRUPT = 11
SQLITE_FULL = 13
SQLITE_CANTOPEN = 14
SQLITE_CONSTRAINT = 19
SQLITE_AUTH = 23
SQLITE_NOTADB = 26

_CODE_KINDS: dict[int, ErrorKind] = {
    SQLITE_BUSY: ErrorKind.RESOURCE_LOCKED,
    SQLITE_LOCKED: ErrorKind.RESOURCE_LOCKED,
    SQLITE_CONSTRAINT: ErrorKind.CONSTRAINT_VIOLATION,
    SQLITE_FULL: ErrorKind.RESOURCE_EXHAUSTED,
    SQLITE_PERM: ErrorKind.CONNECTION_FAILURE,
    SQLITE_IOERR: ErrorKind.CONNECTION_FAILURE,
    SQLITE_CORRUPT: ErrorKind.CONNECTION_FAILURE,
    SQLITE_CANTOPEN: ErrorKind.CONNECTION_FAILURE,
    SQLITE_AUTH: ErrorKind.CONNECTION_FAILURE,
    SQLITE_NOTADB: ErrorKind.CONNECTION_FAILURE,
}

# Used only when the interpreter does not expose sqlite_errorcode (< 3.11).
_MESSAGE_KINDS: tuple[tuple[str, ErrorKind], ...] = (
    ("database is locked", ErrorKind.RESOURCE_LOCKED),
    ("database table is locked", ErrorKind.RESOURCE_LOCKED),
    ("database schema is locked", ErrorKind.RESOURCE_LOCKED),
    ("database or disk is full", ErrorKind.RESOURCE_EXHAUSTED),
    ("unable to open database file", ErrorKind.CONNECTION_FAILURE),
    ("file is not a database", ErrorKind.CONNECTION_FAILURE),
    ("database disk image is malformed", ErrorKind.CONNECTION_FAILURE),
    ("disk i/o error", ErrorKind.CONNECTION_FAILURE),
)

_KIND_ERRORS: dict[ErrorKind, type[StorageError]] = {
    ErrorKind.CONNECTION_FAILURE: DatabaseConnectionError,
    ErrorKind.CONSTRAINT_VIOLATION: ConstraintViolationError,
    ErrorKind.RESOURCE_LOCKED: DatabaseLockedError,
    ErrorKind.RESOURCE_EXHAUSTED: ResourceExhaustedError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.MIGRATION_FAILURE: MigrationError,
    ErrorKind.UNKNOWN: UnknownDatabaseError,
}


def classify(error: BaseException) -> ErrorKind:
    """
    Map a raw error onto the storage taxonomy.

    Args:
        error: Any exception raised while talking to the store.

    Returns:
        The ErrorKind for the error. Unrecognised errors collapse to UNKNOWN.
    """
    if isinstance(error, StorageError):
        return error.kind

    # Pool checkout waited longer than pool_timeout.
    if isinstance(error, sa_exc.TimeoutError):
        return ErrorKind.RESOURCE_EXHAUSTED

    # Pool gave up reconnecting on checkout.
    if isinstance(error, (sa_exc.DisconnectionError, sa_exc.InvalidRequestError)):
        return ErrorKind.CONNECTION_FAILURE

    if not isinstance(error, sqlite3.Error):
        return ErrorKind.UNKNOWN

    code = getattr(error, "sqlite_errorcode", None)
    if isinstance(code, int):
        # Extended codes keep the primary code in the low byte.
        return _CODE_KINDS.get(code & 0xFF, ErrorKind.UNKNOWN)

    if isinstance(error, sqlite3.IntegrityError):
        return ErrorKind.CONSTRAINT_VIOLATION
    message = str(error).lower()
    for fragment, kind in _MESSAGE_KINDS:
        if fragment in message:
            return kind
    return ErrorKind.UNKNOWN


def to_storage_error(error: BaseException) -> StorageError:
    """
    Build the StorageError matching `classify(error)`.

    StorageError instances are returned unchanged. For anything else the
    raw error is attached as `__cause__` so it stays available for logs.
    """
    if isinstance(error, StorageError):
        return error
    storage_error = _KIND_ERRORS[classify(error)]()
    storage_error.__cause__ = error
    return storage_error
