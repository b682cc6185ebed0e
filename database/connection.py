"""SQLite connection and transaction helpers."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from api.exceptions import ConcurrencyConflictError

logger = logging.getLogger(__name__)

_SCHEMA_PATH = Path(__file__).resolve().parent / "schema.sql"

_DEFAULT_BUSY_TIMEOUT = 5.0


def get_db(db_path: str, timeout: float = _DEFAULT_BUSY_TIMEOUT) -> sqlite3.Connection:
    """Return a configured SQLite connection.

    Enables WAL mode, foreign keys, and sqlite3.Row factory. *timeout* is how
    long (seconds) a writer waits for the database lock before giving up.
    """
    conn = sqlite3.connect(db_path, timeout=timeout)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def apply_schema(conn: sqlite3.Connection) -> None:
    """Execute schema.sql against an open connection."""
    conn.executescript(_SCHEMA_PATH.read_text())


def init_database(db_path: str) -> None:
    """Create all tables, indexes and triggers.

    Safe to call repeatedly, every statement uses IF NOT EXISTS.
    """
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_db(db_path)
    try:
        apply_schema(conn)
    finally:
        conn.close()
    logger.info("Database initialised at %s", db_path)


def _is_lock_error(exc: sqlite3.OperationalError) -> bool:
    text = str(exc).lower()
    return "locked" in text or "busy" in text


@contextmanager
def immediate_transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the block inside ``BEGIN IMMEDIATE`` ... ``COMMIT``.

    Takes SQLite's write lock up front so concurrent writers serialize their
    reads and writes. Temporarily switches to autocommit (isolation_level =
    None) to avoid conflict with Python's implicit transaction management,
    then restores the original isolation_level. Any exception rolls back.

    A lock that cannot be acquired within the busy timeout raises
    :class:`ConcurrencyConflictError`.
    """
    original_isolation = conn.isolation_level
    if conn.in_transaction:
        conn.commit()
    try:
        conn.isolation_level = None  # autocommit mode
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.OperationalError as exc:
            if _is_lock_error(exc):
                logger.warning("Write lock not acquired: %s", exc)
                msg = "The database is busy with another write; retry the request"
                raise ConcurrencyConflictError(msg) from exc
            raise
        try:
            yield conn
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        try:
            conn.execute("COMMIT")
        except sqlite3.OperationalError as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            if _is_lock_error(exc):
                msg = "The database is busy with another write; retry the request"
                raise ConcurrencyConflictError(msg) from exc
            raise
    finally:
        conn.isolation_level = original_isolation
