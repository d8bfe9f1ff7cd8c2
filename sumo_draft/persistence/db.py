"""
Database connection, transactions and initialization.
"""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .schema import all_schema_sql

logger = logging.getLogger(__name__)


def _run_budget_migration(conn: sqlite3.Connection, default_budget: int) -> None:
    """Add budget to users. Existing participants get the configured budget."""
    cur = conn.execute("PRAGMA table_info(users)")
    ucols = [row[1] for row in cur.fetchall()]
    if "budget" not in ucols:
        conn.execute(f"ALTER TABLE users ADD COLUMN budget INTEGER NOT NULL DEFAULT {int(default_budget)}")
        logger.info("Migrated users: added budget column (default %d)", default_budget)


def get_connection(db_path: str | Path) -> sqlite3.Connection:
    """
    Return a new SQLite connection in autocommit mode.
    Multi-statement writes go through transaction(). Caller must close().
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), isolation_level=None, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection, immediate: bool = True) -> Iterator[sqlite3.Connection]:
    """
    BEGIN IMMEDIATE ... COMMIT, rolling back on any exception.
    IMMEDIATE takes the write lock up front so read-then-write sequences on the
    same participant cannot interleave between connections. Read-only callers
    pass immediate=False for a deferred snapshot that leaves writers alone.
    """
    conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    conn.commit()


def init_db(
    db_path: str | Path,
    catalog_path: str | Path | None = None,
    default_budget: int = 50,
) -> None:
    """
    Create or ensure all tables exist.
    If catalog_path is provided and exists, also seed rikishi from it
    (uses sumo_draft.rikishi_db).
    """
    conn = get_connection(db_path)
    try:
        conn.executescript(all_schema_sql())
        _run_budget_migration(conn, default_budget)
        if catalog_path is not None and Path(catalog_path).exists():
            from sumo_draft.rikishi_db import load_catalog_into_db
            created, updated = load_catalog_into_db(conn, Path(catalog_path))
            logger.info("Catalog seed %s: %d created, %d updated", catalog_path, created, updated)
    finally:
        conn.close()
