"""
SQLite bootstrap and connection helpers
=======================================

- One connection per database file, shared by a repository and guarded by
  that repository's ``asyncio.Lock``.
- WAL + pragmatic PRAGMAs for decent concurrent read perf.
"""

from __future__ import annotations

import logging
import pathlib
import sqlite3

logger = logging.getLogger(__name__)


def connect(path: str) -> sqlite3.Connection:
    """Open ``path`` (creating parent directories) with autocommit semantics."""

    if path != ":memory:":
        pathlib.Path(path).parent.mkdir(parents=True, exist_ok=True)

    # Autocommit; we use explicit `with conn:` blocks in worker threads.
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=False,
    )

    # Pragmas: order matters a bit; set WAL first, then tuning.
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA temp_store=MEMORY;")
    # Reduce SQLITE_BUSY errors under contention
    conn.execute("PRAGMA busy_timeout=3000;")

    # dict-like rows
    conn.row_factory = sqlite3.Row

    return conn


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM sqlite_master WHERE type='table' AND name=? LIMIT 1",
        (table,),
    ).fetchone()
    return row is not None


def ensure_table(conn: sqlite3.Connection, table: str, create_sql: str) -> bool:
    """
    Run ``create_sql`` unless ``table`` already exists.

    ``create_sql`` must use ``IF NOT EXISTS`` so a racing creator is harmless.
    Returns ``True`` if the statement was executed.
    """
    if table_exists(conn, table):
        return False
    logger.info("Table %s doesn't exist. Creating it...", table)
    with conn:
        conn.execute(create_sql)
    return True


def list_tables(conn: sqlite3.Connection, prefix: str = "") -> list[str]:
    rows = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    ).fetchall()
    # Filter here; `_` is a LIKE wildcard.
    return [r["name"] for r in rows if r["name"].startswith(prefix)]


def wal_checkpoint_truncate(conn: sqlite3.Connection) -> None:
    """Run a WAL checkpoint + truncate to keep WAL from growing unbounded."""
    conn.execute("PRAGMA wal_checkpoint(TRUNCATE);")
