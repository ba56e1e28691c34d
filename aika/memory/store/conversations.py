"""
Conversation repository
=======================

One shared table keyed by conversation identifier::

    id INTEGER PRIMARY KEY AUTOINCREMENT
    identifier TEXT NOT NULL UNIQUE
    payload TEXT NOT NULL          -- JSON, see aika.memory.cache.serialization

No per-key locking here: callers serialize writes for the same identifier.
"""

from __future__ import annotations

import asyncio
import logging
import re
import sqlite3
from typing import List, Optional

from aika.memory.cache.model import ConversationRecord
from aika.memory.cache.serialization import decode_record, encode_record

from . import db
from .errors import StorageError

logger = logging.getLogger(__name__)

_TABLE_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*", re.ASCII)


class ConversationRepo:
    """Async CRUD helpers for the shared conversation table."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        lock: asyncio.Lock | None = None,
        table: str = "chats",
    ):
        if not _TABLE_RE.fullmatch(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self.conn = conn
        self.table = table
        self._lock = lock or asyncio.Lock()
        self._ready = False

    def _ensure_table_sync(self) -> None:
        if self._ready:
            return
        create_sql = f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                identifier TEXT NOT NULL UNIQUE,
                payload TEXT NOT NULL
            )
        """
        db.ensure_table(self.conn, self.table, create_sql)
        self._ready = True

    async def ensure_table(self) -> None:
        """Create the shared conversation table if needed."""

        def _run() -> None:
            try:
                self._ensure_table_sync()
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to create table {self.table}: {exc}") from exc

        async with self._lock:
            await asyncio.to_thread(_run)

    async def save(self, identifier: str, record: ConversationRecord) -> None:
        """
        Insert or overwrite the payload for ``identifier``.

        :param identifier: Conversation identifier.
        :param record: Record to persist; callers pass a snapshot.
        :raises StorageError: on SQLite failure.
        """
        payload = encode_record(record)
        sql = f"""
            INSERT INTO {self.table} (identifier, payload) VALUES (?, ?)
            ON CONFLICT(identifier) DO UPDATE SET payload=excluded.payload
        """

        def _run() -> None:
            try:
                self._ensure_table_sync()
                with self.conn:
                    self.conn.execute(sql, (identifier, payload))
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to save chat data for {identifier}: {exc}") from exc

        async with self._lock:
            await asyncio.to_thread(_run)  # blocking sqlite call

    async def load(self, identifier: str) -> Optional[ConversationRecord]:
        """
        Return the stored record for ``identifier`` or ``None``.

        :raises StorageError: on SQLite failure.
        :raises DeserializationError: if the stored payload is malformed.
        """
        sql = f"SELECT payload FROM {self.table} WHERE identifier=?"

        def _query() -> Optional[str]:
            try:
                self._ensure_table_sync()
                row = self.conn.execute(sql, (identifier,)).fetchone()
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to retrieve chat data for {identifier}: {exc}") from exc
            return row["payload"] if row else None

        async with self._lock:
            payload = await asyncio.to_thread(_query)  # blocking sqlite call

        if payload is None:
            return None
        return decode_record(payload, identifier=identifier)

    async def delete(self, identifier: str) -> bool:
        """
        Delete the row for ``identifier``.

        :returns: ``True`` if a row was removed.
        :raises StorageError: on SQLite failure.
        """
        sql = f"DELETE FROM {self.table} WHERE identifier=?"

        def _run() -> bool:
            try:
                self._ensure_table_sync()
                with self.conn:
                    cur = self.conn.execute(sql, (identifier,))
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to delete chat data for {identifier}: {exc}") from exc
            return cur.rowcount > 0

        async with self._lock:
            return await asyncio.to_thread(_run)

    async def identifiers(self) -> List[str]:
        """Return every stored identifier, oldest row first."""
        sql = f"SELECT identifier FROM {self.table} ORDER BY id"

        def _query() -> List[str]:
            try:
                self._ensure_table_sync()
                return [r["identifier"] for r in self.conn.execute(sql).fetchall()]
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to list chat data: {exc}") from exc

        async with self._lock:
            return await asyncio.to_thread(_query)
