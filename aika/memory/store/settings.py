"""
Per-conversation settings repository
====================================

Each conversation owns one physical table named after its sanitized
identifier (see :mod:`aika.memory.store.sanitize`). Tables are created on
first upsert, never on read: reading settings that were never written
raises :class:`NotFoundError`.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from dataclasses import dataclass, replace

from aika import jid as jids

from . import db
from .errors import NotFoundError, StorageError
from .sanitize import SETTINGS_TABLE_PREFIX, settings_table_name

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10

_CREATE_SQL = """
    CREATE TABLE IF NOT EXISTS "{table}" (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        use_ai BOOLEAN,
        limit_value INTEGER,
        is_premium BOOLEAN,
        name TEXT,
        jid TEXT UNIQUE,
        owner_jid TEXT
    )
"""


@dataclass(frozen=True, slots=True)
class SettingsRecord:
    """Configuration for one conversation."""

    use_ai: bool
    limit: int
    is_premium: bool
    name: str
    jid: str
    owner_jid: str

    @classmethod
    def default(cls, jid: str, name: str = "", owner_jid: str = "") -> "SettingsRecord":
        """Settings assigned to a conversation seen for the first time."""
        return cls(
            use_ai=False,
            limit=DEFAULT_LIMIT,
            is_premium=False,
            name=name,
            jid=jid,
            owner_jid=owner_jid,
        )


def _check_jid(value: str, column: str) -> None:
    try:
        jids.parse(value)
    except ValueError as exc:
        raise StorageError(f"Malformed {column} for settings: {value!r}") from exc


class SettingsRepo:
    """Async CRUD helpers for the per-conversation settings tables."""

    def __init__(self, conn: sqlite3.Connection, lock: asyncio.Lock | None = None):
        self.conn = conn
        self._lock = lock or asyncio.Lock()
        self._ensured: set[str] = set()

    def _ensure_table_sync(self, table: str) -> None:
        if table in self._ensured:
            return
        db.ensure_table(self.conn, table, _CREATE_SQL.format(table=table))
        self._ensured.add(table)

    async def ensure_table(self, jid: str) -> str:
        """
        Create the settings table for ``jid`` if it does not exist yet.

        :param jid: Conversation identifier.
        :returns: The table name.
        :raises StorageError: on SQLite failure or a degenerate identifier.
        """
        table = settings_table_name(jid)

        def _run() -> None:
            try:
                self._ensure_table_sync(table)
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to create table {table}: {exc}") from exc

        async with self._lock:
            await asyncio.to_thread(_run)
        return table

    async def upsert(self, jid: str, record: SettingsRecord) -> None:
        """
        Write or replace the settings row for ``jid``.

        The stored ``jid`` column always equals ``jid`` so exactly one row
        exists per conversation.

        :param jid: Conversation identifier.
        :param record: Settings to persist.
        :raises StorageError: on SQLite failure, or if ``jid`` or a non-empty
            ``owner_jid`` is not a valid JID.
        """
        table = settings_table_name(jid)
        if record.jid != jid:
            record = replace(record, jid=jid)
        # Reject what get() could never read back
        _check_jid(record.jid, "jid")
        if record.owner_jid:
            _check_jid(record.owner_jid, "owner_jid")
        sql = f"""
            INSERT INTO "{table}" (use_ai, limit_value, is_premium, name, jid, owner_jid)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(jid) DO UPDATE SET
              use_ai=excluded.use_ai,
              limit_value=excluded.limit_value,
              is_premium=excluded.is_premium,
              name=excluded.name,
              owner_jid=excluded.owner_jid
        """
        params = (
            record.use_ai,
            record.limit,
            record.is_premium,
            record.name,
            record.jid,
            record.owner_jid,
        )

        def _run() -> None:
            try:
                self._ensure_table_sync(table)
                with self.conn:
                    self.conn.execute(sql, params)
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to save settings for {jid}: {exc}") from exc

        async with self._lock:
            await asyncio.to_thread(_run)

    async def get(self, jid: str) -> SettingsRecord:
        """
        Return the stored settings for ``jid``.

        :raises NotFoundError: if nothing was ever upserted for ``jid``.
        :raises StorageError: on SQLite failure or a malformed row.
        """
        table = settings_table_name(jid)

        def _query() -> SettingsRecord:
            try:
                if table not in self._ensured and not db.table_exists(self.conn, table):
                    raise NotFoundError(jid, "settings")
                row = self.conn.execute(
                    f'SELECT use_ai, limit_value, is_premium, name, jid, owner_jid '
                    f'FROM "{table}" WHERE jid=?',
                    (jid,),
                ).fetchone()
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to read settings for {jid}: {exc}") from exc
            if row is None:
                raise NotFoundError(jid, "settings")

            _check_jid(row["jid"] or "", "jid")
            owner = row["owner_jid"] or ""
            if owner:
                _check_jid(owner, "owner_jid")
            try:
                return SettingsRecord(
                    use_ai=bool(row["use_ai"]),
                    limit=int(row["limit_value"] or 0),
                    is_premium=bool(row["is_premium"]),
                    name=row["name"] or "",
                    jid=row["jid"],
                    owner_jid=owner,
                )
            except (TypeError, ValueError) as exc:
                raise StorageError(f"Malformed settings row for {jid}: {exc}") from exc

        async with self._lock:
            return await asyncio.to_thread(_query)

    async def set_use_ai(self, jid: str, enabled: bool, *, name: str = "", owner_jid: str = "") -> SettingsRecord:
        """
        Toggle ``use_ai`` for ``jid``, creating default settings if needed.

        :returns: The record as stored.
        """
        try:
            current = await self.get(jid)
        except NotFoundError:
            current = SettingsRecord.default(jid, name=name, owner_jid=owner_jid)
        updated = replace(current, use_ai=enabled)
        await self.upsert(jid, updated)
        return updated

    async def delete(self, jid: str) -> None:
        """Drop the settings table for ``jid``; absent tables are ignored."""
        table = settings_table_name(jid)

        def _run() -> None:
            try:
                with self.conn:
                    self.conn.execute(f'DROP TABLE IF EXISTS "{table}"')
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to drop settings for {jid}: {exc}") from exc
            self._ensured.discard(table)

        async with self._lock:
            await asyncio.to_thread(_run)

    async def table_count(self) -> int:
        """Return how many per-conversation settings tables exist."""

        def _query() -> int:
            try:
                return len(db.list_tables(self.conn, SETTINGS_TABLE_PREFIX))
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to list settings tables: {exc}") from exc

        async with self._lock:
            return await asyncio.to_thread(_query)
