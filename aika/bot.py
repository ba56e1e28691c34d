"""
Runtime wiring: storage connections, repositories, cache, write-back loop
and the transport/backend collaborators, owned by one :class:`Bot`.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from aika.clients.transport import InboundMessage, Transport
from aika.memory.cache import ConversationCache, WriteBackScheduler
from aika.memory.store import db
from aika.memory.store.conversations import ConversationRepo
from aika.memory.store.settings import SettingsRepo

logger = logging.getLogger(__name__)

Generator = Callable[[Dict[str, Any]], Awaitable[str]]
# (data, mime_type) -> hosted file URI
Uploader = Callable[[bytes, str], Awaitable[str]]


@dataclass
class Bot:
    transport: Transport
    conversations: ConversationRepo
    settings: SettingsRepo
    cache: ConversationCache
    writeback: WriteBackScheduler
    generate: Generator
    max_turn_chars: int = 4000
    upload: Optional[Uploader] = None
    bot_number: str = ""
    _conns: List[sqlite3.Connection] = field(default_factory=list, repr=False)

    @classmethod
    def from_config(
        cls,
        transport: Transport,
        *,
        generate: Generator | None = None,
        upload: Uploader | None = None,
        chat_db_path: str | None = None,
        settings_db_path: str | None = None,
    ) -> "Bot":
        """Build a bot from :mod:`aika.config` (paths may be overridden)."""
        from aika.clients import gemini
        from aika.config import core, persona, storage

        if generate is None:
            generate = gemini.generate_content
        if upload is None:
            upload = gemini.upload_file

        chat_conn = db.connect(chat_db_path or storage.CHAT_DB_PATH)
        settings_conn = db.connect(settings_db_path or storage.SETTINGS_DB_PATH)

        conversations = ConversationRepo(chat_conn, asyncio.Lock(), table=storage.CHAT_TABLE)
        settings = SettingsRepo(settings_conn, asyncio.Lock())
        cache = ConversationCache(conversations, persona)
        writeback = WriteBackScheduler(cache, storage.FLUSH_INTERVAL)

        return cls(
            transport=transport,
            conversations=conversations,
            settings=settings,
            cache=cache,
            writeback=writeback,
            generate=generate,
            max_turn_chars=core.MAX_TURN_CHARS,
            upload=upload,
            bot_number=core.BOT_NUMBER,
            _conns=[chat_conn, settings_conn],
        )

    async def reply(self, message: InboundMessage, text: str) -> None:
        """Answer ``message`` in its chat, quoting it."""
        await self.transport.send_text(message.chat_jid, text, quoted=message)

    async def close(self) -> None:
        """Stop write-back, persist what is still dirty, close connections."""
        await self.writeback.stop()
        result = await self.writeback.flush()
        logger.info("Final write-back saved %d conversation(s)", result.saved)
        for conn in self._conns:
            try:
                db.wal_checkpoint_truncate(conn)
            except sqlite3.Error as exc:
                logger.warning("WAL checkpoint failed: %s", exc)
            conn.close()
        self._conns.clear()
