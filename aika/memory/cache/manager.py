"""Conversation cache coordinating in-memory records and their backing store."""

from __future__ import annotations

import asyncio
import base64
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator, Dict, List, Optional

from aika.memory.store.errors import DeserializationError

from .model import (
    ConversationRecord,
    FileReferencePart,
    GenerationConfig,
    InlineImagePart,
    Part,
    SafetySetting,
    TextPart,
    Turn,
)
from .utils import _parts_preview

if TYPE_CHECKING:
    from aika.config.persona import Persona
    from aika.memory.store.conversations import ConversationRepo

logger = logging.getLogger(__name__)

MEDIA_IMAGE = "image"
MEDIA_VIDEO = "video"
MEDIA_KINDS = (MEDIA_IMAGE, MEDIA_VIDEO)


class ConversationCache:
    """
    Process-wide map of conversation identifier -> :class:`ConversationRecord`.

    ``_map_lock`` guards inserts and removals of map entries. Each
    identifier additionally owns an ``asyncio.Lock`` that serializes
    loading, appending, saving and purging for that conversation, so two
    inbound events for one chat can never interleave an append. A key lock
    lives only while someone holds or waits on it, or while its record is
    cached.
    """

    def __init__(self, repo: "ConversationRepo", persona: "Persona | None" = None) -> None:
        if persona is None:
            from aika.config import persona as default_persona

            persona = default_persona
        self._repo = repo
        self._persona = persona
        self._records: Dict[str, ConversationRecord] = {}
        self._saved_revision: Dict[str, int] = {}
        self._key_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._map_lock = asyncio.Lock()

        # Fixed per-record fields; frozen values shared by every new record.
        self._system_instruction = Turn(
            role="user", parts=(TextPart(persona.system_instruction),)
        )
        self._safety_settings = tuple(
            SafetySetting(category, threshold)
            for category, threshold in persona.safety_settings
        )
        self._generation_config = GenerationConfig(
            temperature=persona.TEMPERATURE,
            top_k=persona.TOP_K,
            top_p=persona.TOP_P,
            max_output_tokens=persona.MAX_OUTPUT_TOKENS,
            response_mime_type=persona.RESPONSE_MIME_TYPE,
        )

    # ------------------------------------------------------------------ #
    # Locking
    # ------------------------------------------------------------------ #

    @asynccontextmanager
    async def _locked(self, identifier: str) -> AsyncIterator[None]:
        """Hold ``identifier``'s lock; drop it afterwards if nothing else needs it."""
        async with self._map_lock:
            lock = self._key_locks.get(identifier)
            if lock is None:
                lock = self._key_locks[identifier] = asyncio.Lock()
            self._lock_users[identifier] = self._lock_users.get(identifier, 0) + 1
        try:
            async with lock:
                yield
        finally:
            async with self._map_lock:
                users = self._lock_users.pop(identifier) - 1
                if users:
                    self._lock_users[identifier] = users
                elif identifier not in self._records:
                    self._key_locks.pop(identifier, None)

    async def _install(self, identifier: str, record: ConversationRecord, *, clean: bool) -> None:
        async with self._map_lock:
            self._records[identifier] = record
            if clean:
                self._saved_revision[identifier] = record.revision

    async def _evict(self, identifier: str) -> bool:
        async with self._map_lock:
            self._saved_revision.pop(identifier, None)
            return self._records.pop(identifier, None) is not None

    # ------------------------------------------------------------------ #
    # READ helpers
    # ------------------------------------------------------------------ #

    async def _get_or_load_locked(self, identifier: str) -> Optional[ConversationRecord]:
        record = self._records.get(identifier)
        if record is not None:
            return record

        try:
            loaded = await self._repo.load(identifier)
        except DeserializationError as exc:
            logger.warning("Discarding unreadable history for %s: %s", identifier, exc)
            return None
        if loaded is None:
            return None

        await self._install(identifier, loaded, clean=True)
        logger.info("Loaded %d turns for %s from storage", len(loaded.contents), identifier)
        return loaded

    async def get_or_load(self, identifier: str) -> Optional[ConversationRecord]:
        """
        Return the cached record for ``identifier``, loading it on a miss.

        The returned record is a copy; mutate through :meth:`add_turn`.

        :returns: ``None`` if neither memory nor storage knows ``identifier``.
        :raises StorageError: if the backing store fails on the miss path.
        """
        async with self._locked(identifier):
            record = await self._get_or_load_locked(identifier)
            return record.copy() if record is not None else None

    async def snapshot(self, identifier: str) -> Optional[ConversationRecord]:
        """Return a copy of the in-memory record without touching storage."""
        async with self._locked(identifier):
            record = self._records.get(identifier)
            return record.copy() if record is not None else None

    async def get_request(self, identifier: str) -> Optional[Dict[str, Any]]:
        """Return the in-memory record rendered as a backend request body."""
        record = await self.snapshot(identifier)
        return record.to_dict() if record is not None else None

    def identifiers(self) -> List[str]:
        return list(self._records)

    async def dirty_ids(self) -> List[str]:
        """Return identifiers whose in-memory record is ahead of storage."""
        async with self._map_lock:
            return [
                ident
                for ident, record in self._records.items()
                if self._saved_revision.get(ident) != record.revision
            ]

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._records

    def __len__(self) -> int:
        return len(self._records)

    # ------------------------------------------------------------------ #
    # WRITE helpers
    # ------------------------------------------------------------------ #

    def _new_record(self) -> ConversationRecord:
        return ConversationRecord(
            system_instruction=self._system_instruction,
            safety_settings=self._safety_settings,
            generation_config=self._generation_config,
        )

    def mime_type_for(self, media_kind: str) -> str:
        """MIME type recorded for ``media_kind`` parts."""
        if media_kind == MEDIA_IMAGE:
            return self._persona.IMAGE_MIME_TYPE
        if media_kind == MEDIA_VIDEO:
            return self._persona.VIDEO_MIME_TYPE
        raise ValueError(f"Unsupported media kind: {media_kind!r}")

    def build_turn(
        self,
        role: str,
        text: str,
        media: bytes | str | None = None,
        media_kind: str | None = None,
    ) -> Turn:
        """
        Build one turn: a text part plus an optional media part.

        Images are embedded inline (``media`` is the raw bytes); videos are
        referenced (``media`` is the hosted file URI).

        :raises TypeError: for image media that is not bytes or video media
            that is not a URI string.
        :raises ValueError: for an unknown media kind or an empty URI.
        """
        parts: List[Part] = [TextPart(text)]
        if media_kind == MEDIA_IMAGE:
            if not isinstance(media, (bytes, bytearray)):
                raise TypeError("image media must be bytes")
            encoded = base64.b64encode(bytes(media)).decode("ascii")
            parts.append(InlineImagePart(mime_type=self._persona.IMAGE_MIME_TYPE, data=encoded))
        elif media_kind == MEDIA_VIDEO:
            # Raw video never goes inline; callers upload it and pass the URI.
            if not isinstance(media, str):
                raise TypeError("video media must be an uploaded file URI")
            if not media:
                raise ValueError("video media must be a file URI")
            parts.append(FileReferencePart(mime_type=self._persona.VIDEO_MIME_TYPE, uri=media))
        elif media_kind:
            raise ValueError(f"Unsupported media kind: {media_kind!r}")
        return Turn(role=role, parts=tuple(parts))

    async def add_turn(
        self,
        identifier: str,
        role: str,
        text: str,
        media: bytes | str | None = None,
        media_kind: str | None = None,
    ) -> Turn:
        """
        Append a turn to ``identifier``'s conversation.

        A record that exists only in storage is loaded first; otherwise a
        fresh record is started with the persona's fixed fields.

        :raises ValueError: for an unknown role or media kind.
        :raises StorageError: if the backing store fails on the miss path.
        """
        turn = self.build_turn(role, text, media, media_kind)

        async with self._locked(identifier):
            record = await self._get_or_load_locked(identifier)
            if record is None:
                record = self._new_record()
                await self._install(identifier, record, clean=False)
                logger.info("Started new conversation for %s", identifier)
            revision = record.append(turn)

        if logger.isEnabledFor(logging.INFO):
            logger.info(
                "Cached turn %d for %s by %s | Parts: %s",
                revision,
                identifier,
                role,
                _parts_preview(turn.parts),
            )
        return turn

    async def save(self, identifier: str, *, only_dirty: bool = False) -> bool:
        """
        Persist ``identifier``'s record synchronously.

        The write happens under the identifier's lock from a copy of the
        record, so it never races an append or a purge of the same chat.

        :returns: ``True`` if a row was written.
        :raises StorageError: if the write fails.
        """
        async with self._locked(identifier):
            record = self._records.get(identifier)
            if record is None:
                return False
            if only_dirty and self._saved_revision.get(identifier) == record.revision:
                return False
            snapshot = record.copy()
            await self._repo.save(identifier, snapshot)
            self._saved_revision[identifier] = snapshot.revision
            return True

    # ------------------------------------------------------------------ #
    # MAINTENANCE
    # ------------------------------------------------------------------ #

    async def delete(self, identifier: str) -> bool:
        """Evict ``identifier`` from memory only; storage is untouched."""
        async with self._locked(identifier):
            return await self._evict(identifier)

    async def purge(self, identifier: str) -> bool:
        """
        Delete ``identifier`` from storage and memory as one operation.

        :returns: ``True`` if anything was removed.
        :raises StorageError: if the row delete fails (memory is left as is).
        """
        async with self._locked(identifier):
            removed_row = await self._repo.delete(identifier)
            evicted = await self._evict(identifier)
        logger.info("Purged conversation %s (row=%s, cache=%s)", identifier, removed_row, evicted)
        return removed_row or evicted


__all__ = ["ConversationCache", "MEDIA_IMAGE", "MEDIA_VIDEO", "MEDIA_KINDS"]
