"""
Periodic write-back of cached conversations.

:class:`WriteBackScheduler` wakes every ``interval`` seconds and saves each
conversation whose in-memory record is ahead of storage. At most one flush
runs at a time; a tick that finds a flush in progress is skipped, not
queued. Conversations that appear after a cycle took its snapshot of
identifiers are picked up by the next cycle.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from aika import maintenance

if TYPE_CHECKING:
    from .manager import ConversationCache

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5.0


@dataclass(frozen=True)
class FlushResult:
    saved: int = 0
    failed: int = 0
    skipped: bool = False


class WriteBackScheduler:
    """Background loop flushing dirty cache entries to the conversation store."""

    def __init__(self, cache: "ConversationCache", interval: float = DEFAULT_INTERVAL) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._cache = cache
        self.interval = interval
        self._flushing = False
        self._task: asyncio.Task | None = None
        self._stop: asyncio.Event | None = None

    @property
    def flushing(self) -> bool:
        return self._flushing

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def flush(self) -> FlushResult:
        """
        Save every dirty conversation once.

        A failed save is logged and the cycle moves on to the next identifier.
        """
        if self._flushing:
            logger.debug("Flush already in progress; skipping tick")
            return FlushResult(skipped=True)

        self._flushing = True
        saved = failed = 0
        try:
            for identifier in await self._cache.dirty_ids():
                try:
                    if await self._cache.save(identifier, only_dirty=True):
                        saved += 1
                except Exception as exc:
                    failed += 1
                    logger.error("Write-back failed for %s: %s", identifier, exc)
        finally:
            self._flushing = False

        if saved or failed:
            logger.info("Write-back cycle saved %d conversation(s), %d failed", saved, failed)
        return FlushResult(saved=saved, failed=failed)

    async def start(self) -> asyncio.Task:
        """Start the periodic loop; calling it while running is a no-op."""
        if self.running:
            return self._task  # type: ignore[return-value]
        logger.info("Starting conversation write-back (interval=%ss)", self.interval)
        self._stop = asyncio.Event()
        self._task = await maintenance.startup(self.flush, self.interval, self._stop)
        return self._task

    async def stop(self) -> None:
        """
        Stop the loop permanently.

        A cycle already running finishes first; no cycle starts afterwards.
        """
        if self._stop is None:
            return
        await maintenance.shutdown(self._task, self._stop)
        self._task = None
        logger.info("Conversation write-back stopped")


__all__ = ["WriteBackScheduler", "FlushResult", "DEFAULT_INTERVAL"]
