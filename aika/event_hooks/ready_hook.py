from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aika.bot import Bot

logger = logging.getLogger(__name__)


async def handle(bot: "Bot") -> None:
    """Prepare storage and start write-back once the transport is connected."""
    await bot.conversations.ensure_table()
    stored = await bot.conversations.identifiers()
    logger.info("Conversation store ready (%d stored conversations)", len(stored))

    # Kick off periodic write-back of cached conversations
    await bot.writeback.start()
