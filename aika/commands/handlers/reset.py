from __future__ import annotations

import logging

from aika.clients.transport import InboundMessage
from aika.memory.store.errors import StorageError
from . import register

logger = logging.getLogger(__name__)


@register
class ResetCommand:
    """Forget the chat's conversation history (memory and storage)."""

    command_str = "reset"

    @staticmethod
    async def handle(bot, message: InboundMessage, args: str) -> None:
        try:
            await bot.cache.purge(message.chat_jid)
        except StorageError as exc:
            logger.error("Failed to reset history for %s: %s", message.chat_jid, exc)
            await bot.reply(message, "> History is unavailable right now, try again later.")
            return
        await bot.reply(message, "> Conversation history cleared.")
