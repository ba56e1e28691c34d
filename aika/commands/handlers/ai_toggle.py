"""Enable or disable AI replies for the current chat."""

from __future__ import annotations

import logging

from aika import jid as jids
from aika.clients.transport import InboundMessage
from aika.memory.store.errors import StorageError
from . import register

logger = logging.getLogger(__name__)


async def _toggle(bot, message: InboundMessage, enabled: bool) -> None:
    try:
        await bot.settings.set_use_ai(
            message.chat_jid,
            enabled,
            name=message.group_name or message.sender_name,
            owner_jid=jids.normalize_or_empty(message.group_owner),
        )
    except StorageError as exc:
        logger.error("Failed to update settings for %s: %s", message.chat_jid, exc)
        await bot.reply(message, "> Settings are unavailable right now, try again later.")
        return
    state = "enabled" if enabled else "disabled"
    await bot.reply(message, f"> *Aika* has been {state} for this chat!")


@register
class UseAICommand:
    command_str = "use-ai"

    @staticmethod
    async def handle(bot, message: InboundMessage, args: str) -> None:
        await _toggle(bot, message, True)


@register
class DisableAICommand:
    command_str = "disable-ai"

    @staticmethod
    async def handle(bot, message: InboundMessage, args: str) -> None:
        await _toggle(bot, message, False)
