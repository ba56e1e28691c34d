from __future__ import annotations

from aika.clients.transport import InboundMessage
from . import register


@register
class PingCommand:
    command_str = "ping"

    @staticmethod
    async def handle(bot, message: InboundMessage, args: str) -> None:
        await bot.reply(message, "pong! from *aika* btw..")
