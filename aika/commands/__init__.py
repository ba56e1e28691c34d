"""Command dispatch utilities."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, NamedTuple

from aika.clients.transport import InboundMessage

from .handlers import CommandHandler, get as get_handler

if TYPE_CHECKING:
    from aika.bot import Bot

logger = logging.getLogger(__name__)


class CommandInvocation(NamedTuple):
    """Resolved command data for downstream consumers."""

    handler: CommandHandler
    name: str
    args: str


def _resolve_command(content: str) -> CommandInvocation | None:
    """
    Return the handler, command name, and args if ``content`` is a command.

    Commands are whole messages (``ping``, ``use-ai``); a keyword inside a
    sentence is ordinary chat.
    """

    tokens = content.strip().split()
    if len(tokens) != 1:
        return None

    command = tokens[0].lower()
    handler = get_handler(command)
    if not handler:
        return None

    return CommandInvocation(handler=handler, name=command, args="")


def is_command_message(message: InboundMessage) -> bool:
    """Return ``True`` when ``message`` is exactly a registered command keyword."""

    return _resolve_command(message.text or "") is not None


async def dispatch(bot: "Bot", message: InboundMessage) -> bool:
    """
    Run the handler whose keyword is the whole of ``message``.
    Returns True if a command was handled.
    """

    invocation = _resolve_command(message.text or "")
    if not invocation:
        return False

    handler, command, args = invocation
    logger.info("Dispatching command '%s' with args: %s", command, args)
    await handler.handle(bot, message, args)
    return True
