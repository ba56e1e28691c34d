"""
Command handler registry.

Each module in this directory registers its handlers on import::

    from . import register

    @register
    class StatusCommand:
        command_str = "status"

        @staticmethod
        async def handle(bot, message, args): ...

Keywords are stored lower-case and a chat message triggers a handler only
when its whole (trimmed) text equals the keyword. Registering the same
keyword twice is an error.
"""
from __future__ import annotations

from importlib import import_module
from pathlib import Path
from pkgutil import iter_modules
from typing import TYPE_CHECKING, Dict, List, Protocol

from aika.clients.transport import InboundMessage

if TYPE_CHECKING:
    from aika.bot import Bot


class CommandHandler(Protocol):
    command_str: str

    @staticmethod
    async def handle(bot: "Bot", message: InboundMessage, args: str) -> None:
        """Run the command and reply through ``bot``."""


_HANDLERS: Dict[str, CommandHandler] = {}


def register(cls: CommandHandler):
    """Class decorator adding ``cls`` under its lower-cased ``command_str``."""
    keyword = cls.command_str.strip().lower()
    if not keyword or any(ch.isspace() for ch in keyword):
        raise ValueError(f"Invalid command keyword: {cls.command_str!r}")
    existing = _HANDLERS.get(keyword)
    if existing is not None and existing is not cls:
        raise ValueError(f"Command {keyword!r} already handled by {existing.__name__}")
    _HANDLERS[keyword] = cls
    return cls


def get(command: str) -> CommandHandler | None:
    return _HANDLERS.get(command.lower())


def all_commands() -> Dict[str, CommandHandler]:
    """Snapshot of keyword -> handler."""
    return dict(_HANDLERS)


def command_names() -> List[str]:
    return sorted(_HANDLERS)


def _load_handler_modules() -> None:
    here = Path(__file__).resolve().parent
    for info in iter_modules([str(here)]):
        import_module(f"{__name__}.{info.name}")


_load_handler_modules()
