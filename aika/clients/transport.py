"""
Boundary with the chat network.

The wire protocol lives outside this package. A transport adapter turns
network events into :class:`InboundMessage` values, passes them to
:func:`aika.event_hooks.message_hook.handle`, and implements
:class:`Transport` for replies.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class InboundMessage:
    """One message received from the chat network."""

    chat_jid: str
    sender_jid: str
    text: str = ""
    sender_name: str = ""
    media: Optional[bytes | str] = None
    media_kind: Optional[str] = None
    is_group: bool = False
    group_name: str = ""
    group_owner: str = ""
    message_id: str = ""


class Transport(Protocol):
    """Outbound side of the chat network adapter."""

    async def send_text(self, to: str, text: str, *, quoted: InboundMessage | None = None) -> None:
        """Send ``text`` to ``to``, optionally quoting ``quoted``.

        :param to: Destination chat JID.
        :param text: Message body.
        :param quoted: Inbound message being answered.
        """
