"""
Helpers for WhatsApp-style addresses (``user[:device]@server``).
"""

from __future__ import annotations

from typing import NamedTuple

USER_SERVER = "s.whatsapp.net"
GROUP_SERVER = "g.us"


class JID(NamedTuple):
    user: str
    server: str

    def __str__(self) -> str:
        return f"{self.user}@{self.server}"


def normalize(raw: str) -> str:
    """Drop the ``:device`` suffix from the user part, e.g. ``62811:12@s.whatsapp.net``."""

    raw = raw.strip()
    if "@" not in raw:
        return raw.split(":", 1)[0]
    local, server = raw.split("@", 1)
    return f"{local.split(':', 1)[0]}@{server}"


def parse(raw: str) -> JID:
    """
    Parse ``raw`` into a :class:`JID`.

    :raises ValueError: if ``raw`` is not of the form ``user@server``.
    """
    if raw.count("@") != 1:
        raise ValueError(f"Invalid JID: {raw!r}")
    user, server = raw.split("@", 1)
    if not user or not server or any(ch.isspace() for ch in raw):
        raise ValueError(f"Invalid JID: {raw!r}")
    return JID(user.split(":", 1)[0], server)


def is_group(raw: str) -> bool:
    return raw.endswith(f"@{GROUP_SERVER}")


def is_user(raw: str) -> bool:
    return raw.endswith(f"@{USER_SERVER}")


def normalize_or_empty(raw: str | None) -> str:
    """Normalized ``raw`` if it parses as a JID, otherwise ``""``."""
    if not raw:
        return ""
    value = normalize(raw)
    try:
        parse(value)
    except ValueError:
        return ""
    return value


def same_user(raw: str, number: str) -> bool:
    """``True`` when ``raw``'s user part is the phone ``number``."""
    return bool(number) and normalize(raw).split("@", 1)[0] == number.lstrip("+")
