"""Map conversation identifiers onto safe SQLite table names."""

from __future__ import annotations

import re

from .errors import SanitizationDegenerate

SETTINGS_TABLE_PREFIX = "settings_"

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_]", re.ASCII)


def sanitize_identifier(identifier: str) -> str:
    """
    Return the part of ``identifier`` before the first ``@`` with every
    character outside ``[A-Za-z0-9_]`` replaced by ``_``.

    Total over all strings; may return ``""``.
    """
    base = identifier.split("@", 1)[0]
    return _UNSAFE_RE.sub("_", base)


def settings_table_name(identifier: str) -> str:
    """
    Return the per-conversation settings table for ``identifier``.

    :raises SanitizationDegenerate: if nothing usable survives sanitization.
    """
    safe = sanitize_identifier(identifier)
    if not safe.strip("_"):
        raise SanitizationDegenerate(
            f"Identifier {identifier!r} has no usable table name"
        )
    # Prefix keeps names like ``62811`` from starting with a digit.
    return f"{SETTINGS_TABLE_PREFIX}{safe}"


__all__ = ["sanitize_identifier", "settings_table_name", "SETTINGS_TABLE_PREFIX"]
