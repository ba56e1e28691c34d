"""
Storage error taxonomy
======================

``NotFoundError``
    No record/row for an identifier. Recoverable; callers pick a fallback.
``StorageError``
    SQLite I/O failure, constraint violation or malformed row.
``SanitizationDegenerate``
    Identifier sanitizes to an unusable table name. A ``StorageError``.
``DeserializationError``
    Stored conversation payload cannot be decoded into the typed model.
"""

from __future__ import annotations


class AikaStoreError(Exception):
    """Base class for persistence failures."""


class StorageError(AikaStoreError):
    """Underlying storage engine failed."""


class NotFoundError(AikaStoreError):
    """No stored row exists for the requested identifier."""

    def __init__(self, identifier: str, what: str = "record") -> None:
        super().__init__(f"No {what} found for {identifier!r}")
        self.identifier = identifier


class DeserializationError(AikaStoreError):
    """Stored payload does not have the expected shape."""


class SanitizationDegenerate(StorageError):
    """Identifier collapses to an empty or placeholder-only table name."""


__all__ = [
    "AikaStoreError",
    "StorageError",
    "NotFoundError",
    "DeserializationError",
    "SanitizationDegenerate",
]
