"""
SQLite persistence for conversations and per-conversation settings.

Import repositories from their modules::

    from aika.memory.store.conversations import ConversationRepo
    from aika.memory.store.settings import SettingsRepo, SettingsRecord
"""

from .errors import (
    AikaStoreError,
    DeserializationError,
    NotFoundError,
    SanitizationDegenerate,
    StorageError,
)

__all__ = [
    "AikaStoreError",
    "DeserializationError",
    "NotFoundError",
    "SanitizationDegenerate",
    "StorageError",
]
