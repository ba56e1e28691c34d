"""
Short-term conversation cache package.

Modules
=======

``manager``
    Defines :class:`~aika.memory.cache.manager.ConversationCache`, the cache
    service owning every live conversation record and its locks.
``model``
    Frozen dataclasses for turns and their parts plus the mutable
    :class:`~aika.memory.cache.model.ConversationRecord`.
``serialization``
    JSON codec between records and the stored/request payload.
``writeback``
    :class:`~aika.memory.cache.writeback.WriteBackScheduler`, the periodic
    flush of dirty records into the conversation store.
``utils``
    Internal logging helpers used by :mod:`manager` to summarize turns.
"""

from .manager import ConversationCache
from .writeback import WriteBackScheduler

__all__ = ["ConversationCache", "WriteBackScheduler"]
