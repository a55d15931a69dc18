"""Persistence (Redis).

Re-exports core storage classes:

    from mentionbot.storage import Storage, RedisStorage
"""

from mentionbot.storage.base import InvalidTransitionError, Storage, TradeNotFoundError
from mentionbot.storage.redis_store import RedisStorage

__all__ = [
    "InvalidTransitionError",
    "RedisStorage",
    "Storage",
    "TradeNotFoundError",
]
