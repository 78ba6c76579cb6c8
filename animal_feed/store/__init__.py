"""Key-value/list store backends."""

from .base import KeyValueStore
from .memory import InMemoryStore
from .redis import RedisStore

__all__ = [
    "KeyValueStore",
    "InMemoryStore",
    "RedisStore",
]
