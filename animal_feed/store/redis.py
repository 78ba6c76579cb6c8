"""Redis-backed store."""

from typing import Optional, Sequence

from animal_feed.store.base import KeyValueStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="store/redis_store")


def _text(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _raw(value) -> Optional[bytes]:
    if value is None or isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


class RedisStore(KeyValueStore):
    """Thin adapter from the KeyValueStore protocol to a redis-py client.

    Errors from the client are not caught here; the calling components decide
    how to degrade.
    """

    def __init__(self, client) -> None:
        logger.debug("Initializing RedisStore")
        self.client = client

    def list_range(self, key: str, start: int, end: int) -> list[str]:
        return [_text(v) for v in (self.client.lrange(key, start, end) or [])]

    def list_push_left(self, key: str, value: str) -> int:
        return int(self.client.lpush(key, value))

    def list_push_right_all(self, key: str, values: Sequence[str]) -> int:
        if not values:
            return self.list_size(key)
        return int(self.client.rpush(key, *values))

    def list_trim(self, key: str, start: int, end: int) -> None:
        self.client.ltrim(key, start, end)

    def list_size(self, key: str) -> int:
        return int(self.client.llen(key) or 0)

    def list_index(self, key: str, index: int) -> Optional[str]:
        value = self.client.lindex(key, index)
        return None if value is None else _text(value)

    def get(self, key: str) -> Optional[bytes]:
        return _raw(self.client.get(key))

    def set(self, key: str, value: bytes | str | int, ttl_seconds: Optional[int] = None) -> None:
        self.client.set(key, value, ex=ttl_seconds)

    def incr(self, key: str) -> int:
        return int(self.client.incr(key))

    def expire(self, key: str, ttl_seconds: int) -> bool:
        return bool(self.client.expire(key, ttl_seconds))

    def ttl(self, key: str) -> Optional[int]:
        remaining = self.client.ttl(key)
        if remaining is None or remaining < 0:
            return None
        return int(remaining)

    def exists(self, key: str) -> bool:
        return bool(self.client.exists(key))

    def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(self.client.delete(*keys))

    def keys(self, pattern: str) -> list[str]:
        return [_text(k) for k in self.client.scan_iter(match=pattern)]

    def ping(self) -> bool:
        return bool(self.client.ping())
