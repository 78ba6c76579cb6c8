"""In-memory store with TTL, intended for development and tests."""

import fnmatch
import threading
import time
from typing import Any, Callable, Optional, Sequence

from animal_feed.store.base import KeyValueStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="store/in_memory_store")


def _redis_slice(items: list, start: int, end: int) -> list:
    """Apply LRANGE index rules to a Python list."""
    n = len(items)
    if start < 0:
        start = max(n + start, 0)
    if end < 0:
        end = n + end
    if start >= n or start > end:
        return []
    return items[start:end + 1]


def _to_bytes(value: bytes | str | int) -> bytes:
    if isinstance(value, bytes):
        return value
    return str(value).encode("utf-8")


class InMemoryStore(KeyValueStore):
    """Thread-safe, TTL-aware store mimicking the Redis commands we use (dev/test)."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        logger.debug("Initializing InMemoryStore")
        self._clock = clock
        self._data: dict[str, Any] = {}
        self._expires: dict[str, float] = {}
        self._lock = threading.RLock()

    def _purge_if_expired(self, key: str) -> None:
        exp = self._expires.get(key)
        if exp is not None and exp <= self._clock():
            self._data.pop(key, None)
            self._expires.pop(key, None)

    def _live(self, key: str) -> Any:
        self._purge_if_expired(key)
        return self._data.get(key)

    def _list(self, key: str, create: bool = False) -> Optional[list[str]]:
        value = self._live(key)
        if value is None:
            if not create:
                return None
            value = []
            self._data[key] = value
        if not isinstance(value, list):
            raise TypeError(f"WRONGTYPE key {key} does not hold a list")
        return value

    def list_range(self, key: str, start: int, end: int) -> list[str]:
        with self._lock:
            items = self._list(key)
            return list(_redis_slice(items, start, end)) if items else []

    def list_push_left(self, key: str, value: str) -> int:
        with self._lock:
            items = self._list(key, create=True)
            items.insert(0, value)
            return len(items)

    def list_push_right_all(self, key: str, values: Sequence[str]) -> int:
        with self._lock:
            if not values:
                return len(self._list(key) or [])
            items = self._list(key, create=True)
            items.extend(values)
            return len(items)

    def list_trim(self, key: str, start: int, end: int) -> None:
        with self._lock:
            items = self._list(key)
            if items is None:
                return
            kept = _redis_slice(items, start, end)
            if kept:
                self._data[key] = list(kept)
            else:
                self._data.pop(key, None)
                self._expires.pop(key, None)

    def list_size(self, key: str) -> int:
        with self._lock:
            return len(self._list(key) or [])

    def list_index(self, key: str, index: int) -> Optional[str]:
        with self._lock:
            items = self._list(key) or []
            try:
                return items[index]
            except IndexError:
                return None

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            value = self._live(key)
            if value is None:
                return None
            if isinstance(value, list):
                raise TypeError(f"WRONGTYPE key {key} holds a list")
            return value

    def set(self, key: str, value: bytes | str | int, ttl_seconds: Optional[int] = None) -> None:
        with self._lock:
            self._data[key] = _to_bytes(value)
            if ttl_seconds is None:
                self._expires.pop(key, None)
            else:
                self._expires[key] = self._clock() + ttl_seconds

    def incr(self, key: str) -> int:
        with self._lock:
            current = self.get(key)
            new_value = int(current) + 1 if current is not None else 1
            # INCR keeps an existing TTL
            self._data[key] = _to_bytes(new_value)
            return new_value

    def expire(self, key: str, ttl_seconds: int) -> bool:
        with self._lock:
            if self._live(key) is None:
                return False
            self._expires[key] = self._clock() + ttl_seconds
            return True

    def ttl(self, key: str) -> Optional[int]:
        with self._lock:
            if self._live(key) is None:
                return None
            exp = self._expires.get(key)
            if exp is None:
                return None
            return max(0, int(round(exp - self._clock())))

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live(key) is not None

    def delete(self, *keys: str) -> int:
        with self._lock:
            removed = 0
            for key in keys:
                if self._live(key) is not None:
                    removed += 1
                self._data.pop(key, None)
                self._expires.pop(key, None)
            return removed

    def keys(self, pattern: str) -> list[str]:
        with self._lock:
            for key in list(self._data):
                self._purge_if_expired(key)
            return [k for k in self._data if fnmatch.fnmatchcase(k, pattern)]

    def ping(self) -> bool:
        return True

    def clear(self) -> None:
        """Drop every key (tests)."""
        with self._lock:
            self._data.clear()
            self._expires.clear()
