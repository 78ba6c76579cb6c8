"""Shared protocol for the key-value/list store every component is handed."""

from typing import Optional, Protocol, Sequence


class KeyValueStore(Protocol):
    """Subset of Redis semantics the feed pipeline relies on.

    List values are text; scalar values come back as bytes. Index arguments
    follow LRANGE/LTRIM rules (inclusive, negative counts from the tail).
    """

    def list_range(self, key: str, start: int, end: int) -> list[str]:
        """Return the inclusive slice of a list, or [] if absent/out of range."""

    def list_push_left(self, key: str, value: str) -> int:
        """Prepend a value and return the new length."""

    def list_push_right_all(self, key: str, values: Sequence[str]) -> int:
        """Append all values in order and return the new length."""

    def list_trim(self, key: str, start: int, end: int) -> None:
        """Keep only the inclusive range of a list."""

    def list_size(self, key: str) -> int:
        """Return list length, 0 if the key is absent."""

    def list_index(self, key: str, index: int) -> Optional[str]:
        """Return the element at index, or None."""

    def get(self, key: str) -> Optional[bytes]:
        """Return a scalar value, or None."""

    def set(self, key: str, value: bytes | str | int, ttl_seconds: Optional[int] = None) -> None:
        """Store a scalar value, replacing any previous value and TTL."""

    def incr(self, key: str) -> int:
        """Increment a counter (created at 0) and return the new value."""

    def expire(self, key: str, ttl_seconds: int) -> bool:
        """Set a TTL on an existing key."""

    def ttl(self, key: str) -> Optional[int]:
        """Remaining TTL in seconds, or None if the key is absent or persistent."""

    def exists(self, key: str) -> bool:
        """Return True if the key exists."""

    def delete(self, *keys: str) -> int:
        """Delete keys and return how many existed."""

    def keys(self, pattern: str) -> list[str]:
        """Return keys matching a glob-style pattern."""

    def ping(self) -> bool:
        """Return True if the backend is reachable."""
