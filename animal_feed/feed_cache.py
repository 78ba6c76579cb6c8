"""Capped, newest-first feed list kept in the shared store."""

from typing import Iterable

from .models import EVENT_TYPE, ImageEvent, decode_event
from .errors import EventValidationError
from .store import KeyValueStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="feed_cache")

ITEM_KEY_PREFIX = "animal"


class BoundedFeedCache:
    """
    Newest-first list of ImageEvents bounded to `max_size` entries.

    Every push is followed by a trim to [0, max_size - 1]. The two calls are
    not atomic, so with several writers the list can briefly hold more than
    `max_size` entries; the service runs a single consumer.

    Store failures never escape this class: reads degrade to [] / 0 and writes
    return False after logging.
    """

    def __init__(
        self,
        store: KeyValueStore,
        feed_key: str,
        max_size: int = 1000,
        trusted_types: Iterable[str] = (EVENT_TYPE,),
    ) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.store = store
        self.feed_key = feed_key
        self.max_size = max_size
        self.trusted_types = tuple(trusted_types)

    @staticmethod
    def item_key(event_id: str) -> str:
        return f"{ITEM_KEY_PREFIX}:{event_id}"

    def push(self, event: ImageEvent) -> bool:
        """Prepend an event and trim the list back to max_size."""
        try:
            self.store.list_push_left(self.feed_key, event.to_payload())
            self.store.list_trim(self.feed_key, 0, self.max_size - 1)
        except Exception as exc:
            logger.error("Failed to push %s onto feed %s: %s", event.id, self.feed_key, exc)
            return False
        logger.debug("Pushed %s onto feed %s", event.id, self.feed_key)
        return True

    def range(self, start: int, end: int) -> list[ImageEvent]:
        """Return events at inclusive positions [start, end], newest first."""
        if start < 0 or end < start:
            return []
        try:
            raw_items = self.store.list_range(self.feed_key, start, end)
        except Exception as exc:
            logger.error("Failed to read feed range %d..%d: %s", start, end, exc)
            return []

        events: list[ImageEvent] = []
        for raw in raw_items:
            try:
                events.append(decode_event(raw, self.trusted_types))
            except EventValidationError as exc:
                logger.warning("Skipping unreadable feed entry: %s", exc)
        return events

    def size(self) -> int:
        try:
            return self.store.list_size(self.feed_key)
        except Exception as exc:
            logger.error("Failed to read feed size: %s", exc)
            return 0

    def set_individual_cache(self, event: ImageEvent, ttl_seconds: int) -> bool:
        """Cache a single event under animal:<id>."""
        try:
            self.store.set(self.item_key(event.id), event.to_payload(), ttl_seconds=ttl_seconds)
        except Exception as exc:
            logger.error("Failed to cache event %s: %s", event.id, exc)
            return False
        return True

    def get_individual(self, event_id: str) -> ImageEvent | None:
        try:
            raw = self.store.get(self.item_key(event_id))
        except Exception as exc:
            logger.error("Failed to read cached event %s: %s", event_id, exc)
            return None
        if raw is None:
            return None
        try:
            return decode_event(raw, self.trusted_types)
        except EventValidationError as exc:
            logger.warning("Cached event %s is unreadable: %s", event_id, exc)
            return None

    def clear(self) -> bool:
        try:
            self.store.delete(self.feed_key)
        except Exception as exc:
            logger.error("Failed to clear feed %s: %s", self.feed_key, exc)
            return False
        return True
