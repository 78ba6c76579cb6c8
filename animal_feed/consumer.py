"""Applies channel events to the bounded feed and keeps streaming stats."""

import threading
from datetime import date
from typing import Callable, Iterable, Optional

from .channel import ChannelMessage, MessageChannel
from .errors import EventValidationError
from .feed_cache import BoundedFeedCache
from .models import EVENT_TYPE, ImageEvent, decode_event
from .store import KeyValueStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="feed_consumer")

ITEM_CACHE_TTL_SECONDS = 24 * 60 * 60
DAILY_STATS_TTL_SECONDS = 7 * 24 * 60 * 60


class FeedConsumer:
    """Validates incoming events and pushes them onto the feed."""

    def __init__(
        self,
        store: KeyValueStore,
        feed_cache: BoundedFeedCache,
        stats_key_prefix: str,
        trusted_types: Iterable[str] = (EVENT_TYPE,),
        today: Optional[Callable[[], date]] = None,
    ) -> None:
        self.store = store
        self.feed_cache = feed_cache
        self.stats_key_prefix = stats_key_prefix
        self.trusted_types = tuple(trusted_types)
        self._today = today or date.today

    def today_stats_key(self) -> str:
        return f"{self.stats_key_prefix}:streamed:{self._today().isoformat()}"

    def total_stats_key(self) -> str:
        return f"{self.stats_key_prefix}:total-streamed"

    def handle_message(self, message: ChannelMessage) -> bool:
        """Decode a delivered message and apply it. Never raises."""
        try:
            event = decode_event(message.payload, self.trusted_types)
        except EventValidationError as exc:
            logger.warning("Dropping undecodable message %s: %s", message.message_id, exc)
            return False
        try:
            return self.handle_event(event)
        except Exception:
            logger.exception("Failed to process event %s", event.id)
            return False

    def handle_event(self, event: ImageEvent) -> bool:
        """
        Push a valid event onto the feed, cache it individually and count it.

        Invalid events are dropped and not counted. If the feed push fails the
        event is neither cached nor counted. Counter failures are contained and
        do not undo the push.
        """
        logger.debug("Received image event %s", event.id)
        if not event.is_valid():
            logger.warning("Dropping invalid event: id=%r imageUrl=%r", event.id, event.image_url)
            return False

        if not self.feed_cache.push(event):
            return False
        self.feed_cache.set_individual_cache(event, ITEM_CACHE_TTL_SECONDS)
        self._update_daily_stats()
        logger.debug("Added %s to the feed", event.id)
        return True

    def _update_daily_stats(self) -> None:
        today_key = self.today_stats_key()
        try:
            self.store.incr(today_key)
            self.store.expire(today_key, DAILY_STATS_TTL_SECONDS)
        except Exception as exc:
            logger.error("Failed to update daily stream count: %s", exc)
        try:
            self.store.incr(self.total_stats_key())
        except Exception as exc:
            logger.error("Failed to update total stream count: %s", exc)

    def _read_counter(self, key: str) -> int:
        try:
            raw = self.store.get(key)
            return int(raw) if raw is not None else 0
        except Exception as exc:
            logger.error("Failed to read counter %s: %s", key, exc)
            return 0

    def get_current_feed_size(self) -> int:
        return self.feed_cache.size()

    def get_today_stream_count(self) -> int:
        return self._read_counter(self.today_stats_key())

    def get_total_stream_count(self) -> int:
        return self._read_counter(self.total_stats_key())


class FeedConsumerWorker:
    """Background threads polling the channel and handing messages to a FeedConsumer.

    Messages are acknowledged on delivery, so an event in flight when the
    process dies is not redelivered.
    """

    def __init__(
        self,
        channel: MessageChannel,
        consumer: FeedConsumer,
        consumer_name: str = "feed-consumer",
        concurrency: int = 1,
        block_ms: int = 1000,
        error_backoff_seconds: float = 1.0,
    ) -> None:
        self.channel = channel
        self.consumer = consumer
        self.consumer_name = consumer_name
        self.concurrency = concurrency
        self.block_ms = block_ms
        self.error_backoff_seconds = error_backoff_seconds
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def run_once(self, consumer_name: Optional[str] = None) -> int:
        """Poll once and process whatever arrives; returns the number of messages handled."""
        messages = self.channel.poll(consumer_name or self.consumer_name, max_messages=1, block_ms=self.block_ms)
        for message in messages:
            self.consumer.handle_message(message)
        return len(messages)

    def _run(self, consumer_name: str) -> None:
        logger.info("Consumer %s started", consumer_name)
        while not self._stop.is_set():
            try:
                self.run_once(consumer_name)
            except Exception as exc:
                logger.error("Channel poll failed for %s: %s", consumer_name, exc)
                self._stop.wait(self.error_backoff_seconds)
        logger.info("Consumer %s stopped", consumer_name)

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._threads = []
        for i in range(self.concurrency):
            name = self.consumer_name if self.concurrency == 1 else f"{self.consumer_name}-{i + 1}"
            thread = threading.Thread(target=self._run, args=(name,), name=name, daemon=True)
            thread.start()
            self._threads.append(thread)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = []
