"""Message channel carrying serialized ImageEvents from producer to consumer.

Production uses a Redis Stream with a consumer group; development and tests
use an in-process queue with the same interface.
"""

import itertools
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Protocol

from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="channel")


@dataclass(frozen=True)
class ChannelMessage:
    """One delivered message: broker id, partition key (event id) and JSON payload."""
    message_id: str
    key: str
    payload: str


class MessageChannel(Protocol):
    """Publish/consume interface shared by channel backends."""

    def send(self, key: str, payload: str) -> Future:
        """Publish asynchronously; the future resolves to the broker message id."""

    def poll(self, consumer_name: str, max_messages: int = 1, block_ms: int = 1000) -> list[ChannelMessage]:
        """Return the next delivered messages, acknowledged on delivery."""

    def close(self) -> None:
        """Release background resources."""


def _text(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class RedisStreamChannel(MessageChannel):
    """Redis Streams channel: XADD to publish, XREADGROUP with NOACK to consume."""

    def __init__(
        self,
        client,
        stream: str,
        group: str,
        *,
        maxlen: int = 10000,
        publish_workers: int = 2,
    ) -> None:
        self.client = client
        self.stream = stream
        self.group = group
        self.maxlen = maxlen
        self._executor = ThreadPoolExecutor(max_workers=publish_workers, thread_name_prefix="feed-publish")
        self._group_ready = False
        self._group_lock = threading.Lock()

    def _xadd(self, key: str, payload: str) -> str:
        msg_id = self.client.xadd(
            self.stream,
            {"key": key, "payload": payload},
            maxlen=self.maxlen,
            approximate=True,
        )
        logger.debug("Stream add: %s -> %s", self.stream, _text(msg_id))
        return _text(msg_id)

    def send(self, key: str, payload: str) -> Future:
        return self._executor.submit(self._xadd, key, payload)

    def ensure_group(self) -> None:
        """Create the consumer group (and stream) if missing."""
        with self._group_lock:
            if self._group_ready:
                return
            try:
                # "0" so events published before the group existed are still consumed
                self.client.xgroup_create(self.stream, self.group, id="0", mkstream=True)
                logger.info("Created consumer group %s on %s", self.group, self.stream)
            except Exception as exc:
                if "BUSYGROUP" not in str(exc):
                    raise
            self._group_ready = True

    def poll(self, consumer_name: str, max_messages: int = 1, block_ms: int = 1000) -> list[ChannelMessage]:
        self.ensure_group()
        try:
            result = self.client.xreadgroup(
                self.group,
                consumer_name,
                {self.stream: ">"},
                count=max_messages,
                block=block_ms or None,
                noack=True,
            )
        except Exception as exc:
            if "NOGROUP" in str(exc):
                # stream was deleted underneath us; recreate on next poll
                self._group_ready = False
            raise

        messages: list[ChannelMessage] = []
        for _stream, entries in result or []:
            for msg_id, fields in entries:
                decoded = {_text(k): _text(v) for k, v in (fields or {}).items()}
                messages.append(
                    ChannelMessage(
                        message_id=_text(msg_id),
                        key=decoded.get("key", ""),
                        payload=decoded.get("payload", ""),
                    )
                )
        return messages

    def close(self) -> None:
        self._executor.shutdown(wait=False)


class InMemoryChannel(MessageChannel):
    """Single-process queue channel (dev/test). Publishes complete immediately."""

    def __init__(self) -> None:
        self._queue: "queue.Queue[ChannelMessage]" = queue.Queue()
        self._ids = itertools.count(1)

    def send(self, key: str, payload: str) -> Future:
        future: Future = Future()
        message = ChannelMessage(message_id=f"{next(self._ids)}-0", key=key, payload=payload)
        self._queue.put(message)
        future.set_result(message.message_id)
        return future

    def poll(self, consumer_name: str, max_messages: int = 1, block_ms: int = 1000) -> list[ChannelMessage]:
        messages: list[ChannelMessage] = []
        try:
            messages.append(self._queue.get(timeout=max(block_ms, 0) / 1000.0))
        except queue.Empty:
            return messages
        while len(messages) < max_messages:
            try:
                messages.append(self._queue.get_nowait())
            except queue.Empty:
                break
        return messages

    def pending(self) -> int:
        """Number of published but undelivered messages."""
        return self._queue.qsize()

    def close(self) -> None:
        return None
