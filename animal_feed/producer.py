"""Publishes ImageEvents onto the message channel."""

from concurrent.futures import Future
from typing import Iterable, Optional

from .channel import MessageChannel
from .errors import PublishError
from .image_pool import ImagePoolService
from .models import ImageEvent
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="stream_producer")


class StreamProducer:
    """Draws random images from the pool and streams them to the channel."""

    def __init__(
        self,
        channel: MessageChannel,
        image_pool: ImagePoolService,
        publish_timeout_seconds: float = 10.0,
    ) -> None:
        self.channel = channel
        self.image_pool = image_pool
        self.publish_timeout_seconds = publish_timeout_seconds

    @staticmethod
    def _log_outcome(event_id: str, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Streaming %s failed: %s", event_id, exc)
        else:
            logger.debug("Streamed %s as %s", event_id, future.result())

    def stream_random_image(self) -> Optional[Future]:
        """
        Scheduled tick: publish one event for a random pool URL.

        Fire-and-forget. The outcome is only logged, there is no retry, and
        nothing raised here escapes to the scheduler.
        """
        try:
            image_url = self.image_pool.get_random_image_url()
            if not image_url:
                logger.warning("No image available in the pool; the pool may need a refresh")
                return None
            event = ImageEvent(image_url=image_url)
            future = self.channel.send(event.id, event.to_payload())
            future.add_done_callback(lambda f: self._log_outcome(event.id, f))
            return future
        except Exception:
            logger.exception("Unexpected error while streaming a random image")
            return None

    def stream_image(self, image_url: str) -> str:
        """Publish one event for `image_url` and wait for it; raises PublishError on failure."""
        event = ImageEvent(image_url=image_url)
        try:
            future = self.channel.send(event.id, event.to_payload())
            future.result(timeout=self.publish_timeout_seconds)
        except Exception as exc:
            logger.error("Manual streaming failed for %s: %s", image_url, exc)
            raise PublishError(f"Failed to publish {image_url}: {exc}", event_id=event.id) from exc
        logger.info("Manually streamed %s", event.id)
        return event.id

    def stream_image_batch(self, image_urls: Iterable[str]) -> list[str]:
        """Publish each URL independently; return ids of the ones that succeeded."""
        image_urls = list(image_urls)
        streamed_ids: list[str] = []
        for image_url in image_urls:
            try:
                streamed_ids.append(self.stream_image(image_url))
            except PublishError:
                logger.error("Batch streaming skipped %s", image_url)
        logger.info("Batch streaming finished: %d/%d", len(streamed_ids), len(image_urls))
        return streamed_ids
