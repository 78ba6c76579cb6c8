"""Read side of the feed: pagination for clients."""

from .feed_cache import BoundedFeedCache
from .models import FeedEntry, FeedPage
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="feed_service")

MAX_PAGE_SIZE = 100


def validate_page_params(page: int, size: int) -> bool:
    """page >= 0 and 1 <= size <= MAX_PAGE_SIZE."""
    return page >= 0 and 0 < size <= MAX_PAGE_SIZE


class FeedService:
    """Turns feed cache slices into FeedPage responses."""

    def __init__(self, feed_cache: BoundedFeedCache, default_page_size: int = 20) -> None:
        self.feed_cache = feed_cache
        self.default_page_size = default_page_size

    def get_animal_feed(self, page: int, size: int | None = None) -> FeedPage:
        """Return page `page` of the feed; degrades to an empty page on any failure."""
        size = size or self.default_page_size
        try:
            start = page * size
            end = start + size - 1
            events = self.feed_cache.range(start, end)
            images = [FeedEntry.from_event(e) for e in events]
            total = self.feed_cache.size()
            has_next = (start + size) < total
            logger.debug("Feed page=%d size=%d returned %d images, has_next=%s", page, size, len(images), has_next)
            return FeedPage(
                images=images,
                page=page,
                size=size,
                total_elements=total,
                has_next=has_next,
                is_empty=not images,
            )
        except Exception:
            logger.exception("Failed to read feed page=%d size=%d", page, size)
            return FeedPage.empty(page, size)

    def get_latest_images(self, limit: int = 10) -> list[FeedEntry]:
        """Newest `limit` images without paging metadata."""
        if limit <= 0:
            return []
        try:
            return [FeedEntry.from_event(e) for e in self.feed_cache.range(0, limit - 1)]
        except Exception:
            logger.exception("Failed to read latest images")
            return []
