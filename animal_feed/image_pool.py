"""Lifecycle of the image URL pool cached in the shared store."""

import random
from typing import Any, Optional, Sequence

from .catalog import IMAGE_URLS
from .feed_cache import BoundedFeedCache
from .store import KeyValueStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="image_pool")

POOL_TTL_SECONDS = 24 * 60 * 60


class ImagePoolService:
    """Keeps the pool key populated from the catalog and samples from it."""

    def __init__(
        self,
        store: KeyValueStore,
        pool_key: str,
        catalog: Sequence[str] = IMAGE_URLS,
        feed_cache: Optional[BoundedFeedCache] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.store = store
        self.pool_key = pool_key
        self.catalog = tuple(catalog)
        self.feed_cache = feed_cache
        self._rng = rng or random.Random()

    def initialize_image_pool(self) -> None:
        """Populate the pool on startup if it is absent or empty."""
        try:
            pool_size = self.store.list_size(self.pool_key)
        except Exception as exc:
            logger.warning("Store unreachable during pool init; running on the local catalog: %s", exc)
            return
        if pool_size == 0:
            logger.info("Initializing image pool %s", self.pool_key)
            self.refresh_image_pool()
        else:
            logger.info("Found existing image pool with %d URLs", pool_size)

    def refresh_image_pool(self) -> bool:
        """Replace the pool with the full catalog and reset its 24h TTL."""
        if not self.catalog:
            logger.warning("No image URLs configured; pool left untouched")
            return False
        try:
            self.store.delete(self.pool_key)
            self.store.list_push_right_all(self.pool_key, list(self.catalog))
            self.store.expire(self.pool_key, POOL_TTL_SECONDS)
        except Exception as exc:
            logger.error("Failed to refresh image pool: %s", exc)
            return False
        logger.info("Image pool refreshed with %d URLs", len(self.catalog))
        return True

    def _pick(self, pool_size: int) -> Optional[str]:
        index = self._rng.randrange(pool_size)
        return self.store.list_index(self.pool_key, index)

    def _catalog_fallback(self) -> Optional[str]:
        if not self.catalog:
            return None
        return self._rng.choice(self.catalog)

    def get_random_image_url(self) -> Optional[str]:
        """
        Return a uniformly random URL from the pool.

        An empty pool triggers one refresh and one retry. If the pool is still
        empty, or the store cannot be reached, a URL is drawn from the local
        catalog instead. Never raises; returns None only when there is
        nothing to draw from at all.
        """
        try:
            pool_size = self.store.list_size(self.pool_key)
            if pool_size == 0:
                logger.warning("Image pool is empty; refreshing")
                self.refresh_image_pool()
                pool_size = self.store.list_size(self.pool_key)
            if pool_size > 0:
                url = self._pick(pool_size)
                if url:
                    return url
        except Exception as exc:
            logger.error("Failed to draw a random image URL: %s", exc)
        return self._catalog_fallback()

    def get_all_urls(self) -> list[str]:
        """Return the pool contents in order, or the catalog if the pool is unavailable."""
        try:
            urls = self.store.list_range(self.pool_key, 0, -1)
        except Exception as exc:
            logger.error("Failed to read image pool: %s", exc)
            urls = []
        if not urls:
            return list(self.catalog)
        return urls

    def get_cache_stats(self) -> dict[str, Any]:
        """Pool/feed sizes and store connectivity, for the admin stats endpoint."""
        try:
            pool_size = self.store.list_size(self.pool_key)
            feed_size = self.store.list_size(self.feed_cache.feed_key) if self.feed_cache else 0
            return {
                "imagePoolSize": pool_size,
                "feedSize": feed_size,
                "configuredImages": len(self.catalog),
                "isRedisConnected": True,
            }
        except Exception as exc:
            return {
                "imagePoolSize": 0,
                "feedSize": 0,
                "configuredImages": len(self.catalog),
                "isRedisConnected": False,
                "error": str(exc),
            }

    def clear_cache(self) -> bool:
        """Delete the pool and feed keys (dev/testing)."""
        keys = [self.pool_key]
        if self.feed_cache:
            keys.append(self.feed_cache.feed_key)
        try:
            self.store.delete(*keys)
        except Exception as exc:
            logger.error("Failed to clear caches: %s", exc)
            return False
        logger.info("Cleared caches: %s", ", ".join(keys))
        return True
