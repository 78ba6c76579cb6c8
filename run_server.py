import os

import uvicorn

from animal_feed.config import settings
from utils.logging_utils import get_tagged_logger, mask_url, setup_logging

logger = get_tagged_logger(__name__, tag="server")


def log_startup_config() -> None:
    """Log the settings that decide which backends the service talks to."""
    if settings.redis_url:
        logger.info("Redis backend: %s (stream=%s, group=%s)",
                    mask_url(settings.redis_url), settings.topic, settings.consumer_group)
    else:
        logger.warning("FEED_REDIS_URL not set; running with the in-memory store and channel")
    logger.info("Feed key=%s max=%d, producer every %dms",
                settings.feed_key, settings.feed_max_size, settings.streaming_interval_ms)


if __name__ == "__main__":
    setup_logging(level=settings.log_level, job_name="animal_feed")
    log_startup_config()

    uvicorn.run(
        "animal_feed.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8080)),
        reload=False,
    )
