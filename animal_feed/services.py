"""Builds and runs the service graph from Settings."""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import redis

from .catalog import IMAGE_URLS, load_catalog
from .channel import InMemoryChannel, MessageChannel, RedisStreamChannel
from .config import Settings
from .consumer import FeedConsumer, FeedConsumerWorker
from .daily_cache import DailyCacheScheduler
from .feed_cache import BoundedFeedCache
from .feed_service import FeedService
from .image_downloader import ImageDownloader
from .image_pool import ImagePoolService
from .producer import StreamProducer
from .scheduler import DAILY_REFRESH_JOB_ID, PRODUCER_JOB_ID, STARTUP_CHECK_JOB_ID, JobScheduler
from .store import InMemoryStore, KeyValueStore, RedisStore
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="services")


@dataclass
class FeedServices:
    """Everything the API and the background jobs need, wired to one store."""
    settings: Settings
    store: KeyValueStore
    channel: MessageChannel
    feed_cache: BoundedFeedCache
    image_pool: ImagePoolService
    producer: StreamProducer
    consumer: FeedConsumer
    worker: FeedConsumerWorker
    daily_cache: DailyCacheScheduler
    feed_service: FeedService
    scheduler: JobScheduler


def _init_backends(settings: Settings) -> tuple[KeyValueStore, MessageChannel]:
    """Connect to Redis if configured; otherwise (or on failure) run in-process."""
    logger.debug(
        f"Initializing store: redis_url='{mask_url(settings.redis_url) if settings.redis_url else 'None'}'"
    )
    if settings.redis_url:
        try:
            client = redis.Redis.from_url(settings.redis_url)
            client.ping()
            logger.info("Using Redis store and stream channel", extra={"redis_url": mask_url(settings.redis_url)})
            channel = RedisStreamChannel(
                client,
                stream=settings.topic,
                group=settings.consumer_group,
                maxlen=settings.stream_maxlen,
            )
            return RedisStore(client), channel
        except Exception as exc:
            logger.warning("Falling back to in-memory store (Redis unavailable)", extra={"error": str(exc)})
    return InMemoryStore(), InMemoryChannel()


def build_services(
    settings: Settings,
    store: Optional[KeyValueStore] = None,
    channel: Optional[MessageChannel] = None,
    downloader: Optional[ImageDownloader] = None,
    today: Optional[Callable[[], date]] = None,
) -> FeedServices:
    """Wire every component. Tests pass their own store/channel/downloader."""
    if store is None or channel is None:
        default_store, default_channel = _init_backends(settings)
        store = store or default_store
        channel = channel or default_channel

    tz = ZoneInfo(settings.scheduler_timezone)
    today = today or (lambda: datetime.now(tz).date())
    catalog = load_catalog(settings.image_catalog_path) if settings.image_catalog_path else IMAGE_URLS

    feed_cache = BoundedFeedCache(
        store,
        settings.feed_key,
        max_size=settings.feed_max_size,
        trusted_types=settings.trusted_event_types,
    )
    image_pool = ImagePoolService(store, settings.pool_key, catalog=catalog, feed_cache=feed_cache)
    producer = StreamProducer(channel, image_pool, publish_timeout_seconds=settings.publish_timeout_seconds)
    consumer = FeedConsumer(
        store,
        feed_cache,
        settings.stats_key_prefix,
        trusted_types=settings.trusted_event_types,
        today=today,
    )
    worker = FeedConsumerWorker(
        channel,
        consumer,
        consumer_name=settings.consumer_name,
        concurrency=settings.consumer_concurrency,
        block_ms=settings.consumer_poll_block_ms,
    )
    downloader = downloader or ImageDownloader(
        connect_timeout=settings.download_connect_timeout,
        read_timeout=settings.download_read_timeout,
        user_agent=settings.download_user_agent,
        max_bytes=settings.max_image_size_bytes,
    )
    daily_cache = DailyCacheScheduler(
        store,
        image_pool,
        downloader,
        cache_size=settings.daily_cache_size,
        max_image_bytes=settings.max_image_size_bytes,
        ttl_hours=settings.daily_cache_ttl_hours,
        delay_seconds=settings.download_delay_ms / 1000.0,
        timezone=settings.scheduler_timezone,
        today=today,
    )
    return FeedServices(
        settings=settings,
        store=store,
        channel=channel,
        feed_cache=feed_cache,
        image_pool=image_pool,
        producer=producer,
        consumer=consumer,
        worker=worker,
        daily_cache=daily_cache,
        feed_service=FeedService(feed_cache, default_page_size=settings.batch_size),
        scheduler=JobScheduler(timezone=settings.scheduler_timezone),
    )


def register_jobs(services: FeedServices) -> None:
    """Register producer tick, midnight refresh and the startup check."""
    settings = services.settings
    services.scheduler.add_interval_job(
        PRODUCER_JOB_ID, services.producer.stream_random_image, settings.streaming_interval_ms
    )
    services.scheduler.add_daily_job(DAILY_REFRESH_JOB_ID, services.daily_cache.refresh_daily_image_cache)
    services.scheduler.add_one_shot_job(
        STARTUP_CHECK_JOB_ID, services.daily_cache.initialize_today_cache, settings.startup_check_delay_seconds
    )


def start_services(services: FeedServices) -> None:
    """Initialize the pool, start consuming and, if enabled, start the scheduler."""
    services.image_pool.initialize_image_pool()
    services.worker.start()
    if services.settings.scheduler_enabled:
        register_jobs(services)
        services.scheduler.start()
    else:
        logger.info("Scheduler disabled; producer and daily refresh run only on demand")


def stop_services(services: FeedServices) -> None:
    services.daily_cache.cancel()
    services.scheduler.shutdown(wait=False)
    services.worker.stop()
    services.channel.close()
    services.daily_cache.downloader.close()
