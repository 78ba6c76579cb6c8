"""Deterministic daily rotation of cached image binaries.

Each calendar day a fixed-size subset of the image pool is chosen with a
PRNG seeded from the date string, so every process (and every re-run on the
same day) picks the same images. The selection is stored under
`daily_images:<date>` and each image's bytes under
`image_data:<date>:<imageId>`, both with a 25h TTL.
"""

import random
import threading
import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Sequence
from urllib.parse import urlparse
from zoneinfo import ZoneInfo

from .image_downloader import ImageDownloader
from .image_pool import ImagePoolService
from .store import KeyValueStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="daily_cache")

DAILY_CACHE_SIZE = 100
MAX_IMAGE_SIZE_BYTES = 2_097_152
CACHE_TTL_HOURS = 25
DAILY_IMAGES_KEY_PREFIX = "daily_images"
IMAGE_DATA_KEY_PREFIX = "image_data"
PROGRESS_EVERY = 10


@dataclass
class RefreshReport:
    """Outcome of one refresh cycle."""
    date: str
    selected: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False
    error: Optional[str] = None


def date_seed(value: str) -> int:
    """Stable 32-bit signed string hash (s[0]*31^(n-1) + ... + s[n-1]).

    Python's built-in hash() is salted per process, so it cannot be used to
    seed a selection that must match across processes and restarts.
    """
    h = 0
    for ch in value:
        h = (31 * h + ord(ch)) & 0xFFFFFFFF
    return h - (1 << 32) if h & 0x80000000 else h


def select_today_images(day: str, urls: Sequence[str], size: int = DAILY_CACHE_SIZE) -> list[str]:
    """Shuffle `urls` with a PRNG seeded from `day` and return the first `size`.

    Pools smaller than `size` are returned whole, in shuffled order.
    """
    shuffled = list(urls)
    random.Random(date_seed(day)).shuffle(shuffled)
    return shuffled[:size]


def extract_image_id(image_url: str) -> str:
    """Last path segment of the URL without its extension."""
    path = urlparse(image_url).path or image_url
    name = path.rstrip("/").rsplit("/", 1)[-1]
    stem, dot, _ext = name.rpartition(".")
    return stem if dot and stem else name


def format_bytes(size: int) -> str:
    if size >= 1024 * 1024:
        return f"{size / (1024.0 * 1024.0):.1f} MB"
    if size >= 1024:
        return f"{size / 1024.0:.1f} KB"
    return f"{size} B"


def daily_images_key(day: str) -> str:
    return f"{DAILY_IMAGES_KEY_PREFIX}:{day}"


def image_data_key(day: str, image_id: str) -> str:
    return f"{IMAGE_DATA_KEY_PREFIX}:{day}:{image_id}"


class DailyCacheScheduler:
    """Runs the daily refresh cycle; scheduling itself lives in JobScheduler."""

    def __init__(
        self,
        store: KeyValueStore,
        image_pool: ImagePoolService,
        downloader: ImageDownloader,
        *,
        cache_size: int = DAILY_CACHE_SIZE,
        max_image_bytes: int = MAX_IMAGE_SIZE_BYTES,
        ttl_hours: int = CACHE_TTL_HOURS,
        delay_seconds: float = 0.1,
        timezone: str = "Asia/Seoul",
        today: Optional[Callable[[], date]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.image_pool = image_pool
        self.downloader = downloader
        self.cache_size = cache_size
        self.max_image_bytes = max_image_bytes
        self.ttl_seconds = ttl_hours * 60 * 60
        self.delay_seconds = delay_seconds
        self.tz = ZoneInfo(timezone)
        self._today = today or (lambda: datetime.now(self.tz).date())
        self._sleep = sleep
        self._cancel = threading.Event()
        self._run_lock = threading.Lock()

    def today(self) -> date:
        return self._today()

    def cancel(self) -> None:
        """Ask a running refresh to stop before its next image."""
        self._cancel.set()

    def initialize_today_cache(self) -> Optional[RefreshReport]:
        """Startup check: refresh only if today's selection is missing."""
        day = self.today().isoformat()
        key = daily_images_key(day)
        try:
            exists = self.store.exists(key)
        except Exception as exc:
            logger.error("Could not check daily cache %s: %s", key, exc)
            return None
        if not exists:
            logger.info("No image cache for %s yet; building it now", day)
            return self.refresh_daily_image_cache()
        try:
            cached = self.store.list_size(key)
        except Exception as exc:
            logger.warning("Could not read daily cache size: %s", exc)
            cached = 0
        logger.info("Daily image cache for %s already present: %d images", day, cached)
        return None

    def refresh_daily_image_cache(self) -> RefreshReport:
        """
        Full refresh for today: purge yesterday, select, persist, download.

        Shared by the midnight job and the admin trigger. Re-running on the
        same date reproduces the same selection and overwrites the same
        image_data keys. Unexpected errors end the cycle and are logged.
        """
        today = self.today()
        day = today.isoformat()
        report = RefreshReport(date=day)
        with self._run_lock:
            self._cancel.clear()
            logger.info("[%s] Daily image cache refresh started", day)
            try:
                self.clear_previous_day_cache(today)
                selected = select_today_images(day, self.image_pool.get_all_urls(), self.cache_size)
                report.selected = len(selected)
                logger.info("Selected %d images for %s", len(selected), day)
                self.save_today_image_list(day, selected)
                self.cache_selected_images(day, selected, report)
                logger.info("[%s] Daily image cache refresh complete", day)
            except Exception as exc:
                report.error = str(exc)
                logger.exception("Daily image cache refresh failed: %s", exc)
        return report

    def clear_previous_day_cache(self, today: date) -> int:
        """Delete yesterday's selection and image data. Failures are logged only."""
        yesterday = (today - timedelta(days=1)).isoformat()
        try:
            self.store.delete(daily_images_key(yesterday))
            keys = self.store.keys(image_data_key(yesterday, "*"))
            if keys:
                self.store.delete(*keys)
                logger.info("Deleted %d cached images from %s", len(keys), yesterday)
            return len(keys)
        except Exception as exc:
            logger.warning("Error while purging %s cache: %s", yesterday, exc)
            return 0

    def save_today_image_list(self, day: str, image_urls: list[str]) -> None:
        key = daily_images_key(day)
        self.store.delete(key)
        self.store.list_push_right_all(key, image_urls)
        self.store.expire(key, self.ttl_seconds)
        logger.info("Saved today's image list: %s", key)

    def cache_selected_images(self, day: str, image_urls: list[str], report: RefreshReport) -> RefreshReport:
        """Download and store each image in order, counting success/skip/failure."""
        total = len(image_urls)
        for index, image_url in enumerate(image_urls):
            if self._cancel.is_set():
                report.cancelled = True
                logger.warning("Daily refresh cancelled after %d/%d images", index, total)
                break
            try:
                self._cache_one(day, image_url, report)
            except Exception as exc:
                report.failed += 1
                logger.error("Error while caching %s: %s", image_url, exc)

            if (index + 1) % PROGRESS_EVERY == 0:
                logger.info(
                    "Progress: %d/%d (succeeded: %d, skipped: %d, failed: %d)",
                    index + 1, total, report.succeeded, report.skipped, report.failed,
                )
            if self.delay_seconds > 0 and index + 1 < total:
                self._sleep(self.delay_seconds)

        logger.info(
            "Image caching finished - succeeded: %d, skipped: %d, failed: %d",
            report.succeeded, report.skipped, report.failed,
        )
        return report

    def _cache_one(self, day: str, image_url: str, report: RefreshReport) -> None:
        image_id = extract_image_id(image_url)
        image_bytes = self.downloader.download(image_url)
        if image_bytes is None:
            report.failed += 1
            logger.warning("Image download failed: %s", image_url)
            return
        if len(image_bytes) > self.max_image_bytes:
            report.skipped += 1
            logger.warning("Skipping oversized image %s (%s)", image_id, format_bytes(len(image_bytes)))
            return
        self.store.set(image_data_key(day, image_id), image_bytes, ttl_seconds=self.ttl_seconds)
        report.succeeded += 1
        logger.debug("Cached image %s (%s)", image_id, format_bytes(len(image_bytes)))

    def get_cached_image(self, day: str, image_id: str) -> Optional[bytes]:
        try:
            return self.store.get(image_data_key(day, image_id))
        except Exception as exc:
            logger.error("Failed to read cached image %s: %s", image_id, exc)
            return None

    def get_today_image_urls(self) -> list[str]:
        try:
            return self.store.list_range(daily_images_key(self.today().isoformat()), 0, -1)
        except Exception as exc:
            logger.error("Failed to read today's image list: %s", exc)
            return []
