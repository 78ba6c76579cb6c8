"""Application configuration pulled from environment variables via pydantic."""
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag="config")


class Settings(BaseSettings):
    """Environment-driven configuration for the animal feed service."""
    model_config = SettingsConfigDict(env_prefix="FEED_", extra="ignore")

    # Shared store and message channel. Without a URL everything runs in-process.
    redis_url: str | None = None
    topic: str = "animal-stream"
    consumer_group: str = "animal-feed-group"
    consumer_name: str = "feed-consumer"
    consumer_concurrency: int = 1
    consumer_poll_block_ms: int = 1000
    stream_maxlen: int = 10000
    trusted_event_types: Annotated[list[str], NoDecode] = ["animal_image"]
    publish_timeout_seconds: float = 10.0

    # Feed and pool cache
    feed_key: str = "animal:feed"
    pool_key: str = "animal:pool"
    feed_max_size: int = 1000
    stats_key_prefix: str = "animal:stats"
    image_catalog_path: str | None = None

    # Producer
    streaming_interval_ms: int = 3000
    batch_size: int = 20

    # Daily image cache
    daily_cache_size: int = 100
    max_image_size_bytes: int = 2_097_152
    daily_cache_ttl_hours: int = 25
    download_connect_timeout: float = 10.0
    download_read_timeout: float = 15.0
    download_delay_ms: int = 100
    download_user_agent: str = "Mozilla/5.0 (compatible; WoolyCute/1.0)"

    # Scheduling
    scheduler_enabled: bool = True
    scheduler_timezone: str = "Asia/Seoul"
    startup_check_delay_seconds: int = 5

    log_level: str = "INFO"

    @field_validator("feed_key", "pool_key", "stats_key_prefix", "topic", "consumer_group", mode="after")
    @classmethod
    def non_blank_key(cls, v: str) -> str:
        """Store keys and channel names must not be blank."""
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("trusted_event_types", mode="before")
    @classmethod
    def split_trusted_types(cls, v):
        """Accept a comma-separated env value as well as a list."""
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    @field_validator(
        "feed_max_size",
        "daily_cache_size",
        "max_image_size_bytes",
        "consumer_concurrency",
        "batch_size",
        "streaming_interval_ms",
        mode="after",
    )
    @classmethod
    def positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be positive")
        return v


settings = Settings()


if __name__ == "__main__":
    logger.setLevel("DEBUG")
    logger.debug(f"Loaded settings: {settings.model_dump_json(indent=4)}")
