"""HTTP API for the animal feed: paginated reads plus admin triggers."""

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel, ConfigDict, Field

from .errors import PublishError
from .feed_service import validate_page_params
from .models import FeedPage
from .services import FeedServices
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="app/api")


def get_services(request: Request) -> FeedServices:
    """Return the service graph attached to the app at startup."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Services not initialized")
    return services


router = APIRouter()
admin_router = APIRouter(prefix="/admin")


class StreamRequest(BaseModel):
    """Manual publish of a single image URL."""
    model_config = ConfigDict(populate_by_name=True)
    image_url: str = Field(alias="imageUrl")


class StreamResponse(BaseModel):
    id: str


class BatchStreamRequest(BaseModel):
    """Manual publish of several image URLs."""
    model_config = ConfigDict(populate_by_name=True)
    image_urls: list[str] = Field(alias="imageUrls")


class BatchStreamResponse(BaseModel):
    ids: list[str]
    requested: int


class PoolRefreshResponse(BaseModel):
    refreshed: bool


class StatsResponse(BaseModel):
    """Cache and streaming counters."""
    model_config = ConfigDict(populate_by_name=True)
    cache: dict
    feed_size: int = Field(alias="feedSize")
    today_streamed: int = Field(alias="todayStreamed")
    total_streamed: int = Field(alias="totalStreamed")


@router.get("/feed", response_model=FeedPage)
def get_animal_feed(page: int = 0, size: int = 10, services: FeedServices = Depends(get_services)):
    """Paginated newest-first feed. Bad paging params get a bare 400."""
    logger.debug(f"Feed request page={page} size={size}")
    if not validate_page_params(page, size):
        logger.warning(f"Invalid paging parameters page={page} size={size}")
        return Response(status_code=status.HTTP_400_BAD_REQUEST)
    try:
        feed_page = services.feed_service.get_animal_feed(page, size)
    except Exception:
        logger.exception("Feed request failed")
        return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    logger.debug(f"Feed response images={len(feed_page.images)} has_next={feed_page.has_next}")
    return feed_page


@admin_router.post("/refresh-daily-cache")
def refresh_daily_cache(services: FeedServices = Depends(get_services)):
    """Run the daily cache refresh synchronously."""
    report = services.daily_cache.refresh_daily_image_cache()
    logger.info(f"Manual daily refresh finished: {report}")
    return Response(status_code=status.HTTP_200_OK)


@admin_router.post("/refresh-pool", response_model=PoolRefreshResponse)
def refresh_pool(services: FeedServices = Depends(get_services)):
    """Reload the image pool from the catalog."""
    return PoolRefreshResponse(refreshed=services.image_pool.refresh_image_pool())


@admin_router.post("/stream", response_model=StreamResponse)
def stream_image(req: StreamRequest, services: FeedServices = Depends(get_services)):
    """Publish one image URL onto the channel and return the event id."""
    if not req.image_url.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="imageUrl must not be blank")
    try:
        event_id = services.producer.stream_image(req.image_url)
    except PublishError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return StreamResponse(id=event_id)


@admin_router.post("/stream/batch", response_model=BatchStreamResponse)
def stream_image_batch(req: BatchStreamRequest, services: FeedServices = Depends(get_services)):
    """Publish several image URLs; failed ones are left out of `ids`."""
    urls = [u for u in req.image_urls if u.strip()]
    ids = services.producer.stream_image_batch(urls)
    return BatchStreamResponse(ids=ids, requested=len(req.image_urls))


@admin_router.get("/stats", response_model=StatsResponse)
def get_stats(services: FeedServices = Depends(get_services)):
    """Pool/feed sizes plus today's and all-time stream counts."""
    consumer = services.consumer
    return StatsResponse(
        cache=services.image_pool.get_cache_stats(),
        feed_size=consumer.get_current_feed_size(),
        today_streamed=consumer.get_today_stream_count(),
        total_streamed=consumer.get_total_stream_count(),
    )


@admin_router.delete("/cache")
def clear_cache(services: FeedServices = Depends(get_services)):
    """Delete pool and feed keys (dev/testing)."""
    if not services.image_pool.clear_cache():
        return Response(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


router.include_router(admin_router)
