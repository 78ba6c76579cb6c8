"""FastAPI application setup for the animal feed service."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import router as api_router
from .config import settings
from .services import build_services, start_services, stop_services
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="app/main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the service graph, start background work, and tear it down on exit."""
    services = build_services(settings)
    app.state.services = services
    start_services(services)
    logger.info("Animal feed service started")
    try:
        yield
    finally:
        stop_services(services)
        logger.info("Animal feed service stopped")


app = FastAPI(title="Infinite Cute Animals Feed", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
