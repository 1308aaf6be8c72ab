import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from hubcast import __version__
from hubcast.api.router import api_router, internal_router
from hubcast.core.credentials import load_credentials
from hubcast.core.database import init_db
from hubcast.core.logging_config import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    from hubcast.services.discord import DiscordDeliveryClient
    from hubcast.services.github import GitHubEventSource, close_github_client
    from hubcast.services.poller import FeedPoller
    from hubcast.services.scheduler import scheduler

    # Startup
    setup_logging()
    logger.info("hubcast starting up")
    await init_db()

    # Fails startup outright when DISCORD_TOKEN is missing
    credentials = load_credentials()
    delivery = DiscordDeliveryClient(credentials)
    poller = FeedPoller(GitHubEventSource(credentials), delivery)
    scheduler.start(poller)
    yield
    # Shutdown
    await scheduler.stop()
    await delivery.aclose()
    await close_github_client()
    logger.info("hubcast shutting down")


app = FastAPI(
    title="hubcast",
    description="Relays GitHub activity into Discord channels",
    version=__version__,
    lifespan=lifespan,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log failed HTTP requests and manual poll triggers."""
    if request.url.path == "/health":
        return await call_next(request)

    response = await call_next(request)

    path = request.url.path
    if response.status_code >= 400 or path.startswith("/internal"):
        logger.info(f"{request.method} {path} → {response.status_code}")

    return response


# Include API routes
app.include_router(api_router)
app.include_router(internal_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    from hubcast.services.scheduler import scheduler

    return {"status": "healthy", "scheduler_running": scheduler.running}
