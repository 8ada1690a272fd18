"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator

from price_tracker.api.routes import jobs, notifications, products
from price_tracker.config import settings
from price_tracker.db.models import Base
from price_tracker.db.session import engine
from price_tracker.errors import RateLimitError, TrackerError, ValidationError
from price_tracker.ingest.scraper import scrape_service
from price_tracker.logging_config import setup_logging
from price_tracker.notify.notifier import notifier
from price_tracker.worker.job_scheduler import job_scheduler
from price_tracker.worker.scheduler import shutdown_scheduler, start_scheduler
from price_tracker.worker.tracker import tracking_scheduler

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting Price Drop Tracker...")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    start_scheduler()
    await tracking_scheduler.initialize()
    await job_scheduler.initialize()

    yield

    logger.info("Shutting down...")
    tracking_scheduler.stop_all()
    job_scheduler.stop_all()
    shutdown_scheduler()

    await scrape_service.close()
    await notifier.close()
    await engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Price Drop Tracker",
    description="Track product prices and alert on drops",
    version="0.1.0",
    lifespan=lifespan,
)

instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_respect_env_var=True,
    excluded_handlers=["/metrics", "/health", "/favicon.ico"],
)
instrumentator.instrument(app).expose(app, include_in_schema=True, tags=["monitoring"])


@app.exception_handler(TrackerError)
async def tracker_error_handler(request: Request, exc: TrackerError):
    """Map domain errors to JSON responses."""
    content = {"detail": exc.message}
    headers = None
    if isinstance(exc, ValidationError) and exc.errors:
        content["errors"] = exc.errors
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after_minutes * 60)}
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


app.include_router(products.router)
app.include_router(jobs.router)
app.include_router(notifications.router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "tracked_items": len(tracking_scheduler.scheduled_item_ids()),
        "scheduled_jobs": len(job_scheduler.get_scheduled_jobs()),
    }


@app.get("/favicon.ico")
async def favicon():
    """Return empty favicon response to avoid 404 noise."""
    return Response(status_code=204)


if __name__ == "__main__":
    uvicorn.run(
        "price_tracker.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
