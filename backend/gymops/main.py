"""GymOps — FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import time

from fastapi import FastAPI

from gymops.api.v1.memberships import router as memberships_router
from gymops.api.v1.webhooks import router as webhooks_router
from gymops.config import settings
from gymops.membership.notifier import build_notifier
from gymops.membership.resolver import MatchTolerance
from gymops.membership.scheduler import DailyTrigger, ExpirationScheduler
from gymops.membership.storage import SqlAlchemyStorage

# Configure root logger so all gymops.* loggers output to stderr (captured by Docker).
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


def build_expiration_trigger(storage: SqlAlchemyStorage) -> DailyTrigger:
    """Wire the expiration scheduler to storage, the notifier and the configured schedule."""
    scheduler = ExpirationScheduler(
        storage=storage,
        notifier=build_notifier(settings),
        thresholds=settings.expiration_thresholds,
        notification_delay=settings.notification_delay_seconds,
        tolerance=MatchTolerance.from_settings(settings),
    )
    return DailyTrigger(scheduler, run_at=time(settings.expiration_run_hour, 0))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown events."""
    from gymops.database import async_session_factory, engine

    # Startup: the daily trigger is armed here, never on import
    storage = SqlAlchemyStorage(async_session_factory)
    trigger = build_expiration_trigger(storage)
    app.state.storage = storage
    app.state.expiration_trigger = trigger
    if settings.expiration_scheduler_enabled:
        trigger.start()

    yield

    # Shutdown: stop the trigger, dispose engine connections
    await trigger.stop()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Membership lifecycle service for gym members: end dates, expiration notices and suspensions.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Routers
app.include_router(memberships_router)
app.include_router(webhooks_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}


@app.get("/", tags=["root"])
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }
