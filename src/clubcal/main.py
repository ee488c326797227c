"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from clubcal.config import get_settings
from clubcal.database import close_db, init_db
from clubcal.events.router import router as events_router
from clubcal.health.router import router as health_router
from clubcal.middleware import setup_middleware
from clubcal.redis_client import close_redis, init_redis
from clubcal.reminders.router import router as reminders_router
from clubcal.subscriptions.router import router as subscriptions_router


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Debate Club Calendar API",
        description="Club events calendar with email and web push reminders",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(events_router)
    app.include_router(subscriptions_router)
    app.include_router(reminders_router)

    return app


app = create_app()
