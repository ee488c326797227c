"""Shared test fixtures."""

from __future__ import annotations

import os
import tempfile
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

# Must be set before clubcal.main builds its app from cached settings
_TEST_DB_DIR = tempfile.mkdtemp(prefix="clubcal_test_")
os.environ.update(
    {
        "CLUBCAL_DATABASE_URL": f"sqlite+aiosqlite:///{os.path.join(_TEST_DB_DIR, 'test.db')}",
        "CLUBCAL_REDIS_URL": "",
        "CLUBCAL_ADMIN_TOKEN": "admin-secret",
        "CLUBCAL_CRON_SECRET": "cron-secret",
        "CLUBCAL_EMAIL_PROVIDER": "sendgrid",
        "CLUBCAL_SENDGRID_API_KEY": "SG.test-key",
        "CLUBCAL_REMINDER_FROM_EMAIL": "reminders@debateclub.org",
        "CLUBCAL_VAPID_PUBLIC_KEY": "test-vapid-public",
        "CLUBCAL_VAPID_PRIVATE_KEY": "test-vapid-private",
        "CLUBCAL_LOG_FORMAT": "console",
    }
)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from clubcal.config import get_settings  # noqa: E402
from clubcal.database import close_db, get_engine, get_session_factory, init_db  # noqa: E402
from clubcal.db.base import Base  # noqa: E402
from clubcal.db.models import Event, EventCategory  # noqa: E402
from clubcal.subscriptions.service import SubscriptionStore  # noqa: E402

get_settings.cache_clear()

ADMIN_HEADERS = {"Authorization": "Bearer admin-secret"}
CRON_HEADERS = {"Authorization": "Bearer cron-secret"}


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh schema per test on a temp-file SQLite database."""
    settings = get_settings()
    await init_db(settings.database_url)
    yield get_session_factory()
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await close_db()


@pytest_asyncio.fixture
async def client(database) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client. ASGITransport skips lifespan, so the DB comes from ``database``."""
    from clubcal.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db_session(database) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for arranging data and asserting on it."""
    async with database() as session:
        yield session


@pytest.fixture
def store(database) -> SubscriptionStore:
    return SubscriptionStore(database, claim_ttl_seconds=300)


@pytest.fixture
def mock_email_service() -> MagicMock:
    service = MagicMock()
    service.send_email = AsyncMock(return_value=True)
    return service


@pytest.fixture
def mock_push_sender() -> MagicMock:
    sender = MagicMock()
    sender.send = AsyncMock(return_value=True)
    return sender


def make_event(
    event_id: str = "pre-worlds",
    start: datetime | None = None,
    reminder_offset_minutes: int | None = 60,
    **overrides,
) -> Event:
    """Unsaved Event with sensible defaults."""
    start = start or datetime(2025, 2, 8, 9, 0, tzinfo=timezone.utc)
    fields = {
        "id": event_id,
        "title": "NSU Pre-Worlds BP",
        "start": start,
        "end": start + timedelta(hours=9),
        "category": EventCategory.TOURNAMENT,
        "location_label": "NSU Campus, Dhaka",
        "location_is_online": False,
        "location_link": None,
        "description": "Two-day British Parliamentary tournament.",
        "registration_url": "https://example.com/register",
        "reminder_offset_minutes": reminder_offset_minutes,
        "organizers": "NSUDC ExCom",
        "featured": False,
    }
    fields.update(overrides)
    return Event(**fields)
