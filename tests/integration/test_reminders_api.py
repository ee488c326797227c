"""Reminder trigger endpoint: configuration, auth and an end-to-end run."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from conftest import CRON_HEADERS, make_event
from httpx import AsyncClient
from sqlalchemy import select

from clubcal.config import get_settings
from clubcal.db.models import EmailSubscription, PushSubscription
from clubcal.subscriptions.service import upsert_email_subscription, upsert_push_subscription


@pytest.fixture
def email_send(monkeypatch) -> AsyncMock:
    mock = AsyncMock(return_value=True)
    monkeypatch.setattr("clubcal.email.service.SendGridProvider.send", mock)
    return mock


@pytest.fixture
def push_send(monkeypatch) -> AsyncMock:
    mock = AsyncMock(return_value=True)
    monkeypatch.setattr("clubcal.push.service.WebPushSender.send", mock)
    return mock


async def _due_subscriptions(db_session) -> None:
    """One email and one push subscription inside their window right now."""
    start = datetime.now(UTC) + timedelta(minutes=30)
    db_session.add(make_event("soon", start=start, reminder_offset_minutes=60))
    await db_session.commit()
    await upsert_email_subscription(db_session, "soon", "member@club.org")
    await upsert_push_subscription(db_session, "soon", "https://push.example/1", "p256", "auth")
    await db_session.commit()


class TestGuards:
    """Config is checked first, then the bearer; neither path touches adapters."""

    @pytest.mark.parametrize(
        ("field", "name"),
        [
            ("cron_secret", "CRON_SECRET"),
            ("sendgrid_api_key", "SENDGRID_API_KEY"),
            ("reminder_from_email", "REMINDER_FROM_EMAIL"),
            ("vapid_private_key", "VAPID_PRIVATE_KEY"),
        ],
    )
    async def test_missing_config(self, client: AsyncClient, monkeypatch, email_send, field, name):
        monkeypatch.setattr(get_settings(), field, "")
        response = await client.get("/api/reminders/run", headers=CRON_HEADERS)
        assert response.status_code == 500
        assert name in response.json()["detail"]
        assert response.json()["detail"].startswith("Missing ")
        email_send.assert_not_awaited()

    async def test_missing_config_beats_bad_auth(self, client: AsyncClient, monkeypatch):
        monkeypatch.setattr(get_settings(), "cron_secret", "")
        response = await client.get("/api/reminders/run")
        assert response.status_code == 500

    async def test_no_bearer(self, client: AsyncClient, db_session, email_send, push_send):
        await _due_subscriptions(db_session)
        response = await client.get("/api/reminders/run")
        assert response.status_code == 401
        email_send.assert_not_awaited()
        push_send.assert_not_awaited()

    async def test_wrong_bearer(self, client: AsyncClient, email_send):
        response = await client.post("/api/reminders/run", headers={"Authorization": "Bearer guess"})
        assert response.status_code == 401
        email_send.assert_not_awaited()


class TestRun:
    async def test_nothing_due(self, client: AsyncClient, email_send, push_send):
        response = await client.get("/api/reminders/run", headers=CRON_HEADERS)
        assert response.status_code == 200
        assert response.json() == {"processed": 0, "sent": 0, "failed": 0}

    async def test_sends_and_marks(self, client: AsyncClient, db_session, email_send, push_send):
        await _due_subscriptions(db_session)

        response = await client.post("/api/reminders/run", headers=CRON_HEADERS)

        assert response.status_code == 200
        assert response.json() == {"processed": 2, "sent": 2, "failed": 0}
        email_send.assert_awaited_once()
        push_send.assert_awaited_once()
        db_session.expire_all()
        email_row = (await db_session.execute(select(EmailSubscription))).scalar_one()
        push_row = (await db_session.execute(select(PushSubscription))).scalar_one()
        assert email_row.notified and email_row.notified_at is not None
        assert push_row.notified

    async def test_second_run_sends_nothing(self, client: AsyncClient, db_session, email_send, push_send):
        await _due_subscriptions(db_session)

        await client.get("/api/reminders/run", headers=CRON_HEADERS)
        response = await client.get("/api/reminders/run", headers=CRON_HEADERS)

        assert response.json() == {"processed": 0, "sent": 0, "failed": 0}
        assert email_send.await_count == 1

    async def test_push_failure_counted(self, client: AsyncClient, db_session, email_send, monkeypatch):
        monkeypatch.setattr("clubcal.push.service.WebPushSender.send", AsyncMock(return_value=False))
        await _due_subscriptions(db_session)

        response = await client.get("/api/reminders/run", headers=CRON_HEADERS)

        assert response.json() == {"processed": 2, "sent": 1, "failed": 1}
        db_session.expire_all()
        push_row = (await db_session.execute(select(PushSubscription))).scalar_one()
        assert push_row.notified is False
        assert push_row.failed_attempts == 1
