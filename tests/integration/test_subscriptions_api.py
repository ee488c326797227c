"""Reminder opt-in endpoint tests."""

from conftest import make_event
from httpx import AsyncClient
from sqlalchemy import select

from clubcal.db.models import EmailSubscription, PushSubscription

PUSH = {
    "endpoint": "https://fcm.googleapis.com/fcm/send/abc123",
    "keys": {"p256dh": "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u-Ts1XbjhazAkj7I99e8QcYP7DkM", "auth": "tBHItJI5svbpez7KI4CCXg"},
    "expirationTime": None,
}


async def _add_event(db_session, event_id="pre-worlds"):
    db_session.add(make_event(event_id))
    await db_session.commit()


class TestSubscribe:
    async def test_email(self, client: AsyncClient, db_session):
        await _add_event(db_session)
        response = await client.post(
            "/api/subscriptions",
            json={"eventId": "pre-worlds", "email": "member@club.org", "customOffsetMinutes": 30},
        )
        assert response.status_code == 200
        assert response.json() == {"event_id": "pre-worlds", "email": True, "push": False}

        rows = (await db_session.execute(select(EmailSubscription))).scalars().all()
        assert [(r.email, r.custom_offset_minutes) for r in rows] == [("member@club.org", 30)]

    async def test_push_and_email_together(self, client: AsyncClient, db_session):
        await _add_event(db_session)
        response = await client.post(
            "/api/subscriptions",
            json={"event_id": "pre-worlds", "email": "member@club.org", "push_subscription": PUSH},
        )
        assert response.status_code == 200
        assert response.json()["push"] is True

        push_rows = (await db_session.execute(select(PushSubscription))).scalars().all()
        assert len(push_rows) == 1
        assert push_rows[0].auth == "tBHItJI5svbpez7KI4CCXg"

    async def test_repeat_is_upsert(self, client: AsyncClient, db_session):
        await _add_event(db_session)
        body = {"eventId": "pre-worlds", "email": "member@club.org"}
        await client.post("/api/subscriptions", json=body)
        await client.post("/api/subscriptions", json=body)

        rows = (await db_session.execute(select(EmailSubscription))).scalars().all()
        assert len(rows) == 1

    async def test_unknown_event(self, client: AsyncClient, database):
        response = await client.post("/api/subscriptions", json={"eventId": "nope", "email": "member@club.org"})
        assert response.status_code == 404

    async def test_needs_a_channel(self, client: AsyncClient, db_session):
        await _add_event(db_session)
        response = await client.post("/api/subscriptions", json={"eventId": "pre-worlds"})
        assert response.status_code == 400

    async def test_invalid_email(self, client: AsyncClient, db_session):
        await _add_event(db_session)
        response = await client.post("/api/subscriptions", json={"eventId": "pre-worlds", "email": "not-an-email"})
        assert response.status_code == 422

    async def test_negative_offset_rejected(self, client: AsyncClient, db_session):
        await _add_event(db_session)
        response = await client.post(
            "/api/subscriptions",
            json={"eventId": "pre-worlds", "email": "member@club.org", "customOffsetMinutes": -5},
        )
        assert response.status_code == 422


class TestUnsubscribe:
    async def test_removes_both_channels(self, client: AsyncClient, db_session):
        await _add_event(db_session)
        body = {"eventId": "pre-worlds", "email": "member@club.org", "pushSubscription": PUSH}
        await client.post("/api/subscriptions", json=body)

        response = await client.request("DELETE", "/api/subscriptions", json=body)

        assert response.status_code == 200
        assert response.json() == {"event_id": "pre-worlds", "email": True, "push": True}
        assert (await db_session.execute(select(EmailSubscription))).scalars().all() == []
        assert (await db_session.execute(select(PushSubscription))).scalars().all() == []

    async def test_nothing_to_remove(self, client: AsyncClient, database):
        response = await client.request(
            "DELETE", "/api/subscriptions", json={"eventId": "gone", "email": "member@club.org"}
        )
        assert response.status_code == 200
        assert response.json()["email"] is False
