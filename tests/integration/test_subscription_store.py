"""Subscription store against a real (SQLite) database."""

from datetime import datetime, timedelta, timezone

from conftest import make_event
from sqlalchemy import select, text

from clubcal.db.models import Channel, EmailSubscription, PushSubscription
from clubcal.events.service import delete_event
from clubcal.subscriptions.service import (
    delete_email_subscription,
    delete_push_subscription,
    upsert_email_subscription,
    upsert_push_subscription,
)

T0 = datetime(2025, 2, 8, 8, 30, tzinfo=timezone.utc)


async def _email_row(db, email="member@club.org") -> EmailSubscription:
    db.expire_all()
    result = await db.execute(select(EmailSubscription).where(EmailSubscription.email == email))
    return result.scalar_one()


class TestUpsert:
    """One row per identity and event; refresh re-arms delivery."""

    async def test_create_then_refresh_keeps_one_row(self, db_session):
        db_session.add(make_event())
        await db_session.commit()

        await upsert_email_subscription(db_session, "pre-worlds", "member@club.org")
        await upsert_email_subscription(db_session, "pre-worlds", "member@club.org", custom_offset_minutes=15)
        await db_session.commit()

        rows = (await db_session.execute(select(EmailSubscription))).scalars().all()
        assert len(rows) == 1
        assert rows[0].custom_offset_minutes == 15

    async def test_resubscribe_resets_notified(self, db_session, store):
        db_session.add(make_event())
        await db_session.commit()
        await upsert_email_subscription(db_session, "pre-worlds", "member@club.org")
        await db_session.commit()
        row = await _email_row(db_session)
        assert await store.claim(row.id, Channel.EMAIL, T0)
        await store.mark_notified(row.id, Channel.EMAIL, T0)

        await upsert_email_subscription(db_session, "pre-worlds", "member@club.org")
        await db_session.commit()

        row = await _email_row(db_session)
        assert row.notified is False
        assert row.notified_at is None
        assert row.claimed_at is None
        assert row.failed_attempts == 0

    async def test_push_refresh_replaces_keys(self, db_session):
        db_session.add(make_event())
        await db_session.commit()
        endpoint = "https://push.example/abc"

        await upsert_push_subscription(db_session, "pre-worlds", endpoint, "old-p256", "old-auth")
        await upsert_push_subscription(
            db_session, "pre-worlds", endpoint, "new-p256", "new-auth", expiration_time=1_738_000_000_000
        )
        await db_session.commit()

        db_session.expire_all()
        rows = (await db_session.execute(select(PushSubscription))).scalars().all()
        assert len(rows) == 1
        assert (rows[0].p256dh, rows[0].auth) == ("new-p256", "new-auth")
        assert rows[0].expiration_time == 1_738_000_000_000

    async def test_same_email_on_two_events(self, db_session):
        db_session.add_all([make_event("a"), make_event("b")])
        await db_session.commit()

        await upsert_email_subscription(db_session, "a", "member@club.org")
        await upsert_email_subscription(db_session, "b", "member@club.org")
        await db_session.commit()

        rows = (await db_session.execute(select(EmailSubscription))).scalars().all()
        assert {r.event_id for r in rows} == {"a", "b"}

    async def test_delete(self, db_session):
        db_session.add(make_event())
        await db_session.commit()
        await upsert_email_subscription(db_session, "pre-worlds", "member@club.org")
        await upsert_push_subscription(db_session, "pre-worlds", "https://push.example/x", "k", "a")
        await db_session.commit()

        assert await delete_email_subscription(db_session, "pre-worlds", "member@club.org") == 1
        assert await delete_push_subscription(db_session, "pre-worlds", "https://push.example/x") == 1
        assert await delete_email_subscription(db_session, "pre-worlds", "member@club.org") == 0


class TestClaimProtocol:
    """Claim, mark notified, release."""

    async def _subscribe(self, db_session) -> int:
        db_session.add(make_event())
        await db_session.commit()
        await upsert_email_subscription(db_session, "pre-worlds", "member@club.org")
        await db_session.commit()
        return (await _email_row(db_session)).id

    async def test_claim_is_exclusive(self, db_session, store):
        sub_id = await self._subscribe(db_session)

        assert await store.claim(sub_id, Channel.EMAIL, T0) is True
        assert await store.claim(sub_id, Channel.EMAIL, T0 + timedelta(seconds=10)) is False

    async def test_stale_claim_can_be_retaken(self, db_session, store):
        sub_id = await self._subscribe(db_session)

        assert await store.claim(sub_id, Channel.EMAIL, T0)
        assert await store.claim(sub_id, Channel.EMAIL, T0 + timedelta(seconds=301))

    async def test_notified_row_cannot_be_claimed(self, db_session, store):
        sub_id = await self._subscribe(db_session)
        await store.claim(sub_id, Channel.EMAIL, T0)
        await store.mark_notified(sub_id, Channel.EMAIL, T0)

        assert await store.claim(sub_id, Channel.EMAIL, T0 + timedelta(hours=1)) is False
        assert await store.list_pending_email() == []

        db_session.expire_all()
        row = await db_session.get(EmailSubscription, sub_id)
        assert row.notified is True
        assert row.notified_at is not None
        assert row.claimed_at is None

    async def test_release_counts_failure_and_reopens(self, db_session, store):
        sub_id = await self._subscribe(db_session)
        await store.claim(sub_id, Channel.EMAIL, T0)

        await store.release(sub_id, Channel.EMAIL)

        row = await _email_row(db_session)
        assert row.failed_attempts == 1
        assert row.claimed_at is None
        assert row.notified is False
        assert await store.claim(sub_id, Channel.EMAIL, T0 + timedelta(seconds=1))


class TestPendingQueries:
    async def test_pending_rows_carry_their_event(self, db_session, store):
        db_session.add(make_event())
        await db_session.commit()
        await upsert_push_subscription(db_session, "pre-worlds", "https://push.example/x", "k", "a")
        await db_session.commit()

        pending = await store.list_pending_push()

        assert len(pending) == 1
        sub, event = pending[0]
        assert sub.endpoint == "https://push.example/x"
        assert event.id == "pre-worlds"

    async def test_event_delete_removes_subscriptions(self, db_session, store):
        db_session.add(make_event())
        await db_session.commit()
        await upsert_email_subscription(db_session, "pre-worlds", "member@club.org")
        await db_session.commit()

        assert await delete_event(db_session, "pre-worlds")
        await db_session.commit()

        assert await store.list_pending_email() == []

    async def test_orphan_comes_back_without_event(self, db_session, store):
        db_session.add(make_event())
        await db_session.commit()
        await upsert_email_subscription(db_session, "pre-worlds", "member@club.org")
        await db_session.commit()

        # Bypasses the ORM cascade, as a manual cleanup or a foreign key left off would
        await db_session.execute(text("DELETE FROM events WHERE id = 'pre-worlds'"))
        await db_session.commit()

        pending = await store.list_pending_email()

        assert len(pending) == 1
        sub, event = pending[0]
        assert sub.email == "member@club.org"
        assert event is None
