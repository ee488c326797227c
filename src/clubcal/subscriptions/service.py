"""Reminder subscription storage.

Module-level functions back the public opt-in endpoints and run on the
request's session. ``SubscriptionStore`` is the dispatcher's view: every
operation opens its own short session from the factory so concurrent
delivery tasks never share one.

Delivery state moves through an explicit claim protocol:

    pending --claim--> claimed --mark_notified--> notified
                          \\--release--> pending (failed_attempts + 1)

A claim is an atomic conditional UPDATE, so two dispatchers racing on the
same row cannot both deliver it. Claims older than the TTL are treated as
abandoned (crashed dispatcher) and may be taken again.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Union, assert_never

import structlog
from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clubcal.database import dialect_insert
from clubcal.db.models import Channel, EmailSubscription, Event, PushSubscription

logger = structlog.get_logger()

AnySubscription = Union[EmailSubscription, PushSubscription]


def subscription_model(channel: Channel) -> type[EmailSubscription] | type[PushSubscription]:
    """Table backing a channel."""
    match channel:
        case Channel.EMAIL:
            return EmailSubscription
        case Channel.PUSH:
            return PushSubscription
        case _:
            assert_never(channel)


# ---------------------------------------------------------------------------
# Opt-in / opt-out
# ---------------------------------------------------------------------------


async def upsert_email_subscription(
    db: AsyncSession,
    event_id: str,
    email: str,
    custom_offset_minutes: int | None = None,
) -> None:
    """Create or refresh an email opt-in.

    Refreshing resets delivery state so a user can ask to be reminded again
    after a reminder went out.
    """
    stmt = dialect_insert(db, EmailSubscription).values(
        email=email,
        event_id=event_id,
        custom_offset_minutes=custom_offset_minutes,
        notified=False,
        failed_attempts=0,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["email", "event_id"],
        set_={
            "custom_offset_minutes": custom_offset_minutes,
            "notified": False,
            "notified_at": None,
            "claimed_at": None,
            "failed_attempts": 0,
        },
    )
    await db.execute(stmt)
    await db.flush()


async def upsert_push_subscription(
    db: AsyncSession,
    event_id: str,
    endpoint: str,
    p256dh: str,
    auth: str,
    expiration_time: int | None = None,
    custom_offset_minutes: int | None = None,
) -> None:
    """Create or refresh a push opt-in; keys and expiry are replaced on refresh."""
    stmt = dialect_insert(db, PushSubscription).values(
        endpoint=endpoint,
        p256dh=p256dh,
        auth=auth,
        expiration_time=expiration_time,
        event_id=event_id,
        custom_offset_minutes=custom_offset_minutes,
        notified=False,
        failed_attempts=0,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["endpoint", "event_id"],
        set_={
            "p256dh": p256dh,
            "auth": auth,
            "expiration_time": expiration_time,
            "custom_offset_minutes": custom_offset_minutes,
            "notified": False,
            "notified_at": None,
            "claimed_at": None,
            "failed_attempts": 0,
        },
    )
    await db.execute(stmt)
    await db.flush()


async def delete_email_subscription(db: AsyncSession, event_id: str, email: str) -> int:
    """Cancel an email reminder. Returns rows deleted."""
    result = await db.execute(
        delete(EmailSubscription).where(
            EmailSubscription.email == email,
            EmailSubscription.event_id == event_id,
        )
    )
    await db.flush()
    return result.rowcount


async def delete_push_subscription(db: AsyncSession, event_id: str, endpoint: str) -> int:
    """Cancel a push reminder. Returns rows deleted."""
    result = await db.execute(
        delete(PushSubscription).where(
            PushSubscription.endpoint == endpoint,
            PushSubscription.event_id == event_id,
        )
    )
    await db.flush()
    return result.rowcount


# ---------------------------------------------------------------------------
# Dispatcher-facing store
# ---------------------------------------------------------------------------


class SubscriptionStore:
    """Pending-subscription queries and delivery-state transitions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        claim_ttl_seconds: int = 300,
    ) -> None:
        self._session_factory = session_factory
        self.claim_ttl = timedelta(seconds=claim_ttl_seconds)

    async def _list_pending(self, channel: Channel) -> list[tuple[AnySubscription, Event | None]]:
        model = subscription_model(channel)
        # Outer join: orphaned rows come back with event=None instead of vanishing
        stmt = (
            select(model, Event)
            .outerjoin(Event, model.event_id == Event.id)
            .where(model.notified.is_(False))
            .order_by(model.id)
        )
        async with self._session_factory() as db:
            result = await db.execute(stmt)
            return [(row[0], row[1]) for row in result.all()]

    async def list_pending_email(self) -> list[tuple[EmailSubscription, Event | None]]:
        """Email subscriptions not yet notified, with their event (None if orphaned)."""
        return await self._list_pending(Channel.EMAIL)  # type: ignore[return-value]

    async def list_pending_push(self) -> list[tuple[PushSubscription, Event | None]]:
        """Push subscriptions not yet notified, with their event (None if orphaned)."""
        return await self._list_pending(Channel.PUSH)  # type: ignore[return-value]

    async def claim(self, subscription_id: int, channel: Channel, at: datetime) -> bool:
        """Atomically take the right to deliver. False if notified or claimed by someone else."""
        model = subscription_model(channel)
        stale_before = at - self.claim_ttl
        async with self._session_factory() as db:
            result = await db.execute(
                update(model)
                .where(
                    model.id == subscription_id,
                    model.notified.is_(False),
                    or_(model.claimed_at.is_(None), model.claimed_at < stale_before),
                )
                .values(claimed_at=at)
            )
            await db.commit()
            return result.rowcount == 1

    async def mark_notified(self, subscription_id: int, channel: Channel, at: datetime) -> None:
        """Record successful delivery; the row leaves the pending set for good."""
        model = subscription_model(channel)
        async with self._session_factory() as db:
            await db.execute(
                update(model)
                .where(model.id == subscription_id)
                .values(notified=True, notified_at=at, claimed_at=None)
            )
            await db.commit()

    async def release(self, subscription_id: int, channel: Channel) -> None:
        """Give a claim back after a failed delivery so the next run retries."""
        model = subscription_model(channel)
        async with self._session_factory() as db:
            await db.execute(
                update(model)
                .where(model.id == subscription_id, model.notified.is_(False))
                .values(claimed_at=None, failed_attempts=model.failed_attempts + 1)
            )
            await db.commit()
