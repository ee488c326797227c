"""Reminder window computation.

A subscription is due while ``now`` lies in the half-open window
``[event.start - offset, event.start)``. Once the event has started the
reminder is dropped, never sent late. An offset of zero (or a negative one)
yields an empty window, so such subscriptions are never due.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from clubcal.db.models import EmailSubscription, Event, PushSubscription

    AnySubscription = Union[EmailSubscription, PushSubscription]

DEFAULT_REMINDER_OFFSET_MINUTES = 60


def as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite drops tzinfo); convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def effective_offset_minutes(
    event: Event,
    subscription: AnySubscription,
    default: int = DEFAULT_REMINDER_OFFSET_MINUTES,
) -> int:
    """Subscription override, then event default, then the global fallback."""
    if subscription.custom_offset_minutes is not None:
        return subscription.custom_offset_minutes
    if event.reminder_offset_minutes is not None:
        return event.reminder_offset_minutes
    return default


def reminder_at(
    event: Event,
    subscription: AnySubscription,
    default: int = DEFAULT_REMINDER_OFFSET_MINUTES,
) -> datetime:
    """Instant at which the reminder window opens."""
    offset = effective_offset_minutes(event, subscription, default)
    return as_utc(event.start) - timedelta(minutes=offset)


def is_due(
    now: datetime,
    event: Event | None,
    subscription: AnySubscription,
    default: int = DEFAULT_REMINDER_OFFSET_MINUTES,
) -> bool:
    """True iff ``reminder_at <= now < event.start``.

    ``notified`` is not checked here: callers only pass pending subscriptions.
    A missing event (orphaned subscription) is never due.
    """
    if event is None:
        return False
    now = as_utc(now)
    start = as_utc(event.start)
    return reminder_at(event, subscription, default) <= now < start
