"""Event storage: listing with filters and admin CRUD."""

from __future__ import annotations

from datetime import datetime

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from clubcal.db.models import EmailSubscription, Event, EventCategory, PushSubscription
from clubcal.events.schemas import EventCreateRequest, EventWrite

logger = structlog.get_logger()


async def list_events(
    db: AsyncSession,
    *,
    category: EventCategory | None = None,
    online_only: bool = False,
    featured: bool | None = None,
    upcoming_after: datetime | None = None,
) -> list[Event]:
    """Events ordered by start time, optionally filtered.

    ``upcoming_after`` keeps events that have not ended by that instant.
    """
    stmt = select(Event).order_by(Event.start.asc(), Event.id.asc())
    if category is not None:
        stmt = stmt.where(Event.category == category)
    if online_only:
        stmt = stmt.where(Event.location_is_online.is_(True))
    if featured is not None:
        stmt = stmt.where(Event.featured.is_(featured))
    if upcoming_after is not None:
        stmt = stmt.where(Event.end > upcoming_after)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_event(db: AsyncSession, event_id: str) -> Event | None:
    return await db.get(Event, event_id)


def _column_values(data: EventWrite) -> dict:
    return {
        "title": data.title,
        "start": data.start,
        "end": data.end,
        "location_label": data.location.label,
        "location_is_online": data.location.is_online,
        "location_link": data.location.link,
        "category": data.category,
        "description": data.description,
        "registration_url": data.registration_url,
        "reminder_offset_minutes": data.reminder_offset_minutes,
        "organizers": data.organizers,
        "featured": data.featured,
    }


async def create_event(db: AsyncSession, data: EventCreateRequest) -> Event | None:
    """Create an event. Returns None if the id is already taken."""
    if await get_event(db, data.id) is not None:
        return None
    event = Event(id=data.id, **_column_values(data))
    db.add(event)
    await db.flush()
    logger.info("event_created", event_id=event.id)
    return event


async def update_event(db: AsyncSession, event_id: str, data: EventWrite) -> Event | None:
    """Replace an event's fields. Returns None if it does not exist."""
    event = await get_event(db, event_id)
    if event is None:
        return None
    for key, value in _column_values(data).items():
        setattr(event, key, value)
    await db.flush()
    logger.info("event_updated", event_id=event_id)
    return event


async def delete_event(db: AsyncSession, event_id: str) -> bool:
    """Delete an event and its reminder subscriptions. Returns True if found."""
    event = await get_event(db, event_id)
    if event is None:
        return False
    # Explicit so stores without FK enforcement (SQLite) do not keep orphans
    await db.execute(delete(EmailSubscription).where(EmailSubscription.event_id == event_id))
    await db.execute(delete(PushSubscription).where(PushSubscription.event_id == event_id))
    await db.delete(event)
    await db.flush()
    logger.info("event_deleted", event_id=event_id)
    return True
