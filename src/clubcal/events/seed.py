"""Sample debate club events loaded into an empty calendar."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from clubcal.database import dialect_insert
from clubcal.db.models import Event, EventCategory

logger = logging.getLogger(__name__)


def _at(iso: str) -> datetime:
    return datetime.fromisoformat(iso).replace(tzinfo=timezone.utc)


SAMPLE_EVENTS: list[dict] = [
    {
        "id": "nsu-pre-worlds",
        "title": "NSU Pre-Worlds BP",
        "start": _at("2025-02-08T09:00:00"),
        "end": _at("2025-02-09T18:00:00"),
        "category": EventCategory.TOURNAMENT,
        "location_label": "NSU Campus, Dhaka",
        "location_is_online": False,
        "description": (
            "Two-day British Parliamentary tournament. 5 pre-elim rounds + break to open & novice semis. "
            "Adjudication core from SAU & NSU alumni."
        ),
        "registration_url": "https://example.com/register/nsu-pre-worlds",
        "reminder_offset_minutes": 24 * 60,
        "organizers": "NSUDC ExCom",
        "featured": True,
    },
    {
        "id": "weekly-practice",
        "title": "Weekly Practice Round",
        "start": _at("2025-01-31T19:00:00"),
        "end": _at("2025-01-31T21:00:00"),
        "category": EventCategory.PRACTICE,
        "location_label": "Zoom Room A",
        "location_is_online": True,
        "location_link": "https://example.com/zoom/practice-a",
        "description": (
            "Impromptu BP practice. 15 mins prep, 5 teams cap, WUDC speaker timings. "
            "Feedback led by seniors with flows shared after rounds."
        ),
        "registration_url": "https://example.com/rsvp/practice",
        "reminder_offset_minutes": 60,
        "organizers": "Training Dept.",
    },
    {
        "id": "equity-workshop",
        "title": "Equity & Adjudication Workshop",
        "start": _at("2025-02-04T17:00:00"),
        "end": _at("2025-02-04T19:00:00"),
        "category": EventCategory.WORKSHOP,
        "location_label": "Hybrid — Room 203 + Zoom",
        "location_is_online": True,
        "location_link": "https://example.com/zoom/workshop",
        "description": (
            "Deep-dive on equity policy, clash calls, and chairing best practices. "
            "Includes mock panels and live ballot writing."
        ),
        "registration_url": "https://example.com/register/workshop-equity",
        "reminder_offset_minutes": 6 * 60,
        "organizers": "Equity Team",
        "featured": True,
    },
    {
        "id": "freshers-selection",
        "title": "Freshers' Selection Scrims",
        "start": _at("2025-02-11T10:30:00"),
        "end": _at("2025-02-11T14:00:00"),
        "category": EventCategory.SELECTION,
        "location_label": "Room 104, Humanities Building",
        "location_is_online": False,
        "description": (
            "Scrimmages to select freshers roster for intra-varsity. APDA format, 7-minute speeches, "
            "feedback with individual action items."
        ),
        "registration_url": "https://example.com/signup/freshers",
        "reminder_offset_minutes": 180,
        "organizers": "Coaches",
    },
    {
        "id": "regional-open",
        "title": "Regional Open Prep Session",
        "start": _at("2025-02-06T18:00:00"),
        "end": _at("2025-02-06T20:00:00"),
        "category": EventCategory.PRACTICE,
        "location_label": "Google Meet",
        "location_is_online": True,
        "location_link": "https://example.com/meet/prep",
        "description": "Prep lab for teams heading to the Regional Open. Motion drilling, POI strategy, and panel Q&A.",
        "registration_url": "https://example.com/rsvp/prep",
        "reminder_offset_minutes": 90,
        "organizers": "Coaches",
    },
    {
        "id": "judge-recruit",
        "title": "Judge Recruitment & Onboarding",
        "start": _at("2025-02-02T16:00:00"),
        "end": _at("2025-02-02T17:30:00"),
        "category": EventCategory.WORKSHOP,
        "location_label": "Hybrid — Room 210 + Zoom",
        "location_is_online": True,
        "location_link": "https://example.com/zoom/judges",
        "description": (
            "Crash course for new judges. Covers role fulfillment, note-taking frameworks, "
            "and efficient RFD structuring."
        ),
        "reminder_offset_minutes": 24 * 60,
        "organizers": "Adjudication Core",
    },
]


async def seed_events(db: AsyncSession) -> int:
    """Insert the sample events if the calendar is empty. Returns number inserted.

    Two first listings can race past the emptiness check; rows the other
    request already inserted are skipped rather than raising.
    """
    count = (await db.execute(select(func.count()).select_from(Event))).scalar_one()
    if count > 0:
        return 0

    inserted = 0
    for event_data in SAMPLE_EVENTS:
        stmt = dialect_insert(db, Event).values(**event_data).on_conflict_do_nothing(index_elements=["id"])
        result = await db.execute(stmt)
        inserted += result.rowcount
    await db.commit()
    if inserted:
        logger.info("Seeded %d sample events", inserted)
    return inserted
