"""Reminder message rendering for both channels."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo

from clubcal.reminders.schedule import as_utc

if TYPE_CHECKING:
    from clubcal.db.models import Event

SUBJECT_PREFIX = "Debate reminder"


@dataclass(frozen=True)
class PushPayload:
    """JSON body delivered to the browser service worker."""

    title: str
    body: str
    url: str

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "body": self.body, "url": self.url}


def _rounded_hours(offset_minutes: int) -> int:
    # Half rounds up (90 min -> 2h), unlike round()'s banker's rounding
    return math.floor(offset_minutes / 60 + 0.5)


def format_lead_time(offset_minutes: int) -> str:
    """Long form for email copy: '~3 hours' or '~45 minutes'."""
    if offset_minutes >= 60:
        hours = _rounded_hours(offset_minutes)
        return f"~{hours} hour" if hours == 1 else f"~{hours} hours"
    return f"~{offset_minutes} minute" if offset_minutes == 1 else f"~{offset_minutes} minutes"


def format_lead_time_short(offset_minutes: int) -> str:
    """Compact form for push bodies: '~3h' or '~45m'."""
    if offset_minutes >= 60:
        return f"~{_rounded_hours(offset_minutes)}h"
    return f"~{offset_minutes}m"


def format_start_time(start: datetime, tz_name: str = "UTC") -> str:
    """Fixed en-US rendering, e.g. 'Sat, Feb 8, 9:00 AM'."""
    local = as_utc(start).astimezone(ZoneInfo(tz_name))
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return f"{local:%a}, {local:%b} {local.day}, {hour}:{local.minute:02d} {meridiem}"


def reminder_subject(event: Event) -> str:
    return f"{SUBJECT_PREFIX}: {event.title}"


def build_push_payload(event: Event, offset_minutes: int, fallback_url: str) -> PushPayload:
    """Short notification: title, approximate lead time + location, click-through URL."""
    return PushPayload(
        title=reminder_subject(event),
        body=f"Starts in {format_lead_time_short(offset_minutes)} · {event.location_label}",
        url=event.location_link or fallback_url,
    )
