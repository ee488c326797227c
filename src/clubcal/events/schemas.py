"""Pydantic schemas for event endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from clubcal.db.models import Event, EventCategory
from clubcal.reminders.schedule import as_utc


class LocationSchema(BaseModel):
    label: str = Field(..., min_length=1, max_length=256)
    is_online: bool = False
    link: str | None = None


class EventWrite(BaseModel):
    """Fields an admin supplies when creating or replacing an event."""

    title: str = Field(..., min_length=1, max_length=256)
    start: datetime
    end: datetime
    location: LocationSchema
    category: EventCategory
    description: str = Field(..., min_length=1)
    registration_url: str | None = None
    reminder_offset_minutes: int | None = Field(None, ge=0)
    organizers: str | None = Field(None, max_length=256)
    featured: bool = False

    @model_validator(mode="after")
    def check_end_after_start(self) -> EventWrite:
        """An event cannot end before it starts."""
        self.start = as_utc(self.start)
        self.end = as_utc(self.end)
        if self.end < self.start:
            msg = "end must not be before start"
            raise ValueError(msg)
        return self


class EventCreateRequest(EventWrite):
    id: str = Field(..., min_length=1, max_length=128, pattern=r"^[A-Za-z0-9_-]+$")


class EventUpdateRequest(EventWrite):
    pass


class EventResponse(BaseModel):
    id: str
    title: str
    start: datetime
    end: datetime
    location: LocationSchema
    category: EventCategory
    description: str
    registration_url: str | None = None
    reminder_offset_minutes: int | None = None
    organizers: str | None = None
    featured: bool = False

    @classmethod
    def from_model(cls, event: Event) -> EventResponse:
        return cls(
            id=event.id,
            title=event.title,
            start=event.start,
            end=event.end,
            location=LocationSchema(
                label=event.location_label,
                is_online=event.location_is_online,
                link=event.location_link,
            ),
            category=event.category,
            description=event.description,
            registration_url=event.registration_url,
            reminder_offset_minutes=event.reminder_offset_minutes,
            organizers=event.organizers,
            featured=event.featured,
        )
