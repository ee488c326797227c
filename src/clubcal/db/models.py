"""ORM models for events and reminder subscriptions.

Subscriptions live in one table per channel. Both shapes carry the same
delivery-state columns (notified, notified_at, claimed_at, failed_attempts)
which the reminder dispatcher owns.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clubcal.db.base import Base


class EventCategory(enum.StrEnum):
    """Closed set of event categories."""

    TOURNAMENT = "tournament"
    PRACTICE = "practice"
    WORKSHOP = "workshop"
    SELECTION = "selection"


class Channel(enum.StrEnum):
    """Reminder delivery channels."""

    EMAIL = "email"
    PUSH = "push"


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class Event(Base):
    """A club calendar event."""

    __tablename__ = "events"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    location_label: Mapped[str] = mapped_column(String(256), nullable=False)
    location_is_online: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    location_link: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[EventCategory] = mapped_column(
        Enum(
            EventCategory,
            native_enum=False,
            length=16,
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    registration_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    reminder_offset_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    organizers: Mapped[str | None] = mapped_column(String(256), nullable=True)
    featured: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    email_subscriptions: Mapped[list[EmailSubscription]] = relationship(
        "EmailSubscription", back_populates="event", passive_deletes=True
    )
    push_subscriptions: Mapped[list[PushSubscription]] = relationship(
        "PushSubscription", back_populates="event", passive_deletes=True
    )


# ---------------------------------------------------------------------------
# Reminder subscriptions
# ---------------------------------------------------------------------------


class EmailSubscription(Base):
    """Email reminder opt-in, unique per (email, event)."""

    __tablename__ = "email_subscriptions"
    __table_args__ = (
        UniqueConstraint("email", "event_id", name="uq_email_subscriptions_email_event"),
        Index("idx_email_subscriptions_pending", "notified"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    event_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    custom_offset_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notified: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    notified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_attempts: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    event: Mapped[Event] = relationship("Event", back_populates="email_subscriptions")


class PushSubscription(Base):
    """Web Push reminder opt-in, unique per (endpoint, event).

    ``p256dh`` and ``auth`` are the browser-issued encryption keys;
    ``expiration_time`` is the browser's epoch-millisecond expiry, if any.
    """

    __tablename__ = "push_subscriptions"
    __table_args__ = (
        UniqueConstraint("endpoint", "event_id", name="uq_push_subscriptions_endpoint_event"),
        Index("idx_push_subscriptions_pending", "notified"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    endpoint: Mapped[str] = mapped_column(String(1024), nullable=False)
    p256dh: Mapped[str] = mapped_column(String(255), nullable=False)
    auth: Mapped[str] = mapped_column(String(255), nullable=False)
    expiration_time: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    event_id: Mapped[str] = mapped_column(
        String(128), ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    custom_offset_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    notified: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    notified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_attempts: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    event: Mapped[Event] = relationship("Event", back_populates="push_subscriptions")
