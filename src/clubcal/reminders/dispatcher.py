"""
Reminder dispatcher.

One ``run_once`` call is a single batch: load pending subscriptions on both
channels, keep the ones whose reminder window contains ``now``, and deliver
each in its own task. Every task claims its row before sending and either
marks it notified or releases the claim, so a failure only affects that one
subscription and the next run retries it.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Union, assert_never

import structlog

from clubcal.config import ConfigurationError, Settings, get_settings
from clubcal.db.models import Channel, EmailSubscription, Event, PushSubscription
from clubcal.email.service import EmailService, missing_email_settings
from clubcal.email.templates import event_reminder
from clubcal.push.service import PushKeys, WebPushSender, create_push_sender, missing_push_settings
from clubcal.reminders.messages import build_push_payload, format_start_time
from clubcal.reminders.schedule import as_utc, effective_offset_minutes, is_due
from clubcal.subscriptions.service import SubscriptionStore

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = structlog.get_logger()

AnySubscription = Union[EmailSubscription, PushSubscription]


class Outcome(enum.StrEnum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class DispatchSummary:
    """Counts for one batch. ``processed`` is always ``sent + failed``."""

    processed: int = 0
    sent: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class DueReminder:
    """A subscription whose window is open, with everything needed to render it."""

    channel: Channel
    subscription: AnySubscription
    event: Event
    offset_minutes: int


class ReminderDispatcher:
    """Selects due subscriptions and fans delivery out over both channels."""

    def __init__(
        self,
        store: SubscriptionStore,
        email_service: EmailService,
        push_sender: WebPushSender,
        display_timezone: str = "UTC",
        fallback_url: str = "https://google.com",
        default_offset_minutes: int = 60,
    ) -> None:
        self.store = store
        self.email_service = email_service
        self.push_sender = push_sender
        self.display_timezone = display_timezone
        self.fallback_url = fallback_url
        self.default_offset_minutes = default_offset_minutes

    async def collect_due(self, now: datetime) -> list[DueReminder]:
        """Pending subscriptions on both channels whose reminder window contains ``now``."""
        email_rows, push_rows = await asyncio.gather(
            self.store.list_pending_email(),
            self.store.list_pending_push(),
        )
        pending: list[tuple[Channel, AnySubscription, Event | None]] = [
            *((Channel.EMAIL, sub, event) for sub, event in email_rows),
            *((Channel.PUSH, sub, event) for sub, event in push_rows),
        ]

        due: list[DueReminder] = []
        for channel, subscription, event in pending:
            if event is None:
                logger.warning(
                    "orphaned_subscription_skipped",
                    subscription_id=subscription.id,
                    channel=channel.value,
                    event_id=subscription.event_id,
                )
                continue
            if not is_due(now, event, subscription, self.default_offset_minutes):
                continue
            offset = effective_offset_minutes(event, subscription, self.default_offset_minutes)
            due.append(DueReminder(channel, subscription, event, offset))
        return due

    async def run_once(self, now: datetime) -> DispatchSummary:
        """Deliver every reminder due at ``now``. Safe to call repeatedly."""
        # Timestamps are written as UTC; SQLite stores the wall clock it is given
        now = as_utc(now)
        due = await self.collect_due(now)
        if not due:
            return DispatchSummary()

        results = await asyncio.gather(
            *(self._process(reminder, now) for reminder in due),
            return_exceptions=True,
        )

        sent = failed = 0
        for reminder, result in zip(due, results):
            if isinstance(result, BaseException):
                logger.error(
                    "reminder_task_crashed",
                    subscription_id=reminder.subscription.id,
                    channel=reminder.channel.value,
                    error=str(result),
                )
                failed += 1
            elif result == Outcome.SENT:
                sent += 1
            elif result == Outcome.FAILED:
                failed += 1

        summary = DispatchSummary(processed=sent + failed, sent=sent, failed=failed)
        logger.info("reminder_batch_finished", due=len(due), **summary.to_dict())
        return summary

    async def _process(self, reminder: DueReminder, now: datetime) -> Outcome:
        sub_id = reminder.subscription.id
        channel = reminder.channel

        if not await self.store.claim(sub_id, channel, now):
            logger.info("reminder_claim_lost", subscription_id=sub_id, channel=channel.value)
            return Outcome.SKIPPED

        try:
            delivered = await self._deliver(reminder)
        except Exception:
            logger.exception("reminder_failed", subscription_id=sub_id, channel=channel.value)
            delivered = False
        else:
            if not delivered:
                logger.warning("reminder_failed", subscription_id=sub_id, channel=channel.value)

        if delivered:
            try:
                await self.store.mark_notified(sub_id, channel, now)
            except Exception:
                await self._release_after_error(sub_id, channel)
                raise
            logger.info(
                "reminder_sent",
                subscription_id=sub_id,
                channel=channel.value,
                event_id=reminder.event.id,
            )
            return Outcome.SENT

        await self.store.release(sub_id, channel)
        return Outcome.FAILED

    async def _release_after_error(self, sub_id: int, channel: Channel) -> None:
        """Reopen a claimed row so the next run retries it instead of waiting out the TTL."""
        try:
            await self.store.release(sub_id, channel)
        except Exception:
            logger.exception("reminder_release_failed", subscription_id=sub_id, channel=channel.value)

    async def _deliver(self, reminder: DueReminder) -> bool:
        event = reminder.event
        match reminder.channel:
            case Channel.EMAIL:
                subscription: EmailSubscription = reminder.subscription  # type: ignore[assignment]
                when = format_start_time(event.start, self.display_timezone)
                subject, html_body, text_body = event_reminder(event, reminder.offset_minutes, when)
                return await self.email_service.send_email(subscription.email, subject, html_body, text_body)
            case Channel.PUSH:
                push: PushSubscription = reminder.subscription  # type: ignore[assignment]
                payload = build_push_payload(event, reminder.offset_minutes, self.fallback_url)
                return await self.push_sender.send(
                    push.endpoint,
                    PushKeys(p256dh=push.p256dh, auth=push.auth),
                    payload.to_dict(),
                )
            case _:
                assert_never(reminder.channel)


def missing_dispatch_settings(settings: Settings) -> list[str]:
    """Everything a run needs that is not configured, cron secret included."""
    missing = []
    if not settings.cron_secret:
        missing.append("CRON_SECRET")
    missing.extend(missing_email_settings(settings))
    missing.extend(missing_push_settings(settings))
    return missing


def build_dispatcher(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings | None = None,
) -> ReminderDispatcher:
    """Wire a dispatcher from configuration.

    Raises:
        ConfigurationError: If email or push credentials are missing.
    """
    settings = settings or get_settings()
    missing = missing_email_settings(settings) + missing_push_settings(settings)
    if missing:
        msg = f"Missing {', '.join(missing)}"
        raise ConfigurationError(msg)

    return ReminderDispatcher(
        store=SubscriptionStore(session_factory, claim_ttl_seconds=settings.claim_ttl_seconds),
        email_service=EmailService(settings=settings),
        push_sender=create_push_sender(settings),
        display_timezone=settings.reminder_display_timezone,
        fallback_url=settings.push_fallback_url,
        default_offset_minutes=settings.default_reminder_offset_minutes,
    )
