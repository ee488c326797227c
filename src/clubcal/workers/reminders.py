"""arq worker that runs the reminder dispatcher on a cron schedule.

An in-process alternative to calling ``/api/reminders/run`` from an
external scheduler; both paths share the claim protocol, so running the
two side by side never double-sends.

Usage: arq clubcal.workers.reminders.WorkerSettings
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from arq import cron
from arq.connections import RedisSettings

from clubcal.config import get_settings
from clubcal.database import close_db, get_session_factory, init_db
from clubcal.middleware.logging import setup_logging
from clubcal.reminders.dispatcher import ReminderDispatcher, build_dispatcher

logger = logging.getLogger(__name__)

_DEFAULT_REDIS_URL = "redis://localhost:6379/0"


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Open the database and build the dispatcher once per worker process."""
    settings = get_settings()
    setup_logging(settings)
    await init_db(settings.database_url)
    ctx["dispatcher"] = build_dispatcher(get_session_factory(), settings)
    logger.info("Reminder worker started (interval=%d min)", settings.reminder_interval_minutes)


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    await close_db()
    logger.info("Reminder worker shut down")


async def dispatch_reminders(ctx: dict) -> dict[str, int]:  # type: ignore[type-arg]
    """Periodic task: one dispatcher batch."""
    dispatcher: ReminderDispatcher = ctx["dispatcher"]
    summary = await dispatcher.run_once(datetime.now(UTC))
    if summary.processed:
        logger.info(
            "Dispatched reminders: sent=%d failed=%d",
            summary.sent,
            summary.failed,
        )
    return summary.to_dict()


def _cron_minutes(interval: int) -> set[int]:
    interval = max(1, min(interval, 60))
    return set(range(0, 60, interval))


_settings = get_settings()


class WorkerSettings:
    """arq worker settings for the reminder dispatcher."""

    functions = [dispatch_reminders]
    cron_jobs = [
        cron(
            dispatch_reminders,
            minute=_cron_minutes(_settings.reminder_interval_minutes),
            run_at_startup=True,
            unique=True,
        ),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(_settings.redis_url or _DEFAULT_REDIS_URL)
    max_jobs = 1
