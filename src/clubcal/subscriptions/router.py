"""Public reminder opt-in / opt-out endpoints."""

import structlog
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from clubcal.database import get_session
from clubcal.events.service import get_event
from clubcal.subscriptions.schemas import SubscriptionRequest, SubscriptionResponse
from clubcal.subscriptions.service import (
    delete_email_subscription,
    delete_push_subscription,
    upsert_email_subscription,
    upsert_push_subscription,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/subscriptions", tags=["Subscriptions"])


def _require_channel(body: SubscriptionRequest) -> None:
    if body.email is None and body.push_subscription is None:
        raise HTTPException(status_code=400, detail="Provide an email or a push subscription")


@router.post("")
async def subscribe(
    body: SubscriptionRequest,
    db: AsyncSession = Depends(get_session),
) -> SubscriptionResponse:
    """Create or refresh reminders; refreshing re-arms an already sent reminder."""
    if await get_event(db, body.event_id) is None:
        raise HTTPException(status_code=404, detail="Event not found")
    _require_channel(body)

    if body.email is not None:
        await upsert_email_subscription(
            db,
            event_id=body.event_id,
            email=str(body.email),
            custom_offset_minutes=body.custom_offset_minutes,
        )
    if body.push_subscription is not None:
        push = body.push_subscription
        await upsert_push_subscription(
            db,
            event_id=body.event_id,
            endpoint=push.endpoint,
            p256dh=push.keys.p256dh,
            auth=push.keys.auth,
            expiration_time=push.expiration_time,
            custom_offset_minutes=body.custom_offset_minutes,
        )
    await db.commit()

    logger.info(
        "subscription_saved",
        event_id=body.event_id,
        email=body.email is not None,
        push=body.push_subscription is not None,
    )
    return SubscriptionResponse(
        event_id=body.event_id,
        email=body.email is not None,
        push=body.push_subscription is not None,
    )


@router.delete("")
async def unsubscribe(
    body: SubscriptionRequest,
    db: AsyncSession = Depends(get_session),
) -> SubscriptionResponse:
    """Cancel reminders. Flags report which channels actually had a row.

    Works for events that no longer exist so stale opt-ins can always be dropped.
    """
    _require_channel(body)

    email_deleted = 0
    push_deleted = 0
    if body.email is not None:
        email_deleted = await delete_email_subscription(db, body.event_id, str(body.email))
    if body.push_subscription is not None:
        push_deleted = await delete_push_subscription(db, body.event_id, body.push_subscription.endpoint)
    await db.commit()

    logger.info("subscription_removed", event_id=body.event_id, email=email_deleted, push=push_deleted)
    return SubscriptionResponse(event_id=body.event_id, email=email_deleted > 0, push=push_deleted > 0)
