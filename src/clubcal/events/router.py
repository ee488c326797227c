"""Event calendar endpoints: public listing and admin management."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from clubcal.auth.dependencies import require_admin
from clubcal.config import get_settings
from clubcal.database import get_session
from clubcal.db.models import EventCategory
from clubcal.events.schemas import EventCreateRequest, EventResponse, EventUpdateRequest
from clubcal.events.seed import seed_events
from clubcal.events.service import create_event, delete_event, get_event, list_events, update_event

router = APIRouter(prefix="/api/events", tags=["Events"])


@router.get("")
async def list_calendar_events(
    category: EventCategory | None = Query(None),
    online_only: bool = Query(False),
    featured: bool | None = Query(None),
    upcoming: bool = Query(False, description="Only events that have not ended yet"),
    db: AsyncSession = Depends(get_session),
) -> list[EventResponse]:
    """All events ordered by start. Seeds sample events into an empty calendar."""
    if get_settings().seed_sample_events:
        await seed_events(db)
    events = await list_events(
        db,
        category=category,
        online_only=online_only,
        featured=featured,
        upcoming_after=datetime.now(UTC) if upcoming else None,
    )
    return [EventResponse.from_model(e) for e in events]


@router.get("/{event_id}")
async def get_calendar_event(
    event_id: str,
    db: AsyncSession = Depends(get_session),
) -> EventResponse:
    event = await get_event(db, event_id)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    return EventResponse.from_model(event)


@router.post("", status_code=201, dependencies=[Depends(require_admin)])
async def create_calendar_event(
    body: EventCreateRequest,
    db: AsyncSession = Depends(get_session),
) -> EventResponse:
    """Create an event (admin)."""
    event = await create_event(db, body)
    if event is None:
        raise HTTPException(status_code=409, detail="Event id already exists")
    await db.commit()
    return EventResponse.from_model(event)


@router.put("/{event_id}", dependencies=[Depends(require_admin)])
async def replace_calendar_event(
    event_id: str,
    body: EventUpdateRequest,
    db: AsyncSession = Depends(get_session),
) -> EventResponse:
    """Replace an event's fields (admin)."""
    event = await update_event(db, event_id, body)
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")
    await db.commit()
    return EventResponse.from_model(event)


@router.delete("/{event_id}", status_code=204, dependencies=[Depends(require_admin)])
async def delete_calendar_event(
    event_id: str,
    db: AsyncSession = Depends(get_session),
) -> Response:
    """Delete an event and every reminder subscribed to it (admin)."""
    if not await delete_event(db, event_id):
        raise HTTPException(status_code=404, detail="Event not found")
    await db.commit()
    return Response(status_code=204)
