# Wobulezi - iCalendar export
from fastapi import APIRouter, Depends, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_auth
from config import get_settings
from database.database import get_db
from database.models import Event, Registration, RegistrationStatus
from access import Operation, Principal, ResourceType
from server.data_access import enforce, load_event
from server.exports import render_icalendar

router = APIRouter(prefix="/api/calendar", tags=["Calendar"])


@router.get("/export")
async def export_calendar(
    event_id: int | None = None,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """One event when ``event_id`` is given, otherwise every event the caller is approved for."""
    if event_id is not None:
        event, chain = await load_event(db, event_id)
        enforce(principal, Operation.READ, ResourceType.EVENT, chain, event.id)
        events = [event]
    else:
        r = await db.execute(
            select(Event)
            .join(Registration, Registration.event_id == Event.id)
            .where(
                Registration.user_id == principal.user_id,
                Registration.status == RegistrationStatus.APPROVED.value,
            )
            .order_by(Event.date, Event.start_time, Event.id)
        )
        events = r.scalars().all()

    settings = get_settings()
    body = render_icalendar(events, settings.calendar_prodid, settings.calendar_uid_domain)
    return Response(
        content=body,
        media_type="text/calendar",
        headers={"Content-Disposition": "attachment; filename=events.ics"},
    )
