# Wobulezi - school events
import datetime as dt

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_auth
from database.database import get_db
from database.models import Event, EventResource, Registration, Role, ScheduleItem
from access import EVERYTHING, Eq, Operation, Principal, ResourceType, to_clause
from server.data_access import count_rows, enforce, load_event, page_info, paginate, scoped
from server.errors import ValidationError
from server.registration import SEAT_HOLDING
from server.validators import HHMM, reject_null, times_ordered

router = APIRouter(prefix="/api/events", tags=["Events"])


def _naive_utc(value: dt.datetime | None) -> dt.datetime | None:
    if value is not None and value.tzinfo is not None:
        value = value.astimezone(dt.timezone.utc).replace(tzinfo=None)
    return value


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    date: dt.date
    start_time: str = Field(..., pattern=HHMM)
    end_time: str = Field(..., pattern=HHMM)
    location: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1, max_length=64)
    capacity: int | None = Field(default=None, ge=1)
    registration_deadline: dt.datetime | None = None
    is_public: bool = True
    requires_approval: bool = False
    image: str | None = None

    @field_validator("registration_deadline")
    @classmethod
    def _deadline_utc(cls, v):
        return _naive_utc(v)

    @model_validator(mode="after")
    def _times_ordered(self):
        if not times_ordered(self.start_time, self.end_time):
            raise ValueError("end_time must be after start_time")
        return self


class EventUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    date: dt.date | None = None
    start_time: str | None = Field(default=None, pattern=HHMM)
    end_time: str | None = Field(default=None, pattern=HHMM)
    location: str | None = Field(default=None, min_length=1, max_length=200)
    category: str | None = Field(default=None, min_length=1, max_length=64)
    capacity: int | None = Field(default=None, ge=1)
    registration_deadline: dt.datetime | None = None
    is_public: bool | None = None
    requires_approval: bool | None = None
    image: str | None = None

    @field_validator("registration_deadline")
    @classmethod
    def _deadline_utc(cls, v):
        return _naive_utc(v)

    @field_validator(
        "title", "description", "date", "start_time", "end_time",
        "location", "category", "is_public", "requires_approval",
    )
    @classmethod
    def _required(cls, v):
        return reject_null(v)


def event_out(event: Event, registered: int | None = None) -> dict:
    out = {
        "id": event.id,
        "title": event.title,
        "description": event.description,
        "date": event.date,
        "start_time": event.start_time,
        "end_time": event.end_time,
        "location": event.location,
        "category": event.category,
        "capacity": event.capacity,
        "registration_deadline": event.registration_deadline,
        "is_public": event.is_public,
        "requires_approval": event.requires_approval,
        "image": event.image,
        "organizer_id": event.organizer_id,
        "created_at": event.created_at,
    }
    if registered is not None:
        out["registrations_count"] = registered
        out["spots_left"] = None if event.capacity is None else max(event.capacity - registered, 0)
    return out


def _seat_count():
    return (
        select(Registration.event_id, func.count(Registration.id).label("taken"))
        .where(Registration.status.in_(SEAT_HOLDING))
        .group_by(Registration.event_id)
        .subquery()
    )


@router.get("")
async def list_events(
    category: str | None = None,
    search: str | None = None,
    date: dt.date | None = None,
    start_date: dt.date | None = None,
    end_date: dt.date | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    decision = enforce(principal, Operation.READ_LIST, ResourceType.EVENT)
    wanted = EVERYTHING
    if category:
        wanted &= Eq("category", category)
    filters = [to_clause(ResourceType.EVENT, wanted)]
    if search:
        like = f"%{search}%"
        filters.append(or_(Event.title.ilike(like), Event.description.ilike(like), Event.location.ilike(like)))
    if date:
        filters.append(Event.date == date)
    if start_date:
        filters.append(Event.date >= start_date)
    if end_date:
        filters.append(Event.date <= end_date)

    total = await count_rows(db, scoped(select(Event), ResourceType.EVENT, decision, *filters))
    window = paginate(page, limit)
    seats = _seat_count()
    r = await db.execute(
        scoped(
            select(Event, func.coalesce(seats.c.taken, 0)).outerjoin(seats, seats.c.event_id == Event.id),
            ResourceType.EVENT,
            decision,
            *filters,
        )
        .order_by(Event.date, Event.start_time, Event.id)
        .offset(window["offset"])
        .limit(window["limit"])
    )
    return {
        "events": [event_out(event, taken) for event, taken in r.all()],
        "pagination": page_info(total, page, limit),
    }


@router.post("", status_code=201)
async def create_event(
    body: EventCreate,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    enforce(principal, Operation.CREATE, ResourceType.EVENT)
    event = Event(**body.model_dump(), organizer_id=principal.user_id)
    db.add(event)
    await db.flush()
    return {"message": "Event created successfully", "event": event_out(event, 0)}


@router.get("/{event_id}")
async def get_event(
    event_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    event, chain = await load_event(db, event_id)
    enforce(principal, Operation.READ, ResourceType.EVENT, chain, event.id)
    taken = await db.execute(
        select(func.count(Registration.id)).where(
            Registration.event_id == event.id, Registration.status.in_(SEAT_HOLDING)
        )
    )
    mine = await db.execute(
        select(Registration.status).where(
            Registration.event_id == event.id, Registration.user_id == principal.user_id
        )
    )
    status = mine.scalar_one_or_none()
    out = event_out(event, taken.scalar_one())
    out["is_registered"] = status is not None
    out["registration_status"] = status
    out["can_edit"] = principal.role is Role.ADMIN or (
        principal.role is Role.TEACHER and event.organizer_id == principal.user_id
    )
    return out


@router.put("/{event_id}")
async def update_event(
    event_id: int,
    body: EventUpdate,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    event, chain = await load_event(db, event_id)
    enforce(principal, Operation.UPDATE, ResourceType.EVENT, chain, event.id)
    changes = body.model_dump(exclude_unset=True)
    start = changes.get("start_time", event.start_time)
    end = changes.get("end_time", event.end_time)
    if not times_ordered(start, end):
        raise ValidationError("Invalid event times", fields={"end_time": "end_time must be after start_time"})
    for field, value in changes.items():
        setattr(event, field, value)
    await db.flush()
    return {"message": "Event updated successfully", "event": event_out(event)}


@router.delete("/{event_id}", status_code=204)
async def delete_event(
    event_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    event, chain = await load_event(db, event_id)
    enforce(principal, Operation.DELETE, ResourceType.EVENT, chain, event.id)
    await db.execute(delete(Registration).where(Registration.event_id == event.id))
    await db.execute(delete(ScheduleItem).where(ScheduleItem.event_id == event.id))
    await db.execute(delete(EventResource).where(EventResource.event_id == event.id))
    await db.execute(delete(Event).where(Event.id == event.id))
    return Response(status_code=204)
