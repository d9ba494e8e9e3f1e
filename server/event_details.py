# Wobulezi - event schedule items and resources (organizer or admin edits, anyone who can see the event reads)
from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_auth
from database.database import get_db
from database.models import Event, EventResource, ScheduleItem
from access import Operation, Principal, ResourceType
from server.data_access import enforce, load_event
from server.errors import NotFound, ValidationError
from server.validators import HHMM, reject_null, times_ordered

router = APIRouter(prefix="/api/events", tags=["Event details"])


class ScheduleItemCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    start_time: str = Field(..., pattern=HHMM)
    end_time: str = Field(..., pattern=HHMM)
    location: str = Field(default="", max_length=200)

    @model_validator(mode="after")
    def _times_ordered(self):
        if not times_ordered(self.start_time, self.end_time):
            raise ValueError("end_time must be after start_time")
        return self


class ScheduleItemUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    start_time: str | None = Field(default=None, pattern=HHMM)
    end_time: str | None = Field(default=None, pattern=HHMM)
    location: str | None = Field(default=None, max_length=200)

    @field_validator("title", "start_time", "end_time", "location")
    @classmethod
    def _required(cls, v):
        return reject_null(v)


class ResourceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    type: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(default=1, ge=0)


class ResourceUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    type: str | None = Field(default=None, min_length=1, max_length=64)
    quantity: int | None = Field(default=None, ge=0)

    @field_validator("name", "type", "quantity")
    @classmethod
    def _required(cls, v):
        return reject_null(v)


def schedule_item_out(item: ScheduleItem) -> dict:
    return {
        "id": item.id,
        "event_id": item.event_id,
        "title": item.title,
        "start_time": item.start_time,
        "end_time": item.end_time,
        "location": item.location,
    }


def resource_out(resource: EventResource) -> dict:
    return {
        "id": resource.id,
        "event_id": resource.event_id,
        "name": resource.name,
        "type": resource.type,
        "quantity": resource.quantity,
    }


async def _event_for(db: AsyncSession, principal: Principal, event_id: int, operation: Operation) -> Event:
    event, chain = await load_event(db, event_id)
    enforce(principal, operation, ResourceType.EVENT, chain, event.id)
    return event


async def _child(db: AsyncSession, model, child_id: int, event: Event, label: str):
    # a child addressed through the wrong event does not exist
    child = await db.get(model, child_id)
    if child is None or child.event_id != event.id:
        raise NotFound(f"{label} not found")
    return child


# --- schedule ---

@router.get("/{event_id}/schedule")
async def list_schedule(
    event_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    event = await _event_for(db, principal, event_id, Operation.READ)
    r = await db.execute(
        select(ScheduleItem)
        .where(ScheduleItem.event_id == event.id)
        .order_by(ScheduleItem.start_time, ScheduleItem.id)
    )
    return [schedule_item_out(item) for item in r.scalars().all()]


@router.post("/{event_id}/schedule", status_code=201)
async def add_schedule_item(
    event_id: int,
    body: ScheduleItemCreate,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    event = await _event_for(db, principal, event_id, Operation.UPDATE)
    item = ScheduleItem(event_id=event.id, **body.model_dump())
    db.add(item)
    await db.flush()
    return schedule_item_out(item)


@router.put("/{event_id}/schedule/{item_id}")
async def update_schedule_item(
    event_id: int,
    item_id: int,
    body: ScheduleItemUpdate,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    event = await _event_for(db, principal, event_id, Operation.UPDATE)
    item = await _child(db, ScheduleItem, item_id, event, "Schedule item")
    changes = body.model_dump(exclude_unset=True)
    start = changes.get("start_time", item.start_time)
    end = changes.get("end_time", item.end_time)
    if not times_ordered(start, end):
        raise ValidationError("Invalid schedule times", fields={"end_time": "end_time must be after start_time"})
    for field, value in changes.items():
        setattr(item, field, value)
    await db.flush()
    return schedule_item_out(item)


@router.delete("/{event_id}/schedule/{item_id}", status_code=204)
async def delete_schedule_item(
    event_id: int,
    item_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    event = await _event_for(db, principal, event_id, Operation.UPDATE)
    item = await _child(db, ScheduleItem, item_id, event, "Schedule item")
    await db.execute(delete(ScheduleItem).where(ScheduleItem.id == item.id))
    return Response(status_code=204)


# --- resources ---

@router.get("/{event_id}/resources")
async def list_resources(
    event_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    event = await _event_for(db, principal, event_id, Operation.READ)
    r = await db.execute(
        select(EventResource)
        .where(EventResource.event_id == event.id)
        .order_by(EventResource.name, EventResource.id)
    )
    return [resource_out(resource) for resource in r.scalars().all()]


@router.post("/{event_id}/resources", status_code=201)
async def add_resource(
    event_id: int,
    body: ResourceCreate,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    event = await _event_for(db, principal, event_id, Operation.UPDATE)
    resource = EventResource(event_id=event.id, **body.model_dump())
    db.add(resource)
    await db.flush()
    return resource_out(resource)


@router.put("/{event_id}/resources/{resource_id}")
async def update_resource(
    event_id: int,
    resource_id: int,
    body: ResourceUpdate,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    event = await _event_for(db, principal, event_id, Operation.UPDATE)
    resource = await _child(db, EventResource, resource_id, event, "Resource")
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(resource, field, value)
    await db.flush()
    return resource_out(resource)


@router.delete("/{event_id}/resources/{resource_id}", status_code=204)
async def delete_resource(
    event_id: int,
    resource_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    event = await _event_for(db, principal, event_id, Operation.UPDATE)
    resource = await _child(db, EventResource, resource_id, event, "Resource")
    await db.execute(delete(EventResource).where(EventResource.id == resource.id))
    return Response(status_code=204)
