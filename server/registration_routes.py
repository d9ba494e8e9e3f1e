# Wobulezi - event registration endpoints
from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_auth
from database.database import get_db
from database.models import Registration, RegistrationStatus, User
from access import Operation, Principal, ResourceType
from server import registration as gate
from server.data_access import enforce, load_event, scoped

router = APIRouter(prefix="/api/events", tags=["Registrations"])


class StatusChange(BaseModel):
    status: RegistrationStatus


def registration_out(registration: Registration, user: User | None = None) -> dict:
    out = {
        "id": registration.id,
        "user_id": registration.user_id,
        "event_id": registration.event_id,
        "status": registration.status,
        "created_at": registration.created_at,
        "updated_at": registration.updated_at,
    }
    if user is not None:
        out["user"] = {"id": user.id, "name": user.name, "email": user.email, "role": user.role}
    return out


@router.post("/{event_id}/register", status_code=201)
async def register(
    event_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    registration = await gate.register(db, principal, event_id)
    return {"message": "Successfully registered for event", "registration": registration_out(registration)}


@router.delete("/{event_id}/register")
async def cancel_registration(
    event_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    await gate.cancel(db, principal, event_id)
    return {"message": "Registration cancelled successfully"}


@router.get("/{event_id}/registrations")
async def list_registrations(
    event_id: int,
    status: RegistrationStatus | None = None,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    event, chain = await load_event(db, event_id)
    enforce(principal, Operation.READ, ResourceType.EVENT, chain, event.id)
    decision = enforce(principal, Operation.READ_LIST, ResourceType.REGISTRATION)
    filters = [Registration.event_id == event.id]
    if status is not None:
        filters.append(Registration.status == status.value)
    r = await db.execute(
        scoped(
            select(Registration, User).join(User, Registration.user_id == User.id),
            ResourceType.REGISTRATION,
            decision,
            *filters,
        ).order_by(Registration.created_at, Registration.id)
    )
    return {"event_id": event.id, "registrations": [registration_out(reg, user) for reg, user in r.all()]}


@router.put("/{event_id}/registrations/{registration_id}")
async def change_registration_status(
    event_id: int,
    registration_id: int,
    body: StatusChange,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    registration = await gate.change_status(db, principal, event_id, registration_id, body.status)
    return {"message": "Registration status updated", "registration": registration_out(registration)}


@router.delete("/{event_id}/registrations/{registration_id}", status_code=204)
async def remove_registration(
    event_id: int,
    registration_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    await gate.remove(db, principal, event_id, registration_id)
    return Response(status_code=204)
