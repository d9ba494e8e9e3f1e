# Wobulezi - event registration gate (deadline, capacity, one row per user and event)
import datetime as dt
import logging

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import Event, Notification, Registration, RegistrationStatus
from access import Operation, OwnerChain, Principal, ResourceType
from server.data_access import enforce, event_chain, load_event, registration_chain
from server.errors import Conflict, NotFound, ValidationError

logger = logging.getLogger(__name__)

# Registrations that occupy a seat
SEAT_HOLDING = (
    RegistrationStatus.PENDING.value,
    RegistrationStatus.APPROVED.value,
    RegistrationStatus.ATTENDED.value,
)

TRANSITIONS: dict[RegistrationStatus, frozenset[RegistrationStatus]] = {
    RegistrationStatus.PENDING: frozenset({RegistrationStatus.APPROVED, RegistrationStatus.REJECTED}),
    RegistrationStatus.APPROVED: frozenset({RegistrationStatus.ATTENDED, RegistrationStatus.REJECTED}),
    RegistrationStatus.REJECTED: frozenset(),
    RegistrationStatus.ATTENDED: frozenset(),
}

_STATUS_MESSAGES = {
    RegistrationStatus.APPROVED: "Your registration for {title} has been approved.",
    RegistrationStatus.REJECTED: "Your registration for {title} has been rejected.",
    RegistrationStatus.ATTENDED: "Your attendance for {title} has been recorded.",
}


def notify(session: AsyncSession, user_id: int, message: str) -> None:
    session.add(Notification(user_id=user_id, message=message))


async def _lock_event(session: AsyncSession, event_id: int) -> Event:
    # FOR UPDATE serializes registrations per event on PostgreSQL; SQLite locks the whole database on write
    r = await session.execute(
        select(Event).where(Event.id == event_id).with_for_update().execution_options(populate_existing=True)
    )
    event = r.scalar_one_or_none()
    if event is None:
        raise NotFound("Event not found")
    return event


async def seats_taken(session: AsyncSession, event_id: int) -> int:
    r = await session.execute(
        select(func.count(Registration.id)).where(
            Registration.event_id == event_id,
            Registration.status.in_(SEAT_HOLDING),
        )
    )
    return r.scalar_one()


async def register(
    session: AsyncSession,
    principal: Principal,
    event_id: int,
    now: dt.datetime | None = None,
) -> Registration:
    """UNREGISTERED -> PENDING or APPROVED, guarded by deadline, capacity and uniqueness."""
    event = await _lock_event(session, event_id)
    enforce(principal, Operation.READ, ResourceType.EVENT, event_chain(event), event.id)
    enforce(
        principal,
        Operation.CREATE,
        ResourceType.REGISTRATION,
        OwnerChain(owner_user_id=principal.user_id, organizer_id=event.organizer_id, is_public=event.is_public),
        event.id,
    )

    now = now or dt.datetime.utcnow()
    if event.registration_deadline is not None and now > event.registration_deadline:
        raise ValidationError(
            "Registration for this event has closed",
            fields={"registration_deadline": "The registration deadline has passed"},
        )

    r = await session.execute(
        select(Registration.id).where(
            Registration.user_id == principal.user_id,
            Registration.event_id == event.id,
        )
    )
    if r.scalar_one_or_none() is not None:
        raise Conflict("You are already registered for this event")

    if event.capacity is not None and await seats_taken(session, event.id) >= event.capacity:
        raise Conflict("This event has reached its maximum capacity")

    status = RegistrationStatus.PENDING if event.requires_approval else RegistrationStatus.APPROVED
    registration = Registration(user_id=principal.user_id, event_id=event.id, status=status.value)
    session.add(registration)
    try:
        await session.flush()
    except IntegrityError:
        raise Conflict("You are already registered for this event") from None

    notify(session, event.organizer_id, f"{principal.name} has registered for your event: {event.title}")
    logger.info("User %s registered for event %s (%s)", principal.user_id, event.id, status.value)
    return registration


async def change_status(
    session: AsyncSession,
    principal: Principal,
    event_id: int,
    registration_id: int,
    new_status: RegistrationStatus,
) -> Registration:
    """Organizer/admin moves a registration along TRANSITIONS and notifies the registrant."""
    event, _ = await load_event(session, event_id)
    registration = await session.get(Registration, registration_id)
    if registration is None or registration.event_id != event.id:
        raise NotFound("Registration not found")
    enforce(principal, Operation.UPDATE, ResourceType.REGISTRATION, registration_chain(registration, event), registration.id)

    current = RegistrationStatus(registration.status)
    new_status = RegistrationStatus(new_status)
    if new_status is current:
        return registration
    if new_status not in TRANSITIONS[current]:
        raise ValidationError(
            f"Cannot change a {current.value} registration to {new_status.value}",
            fields={"status": f"Allowed from {current.value}: {', '.join(sorted(s.value for s in TRANSITIONS[current])) or 'none'}"},
        )

    registration.status = new_status.value
    await session.flush()
    notify(session, registration.user_id, _STATUS_MESSAGES[new_status].format(title=event.title))
    logger.info("Registration %s for event %s: %s -> %s", registration.id, event.id, current.value, new_status.value)
    return registration


async def cancel(session: AsyncSession, principal: Principal, event_id: int) -> None:
    """The caller's own registration goes back to UNREGISTERED (row deleted)."""
    r = await session.execute(
        select(Registration, Event)
        .join(Event, Registration.event_id == Event.id)
        .where(Registration.user_id == principal.user_id, Registration.event_id == event_id)
    )
    row = r.first()
    if row is None:
        raise NotFound("You are not registered for this event")
    registration, event = row
    enforce(principal, Operation.DELETE, ResourceType.REGISTRATION, registration_chain(registration, event), registration.id)

    await session.execute(delete(Registration).where(Registration.id == registration.id))
    notify(
        session,
        event.organizer_id,
        f"{principal.name} has cancelled their registration for your event: {event.title}",
    )
    logger.info("User %s cancelled registration for event %s", principal.user_id, event.id)


async def remove(session: AsyncSession, principal: Principal, event_id: int, registration_id: int) -> None:
    """Organizer/admin deletes a registration by id."""
    event, _ = await load_event(session, event_id)
    registration = await session.get(Registration, registration_id)
    if registration is None or registration.event_id != event.id:
        raise NotFound("Registration not found")
    enforce(principal, Operation.DELETE, ResourceType.REGISTRATION, registration_chain(registration, event), registration.id)
    await session.execute(delete(Registration).where(Registration.id == registration.id))
    logger.info("Registration %s removed from event %s by user %s", registration.id, event.id, principal.user_id)
