"""Registration gate: deadline, capacity, uniqueness and status transitions."""

import datetime as dt

import pytest
from sqlalchemy import select

from auth import load_principal
from database.models import Event, Notification, Registration, RegistrationStatus, Role, User
from server import registration as gate
from server.errors import Conflict, Forbidden, NotFound, ValidationError


async def _extra_student(session, n: int):
    user = User(name=f"Extra {n}", email=f"extra{n}@school.test", password_hash="x", role=Role.STUDENT.value)
    session.add(user)
    await session.flush()
    return await load_principal(session, user)


async def _notifications_for(session, user_id: int) -> list[str]:
    r = await session.execute(select(Notification.message).where(Notification.user_id == user_id))
    return list(r.scalars().all())


async def test_capacity_boundary(session, school):
    """Capacity 2: the second seat is granted, the third request is refused."""
    fair = school.events["fair"]
    first = await gate.register(session, school.principals["s1"], fair.id)
    second = await gate.register(session, school.principals["s2"], fair.id)
    assert first.status == RegistrationStatus.APPROVED.value
    assert second.status == RegistrationStatus.APPROVED.value

    with pytest.raises(Conflict):
        await gate.register(session, await _extra_student(session, 1), fair.id)
    assert await gate.seats_taken(session, fair.id) == 2


async def test_rejected_registrations_free_their_seat(session, school):
    fair = school.events["fair"]
    await gate.register(session, school.principals["s1"], fair.id)
    second = await gate.register(session, school.principals["s2"], fair.id)
    await gate.change_status(session, school.principals["t1"], fair.id, second.id, RegistrationStatus.REJECTED)

    third = await gate.register(session, await _extra_student(session, 2), fair.id)
    assert third.status == RegistrationStatus.APPROVED.value


async def test_duplicate_registration_conflicts(session, school):
    fair = school.events["fair"]
    await gate.register(session, school.principals["s1"], fair.id)
    with pytest.raises(Conflict):
        await gate.register(session, school.principals["s1"], fair.id)


async def test_deadline_passed_is_a_validation_error(session, school):
    fair = await session.get(Event, school.events["fair"].id)
    fair.registration_deadline = dt.datetime(2025, 5, 1, 12, 0)
    await session.flush()

    with pytest.raises(ValidationError):
        await gate.register(session, school.principals["s1"], fair.id, now=dt.datetime(2025, 5, 2))
    ok = await gate.register(session, school.principals["s2"], fair.id, now=dt.datetime(2025, 4, 30))
    assert ok.id is not None


async def test_approval_required_starts_pending_and_notifies_organizer(session, school):
    fair = await session.get(Event, school.events["fair"].id)
    fair.requires_approval = True
    await session.flush()

    registration = await gate.register(session, school.principals["p1"], fair.id)
    assert registration.status == RegistrationStatus.PENDING.value
    messages = await _notifications_for(session, school.users["t1"].id)
    assert any("has registered for your event: Science Fair" in m for m in messages)


async def test_private_event_is_hidden_from_non_organizers(session, school):
    with pytest.raises(NotFound):
        await gate.register(session, school.principals["s1"], school.events["private"].id)


async def test_transitions_follow_the_state_machine(session, school):
    fair = await session.get(Event, school.events["fair"].id)
    fair.requires_approval = True
    await session.flush()
    registration = await gate.register(session, school.principals["s1"], fair.id)
    organizer = school.principals["t1"]

    await gate.change_status(session, organizer, fair.id, registration.id, RegistrationStatus.APPROVED)
    await gate.change_status(session, organizer, fair.id, registration.id, RegistrationStatus.ATTENDED)
    with pytest.raises(ValidationError):
        await gate.change_status(session, organizer, fair.id, registration.id, RegistrationStatus.PENDING)

    messages = await _notifications_for(session, school.users["s1"].id)
    assert "Your registration for Science Fair has been approved." in messages
    assert "Your attendance for Science Fair has been recorded." in messages


async def test_only_the_organizer_changes_status(session, school):
    fair = school.events["fair"]
    registration = await gate.register(session, school.principals["s1"], fair.id)
    with pytest.raises(NotFound):
        await gate.change_status(session, school.principals["t2"], fair.id, registration.id, RegistrationStatus.REJECTED)
    with pytest.raises(Forbidden):
        await gate.change_status(session, school.principals["s1"], fair.id, registration.id, RegistrationStatus.REJECTED)


async def test_cancel_deletes_row_and_notifies_organizer(session, school):
    fair = school.events["fair"]
    await gate.register(session, school.principals["s1"], fair.id)
    await gate.cancel(session, school.principals["s1"], fair.id)

    r = await session.execute(select(Registration).where(Registration.event_id == fair.id))
    assert r.scalars().all() == []
    messages = await _notifications_for(session, school.users["t1"].id)
    assert any("cancelled their registration" in m for m in messages)
    with pytest.raises(NotFound):
        await gate.cancel(session, school.principals["s1"], fair.id)
