# Wobulezi - Ownership chains and policy enforcement at the request boundary
import uuid

from sqlalchemy import Select, and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import (
    Attendance,
    Class,
    Event,
    Grade,
    Message,
    Notification,
    Registration,
    Student,
    User,
)
from access import (
    AuditLogEntry,
    Decision,
    DenyReason,
    Operation,
    OwnerChain,
    Principal,
    ResourceType,
    evaluate,
    to_clause,
)
from access.audit import log_audit
from server.errors import Forbidden, NotFound, Unauthenticated


def enforce(
    principal: Principal | None,
    operation: Operation,
    resource: ResourceType,
    chain: OwnerChain | None = None,
    resource_id: int | None = None,
) -> Decision:
    """Evaluate, audit, and raise on Deny. Ownership mismatches surface as 404."""
    decision = evaluate(principal, operation, resource, chain)
    log_audit(AuditLogEntry(
        trace_id=str(uuid.uuid4()),
        user_id=principal.user_id if principal else None,
        role=principal.role.value if principal else None,
        operation=operation,
        resource=resource,
        resource_id=resource_id,
        policy_decision=decision.effect,
        reason=decision.reason,
    ))
    if decision.allowed:
        return decision
    if decision.reason is DenyReason.NOT_AUTHENTICATED:
        raise Unauthenticated()
    if decision.reason is DenyReason.OWNERSHIP_MISMATCH:
        raise NotFound(f"{resource.value} not found")
    if decision.reason is DenyReason.SELF_ACTION_FORBIDDEN:
        raise Forbidden(f"You cannot {operation.value.lower()} this {resource.value.lower()}")
    raise Forbidden(f"You don't have permission to {operation.value.lower().replace('_', ' ')} {resource.value.lower()} records")


def scoped(stmt: Select, resource: ResourceType, decision: Decision, *filters) -> Select:
    """AND the policy's row filter with caller-supplied filters."""
    return stmt.where(and_(to_clause(resource, decision.predicate), *filters))


async def count_rows(session: AsyncSession, stmt: Select) -> int:
    r = await session.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))
    return r.scalar_one()


def paginate(page: int, limit: int) -> dict:
    return {"offset": (page - 1) * limit, "limit": limit}


def page_info(total: int, page: int, limit: int) -> dict:
    return {"total": total, "page": page, "limit": limit, "pages": (total + limit - 1) // limit}


# --- chain loaders: fetch the row plus the minimal ownership fields ---

async def load_student(session: AsyncSession, student_id: int) -> tuple[Student, OwnerChain]:
    r = await session.execute(
        select(Student, Class.teacher_id)
        .join(Class, Student.class_id == Class.id)
        .where(Student.id == student_id)
    )
    row = r.first()
    if row is None:
        raise NotFound("Student not found")
    student, teacher_id = row
    return student, student_chain(student, teacher_id)


def student_chain(student: Student, teacher_id: int | None) -> OwnerChain:
    return OwnerChain(
        student_id=student.id,
        parent_id=student.parent_id,
        class_id=student.class_id,
        teacher_id=teacher_id,
    )


async def load_class(session: AsyncSession, class_id: int) -> tuple[Class, OwnerChain]:
    cls = await session.get(Class, class_id)
    if cls is None:
        raise NotFound("Class not found")
    return cls, OwnerChain(class_id=cls.id, teacher_id=cls.teacher_id)


async def _load_student_record(session: AsyncSession, model, record_id: int, label: str):
    r = await session.execute(
        select(model, Student, Class.teacher_id)
        .join(Student, model.student_id == Student.id)
        .join(Class, Student.class_id == Class.id)
        .where(model.id == record_id)
    )
    row = r.first()
    if row is None:
        raise NotFound(f"{label} not found")
    record, student, teacher_id = row
    return record, student_chain(student, teacher_id)


async def load_attendance(session: AsyncSession, attendance_id: int) -> tuple[Attendance, OwnerChain]:
    return await _load_student_record(session, Attendance, attendance_id, "Attendance record")


async def load_grade(session: AsyncSession, grade_id: int) -> tuple[Grade, OwnerChain]:
    return await _load_student_record(session, Grade, grade_id, "Grade")


def event_chain(event: Event) -> OwnerChain:
    return OwnerChain(organizer_id=event.organizer_id, is_public=event.is_public)


async def load_event(session: AsyncSession, event_id: int) -> tuple[Event, OwnerChain]:
    event = await session.get(Event, event_id)
    if event is None:
        raise NotFound("Event not found")
    return event, event_chain(event)


async def load_message(session: AsyncSession, message_id: int) -> tuple[Message, OwnerChain]:
    message = await session.get(Message, message_id)
    if message is None:
        raise NotFound("Message not found")
    return message, OwnerChain(owner_user_id=message.sender_id, recipient_user_id=message.receiver_id)


async def load_notification(session: AsyncSession, notification_id: int) -> tuple[Notification, OwnerChain]:
    notification = await session.get(Notification, notification_id)
    if notification is None:
        raise NotFound("Notification not found")
    return notification, OwnerChain(owner_user_id=notification.user_id)


async def load_user(session: AsyncSession, user_id: int) -> tuple[User, OwnerChain]:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user, OwnerChain(owner_user_id=user.id)


def registration_chain(registration: Registration, event: Event) -> OwnerChain:
    return OwnerChain(
        owner_user_id=registration.user_id,
        organizer_id=event.organizer_id,
        is_public=event.is_public,
    )
