# Wobulezi - predicate fields per resource, compiled to SQLAlchemy
from typing import Callable

from sqlalchemy import and_, false, or_, true
from sqlalchemy.sql.elements import ColumnElement

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
from .models import ResourceType
from .predicates import And, Eq, Everything, In, Nothing, Or, Predicate

Compare = Callable[[ColumnElement], ColumnElement]
FieldRef = Callable[[Compare], ColumnElement]


def _column(column) -> FieldRef:
    return lambda compare: compare(column)


def _via(relation, inner: FieldRef) -> FieldRef:
    # many-to-one hop, rendered as EXISTS
    return lambda compare: relation.has(inner(compare))


_CLASS_TEACHER = _via(Student.class_, _column(Class.teacher_id))

# Registry of filterable fields: logical name -> column or relationship path
RESOURCE_FIELDS: dict[ResourceType, dict[str, FieldRef]] = {
    ResourceType.STUDENT: {
        "id": _column(Student.id),
        "parent_id": _column(Student.parent_id),
        "class_id": _column(Student.class_id),
        "grade": _column(Student.grade),
        "section": _column(Student.section),
        "class.teacher_id": _CLASS_TEACHER,
    },
    ResourceType.CLASS: {
        "id": _column(Class.id),
        "teacher_id": _column(Class.teacher_id),
        "grade": _column(Class.grade),
    },
    ResourceType.ATTENDANCE: {
        "student_id": _column(Attendance.student_id),
        "status": _column(Attendance.status),
        "student.parent_id": _via(Attendance.student, _column(Student.parent_id)),
        "student.class_id": _via(Attendance.student, _column(Student.class_id)),
        "student.grade": _via(Attendance.student, _column(Student.grade)),
        "student.section": _via(Attendance.student, _column(Student.section)),
        "student.class.teacher_id": _via(Attendance.student, _CLASS_TEACHER),
    },
    ResourceType.GRADE: {
        "student_id": _column(Grade.student_id),
        "subject": _column(Grade.subject),
        "term": _column(Grade.term),
        "student.parent_id": _via(Grade.student, _column(Student.parent_id)),
        "student.class.teacher_id": _via(Grade.student, _CLASS_TEACHER),
    },
    ResourceType.EVENT: {
        "id": _column(Event.id),
        "category": _column(Event.category),
        "is_public": _column(Event.is_public),
        "organizer_id": _column(Event.organizer_id),
    },
    ResourceType.REGISTRATION: {
        "user_id": _column(Registration.user_id),
        "event_id": _column(Registration.event_id),
        "status": _column(Registration.status),
        "event.organizer_id": _via(Registration.event, _column(Event.organizer_id)),
    },
    ResourceType.MESSAGE: {
        "sender_id": _column(Message.sender_id),
        "receiver_id": _column(Message.receiver_id),
    },
    ResourceType.NOTIFICATION: {
        "user_id": _column(Notification.user_id),
        "is_read": _column(Notification.is_read),
    },
    ResourceType.USER: {
        "id": _column(User.id),
        "role": _column(User.role),
    },
}


def _field(resource_type: ResourceType, name: str) -> FieldRef:
    try:
        return RESOURCE_FIELDS[resource_type][name]
    except KeyError:
        raise ValueError(f"{resource_type.value} has no filterable field {name!r}") from None


def to_clause(resource_type: ResourceType, predicate: Predicate) -> ColumnElement:
    """Compile a predicate to a WHERE clause for ``resource_type``'s table."""
    if isinstance(predicate, Everything):
        return true()
    if isinstance(predicate, Nothing):
        return false()
    if isinstance(predicate, And):
        return and_(*(to_clause(resource_type, part) for part in predicate.parts))
    if isinstance(predicate, Or):
        return or_(*(to_clause(resource_type, part) for part in predicate.parts))
    if isinstance(predicate, Eq):
        value = predicate.value
        return _field(resource_type, predicate.field)(lambda column: column == value)
    if isinstance(predicate, In):
        values = predicate.values
        return _field(resource_type, predicate.field)(lambda column: column.in_(values))
    raise TypeError(f"Unsupported predicate {predicate!r}")
