# Wobulezi - access policy (role table + ownership chains)
from typing import Callable

from database.models import Role
from .models import Decision, DenyReason, Operation, OwnerChain, Principal, ResourceType
from .predicates import Eq, NOTHING, Predicate

Rule = Callable[[Principal, Operation, OwnerChain], Decision]

_ALLOW = Decision.allow()
_ROLE_FORBIDDEN = Decision.deny(DenyReason.ROLE_FORBIDDEN)
_MISMATCH = Decision.deny(DenyReason.OWNERSHIP_MISMATCH)
_SELF_ACTION = Decision.deny(DenyReason.SELF_ACTION_FORBIDDEN)


def _match(owner: int | None, mine: int | None) -> Decision:
    # a missing profile id never matches
    if mine is not None and owner == mine:
        return _ALLOW
    return _MISMATCH


def _scoped(field: str, mine: int | None) -> Decision:
    if mine is None:
        return Decision.allow_with_filter(NOTHING)
    return Decision.allow_with_filter(Eq(field, mine))


def _filtered(predicate: Predicate) -> Decision:
    return Decision.allow_with_filter(predicate)


def _students(p: Principal, op: Operation, c: OwnerChain) -> Decision:
    if p.role is Role.ADMIN:
        return _ALLOW
    if op is Operation.READ_LIST:
        if p.role is Role.TEACHER:
            return _scoped("class.teacher_id", p.teacher_id)
        if p.role is Role.PARENT:
            return _scoped("parent_id", p.parent_id)
        return _scoped("id", p.student_id)
    if op is Operation.READ:
        if p.role is Role.TEACHER:
            return _match(c.teacher_id, p.teacher_id)
        if p.role is Role.PARENT:
            return _match(c.parent_id, p.parent_id)
        return _match(c.student_id, p.student_id)
    return _ROLE_FORBIDDEN


def _classes(p: Principal, op: Operation, c: OwnerChain) -> Decision:
    if p.role is Role.ADMIN:
        return _ALLOW
    if p.role is not Role.TEACHER:
        return _ROLE_FORBIDDEN
    if op is Operation.READ_LIST:
        return _scoped("teacher_id", p.teacher_id)
    if op in (Operation.READ, Operation.UPDATE):
        return _match(c.teacher_id, p.teacher_id)
    return _ROLE_FORBIDDEN


def _student_records(p: Principal, op: Operation, c: OwnerChain) -> Decision:
    """Attendance and grades: both hang off a student."""
    if p.role is Role.ADMIN:
        return _ALLOW
    if p.role is Role.TEACHER:
        if op is Operation.READ_LIST:
            return _scoped("student.class.teacher_id", p.teacher_id)
        return _match(c.teacher_id, p.teacher_id)
    if op is Operation.READ_LIST:
        if p.role is Role.PARENT:
            return _scoped("student.parent_id", p.parent_id)
        return _scoped("student_id", p.student_id)
    if op is Operation.READ:
        if p.role is Role.PARENT:
            return _match(c.parent_id, p.parent_id)
        return _match(c.student_id, p.student_id)
    return _ROLE_FORBIDDEN


def _events(p: Principal, op: Operation, c: OwnerChain) -> Decision:
    if p.role is Role.ADMIN:
        return _ALLOW
    if op is Operation.READ_LIST:
        return _filtered(Eq("is_public", True) | Eq("organizer_id", p.user_id))
    if op is Operation.READ:
        if c.is_public is False and c.organizer_id != p.user_id:
            return _MISMATCH
        return _ALLOW
    if p.role is Role.TEACHER:
        if op is Operation.CREATE:
            return _ALLOW
        if op is Operation.UPDATE:
            return _match(c.organizer_id, p.user_id)
    return _ROLE_FORBIDDEN


def _registrations(p: Principal, op: Operation, c: OwnerChain) -> Decision:
    if p.role is Role.ADMIN:
        return _ALLOW
    if op is Operation.READ_LIST:
        return _filtered(Eq("user_id", p.user_id) | Eq("event.organizer_id", p.user_id))
    if op is Operation.CREATE:
        return _match(c.owner_user_id, p.user_id)
    if op is Operation.UPDATE:
        if p.role is not Role.TEACHER:
            return _ROLE_FORBIDDEN
        return _match(c.organizer_id, p.user_id)
    # READ and DELETE (cancel): the registrant or the organizer
    if p.user_id in (c.owner_user_id, c.organizer_id):
        return _ALLOW
    return _MISMATCH


def _messages(p: Principal, op: Operation, c: OwnerChain) -> Decision:
    # every role, admin included, only sees its own conversations
    if op is Operation.CREATE:
        return _ALLOW
    if op is Operation.READ_LIST:
        return _filtered(Eq("sender_id", p.user_id) | Eq("receiver_id", p.user_id))
    if p.user_id not in (c.owner_user_id, c.recipient_user_id):
        return _MISMATCH
    if op is Operation.READ:
        return _ALLOW
    if c.owner_user_id != p.user_id:
        return _SELF_ACTION
    return _ALLOW


def _notifications(p: Principal, op: Operation, c: OwnerChain) -> Decision:
    if op is Operation.CREATE:
        return _ALLOW if p.role is Role.ADMIN else _ROLE_FORBIDDEN
    if op is Operation.READ_LIST:
        return _scoped("user_id", p.user_id)
    return _match(c.owner_user_id, p.user_id)


def _users(p: Principal, op: Operation, c: OwnerChain) -> Decision:
    if p.role is Role.ADMIN:
        if op is Operation.DELETE and c.owner_user_id == p.user_id:
            return _SELF_ACTION
        return _ALLOW
    if op in (Operation.READ, Operation.UPDATE):
        return _match(c.owner_user_id, p.user_id)
    return _ROLE_FORBIDDEN


_RULES: dict[ResourceType, Rule] = {
    ResourceType.STUDENT: _students,
    ResourceType.CLASS: _classes,
    ResourceType.ATTENDANCE: _student_records,
    ResourceType.GRADE: _student_records,
    ResourceType.EVENT: _events,
    ResourceType.REGISTRATION: _registrations,
    ResourceType.MESSAGE: _messages,
    ResourceType.NOTIFICATION: _notifications,
    ResourceType.USER: _users,
}


def evaluate(
    principal: Principal | None,
    operation: Operation,
    resource_type: ResourceType,
    chain: OwnerChain | None = None,
) -> Decision:
    """
    Decide whether ``principal`` may perform ``operation`` on a resource.

    Single-resource operations are checked against ``chain``; READ_LIST
    returns the row filter the caller must AND into its query. Pure: the
    same inputs always give the same decision.
    """
    if principal is None:
        return Decision.deny(DenyReason.NOT_AUTHENTICATED)
    return _RULES[resource_type](principal, operation, chain or OwnerChain())
