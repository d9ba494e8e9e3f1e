"""Unit tests for the access policy. No database: principals and chains are built by hand."""

import pytest

from access import (
    EVERYTHING,
    NOTHING,
    DenyReason,
    Eq,
    Operation,
    OwnerChain,
    PolicyDecision,
    Principal,
    ResourceType,
    evaluate,
)
from database.models import Role

ADMIN = Principal(user_id=1, role=Role.ADMIN)
TEACHER = Principal(user_id=2, role=Role.TEACHER, teacher_id=20)
PARENT = Principal(user_id=3, role=Role.PARENT, parent_id=30)
STUDENT = Principal(user_id=4, role=Role.STUDENT, student_id=40)

OWN_CHILD = OwnerChain(student_id=40, parent_id=30, class_id=5, teacher_id=20)
OTHER_CHILD = OwnerChain(student_id=41, parent_id=31, class_id=6, teacher_id=21)


def test_evaluate_is_deterministic():
    """Same inputs, same decision, every time."""
    for principal in (ADMIN, TEACHER, PARENT, STUDENT):
        for op in Operation:
            for resource in ResourceType:
                first = evaluate(principal, op, resource, OWN_CHILD)
                assert all(evaluate(principal, op, resource, OWN_CHILD) == first for _ in range(3))


def test_missing_principal_is_not_authenticated():
    decision = evaluate(None, Operation.READ, ResourceType.STUDENT, OWN_CHILD)
    assert decision.effect is PolicyDecision.DENY
    assert decision.reason is DenyReason.NOT_AUTHENTICATED


def test_parent_reads_own_child_but_not_another():
    assert evaluate(PARENT, Operation.READ, ResourceType.STUDENT, OWN_CHILD).allowed
    denied = evaluate(PARENT, Operation.READ, ResourceType.STUDENT, OTHER_CHILD)
    assert denied.reason is DenyReason.OWNERSHIP_MISMATCH


def test_parent_list_is_filtered_to_own_children():
    decision = evaluate(PARENT, Operation.READ_LIST, ResourceType.STUDENT)
    assert decision.effect is PolicyDecision.ALLOW_WITH_FILTER
    assert decision.predicate == Eq("parent_id", 30)


def test_teacher_scope_follows_class_assignment():
    assert evaluate(TEACHER, Operation.READ, ResourceType.STUDENT, OWN_CHILD).allowed
    assert evaluate(TEACHER, Operation.CREATE, ResourceType.ATTENDANCE, OWN_CHILD).allowed
    assert evaluate(TEACHER, Operation.CREATE, ResourceType.GRADE, OTHER_CHILD).reason is DenyReason.OWNERSHIP_MISMATCH
    listing = evaluate(TEACHER, Operation.READ_LIST, ResourceType.GRADE)
    assert listing.predicate == Eq("student.class.teacher_id", 20)


@pytest.mark.parametrize("principal", [PARENT, STUDENT])
def test_non_staff_cannot_write_student_records(principal):
    for resource in (ResourceType.ATTENDANCE, ResourceType.GRADE, ResourceType.STUDENT):
        decision = evaluate(principal, Operation.CREATE, resource, OWN_CHILD)
        assert decision.reason is DenyReason.ROLE_FORBIDDEN


def test_student_reads_only_own_records():
    assert evaluate(STUDENT, Operation.READ, ResourceType.GRADE, OWN_CHILD).allowed
    assert evaluate(STUDENT, Operation.READ, ResourceType.GRADE, OTHER_CHILD).reason is DenyReason.OWNERSHIP_MISMATCH
    assert evaluate(STUDENT, Operation.READ_LIST, ResourceType.ATTENDANCE).predicate == Eq("student_id", 40)


def test_missing_profile_sees_nothing():
    orphan = Principal(user_id=9, role=Role.PARENT)
    assert evaluate(orphan, Operation.READ_LIST, ResourceType.STUDENT).predicate == NOTHING
    assert evaluate(orphan, Operation.READ, ResourceType.STUDENT, OwnerChain()).reason is DenyReason.OWNERSHIP_MISMATCH


def test_admin_is_unrestricted_except_self_delete():
    assert evaluate(ADMIN, Operation.READ_LIST, ResourceType.STUDENT).predicate == EVERYTHING
    assert evaluate(ADMIN, Operation.DELETE, ResourceType.USER, OwnerChain(owner_user_id=7)).allowed
    self_delete = evaluate(ADMIN, Operation.DELETE, ResourceType.USER, OwnerChain(owner_user_id=1))
    assert self_delete.reason is DenyReason.SELF_ACTION_FORBIDDEN


def test_users_manage_only_themselves():
    assert evaluate(PARENT, Operation.UPDATE, ResourceType.USER, OwnerChain(owner_user_id=3)).allowed
    assert evaluate(PARENT, Operation.READ, ResourceType.USER, OwnerChain(owner_user_id=4)).reason is DenyReason.OWNERSHIP_MISMATCH
    assert evaluate(PARENT, Operation.CREATE, ResourceType.USER).reason is DenyReason.ROLE_FORBIDDEN


def test_event_rules():
    mine = OwnerChain(organizer_id=2, is_public=True)
    others_private = OwnerChain(organizer_id=99, is_public=False)
    assert evaluate(TEACHER, Operation.CREATE, ResourceType.EVENT).allowed
    assert evaluate(TEACHER, Operation.UPDATE, ResourceType.EVENT, mine).allowed
    assert evaluate(TEACHER, Operation.UPDATE, ResourceType.EVENT, others_private).reason is DenyReason.OWNERSHIP_MISMATCH
    assert evaluate(TEACHER, Operation.DELETE, ResourceType.EVENT, mine).reason is DenyReason.ROLE_FORBIDDEN
    assert evaluate(PARENT, Operation.CREATE, ResourceType.EVENT).reason is DenyReason.ROLE_FORBIDDEN
    assert evaluate(PARENT, Operation.READ, ResourceType.EVENT, others_private).reason is DenyReason.OWNERSHIP_MISMATCH
    listing = evaluate(STUDENT, Operation.READ_LIST, ResourceType.EVENT).predicate
    assert listing == Eq("is_public", True) | Eq("organizer_id", 4)


def test_registration_status_changes_belong_to_the_organizer():
    chain = OwnerChain(owner_user_id=4, organizer_id=2, is_public=True)
    assert evaluate(TEACHER, Operation.UPDATE, ResourceType.REGISTRATION, chain).allowed
    assert evaluate(STUDENT, Operation.UPDATE, ResourceType.REGISTRATION, chain).reason is DenyReason.ROLE_FORBIDDEN
    assert evaluate(STUDENT, Operation.DELETE, ResourceType.REGISTRATION, chain).allowed
    assert evaluate(PARENT, Operation.READ, ResourceType.REGISTRATION, chain).reason is DenyReason.OWNERSHIP_MISMATCH


def test_messages_are_private_even_for_admin():
    chain = OwnerChain(owner_user_id=3, recipient_user_id=4)
    assert evaluate(ADMIN, Operation.READ, ResourceType.MESSAGE, chain).reason is DenyReason.OWNERSHIP_MISMATCH
    assert evaluate(STUDENT, Operation.READ, ResourceType.MESSAGE, chain).allowed
    assert evaluate(STUDENT, Operation.DELETE, ResourceType.MESSAGE, chain).reason is DenyReason.SELF_ACTION_FORBIDDEN
    assert evaluate(PARENT, Operation.UPDATE, ResourceType.MESSAGE, chain).allowed


def test_notifications_are_own_only_and_created_by_admin():
    assert evaluate(ADMIN, Operation.CREATE, ResourceType.NOTIFICATION).allowed
    assert evaluate(TEACHER, Operation.CREATE, ResourceType.NOTIFICATION).reason is DenyReason.ROLE_FORBIDDEN
    assert evaluate(ADMIN, Operation.READ_LIST, ResourceType.NOTIFICATION).predicate == Eq("user_id", 1)
    assert evaluate(ADMIN, Operation.DELETE, ResourceType.NOTIFICATION, OwnerChain(owner_user_id=3)).reason is DenyReason.OWNERSHIP_MISMATCH
