"""Predicate composition and compilation to SQL."""

import pytest
from sqlalchemy import select

from access import EVERYTHING, NOTHING, And, Eq, In, Or, ResourceType, all_of, any_of, to_clause
from database.models import Attendance, Student


def test_and_drops_everything_and_short_circuits_nothing():
    assert EVERYTHING & Eq("id", 1) == Eq("id", 1)
    assert Eq("id", 1) & NOTHING == NOTHING
    assert all_of() == EVERYTHING


def test_or_drops_nothing_and_short_circuits_everything():
    assert NOTHING | Eq("id", 1) == Eq("id", 1)
    assert Eq("id", 1) | EVERYTHING == EVERYTHING
    assert any_of() == NOTHING


def test_nested_conjunctions_flatten():
    combined = Eq("a", 1) & Eq("b", 2) & Eq("c", 3)
    assert combined == And((Eq("a", 1), Eq("b", 2), Eq("c", 3)))
    either = Eq("a", 1) | Eq("b", 2) | Eq("c", 3)
    assert isinstance(either, Or)
    assert len(either.parts) == 3


def test_in_values_are_frozen_to_a_tuple():
    predicate = In("id", [1, 2, 3])
    assert predicate.values == (1, 2, 3)
    assert hash(predicate) == hash(In("id", (1, 2, 3)))


def _sql(stmt) -> str:
    return str(stmt.compile(compile_kwargs={"literal_binds": True}))


def test_to_clause_compiles_columns():
    clause = to_clause(ResourceType.STUDENT, Eq("parent_id", 7))
    assert "students.parent_id = 7" in _sql(select(Student).where(clause))


def test_to_clause_follows_relationships_with_exists():
    clause = to_clause(ResourceType.ATTENDANCE, Eq("student.class.teacher_id", 3))
    sql = _sql(select(Attendance).where(clause))
    assert "EXISTS" in sql
    assert "classes.teacher_id = 3" in sql


def test_to_clause_nothing_matches_no_rows():
    sql = _sql(select(Student).where(to_clause(ResourceType.STUDENT, NOTHING)))
    assert "0 = 1" in sql or "false" in sql.lower()


def test_to_clause_rejects_unknown_fields():
    with pytest.raises(ValueError):
        to_clause(ResourceType.STUDENT, Eq("password_hash", "x"))
