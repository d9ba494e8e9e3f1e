# Wobulezi - composable row filters
"""
Typed row-filter predicates returned by the policy for list operations.

Predicates name logical fields ("parent_id", "student.class.teacher_id")
rather than columns, so they can be built and compared without a database.
``access.resources.to_clause`` compiles them to SQLAlchemy.
"""
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Predicate:
    def __and__(self, other: "Predicate") -> "Predicate":
        return all_of(self, other)

    def __or__(self, other: "Predicate") -> "Predicate":
        return any_of(self, other)


@dataclass(frozen=True)
class Everything(Predicate):
    pass


@dataclass(frozen=True)
class Nothing(Predicate):
    pass


@dataclass(frozen=True)
class Eq(Predicate):
    field: str
    value: Any


@dataclass(frozen=True)
class In(Predicate):
    field: str
    values: tuple

    def __post_init__(self):
        object.__setattr__(self, "values", tuple(self.values))


@dataclass(frozen=True)
class And(Predicate):
    parts: tuple[Predicate, ...]


@dataclass(frozen=True)
class Or(Predicate):
    parts: tuple[Predicate, ...]


EVERYTHING = Everything()
NOTHING = Nothing()


def all_of(*parts: Predicate) -> Predicate:
    flat: list[Predicate] = []
    for part in parts:
        if isinstance(part, Nothing):
            return NOTHING
        if isinstance(part, Everything):
            continue
        if isinstance(part, And):
            flat.extend(part.parts)
        else:
            flat.append(part)
    if not flat:
        return EVERYTHING
    if len(flat) == 1:
        return flat[0]
    return And(tuple(flat))


def any_of(*parts: Predicate) -> Predicate:
    flat: list[Predicate] = []
    for part in parts:
        if isinstance(part, Everything):
            return EVERYTHING
        if isinstance(part, Nothing):
            continue
        if isinstance(part, Or):
            flat.extend(part.parts)
        else:
            flat.append(part)
    if not flat:
        return NOTHING
    if len(flat) == 1:
        return flat[0]
    return Or(tuple(flat))
