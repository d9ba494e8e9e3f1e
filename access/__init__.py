# Wobulezi - access control (role table, ownership chains, row filters)
from .models import (
    Principal,
    OwnerChain,
    Operation,
    ResourceType,
    PolicyDecision,
    DenyReason,
    Decision,
    AuditLogEntry,
)
from .predicates import Predicate, Everything, Nothing, Eq, In, And, Or, EVERYTHING, NOTHING, all_of, any_of
from .policy import evaluate
from .resources import RESOURCE_FIELDS, to_clause

__all__ = [
    "Principal",
    "OwnerChain",
    "Operation",
    "ResourceType",
    "PolicyDecision",
    "DenyReason",
    "Decision",
    "AuditLogEntry",
    "Predicate",
    "Everything",
    "Nothing",
    "Eq",
    "In",
    "And",
    "Or",
    "EVERYTHING",
    "NOTHING",
    "all_of",
    "any_of",
    "evaluate",
    "RESOURCE_FIELDS",
    "to_clause",
]
