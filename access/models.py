# Wobulezi - access policy protocol objects
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any
from pydantic import BaseModel, ConfigDict, Field

from database.models import Role
from .predicates import Predicate, EVERYTHING


class Operation(str, Enum):
    CREATE = "CREATE"
    READ = "READ"
    READ_LIST = "READ_LIST"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ResourceType(str, Enum):
    STUDENT = "Student"
    CLASS = "Class"
    ATTENDANCE = "Attendance"
    GRADE = "Grade"
    EVENT = "Event"
    REGISTRATION = "Registration"
    MESSAGE = "Message"
    NOTIFICATION = "Notification"
    USER = "User"


# --- Principal (who is asking) ---
class Principal(BaseModel):
    """Verified identity for one request, with the profile ids ownership chains end at."""
    model_config = ConfigDict(frozen=True)

    user_id: int = Field(..., description="users.id of the caller")
    role: Role
    teacher_id: int | None = Field(default=None, description="teachers.id when role is TEACHER")
    parent_id: int | None = Field(default=None, description="parents.id when role is PARENT")
    student_id: int | None = Field(default=None, description="students.id when role is STUDENT")
    name: str = ""


# --- Ownership chain of the target resource ---
class OwnerChain(BaseModel):
    """Minimal ownership fields the caller loads before asking for a decision."""
    model_config = ConfigDict(frozen=True)

    student_id: int | None = None
    parent_id: int | None = None
    class_id: int | None = None
    teacher_id: int | None = Field(default=None, description="teacher of the class the resource hangs off")
    owner_user_id: int | None = Field(default=None, description="registrant, message sender, notification or user row owner")
    recipient_user_id: int | None = None
    organizer_id: int | None = None
    is_public: bool | None = None


class PolicyDecision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    ALLOW_WITH_FILTER = "allow_with_filter"


class DenyReason(str, Enum):
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    ROLE_FORBIDDEN = "ROLE_FORBIDDEN"
    OWNERSHIP_MISMATCH = "OWNERSHIP_MISMATCH"
    SELF_ACTION_FORBIDDEN = "SELF_ACTION_FORBIDDEN"


@dataclass(frozen=True)
class Decision:
    effect: PolicyDecision
    reason: DenyReason | None = None
    predicate: Predicate = EVERYTHING

    @classmethod
    def allow(cls) -> "Decision":
        return cls(PolicyDecision.ALLOW)

    @classmethod
    def deny(cls, reason: DenyReason) -> "Decision":
        return cls(PolicyDecision.DENY, reason=reason)

    @classmethod
    def allow_with_filter(cls, predicate: Predicate) -> "Decision":
        return cls(PolicyDecision.ALLOW_WITH_FILTER, predicate=predicate)

    @property
    def allowed(self) -> bool:
        return self.effect is not PolicyDecision.DENY


# --- Audit log entry (every enforced decision) ---
class AuditLogEntry(BaseModel):
    trace_id: str
    user_id: int | None = None
    role: str | None = None
    operation: Operation
    resource: ResourceType
    resource_id: int | None = None
    policy_decision: PolicyDecision
    reason: DenyReason | None = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    details: dict[str, Any] = Field(default_factory=dict)
