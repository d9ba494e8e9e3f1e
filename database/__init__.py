# Wobulezi database
from .models import (
    Base,
    Role,
    AttendanceStatus,
    RegistrationStatus,
    User,
    Teacher,
    Parent,
    Class,
    Student,
    Attendance,
    Grade,
    Event,
    Registration,
    ScheduleItem,
    EventResource,
    Message,
    Notification,
)
from .database import get_db, init_db, dispose_db

__all__ = [
    "Base",
    "Role",
    "AttendanceStatus",
    "RegistrationStatus",
    "User",
    "Teacher",
    "Parent",
    "Class",
    "Student",
    "Attendance",
    "Grade",
    "Event",
    "Registration",
    "ScheduleItem",
    "EventResource",
    "Message",
    "Notification",
    "get_db",
    "init_db",
    "dispose_db",
]
