# Wobulezi - user accounts (admin management, own profile, own registrations)
import logging
import re

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auth import hash_password, require_auth
from database.database import get_db
from database.models import (
    Class,
    Event,
    Message,
    Notification,
    Parent,
    Registration,
    Role,
    Student,
    Teacher,
    User,
)
from access import Operation, Principal, ResourceType
from server.data_access import enforce, load_user, scoped
from server.errors import Conflict, Forbidden
from server.validators import reject_null

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")


def normalize_email(value: str) -> str:
    normalized = value.lower().strip()
    if not EMAIL_PATTERN.match(normalized):
        raise ValueError("Invalid email address")
    return normalized


class UserCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=128)
    email: str
    password: str = Field(..., min_length=6)
    role: Role
    student_number: str | None = None
    grade: str | None = None
    department: str | None = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return normalize_email(v)


class UserUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=128)
    email: str | None = None
    password: str | None = Field(default=None, min_length=6)
    role: Role | None = None
    student_number: str | None = None
    grade: str | None = None
    department: str | None = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: str | None) -> str | None:
        return normalize_email(reject_null(v))

    @field_validator("name", "password", "role")
    @classmethod
    def _required(cls, v):
        return reject_null(v)


def user_out(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "student_number": user.student_number,
        "grade": user.grade,
        "department": user.department,
        "created_at": user.created_at,
        "updated_at": user.updated_at,
    }


async def _email_taken(session: AsyncSession, email: str, exclude_id: int | None = None) -> bool:
    stmt = select(User.id).where(User.email == email)
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    r = await session.execute(stmt)
    return r.scalar_one_or_none() is not None


async def ensure_profile(session: AsyncSession, user: User) -> None:
    """Teachers and parents get the profile row their ownership chains hang off."""
    if user.role == Role.TEACHER.value:
        r = await session.execute(select(Teacher.id).where(Teacher.user_id == user.id))
        if r.scalar_one_or_none() is None:
            session.add(Teacher(user_id=user.id, department=user.department))
    elif user.role == Role.PARENT.value:
        r = await session.execute(select(Parent.id).where(Parent.user_id == user.id))
        if r.scalar_one_or_none() is None:
            session.add(Parent(user_id=user.id))
    await session.flush()


async def create_user(session: AsyncSession, payload: UserCreate) -> User:
    if await _email_taken(session, payload.email):
        raise Conflict("Email already in use")
    user = User(
        name=payload.name.strip(),
        email=payload.email,
        password_hash=hash_password(payload.password),
        role=payload.role.value,
        student_number=payload.student_number,
        grade=payload.grade,
        department=payload.department,
    )
    session.add(user)
    await session.flush()
    await ensure_profile(session, user)
    logger.info("Created %s user %s", user.role, user.id)
    return user


@router.get("")
async def list_users(
    role: Role | None = None,
    search: str | None = None,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    decision = enforce(principal, Operation.READ_LIST, ResourceType.USER)
    filters = []
    if role:
        filters.append(User.role == role.value)
    if search:
        like = f"%{search}%"
        filters.append(or_(User.name.ilike(like), User.email.ilike(like)))
    r = await db.execute(scoped(select(User), ResourceType.USER, decision, *filters).order_by(User.name))
    return [user_out(u) for u in r.scalars().all()]


@router.post("", status_code=201)
async def admin_create_user(
    body: UserCreate,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    enforce(principal, Operation.CREATE, ResourceType.USER)
    user = await create_user(db, body)
    return user_out(user)


@router.get("/me/events")
async def my_registrations(
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Events the caller is registered for, with the registration status."""
    decision = enforce(principal, Operation.READ_LIST, ResourceType.REGISTRATION)
    stmt = scoped(
        select(Registration, Event).join(Event, Registration.event_id == Event.id),
        ResourceType.REGISTRATION,
        decision,
        Registration.user_id == principal.user_id,
    ).order_by(Event.date)
    r = await db.execute(stmt)
    return [
        {
            "registration_id": reg.id,
            "status": reg.status,
            "registered_at": reg.created_at,
            "event": {
                "id": event.id,
                "title": event.title,
                "date": event.date,
                "start_time": event.start_time,
                "end_time": event.end_time,
                "location": event.location,
                "category": event.category,
            },
        }
        for reg, event in r.all()
    ]


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    user, chain = await load_user(db, user_id)
    enforce(principal, Operation.READ, ResourceType.USER, chain, user.id)
    events = await db.execute(select(func.count(Event.id)).where(Event.organizer_id == user.id))
    registrations = await db.execute(select(func.count(Registration.id)).where(Registration.user_id == user.id))
    out = user_out(user)
    out["counts"] = {"events": events.scalar_one(), "registrations": registrations.scalar_one()}
    return out


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    body: UserUpdate,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    user, chain = await load_user(db, user_id)
    enforce(principal, Operation.UPDATE, ResourceType.USER, chain, user.id)
    changes = body.model_dump(exclude_unset=True)
    if "role" in changes and principal.role is not Role.ADMIN:
        raise Forbidden("Only an administrator can change roles")
    if "email" in changes and changes["email"] != user.email:
        if await _email_taken(db, changes["email"], exclude_id=user.id):
            raise Conflict("Email already in use")
        user.email = changes["email"]
    if changes.get("password"):
        user.password_hash = hash_password(changes["password"])
    if changes.get("role"):
        user.role = changes["role"].value
    for field in ("name", "student_number", "grade", "department"):
        if field in changes:
            setattr(user, field, changes[field])
    await db.flush()
    await ensure_profile(db, user)
    return {"success": True, "user": user_out(user)}


@router.delete("/{user_id}", status_code=204)
async def delete_user(
    user_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    user, chain = await load_user(db, user_id)
    enforce(principal, Operation.DELETE, ResourceType.USER, chain, user.id)

    organized = await db.execute(select(func.count(Event.id)).where(Event.organizer_id == user.id))
    if organized.scalar_one():
        raise Conflict("User still organizes events; reassign or delete them first")
    teacher = await db.execute(select(Teacher.id).where(Teacher.user_id == user.id))
    teacher_id = teacher.scalar_one_or_none()
    if teacher_id is not None:
        classes = await db.execute(select(func.count(Class.id)).where(Class.teacher_id == teacher_id))
        if classes.scalar_one():
            raise Conflict("Teacher still has classes; reassign them first")
    parent = await db.execute(select(Parent.id).where(Parent.user_id == user.id))
    parent_id = parent.scalar_one_or_none()
    if parent_id is not None:
        children = await db.execute(select(func.count(Student.id)).where(Student.parent_id == parent_id))
        if children.scalar_one():
            raise Conflict("Parent still has students linked; reassign them first")

    await db.execute(delete(Notification).where(Notification.user_id == user.id))
    await db.execute(delete(Message).where(or_(Message.sender_id == user.id, Message.receiver_id == user.id)))
    await db.execute(delete(Registration).where(Registration.user_id == user.id))
    await db.execute(delete(Teacher).where(Teacher.user_id == user.id))
    await db.execute(delete(Parent).where(Parent.user_id == user.id))
    await db.execute(update(Student).where(Student.user_id == user.id).values(user_id=None))
    await db.execute(delete(User).where(User.id == user.id))
    logger.info("User %s deleted by %s", user_id, principal.user_id)
    return Response(status_code=204)
