# Wobulezi - classes
from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_auth
from database.database import get_db
from database.models import Class, Role, Student, Teacher, User
from access import Operation, Principal, ResourceType
from server.data_access import enforce, load_class, scoped
from server.errors import Conflict, Forbidden, ValidationError
from server.validators import reject_null

router = APIRouter(prefix="/api/classes", tags=["Classes"])


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    grade: str = Field(..., min_length=1)
    section: str = Field(..., min_length=1)
    teacher_id: int


class ClassUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=128)
    grade: str | None = None
    section: str | None = None
    teacher_id: int | None = None

    @field_validator("name", "grade", "section", "teacher_id")
    @classmethod
    def _required(cls, v):
        return reject_null(v)


def class_out(cls: Class, teacher_name: str | None = None) -> dict:
    return {
        "id": cls.id,
        "name": cls.name,
        "grade": cls.grade,
        "section": cls.section,
        "teacher_id": cls.teacher_id,
        "teacher_name": teacher_name,
    }


async def _check_teacher(db: AsyncSession, teacher_id: int) -> None:
    if await db.get(Teacher, teacher_id) is None:
        raise ValidationError("Invalid references", fields={"teacher_id": "Teacher not found"})


@router.get("")
async def list_classes(
    grade: str | None = None,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    decision = enforce(principal, Operation.READ_LIST, ResourceType.CLASS)
    filters = [Class.grade == grade] if grade else []
    stmt = scoped(
        select(Class, User.name)
        .join(Teacher, Class.teacher_id == Teacher.id)
        .join(User, Teacher.user_id == User.id),
        ResourceType.CLASS,
        decision,
        *filters,
    ).order_by(Class.grade, Class.section)
    r = await db.execute(stmt)
    return [class_out(cls, teacher_name) for cls, teacher_name in r.all()]


@router.post("", status_code=201)
async def create_class(
    body: ClassCreate,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    enforce(principal, Operation.CREATE, ResourceType.CLASS)
    await _check_teacher(db, body.teacher_id)
    cls = Class(**body.model_dump())
    db.add(cls)
    await db.flush()
    return {"message": "Class added successfully", "class": class_out(cls)}


@router.get("/{class_id}")
async def get_class(
    class_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    cls, chain = await load_class(db, class_id)
    enforce(principal, Operation.READ, ResourceType.CLASS, chain, cls.id)
    r = await db.execute(
        select(Student).where(Student.class_id == cls.id).order_by(Student.last_name, Student.first_name)
    )
    out = class_out(cls)
    out["students"] = [
        {"id": s.id, "first_name": s.first_name, "last_name": s.last_name} for s in r.scalars().all()
    ]
    return out


@router.put("/{class_id}")
async def update_class(
    class_id: int,
    body: ClassUpdate,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    cls, chain = await load_class(db, class_id)
    enforce(principal, Operation.UPDATE, ResourceType.CLASS, chain, cls.id)
    changes = body.model_dump(exclude_unset=True)
    if "teacher_id" in changes:
        if principal.role is not Role.ADMIN:
            raise Forbidden("Only an administrator can reassign a class")
        await _check_teacher(db, changes["teacher_id"])
    for field, value in changes.items():
        setattr(cls, field, value)
    await db.flush()
    return class_out(cls)


@router.delete("/{class_id}", status_code=204)
async def delete_class(
    class_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    cls, chain = await load_class(db, class_id)
    enforce(principal, Operation.DELETE, ResourceType.CLASS, chain, cls.id)
    r = await db.execute(select(func.count(Student.id)).where(Student.class_id == cls.id))
    if r.scalar_one():
        raise Conflict("Class still has students; move them first")
    await db.execute(delete(Class).where(Class.id == cls.id))
    return Response(status_code=204)
