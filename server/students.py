# Wobulezi - students (admin CRUD; teachers, parents and students read their scope)
import datetime as dt

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_auth
from database.database import get_db
from database.models import Attendance, Class, Grade, Parent, Student, User
from access import Operation, Principal, ResourceType
from server.data_access import enforce, load_student, scoped
from server.errors import ValidationError
from server.validators import reject_null

router = APIRouter(prefix="/api/students", tags=["Students"])


class StudentCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=64)
    last_name: str = Field(..., min_length=1, max_length=64)
    date_of_birth: dt.date
    gender: str = Field(..., min_length=1, max_length=16)
    enrollment_date: dt.date
    grade: str = Field(..., min_length=1)
    section: str = Field(..., min_length=1)
    parent_id: int
    class_id: int
    address: str | None = None
    user_id: int | None = None


class StudentUpdate(BaseModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=64)
    last_name: str | None = Field(default=None, min_length=1, max_length=64)
    date_of_birth: dt.date | None = None
    gender: str | None = None
    grade: str | None = None
    section: str | None = None
    address: str | None = None
    parent_id: int | None = None
    class_id: int | None = None

    @field_validator(
        "first_name", "last_name", "date_of_birth", "gender",
        "grade", "section", "parent_id", "class_id",
    )
    @classmethod
    def _required(cls, v):
        return reject_null(v)


def student_out(student: Student) -> dict:
    return {
        "id": student.id,
        "first_name": student.first_name,
        "last_name": student.last_name,
        "date_of_birth": student.date_of_birth,
        "gender": student.gender,
        "enrollment_date": student.enrollment_date,
        "grade": student.grade,
        "section": student.section,
        "address": student.address,
        "parent_id": student.parent_id,
        "class_id": student.class_id,
        "user_id": student.user_id,
    }


async def _check_links(db: AsyncSession, parent_id: int | None, class_id: int | None) -> None:
    fields = {}
    if parent_id is not None and await db.get(Parent, parent_id) is None:
        fields["parent_id"] = "Parent not found"
    if class_id is not None and await db.get(Class, class_id) is None:
        fields["class_id"] = "Class not found"
    if fields:
        raise ValidationError("Invalid references", fields=fields)


@router.get("")
async def list_students(
    grade: str | None = None,
    section: str | None = None,
    class_id: int | None = None,
    search: str | None = None,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    decision = enforce(principal, Operation.READ_LIST, ResourceType.STUDENT)
    filters = []
    if grade:
        filters.append(Student.grade == grade)
    if section:
        filters.append(Student.section == section)
    if class_id is not None:
        filters.append(Student.class_id == class_id)
    if search:
        like = f"%{search}%"
        filters.append(or_(Student.first_name.ilike(like), Student.last_name.ilike(like)))
    stmt = scoped(
        select(Student, Class.name).join(Class, Student.class_id == Class.id),
        ResourceType.STUDENT,
        decision,
        *filters,
    ).order_by(Student.last_name, Student.first_name)
    r = await db.execute(stmt)
    return [{**student_out(s), "class_name": class_name} for s, class_name in r.all()]


@router.post("", status_code=201)
async def create_student(
    body: StudentCreate,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    enforce(principal, Operation.CREATE, ResourceType.STUDENT)
    await _check_links(db, body.parent_id, body.class_id)
    if body.user_id is not None and await db.get(User, body.user_id) is None:
        raise ValidationError("Invalid references", fields={"user_id": "User not found"})
    student = Student(**body.model_dump())
    db.add(student)
    await db.flush()
    return {"message": "Student added successfully", "student": student_out(student)}


@router.get("/{student_id}")
async def get_student(
    student_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    student, chain = await load_student(db, student_id)
    enforce(principal, Operation.READ, ResourceType.STUDENT, chain, student.id)
    grades = await db.execute(
        select(Grade).where(Grade.student_id == student.id).order_by(Grade.created_at.desc()).limit(10)
    )
    attendance = await db.execute(
        select(Attendance).where(Attendance.student_id == student.id).order_by(Attendance.date.desc()).limit(10)
    )
    out = student_out(student)
    out["grades"] = [
        {"id": g.id, "subject": g.subject, "term": g.term, "score": g.score, "grade": g.grade, "remarks": g.remarks}
        for g in grades.scalars().all()
    ]
    out["attendance"] = [{"id": a.id, "date": a.date, "status": a.status} for a in attendance.scalars().all()]
    return out


@router.put("/{student_id}")
async def update_student(
    student_id: int,
    body: StudentUpdate,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    student, chain = await load_student(db, student_id)
    enforce(principal, Operation.UPDATE, ResourceType.STUDENT, chain, student.id)
    changes = body.model_dump(exclude_unset=True)
    await _check_links(db, changes.get("parent_id"), changes.get("class_id"))
    for field, value in changes.items():
        setattr(student, field, value)
    await db.flush()
    return student_out(student)


@router.delete("/{student_id}", status_code=204)
async def delete_student(
    student_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    student, chain = await load_student(db, student_id)
    enforce(principal, Operation.DELETE, ResourceType.STUDENT, chain, student.id)
    await db.execute(delete(Attendance).where(Attendance.student_id == student.id))
    await db.execute(delete(Grade).where(Grade.student_id == student.id))
    await db.execute(delete(Student).where(Student.id == student.id))
    return Response(status_code=204)
