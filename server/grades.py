# Wobulezi - grades
from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_auth
from database.database import get_db
from database.models import Grade, Student
from access import EVERYTHING, Eq, Operation, Principal, ResourceType, to_clause
from server.data_access import count_rows, enforce, load_grade, load_student, page_info, paginate, scoped
from server.summaries import grade_summary
from server.upserts import record_grade

router = APIRouter(prefix="/api/grades", tags=["Grades"])


class GradeRecord(BaseModel):
    student_id: int
    subject: str = Field(..., min_length=1, max_length=64)
    term: str = Field(..., min_length=1, max_length=32)
    score: float = Field(..., ge=0, le=100)
    grade: str = Field(..., min_length=1, max_length=8)
    remarks: str | None = None


def grade_out(record: Grade, student: Student | None = None) -> dict:
    out = {
        "id": record.id,
        "student_id": record.student_id,
        "subject": record.subject,
        "term": record.term,
        "score": record.score,
        "grade": record.grade,
        "remarks": record.remarks,
        "updated_at": record.updated_at,
    }
    if student is not None:
        out["student"] = {
            "id": student.id,
            "first_name": student.first_name,
            "last_name": student.last_name,
            "class_id": student.class_id,
        }
    return out


@router.post("")
async def record(
    body: GradeRecord,
    response: Response,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Record a grade; the same (student, subject, term) again replaces the score."""
    student, chain = await load_student(db, body.student_id)
    enforce(principal, Operation.CREATE, ResourceType.GRADE, chain, student.id)
    row, created = await record_grade(
        db, student.id, body.subject, body.term, body.score, body.grade, body.remarks
    )
    response.status_code = 201 if created else 200
    message = "Grade added successfully" if created else "Grade updated successfully"
    return {"message": message, "grade": grade_out(row)}


@router.get("")
async def list_grades(
    student_id: int | None = None,
    subject: str | None = None,
    term: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    decision = enforce(principal, Operation.READ_LIST, ResourceType.GRADE)
    wanted = EVERYTHING
    if student_id is not None:
        wanted &= Eq("student_id", student_id)
    if subject:
        wanted &= Eq("subject", subject)
    if term:
        wanted &= Eq("term", term)
    user_filter = to_clause(ResourceType.GRADE, wanted)

    total = await count_rows(db, scoped(select(Grade), ResourceType.GRADE, decision, user_filter))
    window = paginate(page, limit)
    r = await db.execute(
        scoped(
            select(Grade, Student).join(Student, Grade.student_id == Student.id),
            ResourceType.GRADE,
            decision,
            user_filter,
        )
        .order_by(Grade.created_at.desc(), Grade.id.desc())
        .offset(window["offset"])
        .limit(window["limit"])
    )
    return {
        "grades": [grade_out(g, s) for g, s in r.all()],
        "pagination": page_info(total, page, limit),
    }


@router.delete("/{grade_id}", status_code=204)
async def delete_grade(
    grade_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    row, chain = await load_grade(db, grade_id)
    enforce(principal, Operation.DELETE, ResourceType.GRADE, chain, row.id)
    await db.execute(delete(Grade).where(Grade.id == row.id))
    return Response(status_code=204)


@router.get("/summary")
async def grade_summary_for(
    student_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """GPA, best subject and average score for one student."""
    student, chain = await load_student(db, student_id)
    enforce(principal, Operation.READ, ResourceType.GRADE, chain, student.id)
    r = await db.execute(
        select(Grade.subject, Grade.score, Grade.grade)
        .where(Grade.student_id == student.id)
        .order_by(Grade.created_at, Grade.id)
    )
    return grade_summary(r.all())
