# Wobulezi - attendance marking and lookup
import datetime as dt

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_auth
from database.database import get_db
from database.models import Attendance, AttendanceStatus, Student
from access import EVERYTHING, Eq, Operation, Principal, ResourceType, to_clause
from server.data_access import count_rows, enforce, load_attendance, load_student, page_info, paginate, scoped
from server.summaries import attendance_summary, month_starts
from server.upserts import mark_attendance

router = APIRouter(prefix="/api/attendance", tags=["Attendance"])


class AttendanceMark(BaseModel):
    student_id: int
    date: dt.date
    status: AttendanceStatus


def attendance_out(record: Attendance, student: Student | None = None) -> dict:
    out = {
        "id": record.id,
        "student_id": record.student_id,
        "date": record.date,
        "status": record.status,
        "updated_at": record.updated_at,
    }
    if student is not None:
        out["student"] = {
            "id": student.id,
            "first_name": student.first_name,
            "last_name": student.last_name,
            "grade": student.grade,
            "section": student.section,
            "class_id": student.class_id,
        }
    return out


@router.post("")
async def mark(
    body: AttendanceMark,
    response: Response,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Mark a student for a day; marking the same day again overwrites the status."""
    student, chain = await load_student(db, body.student_id)
    enforce(principal, Operation.CREATE, ResourceType.ATTENDANCE, chain, student.id)
    record, created = await mark_attendance(db, student.id, body.date, body.status)
    response.status_code = 201 if created else 200
    message = "Attendance marked successfully" if created else "Attendance updated successfully"
    return {"message": message, "attendance": attendance_out(record)}


@router.get("")
async def list_attendance(
    student_id: int | None = None,
    class_id: int | None = None,
    start_date: dt.date | None = None,
    end_date: dt.date | None = None,
    status: AttendanceStatus | None = None,
    grade: str | None = None,
    section: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    decision = enforce(principal, Operation.READ_LIST, ResourceType.ATTENDANCE)
    wanted = EVERYTHING
    if student_id is not None:
        wanted &= Eq("student_id", student_id)
    if class_id is not None:
        wanted &= Eq("student.class_id", class_id)
    if status is not None:
        wanted &= Eq("status", status.value)
    if grade:
        wanted &= Eq("student.grade", grade)
    if section:
        wanted &= Eq("student.section", section)
    filters = [to_clause(ResourceType.ATTENDANCE, wanted)]
    if start_date:
        filters.append(Attendance.date >= start_date)
    if end_date:
        filters.append(Attendance.date <= end_date)

    base = scoped(select(Attendance), ResourceType.ATTENDANCE, decision, *filters)
    total = await count_rows(db, base)
    window = paginate(page, limit)
    r = await db.execute(
        scoped(
            select(Attendance, Student).join(Student, Attendance.student_id == Student.id),
            ResourceType.ATTENDANCE,
            decision,
            *filters,
        )
        .order_by(Attendance.date.desc(), Attendance.id.desc())
        .offset(window["offset"])
        .limit(window["limit"])
    )
    rows = [attendance_out(record, student) for record, student in r.all()]

    stats_q = await db.execute(
        scoped(select(Attendance.status, func.count(Attendance.id)), ResourceType.ATTENDANCE, decision, *filters)
        .group_by(Attendance.status)
    )
    by_status = dict(stats_q.all())
    return {
        "attendance": rows,
        "pagination": page_info(total, page, limit),
        "statistics": {
            "total": total,
            "present": by_status.get(AttendanceStatus.PRESENT.value, 0),
            "absent": by_status.get(AttendanceStatus.ABSENT.value, 0),
            "late": by_status.get(AttendanceStatus.LATE.value, 0),
        },
    }


@router.delete("/{attendance_id}", status_code=204)
async def delete_attendance(
    attendance_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    record, chain = await load_attendance(db, attendance_id)
    enforce(principal, Operation.DELETE, ResourceType.ATTENDANCE, chain, record.id)
    await db.execute(delete(Attendance).where(Attendance.id == record.id))
    return Response(status_code=204)


@router.get("/summary")
async def attendance_summary_for(
    student_id: int,
    months: int = Query(3, ge=1, le=24),
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Monthly present/absent/late counts for one student, current month first."""
    student, chain = await load_student(db, student_id)
    enforce(principal, Operation.READ, ResourceType.ATTENDANCE, chain, student.id)
    today = dt.datetime.utcnow().date()
    since = month_starts(today, months)[-1]
    r = await db.execute(
        select(Attendance.date, Attendance.status).where(
            Attendance.student_id == student.id, Attendance.date >= since
        )
    )
    return attendance_summary(r.all(), today, months)
