# Wobulezi - idempotent upserts keyed on natural keys
"""
Attendance and grades are written with a single INSERT ... ON CONFLICT DO
UPDATE against the table's unique constraint, so two concurrent marks for
the same key converge on one row holding the last value written.
"""
import datetime as dt
import logging

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import Attendance, AttendanceStatus, Grade
from server.errors import Internal

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _insert(session: AsyncSession, model):
    dialect = session.get_bind().dialect.name
    insert = _DIALECT_INSERTS.get(dialect)
    if insert is None:
        raise Internal(f"Natural-key upsert is not available on {dialect}")
    return insert(model)


async def upsert_by_natural_key(session: AsyncSession, model, key: dict, values: dict):
    """Insert or update the row identified by ``key``; returns (row, created)."""
    now = dt.datetime.utcnow()
    stmt = _insert(session, model).values(**key, **values, created_at=now, updated_at=now)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(key),
        set_={**values, "updated_at": now},
    )
    await session.execute(stmt)
    r = await session.execute(
        select(model).filter_by(**key).execution_options(populate_existing=True)
    )
    row = r.scalar_one()
    return row, row.created_at == now


async def mark_attendance(
    session: AsyncSession,
    student_id: int,
    date: dt.date,
    status: AttendanceStatus,
) -> tuple[Attendance, bool]:
    row, created = await upsert_by_natural_key(
        session,
        Attendance,
        {"student_id": student_id, "date": date},
        {"status": AttendanceStatus(status).value},
    )
    logger.info("Attendance %s for student %s on %s: %s", "marked" if created else "updated", student_id, date, row.status)
    return row, created


async def record_grade(
    session: AsyncSession,
    student_id: int,
    subject: str,
    term: str,
    score: float,
    grade: str,
    remarks: str | None = None,
) -> tuple[Grade, bool]:
    row, created = await upsert_by_natural_key(
        session,
        Grade,
        {"student_id": student_id, "subject": subject, "term": term},
        {"score": score, "grade": grade, "remarks": remarks},
    )
    logger.info("Grade %s for student %s (%s, %s)", "recorded" if created else "updated", student_id, subject, term)
    return row, created
