# Wobulezi - event attendance report (CSV or JSON)
from typing import Literal

from fastapi import APIRouter, Depends, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_auth
from database.database import get_db
from database.models import Registration, RegistrationStatus, Role, User
from access import Operation, Principal, ResourceType
from server.data_access import enforce, load_event, scoped
from server.errors import Forbidden
from server.exports import render_attendance_csv, report_row

router = APIRouter(prefix="/api/admin/reports", tags=["Reports"])

REPORT_ROLES = (Role.ADMIN, Role.TEACHER)


@router.get("/attendance")
async def attendance_report(
    event_id: int,
    format: Literal["csv", "json"] = "csv",
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    if principal.role not in REPORT_ROLES:
        raise Forbidden("Only administrators and teachers can export reports")
    event, chain = await load_event(db, event_id)
    enforce(principal, Operation.READ, ResourceType.EVENT, chain, event.id)
    decision = enforce(principal, Operation.READ_LIST, ResourceType.REGISTRATION)
    r = await db.execute(
        scoped(
            select(Registration, User).join(User, Registration.user_id == User.id),
            ResourceType.REGISTRATION,
            decision,
            Registration.event_id == event.id,
        ).order_by(Registration.created_at, Registration.id)
    )
    rows = [report_row(registration, user) for registration, user in r.all()]

    if format == "csv":
        return Response(
            content=render_attendance_csv(rows),
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename=attendance_{event.id}.csv"},
        )

    counts = {status.value: 0 for status in RegistrationStatus}
    for row in rows:
        counts[row["status"]] = counts.get(row["status"], 0) + 1
    return {
        "event": {
            "id": event.id,
            "title": event.title,
            "date": event.date,
            "start_time": event.start_time,
            "end_time": event.end_time,
            "location": event.location,
            "capacity": event.capacity,
        },
        "registrations": rows,
        "summary": {"total": len(rows), **counts},
    }
