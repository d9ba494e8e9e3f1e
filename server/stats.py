# Wobulezi - dashboard and administration statistics
import calendar
import datetime as dt
from typing import Literal

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_auth
from database.database import get_db
from database.models import Event, Registration, Role, User
from access import Decision, Operation, Principal, ResourceType
from server.data_access import count_rows, enforce, scoped
from server.errors import Forbidden
from server.summaries import month_end, month_starts

router = APIRouter(tags=["Statistics"])

STATS_ROLES = (Role.ADMIN, Role.TEACHER)

Period = Literal["all", "week", "month", "year"]


def period_start(period: str, now: dt.datetime) -> dt.datetime | None:
    if period == "week":
        return now - dt.timedelta(days=7)
    if period == "month":
        year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
        day = min(now.day, calendar.monthrange(year, month)[1])
        return now.replace(year=year, month=month, day=day)
    if period == "year":
        # 29 February falls back to the 28th
        day = min(now.day, calendar.monthrange(now.year - 1, now.month)[1])
        return now.replace(year=now.year - 1, day=day)
    return None


def _events_with_counts(decision: Decision):
    return scoped(
        select(Event, func.count(Registration.id).label("registrations"))
        .outerjoin(Registration, Registration.event_id == Event.id)
        .group_by(Event.id),
        ResourceType.EVENT,
        decision,
    )


@router.get("/api/dashboard/stats")
async def dashboard_stats(
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Headline counts; events are the ones the caller can see."""
    decision = enforce(principal, Operation.READ_LIST, ResourceType.EVENT)
    today = dt.datetime.utcnow().date()
    visible = scoped(select(Event), ResourceType.EVENT, decision)
    out = {
        "total_events": await count_rows(db, visible),
        "upcoming_events": await count_rows(db, visible.where(Event.date >= today)),
        "total_users": await count_rows(db, select(User)),
        "total_registrations": await count_rows(db, select(Registration)),
    }
    if principal.role is not Role.ADMIN:
        out["user_events"] = await count_rows(db, select(Event).where(Event.organizer_id == principal.user_id))
        out["user_registrations"] = await count_rows(
            db, select(Registration).where(Registration.user_id == principal.user_id)
        )
    recent = []
    if principal.role in STATS_ROLES:
        r = await db.execute(
            _events_with_counts(decision).where(Event.date >= today).order_by(Event.date, Event.id).limit(5)
        )
        recent = [
            {
                "id": event.id,
                "title": event.title,
                "date": event.date,
                "location": event.location,
                "registrations": registrations,
            }
            for event, registrations in r.all()
        ]
    out["recent_events"] = recent
    return out


@router.get("/api/admin/stats")
async def admin_stats(
    period: Period = "all",
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    if principal.role not in STATS_ROLES:
        raise Forbidden("Only administrators and teachers can view statistics")
    decision = enforce(principal, Operation.READ_LIST, ResourceType.EVENT)
    now = dt.datetime.utcnow()
    since = period_start(period, now)
    event_filters = [Event.created_at >= since] if since else []
    registration_filters = [Registration.created_at >= since] if since else []

    users_by_role = await db.execute(select(User.role, func.count(User.id)).group_by(User.role).order_by(User.role))
    by_category = await db.execute(
        scoped(select(Event.category, func.count(Event.id)), ResourceType.EVENT, decision, *event_filters)
        .group_by(Event.category)
        .order_by(Event.category)
    )
    by_status = await db.execute(
        select(Registration.status, func.count(Registration.id))
        .where(*registration_filters)
        .group_by(Registration.status)
        .order_by(Registration.status)
    )

    monthly = []
    for start in reversed(month_starts(now.date(), 12)):
        count = await count_rows(
            db,
            scoped(select(Event), ResourceType.EVENT, decision, Event.date >= start, Event.date <= month_end(start)),
        )
        monthly.append({"month": calendar.month_abbr[start.month], "year": start.year, "count": count})

    top = await db.execute(
        _events_with_counts(decision).order_by(func.count(Registration.id).desc(), Event.id).limit(5)
    )
    return {
        "total_users": await count_rows(db, select(User)),
        "total_events": await count_rows(
            db, scoped(select(Event), ResourceType.EVENT, decision, *event_filters)
        ),
        "total_registrations": await count_rows(db, select(Registration).where(*registration_filters)),
        "users_by_role": [{"role": role, "count": count} for role, count in users_by_role.all()],
        "events_by_category": [{"category": category, "count": count} for category, count in by_category.all()],
        "registrations_by_status": [{"status": status, "count": count} for status, count in by_status.all()],
        "monthly_events": monthly,
        "top_events": [
            {
                "id": event.id,
                "title": event.title,
                "date": event.date,
                "category": event.category,
                "registrations": registrations,
            }
            for event, registrations in top.all()
        ],
    }
