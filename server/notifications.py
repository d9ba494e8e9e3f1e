# Wobulezi - per-user notifications
from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_auth
from database.database import get_db
from database.models import Notification, User
from access import EVERYTHING, Eq, Operation, Principal, ResourceType, to_clause
from server.data_access import enforce, load_notification, scoped
from server.errors import ValidationError

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


class NotificationCreate(BaseModel):
    user_id: int
    message: str = Field(..., min_length=1, max_length=2000)


class NotificationUpdate(BaseModel):
    is_read: bool


def notification_out(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "user_id": notification.user_id,
        "message": notification.message,
        "is_read": notification.is_read,
        "created_at": notification.created_at,
    }


@router.get("")
async def list_notifications(
    unread_only: bool = False,
    limit: int = Query(50, ge=1, le=200),
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    decision = enforce(principal, Operation.READ_LIST, ResourceType.NOTIFICATION)
    wanted = Eq("is_read", False) if unread_only else EVERYTHING
    user_filter = to_clause(ResourceType.NOTIFICATION, wanted)
    r = await db.execute(
        scoped(select(Notification), ResourceType.NOTIFICATION, decision, user_filter)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    )
    unread = await db.execute(
        scoped(
            select(func.count(Notification.id)),
            ResourceType.NOTIFICATION,
            decision,
            Notification.is_read.is_(False),
        )
    )
    return {
        "notifications": [notification_out(n) for n in r.scalars().all()],
        "unread_count": unread.scalar_one(),
    }


@router.post("", status_code=201)
async def create_notification(
    body: NotificationCreate,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    enforce(principal, Operation.CREATE, ResourceType.NOTIFICATION)
    if await db.get(User, body.user_id) is None:
        raise ValidationError("Invalid references", fields={"user_id": "User not found"})
    notification = Notification(user_id=body.user_id, message=body.message)
    db.add(notification)
    await db.flush()
    return notification_out(notification)


@router.post("/mark-all-read")
async def mark_all_read(
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    decision = enforce(principal, Operation.READ_LIST, ResourceType.NOTIFICATION)
    r = await db.execute(
        update(Notification)
        .where(
            to_clause(ResourceType.NOTIFICATION, decision.predicate),
            Notification.is_read.is_(False),
        )
        .values(is_read=True)
    )
    return {"message": "All notifications marked as read", "updated": r.rowcount}


@router.put("/{notification_id}")
async def update_notification(
    notification_id: int,
    body: NotificationUpdate,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    notification, chain = await load_notification(db, notification_id)
    enforce(principal, Operation.UPDATE, ResourceType.NOTIFICATION, chain, notification.id)
    notification.is_read = body.is_read
    await db.flush()
    return notification_out(notification)


@router.delete("/{notification_id}", status_code=204)
async def delete_notification(
    notification_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    notification, chain = await load_notification(db, notification_id)
    enforce(principal, Operation.DELETE, ResourceType.NOTIFICATION, chain, notification.id)
    await db.execute(delete(Notification).where(Notification.id == notification.id))
    return Response(status_code=204)
