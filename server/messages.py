# Wobulezi - direct messages between users
import logging

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import delete, or_, and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import require_auth
from database.database import get_db
from database.models import Message, Role, User
from access import Operation, Principal, ResourceType
from server.data_access import enforce, load_message, scoped
from server.errors import Forbidden, NotFound, ValidationError
from server.validators import reject_null

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/messages", tags=["Messages"])


class MessageCreate(BaseModel):
    receiver_id: int
    content: str = Field(..., min_length=1, max_length=5000)


class MessageUpdate(BaseModel):
    content: str | None = Field(default=None, min_length=1, max_length=5000)
    is_read: bool | None = None

    @field_validator("content", "is_read")
    @classmethod
    def _required(cls, v):
        return reject_null(v)


class Broadcast(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    target_role: Role

    @field_validator("target_role")
    @classmethod
    def _not_admin(cls, v: Role) -> Role:
        if v is Role.ADMIN:
            raise ValueError("target_role must be TEACHER, STUDENT or PARENT")
        return v


class ContactLookup(BaseModel):
    user_id: int


def message_out(message: Message) -> dict:
    return {
        "id": message.id,
        "sender_id": message.sender_id,
        "receiver_id": message.receiver_id,
        "content": message.content,
        "is_read": message.is_read,
        "created_at": message.created_at,
    }


@router.post("", status_code=201)
async def send_message(
    body: MessageCreate,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    enforce(principal, Operation.CREATE, ResourceType.MESSAGE)
    if await db.get(User, body.receiver_id) is None:
        raise ValidationError("Invalid references", fields={"receiver_id": "Receiver not found"})
    message = Message(sender_id=principal.user_id, receiver_id=body.receiver_id, content=body.content)
    db.add(message)
    await db.flush()
    return {"message": "Message sent", "data": message_out(message)}


@router.get("")
async def list_messages(
    with_user: int | None = Query(default=None, alias="with"),
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """The caller's inbox and outbox, or one conversation when ``with`` is given."""
    decision = enforce(principal, Operation.READ_LIST, ResourceType.MESSAGE)
    filters = []
    if with_user is not None:
        filters.append(or_(
            and_(Message.sender_id == principal.user_id, Message.receiver_id == with_user),
            and_(Message.sender_id == with_user, Message.receiver_id == principal.user_id),
        ))
    r = await db.execute(
        scoped(select(Message), ResourceType.MESSAGE, decision, *filters)
        .order_by(Message.created_at.desc(), Message.id.desc())
    )
    return [message_out(m) for m in r.scalars().all()]


@router.post("/broadcast", status_code=201)
async def broadcast(
    body: Broadcast,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """One message to every user of ``target_role``. Administrators only."""
    enforce(principal, Operation.CREATE, ResourceType.MESSAGE)
    if principal.role is not Role.ADMIN:
        raise Forbidden("Only administrators can broadcast messages")
    r = await db.execute(select(User.id).where(User.role == body.target_role.value).order_by(User.id))
    targets = r.scalars().all()
    if not targets:
        raise NotFound(f"No {body.target_role.value.lower()}s found")
    db.add_all([
        Message(sender_id=principal.user_id, receiver_id=target, content=body.content) for target in targets
    ])
    await db.flush()
    logger.info("User %s broadcast to %d %s users", principal.user_id, len(targets), body.target_role.value)
    return {
        "success": True,
        "messages_sent": len(targets),
        "total_targets": len(targets),
        "target_role": body.target_role.value,
    }


@router.get("/contacts")
async def list_contacts(
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Everyone the caller has exchanged messages with, most recent conversation first."""
    decision = enforce(principal, Operation.READ_LIST, ResourceType.MESSAGE)
    r = await db.execute(
        scoped(select(Message), ResourceType.MESSAGE, decision)
        .order_by(Message.created_at.desc(), Message.id.desc())
    )
    latest: dict[int, Message] = {}
    unread: dict[int, int] = {}
    for message in r.scalars().all():
        other = message.receiver_id if message.sender_id == principal.user_id else message.sender_id
        latest.setdefault(other, message)
        if message.receiver_id == principal.user_id and not message.is_read:
            unread[other] = unread.get(other, 0) + 1
    if not latest:
        return []
    users = await db.execute(select(User).where(User.id.in_(list(latest))))
    by_id = {user.id: user for user in users.scalars().all()}
    return [
        {
            "id": other,
            "name": by_id[other].name,
            "role": by_id[other].role,
            "last_message": message.content,
            "last_message_time": message.created_at,
            "unread_count": unread.get(other, 0),
        }
        for other, message in latest.items()
        if other in by_id
    ]


@router.post("/contacts")
async def lookup_contact(
    body: ContactLookup,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    """Basic details for starting a new conversation."""
    enforce(principal, Operation.CREATE, ResourceType.MESSAGE)
    user = await db.get(User, body.user_id)
    if user is None:
        raise NotFound("User not found")
    return {"id": user.id, "name": user.name, "role": user.role}


@router.put("/{message_id}")
async def update_message(
    message_id: int,
    body: MessageUpdate,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    message, chain = await load_message(db, message_id)
    changes = body.model_dump(exclude_unset=True)
    # the receiver may only flip the read flag
    if set(changes) == {"is_read"} and message.receiver_id == principal.user_id:
        enforce(principal, Operation.READ, ResourceType.MESSAGE, chain, message.id)
    else:
        enforce(principal, Operation.UPDATE, ResourceType.MESSAGE, chain, message.id)
    for field, value in changes.items():
        setattr(message, field, value)
    await db.flush()
    return message_out(message)


@router.delete("/{message_id}", status_code=204)
async def delete_message(
    message_id: int,
    principal: Principal = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
):
    message, chain = await load_message(db, message_id)
    enforce(principal, Operation.DELETE, ResourceType.MESSAGE, chain, message.id)
    await db.execute(delete(Message).where(Message.id == message.id))
    return Response(status_code=204)
