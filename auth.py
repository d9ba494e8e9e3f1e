# Wobulezi - Auth (JWT + principal for the access policy)
import hashlib
import secrets
from datetime import datetime, timedelta
from fastapi import Request, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import get_settings
from database.database import get_db
from database.models import Parent, Role, Student, Teacher, User
from access import Principal
from server.errors import Unauthenticated

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer = HTTPBearer(auto_error=False)

ALGORITHM = "HS256"
# Bcrypt limit: password must be <= 72 bytes
MAX_PASSWORD_BYTES = 72


def _truncate_password(password: str) -> str:
    """Bcrypt accepts max 72 bytes; truncate to avoid ValueError."""
    if not password:
        return password
    enc = password.encode("utf-8")
    if len(enc) <= MAX_PASSWORD_BYTES:
        return password
    return enc[:MAX_PASSWORD_BYTES].decode("utf-8", errors="ignore")


def get_secret():
    return get_settings().secret_key


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(_truncate_password(plain), hashed)


def hash_password(plain: str) -> str:
    return pwd_context.hash(_truncate_password(plain))


def create_access_token(data: dict) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + timedelta(minutes=get_settings().access_expire_minutes)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, get_secret(), algorithm=ALGORITHM)


def decode_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, get_secret(), algorithms=[ALGORITHM])
    except JWTError:
        return None


def hash_reset_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def generate_reset_token() -> str:
    return secrets.token_urlsafe(32)


async def load_principal(session: AsyncSession, user: User) -> Principal:
    """Resolve the profile ids (teacher/parent/student) ownership chains end at."""
    role = Role(user.role)
    profile_ids: dict[str, int | None] = {}
    if role is Role.TEACHER:
        r = await session.execute(select(Teacher.id).where(Teacher.user_id == user.id))
        profile_ids["teacher_id"] = r.scalar_one_or_none()
    elif role is Role.PARENT:
        r = await session.execute(select(Parent.id).where(Parent.user_id == user.id))
        profile_ids["parent_id"] = r.scalar_one_or_none()
    elif role is Role.STUDENT:
        r = await session.execute(select(Student.id).where(Student.user_id == user.id))
        profile_ids["student_id"] = r.scalar_one_or_none()
    return Principal(user_id=user.id, role=role, name=user.name, **profile_ids)


async def get_current_user_from_token(credentials: HTTPAuthorizationCredentials | None = Depends(bearer)) -> dict | None:
    if not credentials:
        return None
    payload = decode_token(credentials.credentials)
    if not payload or "sub" not in payload or "role" not in payload:
        return None
    return {"user_id": payload["sub"], "role": payload["role"]}


async def require_auth(
    request: Request,
    token_user: dict | None = Depends(get_current_user_from_token),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """Set request.state.principal and return it; 401 if not authenticated."""
    if not token_user:
        raise Unauthenticated()
    try:
        user_id = int(token_user["user_id"])
    except (TypeError, ValueError):
        raise Unauthenticated("Invalid token") from None
    user = await db.get(User, user_id)
    if user is None:
        raise Unauthenticated("Account no longer exists")
    principal = await load_principal(db, user)
    request.state.principal = principal
    return principal
