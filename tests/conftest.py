"""Shared fixtures: in-memory database, a small seeded school, and an HTTP client."""

import datetime as dt
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from auth import create_access_token, hash_password, load_principal
from database.database import get_db
from database.models import Base, Class, Event, Parent, Role, Student, Teacher, User

PASSWORD = "secret123"
_PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


def _user(name: str, email: str, role: Role, **extra) -> User:
    return User(name=name, email=email, password_hash=_PASSWORD_HASH, role=role.value, **extra)


@pytest.fixture
async def school(session_factory):
    """Two families, two classes, one teacher per class and one event per teacher."""
    async with session_factory() as s:
        admin = _user("Admin", "admin@school.test", Role.ADMIN)
        t1 = _user("Alice Teacher", "alice@school.test", Role.TEACHER, department="Science")
        t2 = _user("Bob Teacher", "bob@school.test", Role.TEACHER, department="Arts")
        p1 = _user("Carol Parent", "carol@school.test", Role.PARENT)
        p2 = _user("Dan Parent", "dan@school.test", Role.PARENT)
        s1 = _user("Eve Student", "eve@school.test", Role.STUDENT, student_number="S-1", grade="7")
        s2 = _user("Fred Student", "fred@school.test", Role.STUDENT, student_number="S-2", grade="8")
        s.add_all([admin, t1, t2, p1, p2, s1, s2])
        await s.flush()

        teacher1, teacher2 = Teacher(user_id=t1.id), Teacher(user_id=t2.id)
        parent1, parent2 = Parent(user_id=p1.id), Parent(user_id=p2.id)
        s.add_all([teacher1, teacher2, parent1, parent2])
        await s.flush()

        class1 = Class(name="7A", grade="7", section="A", teacher_id=teacher1.id)
        class2 = Class(name="8B", grade="8", section="B", teacher_id=teacher2.id)
        s.add_all([class1, class2])
        await s.flush()

        eve = Student(
            user_id=s1.id, first_name="Eve", last_name="Student", date_of_birth=dt.date(2013, 1, 1),
            gender="F", enrollment_date=dt.date(2024, 9, 1), grade="7", section="A",
            parent_id=parent1.id, class_id=class1.id,
        )
        fred = Student(
            user_id=s2.id, first_name="Fred", last_name="Student", date_of_birth=dt.date(2012, 1, 1),
            gender="M", enrollment_date=dt.date(2023, 9, 1), grade="8", section="B",
            parent_id=parent2.id, class_id=class2.id,
        )
        s.add_all([eve, fred])

        fair = Event(
            title="Science Fair", description="Projects", date=dt.date(2025, 5, 10),
            start_time="09:00", end_time="10:00", location="Main Hall", category="Academic",
            capacity=2, organizer_id=t1.id,
        )
        private = Event(
            title="Staff Planning", description="Internal", date=dt.date(2025, 5, 12),
            start_time="14:00", end_time="15:00", location="Staff Room", category="Meeting",
            is_public=False, organizer_id=t2.id,
        )
        s.add_all([fair, private])
        await s.commit()

        principals = {}
        for key, user in {"admin": admin, "t1": t1, "t2": t2, "p1": p1, "p2": p2, "s1": s1, "s2": s2}.items():
            principals[key] = await load_principal(s, user)

    return SimpleNamespace(
        users={"admin": admin, "t1": t1, "t2": t2, "p1": p1, "p2": p2, "s1": s1, "s2": s2},
        principals=principals,
        classes={"7A": class1, "8B": class2},
        students={"eve": eve, "fred": fred},
        events={"fair": fair, "private": private},
    )


def token_for(user: User) -> dict:
    """Authorization header for ``user``."""
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers(school):
    """``headers("p1")`` -> bearer header for that seeded user."""
    return lambda key: token_for(school.users[key])


@pytest.fixture
async def client(session_factory):
    from main import app

    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
