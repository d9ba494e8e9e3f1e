# Wobulezi - seed database with sample data
import asyncio
import datetime as dt
import logging

from passlib.context import CryptContext
from sqlalchemy import select

from . import database
from .models import (
    Attendance,
    AttendanceStatus,
    Class,
    Event,
    Grade,
    Parent,
    Role,
    Student,
    Teacher,
    User,
)

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def _user(name: str, email: str, password: str, role: Role, **extra) -> User:
    return User(name=name, email=email, password_hash=pwd_context.hash(password), role=role.value, **extra)


async def seed(database_url: str | None = None):
    await database.init_db(database_url)
    async with database.async_session() as session:
        r = await session.execute(select(User).limit(1))
        if r.scalar_one_or_none():
            logger.info("Database already seeded. Skip.")
            return

        # 1 admin, 2 teachers, 2 parents, 2 student accounts
        admin = _user("Admin User", "admin@wobulezi.edu", "admin123", Role.ADMIN)
        t1 = _user("Alice Mensah", "alice@wobulezi.edu", "teach1", Role.TEACHER, department="Science")
        t2 = _user("Bob Owusu", "bob@wobulezi.edu", "teach2", Role.TEACHER, department="Arts")
        p1 = _user("Carol Boateng", "carol@example.com", "parent1", Role.PARENT)
        p2 = _user("Dan Asante", "dan@example.com", "parent2", Role.PARENT)
        s1 = _user("Eve Boateng", "eve@wobulezi.edu", "stu1", Role.STUDENT, student_number="S-1001", grade="7")
        s2 = _user("Fred Asante", "fred@wobulezi.edu", "stu2", Role.STUDENT, student_number="S-1002", grade="8")
        session.add_all([admin, t1, t2, p1, p2, s1, s2])
        await session.flush()

        teacher1 = Teacher(user_id=t1.id, department="Science")
        teacher2 = Teacher(user_id=t2.id, department="Arts")
        parent1 = Parent(user_id=p1.id, phone="+233 20 000 0001")
        parent2 = Parent(user_id=p2.id, phone="+233 20 000 0002")
        session.add_all([teacher1, teacher2, parent1, parent2])
        await session.flush()

        c1 = Class(name="Grade 7A", grade="7", section="A", teacher_id=teacher1.id)
        c2 = Class(name="Grade 8B", grade="8", section="B", teacher_id=teacher2.id)
        session.add_all([c1, c2])
        await session.flush()

        eve = Student(
            user_id=s1.id, first_name="Eve", last_name="Boateng",
            date_of_birth=dt.date(2013, 3, 14), gender="F", enrollment_date=dt.date(2024, 9, 2),
            grade="7", section="A", parent_id=parent1.id, class_id=c1.id,
        )
        fred = Student(
            user_id=s2.id, first_name="Fred", last_name="Asante",
            date_of_birth=dt.date(2012, 7, 1), gender="M", enrollment_date=dt.date(2023, 9, 4),
            grade="8", section="B", parent_id=parent2.id, class_id=c2.id,
        )
        session.add_all([eve, fred])
        await session.flush()

        today = dt.date.today()
        session.add_all([
            Attendance(student_id=eve.id, date=today, status=AttendanceStatus.PRESENT.value),
            Attendance(student_id=fred.id, date=today, status=AttendanceStatus.LATE.value),
            Grade(student_id=eve.id, subject="Mathematics", term="Term 1", score=88, grade="A"),
            Grade(student_id=fred.id, subject="Art", term="Term 1", score=74, grade="B"),
        ])

        session.add_all([
            Event(
                title="Science Fair", description="Projects from grades 7 and 8.",
                date=today + dt.timedelta(days=30), start_time="09:00", end_time="12:00",
                location="Main Hall", category="Academic", capacity=50,
                organizer_id=t1.id,
            ),
            Event(
                title="Staff Planning", description="Term planning session.",
                date=today + dt.timedelta(days=7), start_time="14:00", end_time="15:30",
                location="Staff Room", category="Meeting", is_public=False,
                organizer_id=admin.id,
            ),
            Event(
                title="Art Showcase", description="Student artwork exhibition.\nParents welcome.",
                date=today + dt.timedelta(days=45), start_time="15:00", end_time="17:00",
                location="Gallery", category="Arts", capacity=30, requires_approval=True,
                organizer_id=t2.id,
            ),
        ])
        await session.commit()
    logger.info("Seed completed.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())
