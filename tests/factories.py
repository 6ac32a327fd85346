"""Row builders and identities shared by the test modules."""
import asyncio
import uuid
from datetime import time
from types import SimpleNamespace

from academy.core.exceptions import ConflictError
from academy.core.security import create_access_token, hash_password_sync
from academy.models import (
    ClassModel, Course, CourseStatus, Session, Student, StudentNumberSequence,
    Teacher, TeacherRole, WeekDay,
)
from academy.schemas.auth_schemas import AuthenticatedUser, UserRole
from academy.schemas.registration_schemas import RegistrationCreate

PASSWORD_HASH = hash_password_sync("secret-password", rounds=4)
SEQUENCE_ID = uuid.UUID(int=1)
DEFAULT = object()


def _teacher(course_id, role, label):
    return Teacher(
        email=f"{label}-{uuid.uuid4().hex[:8]}@academy.test",
        first_name=label.title(),
        last_name="Teacher",
        password_hash=PASSWORD_HASH,
        course_id=course_id,
        role=role,
    )


async def seed_course(session_factory, capacity=2, name="Python Fundamentals", status=CourseStatus.ACTIVE):
    """Course with a head and an additional teacher, one class, two sessions per day.

    Rows are written through their own session so the returned objects stay
    detached and readable whatever happens to the session under test.
    """
    async with session_factory() as db:
        return await _seed_course(db, session_factory, capacity, name, status)


async def _seed_course(db, session_factory, capacity, name, status):
    course = Course(name=name, status=status)
    db.add(course)
    await db.flush()

    head = _teacher(course.id, TeacherRole.HEAD, "head")
    additional = _teacher(course.id, TeacherRole.ADDITIONAL, "additional")
    db.add_all([head, additional])
    await db.flush()
    course.head_teacher_id = head.id

    class_ = ClassModel(course_id=course.id, name="Class A", capacity=capacity * 2)
    db.add(class_)
    await db.flush()

    def session(day, start, end):
        return Session(class_id=class_.id, day=day, start_time=start, end_time=end, capacity=capacity)

    sat_morning = session(WeekDay.SATURDAY, time(9, 0), time(12, 0))
    sat_afternoon = session(WeekDay.SATURDAY, time(13, 0), time(16, 0))
    sun_morning = session(WeekDay.SUNDAY, time(9, 0), time(12, 0))
    sun_afternoon = session(WeekDay.SUNDAY, time(13, 0), time(16, 0))
    db.add_all([sat_morning, sat_afternoon, sun_morning, sun_afternoon])

    if await db.get(StudentNumberSequence, SEQUENCE_ID) is None:
        db.add(StudentNumberSequence(id=SEQUENCE_ID, name="student_number", last_value=0))
    await db.commit()

    return SimpleNamespace(
        session_factory=session_factory,
        course=course,
        head=head,
        additional=additional,
        class_=class_,
        sat_morning=sat_morning,
        sat_afternoon=sat_afternoon,
        sun_morning=sun_morning,
        sun_afternoon=sun_afternoon,
        head_user=staff_user(head, course),
        additional_user=staff_user(additional, course),
    )


async def seed_student(academy, saturday=DEFAULT, sunday=DEFAULT, number=None, email=None):
    """Active student; pass None for a day to leave it unassigned"""
    saturday = academy.sat_morning if saturday is DEFAULT else saturday
    sunday = academy.sun_morning if sunday is DEFAULT else sunday
    suffix = uuid.uuid4().hex[:8]
    student = Student(
        uuid=str(uuid.uuid4()),
        student_number=number or f"TMP-{suffix}",
        surname="Doe",
        first_name="Jane",
        email=email or f"student-{suffix}@academy.test",
        password_hash=PASSWORD_HASH,
        class_id=academy.class_.id,
        saturday_session_id=saturday.id if saturday else None,
        sunday_session_id=sunday.id if sunday else None,
    )
    async with academy.session_factory() as db:
        db.add(student)
        await db.commit()
    return student


def registration_input(academy, email=None, saturday=None, sunday=None, **overrides):
    data = dict(
        surname="Doe",
        first_name="John",
        email=email or f"applicant-{uuid.uuid4().hex[:8]}@example.com",
        password="correct-horse-battery",
        course_id=academy.course.id,
        saturday_session_id=(saturday or academy.sat_morning).id,
        sunday_session_id=(sunday or academy.sun_morning).id,
        payment_receipt_url="https://files.academy.test/receipts/1.pdf",
        payment_receipt_no="RCPT-001",
    )
    data.update(overrides)
    return RegistrationCreate(**data)


def staff_user(teacher, course):
    return AuthenticatedUser(
        id=teacher.id,
        role=UserRole.TEACHER,
        teacher_role=teacher.role,
        course_id=course.id,
    )


def student_user(student):
    return AuthenticatedUser(id=student.id, role=UserRole.STUDENT)


def admin_user():
    return AuthenticatedUser(id=uuid.uuid4(), role=UserRole.ADMIN)


def auth_header(user):
    return {"Authorization": f"Bearer {create_access_token(user)}"}


async def run_with_retry(session_factory, call, attempts=5):
    """Run call(session) in a fresh session; retry the retryable lock conflict like a client would"""
    for _ in range(attempts):
        async with session_factory() as session:
            try:
                return await call(session)
            except ConflictError as e:
                if not e.retryable:
                    raise
        await asyncio.sleep(0.05)
    raise AssertionError("call kept hitting lock contention")
