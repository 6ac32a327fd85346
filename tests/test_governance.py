import uuid

import pytest
from sqlalchemy import func, select, update

from academy.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from academy.core.security import verify_password
from academy.models import ClassModel, Course, CourseStatus, Teacher, TeacherRole
from academy.schemas.course_schemas import CourseCreate, CourseUpdate
from academy.services.course_service import CourseService

from factories import admin_user, seed_course


async def heads_of(session_factory, course_id):
    async with session_factory() as session:
        result = await session.execute(
            select(Teacher.id).where(Teacher.course_id == course_id, Teacher.role == TeacherRole.HEAD)
        )
        return result.scalars().all()


async def fetch(session_factory, model, id):
    async with session_factory() as session:
        return await session.get(model, id)


async def test_replace_head_teacher_swaps_roles(db, academy):
    result = await CourseService(db).replace_head_teacher(
        academy.course.id, academy.additional.id, admin_user()
    )

    assert result["old_head_teacher"]["id"] == academy.head.id
    assert result["old_head_teacher"]["role"] == TeacherRole.ADDITIONAL
    assert result["new_head_teacher"]["role"] == TeacherRole.HEAD
    assert await heads_of(academy.session_factory, academy.course.id) == [academy.additional.id]

    course = await fetch(academy.session_factory, Course, academy.course.id)
    assert course.head_teacher_id == academy.additional.id
    old_head = await fetch(academy.session_factory, Teacher, academy.head.id)
    assert old_head.course_id == academy.course.id


async def test_replace_head_teacher_can_detach_the_old_head(db, academy):
    result = await CourseService(db).replace_head_teacher(
        academy.course.id, academy.additional.id, admin_user(), remove_old_teacher=True
    )

    assert result["old_head_teacher"]["course_id"] is None
    old_head = await fetch(academy.session_factory, Teacher, academy.head.id)
    assert old_head.course_id is None
    assert old_head.role == TeacherRole.ADDITIONAL
    assert await heads_of(academy.session_factory, academy.course.id) == [academy.additional.id]


async def test_failed_replacements_keep_exactly_one_head(db, academy):
    other = await seed_course(academy.session_factory, name="Data Science")
    service = CourseService(db)

    with pytest.raises(ConflictError):
        await service.replace_head_teacher(academy.course.id, academy.head.id, admin_user())
    with pytest.raises(NotFoundError):
        await service.replace_head_teacher(academy.course.id, other.additional.id, admin_user())
    with pytest.raises(NotFoundError):
        await service.replace_head_teacher(academy.course.id, uuid.uuid4(), admin_user())
    with pytest.raises(NotFoundError):
        await service.replace_head_teacher(uuid.uuid4(), academy.additional.id, admin_user())
    with pytest.raises(ForbiddenError):
        await service.replace_head_teacher(academy.course.id, academy.additional.id, academy.head_user)

    assert await heads_of(academy.session_factory, academy.course.id) == [academy.head.id]
    assert await heads_of(academy.session_factory, other.course.id) == [other.head.id]


async def test_replacing_twice_hands_the_role_back(db, academy):
    service = CourseService(db)
    await service.replace_head_teacher(academy.course.id, academy.additional.id, admin_user())
    await service.replace_head_teacher(academy.course.id, academy.head.id, admin_user())

    assert await heads_of(academy.session_factory, academy.course.id) == [academy.head.id]


async def test_list_active_courses_hides_closed_ones(db, academy):
    closed = await seed_course(academy.session_factory, name="Archived", status=CourseStatus.COMPLETED)

    courses = await CourseService(db).list_active_courses()

    ids = [course.id for course in courses]
    assert academy.course.id in ids
    assert closed.course.id not in ids


async def test_course_sessions_reports_availability(db, academy):
    sessions = await CourseService(db).course_sessions(academy.course.id)

    assert sessions["course"].id == academy.course.id
    assert [s["id"] for s in sessions["saturday"]] == [academy.sat_morning.id, academy.sat_afternoon.id]
    assert all(s["available"] == 2 and not s["is_full"] for s in sessions["sunday"])


async def test_course_sessions_of_inactive_course(db, academy):
    await db.execute(update(Course).where(Course.id == academy.course.id).values(status=CourseStatus.INACTIVE))
    await db.commit()
    service = CourseService(db)

    with pytest.raises(ValidationError):
        await service.course_sessions(academy.course.id)
    with pytest.raises(NotFoundError):
        await service.course_sessions(uuid.uuid4())
    assert await db.scalar(select(func.count(Course.id))) == 1


# ----------------------------------------------------------------------
# course administration
# ----------------------------------------------------------------------

def course_input(email="new.head@academy.test", name="Data Science Weekends"):
    return CourseCreate(
        name=name,
        head_teacher={
            "email": email,
            "first_name": "Grace",
            "last_name": "Hopper",
            "password": "head-teacher-secret",
        },
    )


async def test_create_course_opens_it_with_a_head_teacher(db, academy):
    result = await CourseService(db).create_course(course_input(email="New.Head@Academy.test"), admin_user())

    course = result["course"]
    assert course.status == CourseStatus.ACTIVE
    assert result["head_teacher"]["role"] == TeacherRole.HEAD
    assert result["head_teacher"]["email"] == "new.head@academy.test"
    assert await heads_of(academy.session_factory, course.id) == [result["head_teacher"]["id"]]

    head = await fetch(academy.session_factory, Teacher, result["head_teacher"]["id"])
    assert verify_password("head-teacher-secret", head.password_hash)
    stored = await fetch(academy.session_factory, Course, course.id)
    assert stored.head_teacher_id == head.id


async def test_create_course_rejects_a_taken_teacher_email(db, academy):
    with pytest.raises(ConflictError) as exc_info:
        await CourseService(db).create_course(course_input(email=academy.head.email.upper()), admin_user())
    assert exc_info.value.code == "EMAIL_EXISTS"

    async with academy.session_factory() as session:
        courses = await session.scalar(select(func.count(Course.id)))
    assert courses == 1


async def test_course_administration_is_admin_only(db, academy):
    service = CourseService(db)
    with pytest.raises(ForbiddenError):
        await service.create_course(course_input(), academy.head_user)
    with pytest.raises(ForbiddenError):
        await service.update_course(academy.course.id, CourseUpdate(name="Renamed"), academy.head_user)
    with pytest.raises(ForbiddenError):
        await service.delete_course(academy.course.id, academy.head_user)


async def test_update_course_changes_only_the_given_fields(db, academy):
    course = await CourseService(db).update_course(
        academy.course.id, CourseUpdate(name="  Advanced Python ", status=CourseStatus.COMPLETED), admin_user()
    )

    assert course.name == "Advanced Python"
    assert course.status == CourseStatus.COMPLETED

    course = await CourseService(db).update_course(academy.course.id, CourseUpdate(name=None), admin_user())
    assert course.name == "Advanced Python"


async def test_delete_course_refuses_while_it_owns_classes(db, academy):
    service = CourseService(db)
    with pytest.raises(ConflictError) as exc_info:
        await service.delete_course(academy.course.id, admin_user())
    assert exc_info.value.code == "COURSE_HAS_CLASSES"

    async with academy.session_factory() as session:
        await session.execute(update(ClassModel).where(ClassModel.id == academy.class_.id).values(is_deleted=True))
        await session.commit()

    await service.delete_course(academy.course.id, admin_user())

    course = await fetch(academy.session_factory, Course, academy.course.id)
    assert course.is_deleted
    assert await service.list_active_courses() == []
    with pytest.raises(NotFoundError):
        await service.update_course(academy.course.id, CourseUpdate(name="Back again"), admin_user())
