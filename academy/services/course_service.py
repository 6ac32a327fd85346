# academy/services/course_service.py
"""Course catalogue, course administration and head-teacher governance."""
import logging
from typing import Any, Dict, List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from .base_service import BaseService, transactional
from .capacity_service import CapacityService
from ..core.exceptions import ConflictError, InternalError, NotFoundError, ValidationError
from ..core.permissions import Action, require
from ..core.security import hash_password
from ..models.class_model import ClassModel
from ..models.course import Course, CourseStatus, Teacher, TeacherRole
from ..schemas.auth_schemas import AuthenticatedUser
from ..schemas.course_schemas import CourseCreate, CourseUpdate

logger = logging.getLogger(__name__)


def teacher_summary(teacher: Optional[Teacher]) -> Optional[Dict[str, Any]]:
    if teacher is None:
        return None
    return {
        "id": teacher.id,
        "email": teacher.email,
        "full_name": teacher.full_name,
        "role": teacher.role,
        "course_id": teacher.course_id,
    }


class CourseService(BaseService[Course]):
    def __init__(self, db: AsyncSession):
        super().__init__(Course, db)
        self.capacity = CapacityService(db)

    async def list_active_courses(self) -> List[Course]:
        result = await self.db.execute(
            select(Course)
            .where(Course.status == CourseStatus.ACTIVE, Course.is_deleted == False)
            .order_by(Course.name)
        )
        return result.scalars().all()

    async def course_sessions(self, course_id: UUID) -> Dict[str, Any]:
        """Sessions open for registration, grouped by day, with seats left"""
        course = await self.get(course_id)
        if course is None or course.is_deleted:
            raise NotFoundError("Course", course_id)
        if course.status != CourseStatus.ACTIVE:
            raise ValidationError("This course is not accepting registrations")

        grouped: Dict[str, List[Dict[str, Any]]] = {"saturday": [], "sunday": []}
        for session in await self.capacity.course_sessions(course.id):
            usage = await self.capacity.seat_usage(session)
            grouped[session.day.value.lower()].append({
                "id": session.id,
                "class_id": session.class_id,
                "day": session.day,
                "start_time": session.start_time,
                "end_time": session.end_time,
                "capacity": session.capacity,
                "available": usage.display_available,
                "is_full": usage.is_full,
            })
        return {"course": course, **grouped}

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    async def _live_course(self, course_id: UUID) -> Course:
        course = await self.get_for_update(course_id)
        if course is None or course.is_deleted:
            raise NotFoundError("Course", course_id)
        return course

    async def create_course(self, data: CourseCreate, staff: AuthenticatedUser) -> Dict[str, Any]:
        """Open a course together with its HEAD teacher account"""
        require(staff, Action.MANAGE_COURSES)
        # Hash before any row is written
        password_hash = await hash_password(data.head_teacher.password)
        return await self._create_course(data, password_hash)

    @transactional
    async def _create_course(self, data: CourseCreate, password_hash: str) -> Dict[str, Any]:
        email = data.head_teacher.email.strip().lower()
        taken = await self.db.scalar(select(Teacher.id).where(func.lower(Teacher.email) == email))
        if taken is not None:
            raise ConflictError("A teacher with this email already exists", code="EMAIL_EXISTS")

        course = Course(name=data.name.strip(), status=CourseStatus.ACTIVE, end_date=data.end_date)
        self.db.add(course)
        await self.db.flush()

        head = Teacher(
            email=email,
            first_name=data.head_teacher.first_name.strip(),
            last_name=data.head_teacher.last_name.strip(),
            password_hash=password_hash,
            course_id=course.id,
            role=TeacherRole.HEAD,
        )
        self.db.add(head)
        await self.db.flush()
        course.head_teacher_id = head.id
        await self.db.flush()

        logger.info(f"Course {course.id} created with head teacher {head.id}")
        return {"course": course, "head_teacher": teacher_summary(head)}

    @transactional
    async def update_course(self, course_id: UUID, data: CourseUpdate, staff: AuthenticatedUser) -> Course:
        require(staff, Action.MANAGE_COURSES)
        course = await self._live_course(course_id)

        changes = data.model_dump(exclude_unset=True)
        # end_date may be cleared, name and status may not
        for field in ("name", "status"):
            if field in changes and changes[field] is None:
                del changes[field]
        if "name" in changes:
            changes["name"] = changes["name"].strip()
        for field, value in changes.items():
            setattr(course, field, value)
        await self.db.flush()

        logger.info(f"Course {course.id} updated: {sorted(changes)}")
        return course

    @transactional
    async def delete_course(self, course_id: UUID, staff: AuthenticatedUser) -> None:
        """Soft-delete a course that no longer owns any class"""
        require(staff, Action.MANAGE_COURSES)
        course = await self._live_course(course_id)

        classes = await self.db.scalar(
            select(func.count(ClassModel.id)).where(
                ClassModel.course_id == course.id,
                ClassModel.is_deleted == False
            )
        ) or 0
        if classes:
            raise ConflictError(
                f"Course still has {classes} classes; delete them first",
                code="COURSE_HAS_CLASSES",
            )

        course.is_deleted = True
        course.status = CourseStatus.INACTIVE
        await self.db.flush()
        logger.info(f"Course {course.id} deleted")

    async def _teacher_for_update(self, teacher_id: UUID) -> Optional[Teacher]:
        stmt = (
            select(Teacher)
            .where(Teacher.id == teacher_id, Teacher.is_deleted == False)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.db.scalar(stmt)

    async def _head_count(self, course_id: UUID) -> int:
        return await self.db.scalar(
            select(func.count(Teacher.id)).where(
                Teacher.course_id == course_id,
                Teacher.role == TeacherRole.HEAD,
                Teacher.is_deleted == False
            )
        ) or 0

    @transactional
    async def replace_head_teacher(
        self,
        course_id: UUID,
        new_head_teacher_id: UUID,
        staff: AuthenticatedUser,
        remove_old_teacher: bool = False
    ) -> Dict[str, Any]:
        """Swap the course's HEAD; the course has exactly one HEAD before and after"""
        require(staff, Action.REPLACE_HEAD_TEACHER)

        course = await self.get_for_update(course_id)
        if course is None or course.is_deleted:
            raise NotFoundError("Course", course_id)

        if course.head_teacher_id == new_head_teacher_id:
            raise ConflictError("New head teacher must be different from the current head teacher")

        # Lock both teacher rows in id order
        old_head: Optional[Teacher] = None
        new_head: Optional[Teacher] = None
        for teacher_id in sorted(filter(None, [course.head_teacher_id, new_head_teacher_id]), key=str):
            teacher = await self._teacher_for_update(teacher_id)
            if teacher_id == new_head_teacher_id:
                new_head = teacher
            else:
                old_head = teacher

        if new_head is None or new_head.course_id != course.id:
            raise NotFoundError("Teacher", new_head_teacher_id)
        if new_head.role == TeacherRole.HEAD:
            raise ConflictError("Teacher is already a head teacher")

        # Demote first so the one-HEAD-per-course index never sees two
        if old_head is not None:
            if remove_old_teacher:
                old_head.course_id = None
            old_head.role = TeacherRole.ADDITIONAL
            await self.db.flush()

        new_head.role = TeacherRole.HEAD
        course.head_teacher_id = new_head.id
        await self.db.flush()

        heads = await self._head_count(course.id)
        if heads != 1:
            logger.error(f"Course {course.id} has {heads} head teachers after replacement")
            raise InternalError("Head teacher replacement left the course without exactly one head")

        logger.info(
            f"Course {course.id} head teacher replaced: {old_head.id if old_head else None} -> {new_head.id}"
            f"{' (old head removed)' if remove_old_teacher else ''}"
        )
        return {
            "course": course,
            "old_head_teacher": teacher_summary(old_head),
            "new_head_teacher": teacher_summary(new_head),
        }
