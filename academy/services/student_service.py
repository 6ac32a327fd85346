# academy/services/student_service.py
"""Student self-service views."""
from typing import Any, Dict, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from .base_service import BaseService
from ..core.exceptions import NotFoundError
from ..core.permissions import Action, require
from ..models.class_model import ClassModel, Session
from ..models.course import Course
from ..models.student import Student
from ..schemas.auth_schemas import AuthenticatedUser


class StudentService(BaseService[Student]):
    def __init__(self, db: AsyncSession):
        super().__init__(Student, db)

    async def _session(self, session_id: Optional[UUID]) -> Optional[Session]:
        if session_id is None:
            return None
        return await self.db.get(Session, session_id)

    async def schedule(self, user: AuthenticatedUser) -> Dict[str, Any]:
        """The student's class, course and weekend sessions"""
        require(user, Action.VIEW_OWN_SCHEDULE)
        student = await self.db.scalar(
            select(Student).where(Student.id == user.id, Student.is_deleted == False)
        )
        if student is None:
            raise NotFoundError("Student", user.id)

        class_ = await self.db.get(ClassModel, student.class_id)
        course = await self.db.get(Course, class_.course_id)
        return {
            "student": student,
            "class_": class_,
            "course": course,
            "saturday_session": await self._session(student.saturday_session_id),
            "sunday_session": await self._session(student.sunday_session_id),
        }
