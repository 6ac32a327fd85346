import enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..models.course import TeacherRole


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class AuthenticatedUser(BaseModel):
    """Identity decoded from the bearer token"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: UUID
    role: UserRole
    teacher_role: Optional[TeacherRole] = None
    course_id: Optional[UUID] = None

    @property
    def is_head_teacher(self) -> bool:
        return self.role == UserRole.TEACHER and self.teacher_role == TeacherRole.HEAD
