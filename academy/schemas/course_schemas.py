# academy/schemas/course_schemas.py
from typing import List, Optional
from datetime import date, time
from uuid import UUID
from pydantic import EmailStr, Field, field_validator

from .common import APIModel, check_password_bytes
from ..models.class_model import WeekDay
from ..models.course import CourseStatus, TeacherRole


class Course(APIModel):
    id: UUID
    name: str
    status: CourseStatus
    end_date: Optional[date] = None


class SessionAvailability(APIModel):
    id: UUID
    class_id: UUID
    day: WeekDay
    start_time: time
    end_time: time
    capacity: int
    available: int
    is_full: bool


class CourseSessions(APIModel):
    course: Course
    saturday: List[SessionAvailability]
    sunday: List[SessionAvailability]


class ReplaceHeadTeacherRequest(APIModel):
    new_head_teacher_id: UUID
    remove_old_teacher: bool = False


class TeacherSummary(APIModel):
    id: UUID
    email: str
    full_name: str
    role: TeacherRole
    course_id: Optional[UUID] = None


class ReplaceHeadTeacherResult(APIModel):
    course: Course
    old_head_teacher: Optional[TeacherSummary] = None
    new_head_teacher: TeacherSummary


class HeadTeacherCreate(APIModel):
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=8, max_length=72)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return check_password_bytes(value)


class CourseCreate(APIModel):
    name: str = Field(..., min_length=3, max_length=100)
    end_date: Optional[date] = None
    head_teacher: HeadTeacherCreate


class CourseUpdate(APIModel):
    name: Optional[str] = Field(default=None, min_length=3, max_length=100)
    status: Optional[CourseStatus] = None
    end_date: Optional[date] = None


class CourseCreated(APIModel):
    course: Course
    head_teacher: TeacherSummary
