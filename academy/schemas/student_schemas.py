# academy/schemas/student_schemas.py
from typing import Optional
from uuid import UUID
from pydantic import Field

from .common import APIModel
from .class_schemas import Session


class StudentProfile(APIModel):
    id: UUID
    student_number: str
    surname: str
    first_name: str
    last_name: Optional[str] = None
    email: str


class ClassSummary(APIModel):
    id: UUID
    name: str


class CourseSummary(APIModel):
    id: UUID
    name: str


class Schedule(APIModel):
    student: StudentProfile
    class_: ClassSummary = Field(..., alias="class")
    course: CourseSummary
    saturday_session: Optional[Session] = None
    sunday_session: Optional[Session] = None
