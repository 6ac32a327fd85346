# academy/models/__init__.py
"""Import all models here, needed for Alembic autogenerate."""
from .base import Base
from .course import Course, CourseStatus, Teacher, TeacherRole
from .class_model import ClassModel, Session, WeekDay
from .registration import StudentRegistration, RegistrationStatus
from .student import Student, StudentNumberSequence
from .attendance import Attendance, AttendanceStatus
from .reassignment import ReassignmentRequest, RequestStatus

__all__ = [
    "Base",
    "Course", "CourseStatus", "Teacher", "TeacherRole",
    "ClassModel", "Session", "WeekDay",
    "StudentRegistration", "RegistrationStatus",
    "Student", "StudentNumberSequence",
    "Attendance", "AttendanceStatus",
    "ReassignmentRequest", "RequestStatus",
]
