# academy/models/course.py
from sqlalchemy import Column, String, Boolean, ForeignKey, Enum, Date, Index, text
from sqlalchemy.dialects.postgresql import UUID
from .base import Base
import enum


class CourseStatus(enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    COMPLETED = "COMPLETED"


class TeacherRole(enum.Enum):
    HEAD = "HEAD"
    ADDITIONAL = "ADDITIONAL"


class Course(Base):
    __tablename__ = "courses"

    name = Column(String(200), nullable=False)
    status = Column(Enum(CourseStatus), default=CourseStatus.ACTIVE, nullable=False, index=True)
    head_teacher_id = Column(
        UUID(as_uuid=True),
        ForeignKey("teachers.id", use_alter=True, name="fk_courses_head_teacher_id"),
        unique=True,
        nullable=True,
    )
    end_date = Column(Date)


class Teacher(Base):
    __tablename__ = "teachers"

    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    password_hash = Column(String(255), nullable=False)
    course_id = Column(UUID(as_uuid=True), ForeignKey("courses.id"), nullable=True, index=True)
    role = Column(Enum(TeacherRole), default=TeacherRole.ADDITIONAL, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    __table_args__ = (
        # At most one HEAD per course
        Index(
            "uq_teachers_one_head_per_course",
            "course_id",
            unique=True,
            postgresql_where=text("role = 'HEAD'"),
            sqlite_where=text("role = 'HEAD'"),
        ),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
