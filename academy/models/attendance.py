# academy/models/attendance.py
from sqlalchemy import Column, ForeignKey, DateTime, Date, Enum, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from .base import Base
import enum


class AttendanceStatus(enum.Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    WRONG_SESSION = "WRONG_SESSION"


class Attendance(Base):
    __tablename__ = "attendances"

    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id"), nullable=False, index=True)
    session_id = Column(UUID(as_uuid=True), ForeignKey("sessions.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    status = Column(Enum(AttendanceStatus), nullable=False)
    # Null for manual and system marks
    scan_time = Column(DateTime(timezone=True))
    marked_by_id = Column(UUID(as_uuid=True), ForeignKey("teachers.id"))

    __table_args__ = (
        UniqueConstraint("student_id", "session_id", "date", name="uq_attendance_student_session_date"),
    )
