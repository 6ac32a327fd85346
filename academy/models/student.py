# academy/models/student.py
from sqlalchemy import Column, String, Integer, ForeignKey, DateTime
from sqlalchemy.dialects.postgresql import UUID
from .base import Base


class Student(Base):
    __tablename__ = "students"

    # QR payloads must carry this token alongside the id
    uuid = Column(String(36), unique=True, nullable=False, index=True)
    student_number = Column(String(20), unique=True, nullable=False, index=True)

    surname = Column(String(100), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100))
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone_number = Column(String(30))
    password_hash = Column(String(255), nullable=False)

    class_id = Column(UUID(as_uuid=True), ForeignKey("classes.id"), nullable=False, index=True)
    saturday_session_id = Column(UUID(as_uuid=True), ForeignKey("sessions.id"), index=True)
    sunday_session_id = Column(UUID(as_uuid=True), ForeignKey("sessions.id"), index=True)

    photo_url = Column(String(500))
    photo_uploaded_at = Column(DateTime(timezone=True))
    deleted_at = Column(DateTime(timezone=True))

    @property
    def full_name(self) -> str:
        parts = [self.first_name, self.last_name, self.surname]
        return " ".join(p for p in parts if p)


class StudentNumberSequence(Base):
    __tablename__ = "student_number_sequences"

    name = Column(String(50), unique=True, nullable=False)
    last_value = Column(Integer, nullable=False, default=0)
