# academy/models/registration.py
from sqlalchemy import Column, String, ForeignKey, DateTime, Enum, Text
from sqlalchemy.dialects.postgresql import UUID
from .base import Base
import enum


class RegistrationStatus(enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class StudentRegistration(Base):
    __tablename__ = "student_registrations"

    # Applicant
    surname = Column(String(100), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100))
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone_number = Column(String(30))
    password_hash = Column(String(255), nullable=False)

    # Requested placement
    course_id = Column(UUID(as_uuid=True), ForeignKey("courses.id"), nullable=False, index=True)
    saturday_session_id = Column(UUID(as_uuid=True), ForeignKey("sessions.id"), nullable=False, index=True)
    sunday_session_id = Column(UUID(as_uuid=True), ForeignKey("sessions.id"), nullable=False, index=True)

    # Uploads
    payment_receipt_url = Column(String(500), nullable=False)
    payment_receipt_no = Column(String(100), nullable=False)
    portrait_photo_url = Column(String(500))

    # Review
    status = Column(Enum(RegistrationStatus), default=RegistrationStatus.PENDING, nullable=False, index=True)
    reviewed_by_id = Column(UUID(as_uuid=True), ForeignKey("teachers.id"))
    reviewed_at = Column(DateTime(timezone=True))
    rejection_reason = Column(Text)
