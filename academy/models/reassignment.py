# academy/models/reassignment.py
from sqlalchemy import Column, ForeignKey, DateTime, Enum, Text
from sqlalchemy.dialects.postgresql import UUID
from .base import Base, utcnow
import enum


class RequestStatus(enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DENIED = "DENIED"


class ReassignmentRequest(Base):
    __tablename__ = "reassignment_requests"

    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id"), nullable=False, index=True)
    from_session_id = Column(UUID(as_uuid=True), ForeignKey("sessions.id"), nullable=False)
    to_session_id = Column(UUID(as_uuid=True), ForeignKey("sessions.id"), nullable=False, index=True)
    status = Column(Enum(RequestStatus), default=RequestStatus.PENDING, nullable=False, index=True)
    reason = Column(Text)
    requested_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    reviewed_by_id = Column(UUID(as_uuid=True), ForeignKey("teachers.id"))
    reviewed_at = Column(DateTime(timezone=True))
    denial_reason = Column(Text)
