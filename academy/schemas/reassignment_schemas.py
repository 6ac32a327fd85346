# academy/schemas/reassignment_schemas.py
from typing import List, Optional
from datetime import datetime, time
from uuid import UUID
from pydantic import Field

from .common import APIModel
from ..models.class_model import WeekDay
from ..models.reassignment import RequestStatus


class ReassignmentCreate(APIModel):
    to_session_id: UUID
    from_session_id: Optional[UUID] = None
    reason: Optional[str] = Field(default=None, max_length=500)


class DenyRequest(APIModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class ReassignmentRequest(APIModel):
    id: UUID
    student_id: UUID
    from_session_id: UUID
    to_session_id: UUID
    status: RequestStatus
    reason: Optional[str] = None
    requested_at: datetime
    reviewed_by_id: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    denial_reason: Optional[str] = None


class SessionOption(APIModel):
    id: UUID
    day: WeekDay
    start_time: time
    end_time: time
    capacity: int
    available: int
    is_full: bool
    is_current: bool


class ReassignmentOptions(APIModel):
    saturday: List[SessionOption]
    sunday: List[SessionOption]
