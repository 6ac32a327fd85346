# academy/schemas/class_schemas.py
from typing import List, Optional
from datetime import time
from uuid import UUID
from pydantic import Field

from .common import APIModel
from ..models.class_model import WeekDay

CAPACITY_LIMITS = dict(ge=5, le=100)


class ClassCreate(APIModel):
    name: str = Field(..., min_length=2, max_length=50)
    capacity: int = Field(..., **CAPACITY_LIMITS)


class ClassUpdate(APIModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=50)
    capacity: Optional[int] = Field(default=None, **CAPACITY_LIMITS)


class SessionCreate(APIModel):
    class_id: UUID
    day: WeekDay
    start_time: time
    end_time: time
    capacity: int = Field(..., **CAPACITY_LIMITS)


class SessionUpdate(APIModel):
    day: Optional[WeekDay] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    capacity: Optional[int] = Field(default=None, **CAPACITY_LIMITS)


class Session(APIModel):
    id: UUID
    class_id: UUID
    day: WeekDay
    start_time: time
    end_time: time
    capacity: int


class SessionWithSeats(Session):
    available: int
    is_full: bool


class ClassDetail(APIModel):
    id: UUID
    course_id: UUID
    name: str
    capacity: int
    sessions: List[SessionWithSeats] = []
