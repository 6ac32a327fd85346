# academy/schemas/attendance_schemas.py
from typing import List, Optional
import datetime
from uuid import UUID
from pydantic import Field

from .common import APIModel
from ..models.attendance import AttendanceStatus


class ScanRequest(APIModel):
    qr_data: str = Field(..., min_length=1)
    session_id: UUID


class ManualMarkRequest(APIModel):
    student_id: UUID
    session_id: UUID
    status: AttendanceStatus


class BulkMarkItem(APIModel):
    student_id: UUID
    status: AttendanceStatus


class BulkMarkRequest(APIModel):
    session_id: UUID
    attendance_records: List[BulkMarkItem] = Field(..., min_length=1, max_length=500)


class AutoMarkAbsentRequest(APIModel):
    class_id: UUID
    date: Optional[datetime.date] = None


class Attendance(APIModel):
    id: UUID
    student_id: UUID
    session_id: UUID
    date: datetime.date
    status: AttendanceStatus
    scan_time: Optional[datetime.datetime] = None
    marked_by_id: Optional[UUID] = None


class ScanResult(APIModel):
    attendance: Attendance
    status: AttendanceStatus
    message: str


class BulkMarkFailure(APIModel):
    student_id: UUID
    reason: str


class BulkMarkResult(APIModel):
    attendance_records: List[Attendance]
    count: int
    failed: List[BulkMarkFailure]


class AutoMarkAbsentResult(APIModel):
    marked_absent: int
    student_ids: List[UUID]


class SessionStats(APIModel):
    session_id: UUID
    date: datetime.date
    assigned: int
    present: int
    absent: int
    wrong_session: int
    unmarked: int
    attendance_rate: float
