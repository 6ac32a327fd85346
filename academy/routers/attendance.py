# academy/routers/attendance.py
import datetime
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.permissions import Action
from ..core.security import require_permission
from ..schemas.attendance_schemas import (
    Attendance, AutoMarkAbsentRequest, AutoMarkAbsentResult, BulkMarkRequest, BulkMarkResult,
    ManualMarkRequest, ScanRequest, ScanResult, SessionStats,
)
from ..schemas.auth_schemas import AuthenticatedUser
from ..services.attendance_service import AttendanceService

router = APIRouter(prefix="/attendance", tags=["Attendance"])


@router.post("/scan", response_model=ScanResult)
async def scan_qr_code(
    body: ScanRequest,
    user: AuthenticatedUser = Depends(require_permission(Action.SCAN_ATTENDANCE)),
    db: AsyncSession = Depends(get_db)
):
    service = AttendanceService(db)
    return await service.scan_qr(body.qr_data, body.session_id, user)


@router.post("/scan/manual", response_model=Attendance)
async def mark_attendance_manually(
    body: ManualMarkRequest,
    user: AuthenticatedUser = Depends(require_permission(Action.MARK_ATTENDANCE)),
    db: AsyncSession = Depends(get_db)
):
    service = AttendanceService(db)
    return await service.mark_manual(body.student_id, body.session_id, body.status, user)


@router.post("/scan/bulk", response_model=BulkMarkResult)
async def bulk_mark_attendance(
    body: BulkMarkRequest,
    user: AuthenticatedUser = Depends(require_permission(Action.BULK_MARK_ATTENDANCE)),
    db: AsyncSession = Depends(get_db)
):
    service = AttendanceService(db)
    records = [record.model_dump() for record in body.attendance_records]
    return await service.bulk_mark(body.session_id, records, user)


@router.post("/auto-mark-absent", response_model=AutoMarkAbsentResult)
async def auto_mark_absent(
    body: AutoMarkAbsentRequest,
    user: AuthenticatedUser = Depends(require_permission(Action.AUTO_MARK_ABSENT)),
    db: AsyncSession = Depends(get_db)
):
    service = AttendanceService(db)
    return await service.auto_mark_absent(body.class_id, user, on_date=body.date)


@router.get("/sessions/{session_id}/stats", response_model=SessionStats)
async def get_session_stats(
    session_id: UUID,
    date: Optional[datetime.date] = Query(None),
    user: AuthenticatedUser = Depends(require_permission(Action.VIEW_ATTENDANCE_REPORTS)),
    db: AsyncSession = Depends(get_db)
):
    service = AttendanceService(db)
    return await service.session_stats(session_id, user, on_date=date)


@router.get("/me", response_model=List[Attendance])
async def get_my_attendance(
    user: AuthenticatedUser = Depends(require_permission(Action.VIEW_OWN_ATTENDANCE)),
    db: AsyncSession = Depends(get_db)
):
    service = AttendanceService(db)
    return await service.student_history(user)
