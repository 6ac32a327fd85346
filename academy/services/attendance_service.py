# academy/services/attendance_service.py
"""QR scan, manual and bulk marking, the end-of-day absence sweep and reports."""
import json
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
from zoneinfo import ZoneInfo
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError

from .base_service import BaseService, transactional
from ..core.config import settings
from ..core.exceptions import (
    AcademyException, ForbiddenError, InvalidQRCodeError, NotFoundError, ValidationError,
)
from ..core.permissions import Action, require
from ..models.attendance import Attendance, AttendanceStatus
from ..models.class_model import ClassModel, Session, WeekDay
from ..models.student import Student
from ..schemas.auth_schemas import AuthenticatedUser

logger = logging.getLogger(__name__)

SCAN_MESSAGES = {
    AttendanceStatus.PRESENT: "Attendance marked successfully",
    AttendanceStatus.WRONG_SESSION: "Student scanned in wrong session",
}
UPDATED_MESSAGE = "Attendance updated successfully"


def academy_today() -> date:
    return datetime.now(ZoneInfo(settings.academy_timezone)).date()


def assigned_session_id(student: Student, day: WeekDay) -> Optional[UUID]:
    return student.saturday_session_id if day == WeekDay.SATURDAY else student.sunday_session_id


def derive_status(student: Student, session: Session) -> AttendanceStatus:
    """PRESENT in the assigned session, WRONG_SESSION in any other one that day"""
    assigned = assigned_session_id(student, session.day)
    if assigned is None:
        raise ValidationError(f"Student has no {session.day.value.title()} session assigned")
    if assigned == session.id:
        return AttendanceStatus.PRESENT
    return AttendanceStatus.WRONG_SESSION


def parse_qr_data(qr_data: str) -> Tuple[str, str]:
    """Return (uuid, student_id) from the JSON payload printed on a student's QR code"""
    try:
        payload = json.loads(qr_data)
    except (TypeError, ValueError):
        raise ValidationError("Invalid QR code format")
    if not isinstance(payload, dict):
        raise ValidationError("Invalid QR code format")

    qr_uuid = payload.get("uuid")
    student_id = payload.get("student_id")
    if not qr_uuid or not student_id:
        raise ValidationError("QR code missing required fields")
    return str(qr_uuid), str(student_id)


class AttendanceService(BaseService[Attendance]):
    def __init__(self, db: AsyncSession):
        super().__init__(Attendance, db)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _session_with_course(self, session_id: UUID) -> Tuple[Session, ClassModel]:
        row = (await self.db.execute(
            select(Session, ClassModel)
            .join(ClassModel, ClassModel.id == Session.class_id)
            .where(Session.id == session_id, Session.is_deleted == False)
        )).first()
        if row is None:
            raise NotFoundError("Session", session_id)
        return row[0], row[1]

    async def _staff_session(self, session_id: UUID, staff: AuthenticatedUser) -> Session:
        session, class_ = await self._session_with_course(session_id)
        if staff.course_id != class_.course_id:
            raise ForbiddenError("You can only record attendance for your own course")
        return session

    async def _active_student(self, student_id: Any) -> Optional[Student]:
        try:
            key = student_id if isinstance(student_id, UUID) else UUID(str(student_id))
        except ValueError:
            return None
        student = await self.db.get(Student, key)
        if student is None or student.is_deleted:
            return None
        return student

    # ------------------------------------------------------------------
    # Upsert
    # ------------------------------------------------------------------

    async def _upsert(
        self,
        student_id: UUID,
        session_id: UUID,
        on_date: date,
        status: AttendanceStatus,
        scan_time: Optional[datetime],
        marked_by_id: Optional[UUID],
    ) -> Tuple[Attendance, bool]:
        """Insert or overwrite the (student, session, date) row; returns (row, created)"""
        existing = await self._find(student_id, session_id, on_date)
        if existing is None:
            row = Attendance(
                student_id=student_id,
                session_id=session_id,
                date=on_date,
                status=status,
                scan_time=scan_time,
                marked_by_id=marked_by_id,
            )
            try:
                async with self.db.begin_nested():
                    self.db.add(row)
                    await self.db.flush()
            except IntegrityError:
                # Another writer inserted the same key first
                existing = await self._find(student_id, session_id, on_date)
                if existing is None:
                    raise
            else:
                return row, True

        existing.status = status
        existing.scan_time = scan_time
        existing.marked_by_id = marked_by_id
        await self.db.flush()
        return existing, False

    async def _find(self, student_id: UUID, session_id: UUID, on_date: date) -> Optional[Attendance]:
        stmt = (
            select(Attendance)
            .where(
                Attendance.student_id == student_id,
                Attendance.session_id == session_id,
                Attendance.date == on_date
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return await self.db.scalar(stmt)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    @transactional
    async def scan_qr(self, qr_data: str, session_id: UUID, staff: AuthenticatedUser) -> Dict[str, Any]:
        require(staff, Action.SCAN_ATTENDANCE)
        qr_uuid, student_id = parse_qr_data(qr_data)

        student = await self._active_student(student_id)
        if student is None or student.uuid != qr_uuid:
            raise InvalidQRCodeError("Invalid QR code")

        session = await self._staff_session(session_id, staff)
        status = derive_status(student, session)

        attendance, created = await self._upsert(
            student.id, session.id, academy_today(), status,
            scan_time=datetime.now(timezone.utc),
            marked_by_id=staff.id,
        )
        message = SCAN_MESSAGES[status] if created else UPDATED_MESSAGE
        logger.info(f"Scan {student.student_number} in session {session.id}: {status.value}")
        return {"attendance": attendance, "status": status, "message": message}

    @transactional
    async def mark_manual(
        self,
        student_id: UUID,
        session_id: UUID,
        status: AttendanceStatus,
        staff: AuthenticatedUser
    ) -> Attendance:
        require(staff, Action.MARK_ATTENDANCE)
        session = await self._staff_session(session_id, staff)
        student = await self._active_student(student_id)
        if student is None:
            raise NotFoundError("Student", student_id)

        attendance, _ = await self._upsert(
            student.id, session.id, academy_today(), status,
            scan_time=None,
            marked_by_id=staff.id,
        )
        logger.info(f"Manual mark {student.student_number} in session {session.id}: {status.value}")
        return attendance

    @transactional
    async def bulk_mark(
        self,
        session_id: UUID,
        records: List[Dict[str, Any]],
        staff: AuthenticatedUser
    ) -> Dict[str, Any]:
        """Mark many students in one session; bad items are reported, not fatal"""
        require(staff, Action.BULK_MARK_ATTENDANCE)
        session = await self._staff_session(session_id, staff)
        today = academy_today()

        marked: List[Attendance] = []
        failed: List[Dict[str, Any]] = []
        for record in records:
            student_id = record["student_id"]
            try:
                async with self.db.begin_nested():
                    student = await self._active_student(student_id)
                    if student is None:
                        raise NotFoundError("Student", student_id)
                    attendance, _ = await self._upsert(
                        student.id, session.id, today, record["status"],
                        scan_time=None,
                        marked_by_id=staff.id,
                    )
            except AcademyException as e:
                logger.warning(f"Bulk mark skipped {student_id}: {e.message}")
                failed.append({"student_id": student_id, "reason": e.message})
                continue
            marked.append(attendance)

        logger.info(f"Bulk mark in session {session.id}: {len(marked)} marked, {len(failed)} failed")
        return {"attendance_records": marked, "count": len(marked), "failed": failed}

    @transactional
    async def auto_mark_absent(
        self,
        class_id: UUID,
        staff: AuthenticatedUser,
        on_date: Optional[date] = None
    ) -> Dict[str, Any]:
        """Give an ABSENT row to every assigned student with no row that day; existing rows stay"""
        require(staff, Action.AUTO_MARK_ABSENT)
        class_ = await self.db.get(ClassModel, class_id)
        if class_ is None or class_.is_deleted:
            raise NotFoundError("Class", class_id)
        if staff.course_id != class_.course_id:
            raise ForbiddenError("You can only manage attendance for your own course")

        on_date = on_date or academy_today()
        # date.weekday(): Saturday == 5
        day = WeekDay.SATURDAY if on_date.weekday() == 5 else WeekDay.SUNDAY
        student_col = Student.saturday_session_id if day == WeekDay.SATURDAY else Student.sunday_session_id

        session_ids = list((await self.db.execute(
            select(Session.id).where(
                Session.class_id == class_id,
                Session.day == day,
                Session.is_deleted == False
            )
        )).scalars().all())
        if not session_ids:
            return {"marked_absent": 0, "student_ids": []}

        already_marked = (
            select(Attendance.student_id)
            .where(Attendance.session_id.in_(session_ids), Attendance.date == on_date)
        )
        rows = (await self.db.execute(
            select(Student.id, student_col)
            .where(
                Student.class_id == class_id,
                Student.is_deleted == False,
                student_col.in_(session_ids),
                Student.id.not_in(already_marked)
            )
            .order_by(Student.id)
        )).all()

        student_ids: List[UUID] = []
        for student_id, session_id in rows:
            # A scan landing during the sweep wins
            _, created = await self._insert_absent(student_id, session_id, on_date, staff.id)
            if created:
                student_ids.append(student_id)

        logger.info(f"Auto-marked {len(student_ids)} absent in class {class_id} on {on_date}")
        return {"marked_absent": len(student_ids), "student_ids": student_ids}

    async def _insert_absent(
        self,
        student_id: UUID,
        session_id: UUID,
        on_date: date,
        marked_by_id: UUID
    ) -> Tuple[Optional[Attendance], bool]:
        row = Attendance(
            student_id=student_id,
            session_id=session_id,
            date=on_date,
            status=AttendanceStatus.ABSENT,
            scan_time=None,
            marked_by_id=marked_by_id,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(row)
                await self.db.flush()
        except IntegrityError:
            return None, False
        return row, True

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    async def session_stats(
        self,
        session_id: UUID,
        staff: AuthenticatedUser,
        on_date: Optional[date] = None
    ) -> Dict[str, Any]:
        require(staff, Action.VIEW_ATTENDANCE_REPORTS)
        session = await self._staff_session(session_id, staff)
        on_date = on_date or academy_today()

        student_col = Student.saturday_session_id if session.day == WeekDay.SATURDAY else Student.sunday_session_id
        assigned = await self.db.scalar(
            select(func.count(Student.id)).where(student_col == session.id, Student.is_deleted == False)
        ) or 0

        counts = dict((await self.db.execute(
            select(Attendance.status, func.count(Attendance.id))
            .where(Attendance.session_id == session.id, Attendance.date == on_date)
            .group_by(Attendance.status)
        )).all())
        present = counts.get(AttendanceStatus.PRESENT, 0)
        absent = counts.get(AttendanceStatus.ABSENT, 0)
        wrong_session = counts.get(AttendanceStatus.WRONG_SESSION, 0)

        # Assigned students with no row of any status in this session that day
        marked = (
            select(Attendance.student_id)
            .where(Attendance.session_id == session.id, Attendance.date == on_date)
        )
        unmarked = await self.db.scalar(
            select(func.count(Student.id)).where(
                student_col == session.id,
                Student.is_deleted == False,
                Student.id.not_in(marked)
            )
        ) or 0

        return {
            "session_id": session.id,
            "date": on_date,
            "assigned": assigned,
            "present": present,
            "absent": absent,
            "wrong_session": wrong_session,
            "unmarked": unmarked,
            "attendance_rate": round(present / assigned * 100, 1) if assigned else 0.0,
        }

    async def student_history(self, student: AuthenticatedUser, limit: int = 100) -> List[Attendance]:
        require(student, Action.VIEW_OWN_ATTENDANCE)
        stmt = (
            select(Attendance)
            .where(Attendance.student_id == student.id)
            .order_by(Attendance.date.desc(), Attendance.created_at.desc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()
