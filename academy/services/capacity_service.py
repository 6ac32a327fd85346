# academy/services/capacity_service.py
"""Per-session seat accounting.

Seats are derived from rows on every call: approved students pointing at
the session, PENDING registrations naming it and PENDING reassignment
requests targeting it. Callers that write against the result must hold the
session row locks taken by ``lock_sessions`` in the same transaction.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from .base_service import BaseService
from ..core.exceptions import CapacityExceededError, NotFoundError
from ..models.class_model import ClassModel, Session, WeekDay
from ..models.registration import StudentRegistration, RegistrationStatus
from ..models.reassignment import ReassignmentRequest, RequestStatus
from ..models.student import Student


@dataclass(frozen=True)
class SeatUsage:
    capacity: int
    approved: int
    pending_registrations: int
    pending_reassignments: int

    @property
    def taken(self) -> int:
        return self.approved + self.pending_registrations + self.pending_reassignments

    @property
    def available(self) -> int:
        # Signed; negative means the session is oversubscribed
        return self.capacity - self.taken

    @property
    def display_available(self) -> int:
        return max(0, self.available)

    @property
    def is_full(self) -> bool:
        return self.available <= 0


def _student_column(day: WeekDay):
    return Student.saturday_session_id if day == WeekDay.SATURDAY else Student.sunday_session_id


def _registration_column(day: WeekDay):
    if day == WeekDay.SATURDAY:
        return StudentRegistration.saturday_session_id
    return StudentRegistration.sunday_session_id


class CapacityService(BaseService[Session]):
    def __init__(self, db: AsyncSession):
        super().__init__(Session, db)

    async def seat_usage(
        self,
        session: Session,
        exclude_reassignment_id: Optional[UUID] = None
    ) -> SeatUsage:
        student_col = _student_column(session.day)
        approved = await self.db.scalar(
            select(func.count(Student.id)).where(
                student_col == session.id,
                Student.is_deleted == False
            )
        )

        registration_col = _registration_column(session.day)
        pending_registrations = await self.db.scalar(
            select(func.count(StudentRegistration.id)).where(
                registration_col == session.id,
                StudentRegistration.status == RegistrationStatus.PENDING
            )
        )

        reassignment_stmt = select(func.count(ReassignmentRequest.id)).where(
            ReassignmentRequest.to_session_id == session.id,
            ReassignmentRequest.status == RequestStatus.PENDING
        )
        if exclude_reassignment_id is not None:
            reassignment_stmt = reassignment_stmt.where(ReassignmentRequest.id != exclude_reassignment_id)
        pending_reassignments = await self.db.scalar(reassignment_stmt)

        return SeatUsage(
            capacity=session.capacity,
            approved=approved or 0,
            pending_registrations=pending_registrations or 0,
            pending_reassignments=pending_reassignments or 0,
        )

    async def available_seats(self, session_id: UUID, exclude_reassignment_id: Optional[UUID] = None) -> int:
        session = await self.get_or_404(session_id, "Session")
        usage = await self.seat_usage(session, exclude_reassignment_id)
        return usage.available

    async def is_full(self, session_id: UUID) -> bool:
        return await self.available_seats(session_id) <= 0

    async def lock_sessions(self, session_ids: Iterable[UUID]) -> Dict[UUID, Session]:
        """SELECT ... FOR UPDATE the given sessions in id order"""
        ids = sorted(set(session_ids), key=str)
        stmt = (
            select(Session)
            .where(Session.id.in_(ids), Session.is_deleted == False)
            .order_by(Session.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        sessions = {s.id: s for s in result.scalars().all()}
        for session_id in ids:
            if session_id not in sessions:
                raise NotFoundError("Session", session_id)
        return sessions

    async def ensure_seat(
        self,
        session: Session,
        seats: int = 1,
        exclude_reassignment_id: Optional[UUID] = None
    ) -> SeatUsage:
        usage = await self.seat_usage(session, exclude_reassignment_id)
        if usage.available - seats < 0:
            raise CapacityExceededError(
                f"{session.day.value.title()} session {session.time_label} is at full capacity",
                details={"sessionId": str(session.id), "available": usage.display_available},
            )
        return usage

    async def course_sessions(self, course_id: UUID) -> List[Session]:
        stmt = (
            select(Session)
            .join(ClassModel, ClassModel.id == Session.class_id)
            .where(
                ClassModel.course_id == course_id,
                ClassModel.is_deleted == False,
                Session.is_deleted == False
            )
            .order_by(Session.start_time)
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()
