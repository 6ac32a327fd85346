# academy/services/reassignment_service.py
"""Session change requests reconciled against capacity."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from .base_service import BaseService, transactional
from .capacity_service import CapacityService
from .notification_service import Notifier, notify_safely
from ..core.config import settings
from ..core.exceptions import (
    AlreadyProcessedError, ConflictError, ForbiddenError, NotFoundError, ValidationError,
)
from ..core.permissions import Action, require
from ..models.class_model import ClassModel, Session, WeekDay
from ..models.reassignment import ReassignmentRequest, RequestStatus
from ..models.student import Student
from ..schemas.auth_schemas import AuthenticatedUser

logger = logging.getLogger(__name__)

FULL_CAPACITY_REASON = "Target session is at full capacity"


def current_session_id(student: Student, day: WeekDay) -> Optional[UUID]:
    return student.saturday_session_id if day == WeekDay.SATURDAY else student.sunday_session_id


def move_student(student: Student, day: WeekDay, session_id: UUID) -> None:
    if day == WeekDay.SATURDAY:
        student.saturday_session_id = session_id
    else:
        student.sunday_session_id = session_id


class ReassignmentService(BaseService[ReassignmentRequest]):
    def __init__(self, db: AsyncSession, notifier: Optional[Notifier] = None):
        super().__init__(ReassignmentRequest, db)
        self.capacity = CapacityService(db)
        self.notifier = notifier

    async def _student(self, student_id: UUID, lock: bool = False) -> Student:
        stmt = select(Student).where(Student.id == student_id, Student.is_deleted == False)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        student = await self.db.scalar(stmt)
        if student is None:
            raise NotFoundError("Student", student_id)
        return student

    async def _course_of_class(self, class_id: UUID) -> Optional[UUID]:
        return await self.db.scalar(select(ClassModel.course_id).where(ClassModel.id == class_id))

    # ------------------------------------------------------------------
    # Student side
    # ------------------------------------------------------------------

    @transactional
    async def request(
        self,
        user: AuthenticatedUser,
        to_session_id: UUID,
        from_session_id: Optional[UUID] = None,
        reason: Optional[str] = None
    ) -> ReassignmentRequest:
        require(user, Action.REQUEST_REASSIGNMENT)
        student = await self._student(user.id, lock=True)

        ids = [to_session_id] + ([from_session_id] if from_session_id else [])
        sessions = await self.capacity.lock_sessions(ids)
        target = sessions[to_session_id]

        current = current_session_id(student, target.day)
        if from_session_id is not None:
            source = sessions[from_session_id]
            if source.day != target.day:
                raise ValidationError("Sessions must be on the same day")
            if from_session_id != current:
                raise ValidationError("You are not assigned to the session you want to leave")
        if current is None:
            raise ValidationError(f"You have no {target.day.value.title()} session to change")
        if target.id == current:
            raise ValidationError("You are already assigned to this session")
        if target.class_id != student.class_id:
            raise ValidationError("You can only move to a session of your own class")

        pending = await self.db.scalar(
            select(ReassignmentRequest.id).where(
                ReassignmentRequest.student_id == student.id,
                ReassignmentRequest.status == RequestStatus.PENDING
            )
        )
        if pending is not None:
            raise ConflictError("You already have a pending reassignment request")

        total = await self.db.scalar(
            select(func.count(ReassignmentRequest.id)).where(ReassignmentRequest.student_id == student.id)
        ) or 0
        if total >= settings.max_reassignment_requests:
            raise ValidationError(
                f"You have reached the limit of {settings.max_reassignment_requests} reassignment requests"
            )

        await self.capacity.ensure_seat(target)

        request = ReassignmentRequest(
            student_id=student.id,
            from_session_id=current,
            to_session_id=target.id,
            status=RequestStatus.PENDING,
            reason=reason.strip() if reason and reason.strip() else None,
        )
        self.db.add(request)
        await self.db.flush()

        logger.info(f"Reassignment {request.id} requested by {student.student_number} into {target.id}")
        return request

    @transactional
    async def cancel(self, request_id: UUID, user: AuthenticatedUser) -> None:
        require(user, Action.REQUEST_REASSIGNMENT)
        request = await self.get_for_update(request_id)
        if request is None or request.student_id != user.id:
            raise NotFoundError("Reassignment request", request_id)
        if request.status != RequestStatus.PENDING:
            raise AlreadyProcessedError(f"Request already {request.status.value.lower()}")

        await self.db.delete(request)
        await self.db.flush()
        logger.info(f"Reassignment {request_id} cancelled by student {user.id}")

    async def options(self, user: AuthenticatedUser) -> Dict[str, List[Dict[str, Any]]]:
        """Sessions of the student's class, by day, with seats left"""
        require(user, Action.REQUEST_REASSIGNMENT)
        student = await self._student(user.id)

        sessions = (await self.db.execute(
            select(Session)
            .where(Session.class_id == student.class_id, Session.is_deleted == False)
            .order_by(Session.start_time)
        )).scalars().all()

        grouped: Dict[str, List[Dict[str, Any]]] = {"saturday": [], "sunday": []}
        for session in sessions:
            usage = await self.capacity.seat_usage(session)
            grouped[session.day.value.lower()].append({
                "id": session.id,
                "day": session.day,
                "start_time": session.start_time,
                "end_time": session.end_time,
                "capacity": session.capacity,
                "available": usage.display_available,
                "is_full": usage.is_full,
                "is_current": session.id == current_session_id(student, session.day),
            })
        return grouped

    async def list_for_student(self, user: AuthenticatedUser) -> List[ReassignmentRequest]:
        require(user, Action.REQUEST_REASSIGNMENT)
        result = await self.db.execute(
            select(ReassignmentRequest)
            .where(ReassignmentRequest.student_id == user.id)
            .order_by(ReassignmentRequest.requested_at.desc())
        )
        return result.scalars().all()

    # ------------------------------------------------------------------
    # Staff side
    # ------------------------------------------------------------------

    async def list_for_course(
        self,
        staff: AuthenticatedUser,
        status: Optional[RequestStatus] = None
    ) -> List[ReassignmentRequest]:
        require(staff, Action.REVIEW_REASSIGNMENT)
        stmt = (
            select(ReassignmentRequest)
            .join(Student, Student.id == ReassignmentRequest.student_id)
            .join(ClassModel, ClassModel.id == Student.class_id)
            .where(ClassModel.course_id == staff.course_id)
            .order_by(ReassignmentRequest.requested_at.asc())
        )
        if status is not None:
            stmt = stmt.where(ReassignmentRequest.status == status)
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def _reviewable(self, request_id: UUID, staff: AuthenticatedUser) -> Tuple[ReassignmentRequest, Student]:
        request = await self.get_for_update(request_id)
        if request is None:
            raise NotFoundError("Reassignment request", request_id)
        if request.status != RequestStatus.PENDING:
            raise AlreadyProcessedError(f"Request already {request.status.value.lower()}")

        student = await self._student(request.student_id, lock=True)
        if await self._course_of_class(student.class_id) != staff.course_id:
            raise ForbiddenError("You can only review requests for your own course")
        return request, student

    def _close(
        self,
        request: ReassignmentRequest,
        status: RequestStatus,
        staff: AuthenticatedUser,
        denial_reason: Optional[str] = None
    ) -> None:
        request.status = status
        request.reviewed_by_id = staff.id
        request.reviewed_at = datetime.now(timezone.utc)
        request.denial_reason = denial_reason

    async def approve(self, request_id: UUID, staff: AuthenticatedUser) -> ReassignmentRequest:
        require(staff, Action.REVIEW_REASSIGNMENT)
        request, email, approved = await self._approve(request_id, staff)
        if not approved:
            await self._notify(email, "reassignment_denied", {"reason": FULL_CAPACITY_REASON})
            # The DENIED outcome is already committed
            raise ConflictError(FULL_CAPACITY_REASON, code="SEAT_TAKEN")

        await self._notify(email, "reassignment_approved", {"toSessionId": str(request.to_session_id)})
        return request

    @transactional
    async def _approve(self, request_id: UUID, staff: AuthenticatedUser):
        request, student = await self._reviewable(request_id, staff)
        sessions = await self.capacity.lock_sessions([request.to_session_id])
        target = sessions[request.to_session_id]

        # This request already holds a seat in the target; count it once
        usage = await self.capacity.seat_usage(target, exclude_reassignment_id=request.id)
        if usage.available - 1 < 0:
            self._close(request, RequestStatus.DENIED, staff, FULL_CAPACITY_REASON)
            await self.db.flush()
            logger.info(f"Reassignment {request.id} denied: target {target.id} is full")
            return request, student.email, False

        move_student(student, target.day, target.id)
        self._close(request, RequestStatus.APPROVED, staff)
        await self.db.flush()

        logger.info(f"Reassignment {request.id} approved: {student.student_number} moved to {target.id}")
        return request, student.email, True

    async def deny(
        self,
        request_id: UUID,
        staff: AuthenticatedUser,
        reason: Optional[str] = None
    ) -> ReassignmentRequest:
        require(staff, Action.REVIEW_REASSIGNMENT)
        request, email = await self._deny(request_id, staff, reason)
        await self._notify(email, "reassignment_denied", {"reason": request.denial_reason})
        return request

    @transactional
    async def _deny(self, request_id: UUID, staff: AuthenticatedUser, reason: Optional[str]):
        request, student = await self._reviewable(request_id, staff)
        self._close(request, RequestStatus.DENIED, staff, reason.strip() if reason and reason.strip() else None)
        await self.db.flush()
        logger.info(f"Reassignment {request.id} denied by {staff.id}")
        return request, student.email

    async def _notify(self, to: str, template: str, context: Dict[str, Any]) -> None:
        if self.notifier is not None:
            await notify_safely(self.notifier, to, template, context)
