# academy/services/class_service.py
"""Head-teacher management of a course's classes and weekend sessions."""
import logging
from datetime import time
from typing import Any, Dict, List
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from .base_service import BaseService, transactional
from .capacity_service import CapacityService
from ..core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from ..core.permissions import Action, require
from ..models.class_model import ClassModel, Session
from ..models.reassignment import ReassignmentRequest, RequestStatus
from ..models.student import Student
from ..schemas.auth_schemas import AuthenticatedUser
from ..schemas.class_schemas import ClassCreate, ClassUpdate, SessionCreate, SessionUpdate

logger = logging.getLogger(__name__)

SESSION_MIN_MINUTES = 30
SESSION_MAX_MINUTES = 240
DAY_OPENS = time(8, 0)
DAY_CLOSES = time(18, 0)


def _minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def validate_session_times(start_time: time, end_time: time) -> None:
    if end_time <= start_time:
        raise ValidationError("Session must end after it starts")
    duration = _minutes(end_time) - _minutes(start_time)
    if duration < SESSION_MIN_MINUTES or duration > SESSION_MAX_MINUTES:
        raise ValidationError(
            f"Session must last between {SESSION_MIN_MINUTES} and {SESSION_MAX_MINUTES} minutes"
        )
    if start_time < DAY_OPENS or end_time > DAY_CLOSES:
        raise ValidationError(
            f"Sessions must run between {DAY_OPENS.strftime('%H:%M')} and {DAY_CLOSES.strftime('%H:%M')}"
        )


class ClassService(BaseService[ClassModel]):
    def __init__(self, db: AsyncSession):
        super().__init__(ClassModel, db)
        self.capacity = CapacityService(db)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _owned_class(self, class_id: UUID, staff: AuthenticatedUser, lock: bool = False) -> ClassModel:
        stmt = select(ClassModel).where(ClassModel.id == class_id, ClassModel.is_deleted == False)
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        class_ = await self.db.scalar(stmt)
        if class_ is None:
            raise NotFoundError("Class", class_id)
        if class_.course_id != staff.course_id:
            raise ForbiddenError("Class not in your course")
        return class_

    async def _owned_session(self, session_id: UUID, staff: AuthenticatedUser) -> Session:
        """Check the session belongs to the staff member's course, then lock it"""
        class_id = await self.db.scalar(
            select(Session.class_id).where(Session.id == session_id, Session.is_deleted == False)
        )
        if class_id is None:
            raise NotFoundError("Session", session_id)
        await self._owned_class(class_id, staff)
        sessions = await self.capacity.lock_sessions([session_id])
        return sessions[session_id]

    async def _class_sessions(self, class_id: UUID) -> List[Session]:
        result = await self.db.execute(
            select(Session)
            .where(Session.class_id == class_id, Session.is_deleted == False)
            .order_by(Session.day, Session.start_time)
        )
        return result.scalars().all()

    async def _session_in_use(self, session: Session) -> bool:
        usage = await self.capacity.seat_usage(session)
        if usage.taken > 0:
            return True
        leaving = await self.db.scalar(
            select(func.count(ReassignmentRequest.id)).where(
                ReassignmentRequest.from_session_id == session.id,
                ReassignmentRequest.status == RequestStatus.PENDING
            )
        )
        return bool(leaving)

    async def _session_view(self, session: Session) -> Dict[str, Any]:
        usage = await self.capacity.seat_usage(session)
        return {
            "id": session.id,
            "class_id": session.class_id,
            "day": session.day,
            "start_time": session.start_time,
            "end_time": session.end_time,
            "capacity": session.capacity,
            "available": usage.display_available,
            "is_full": usage.is_full,
        }

    async def _class_view(self, class_: ClassModel) -> Dict[str, Any]:
        return {
            "id": class_.id,
            "course_id": class_.course_id,
            "name": class_.name,
            "capacity": class_.capacity,
            "sessions": [await self._session_view(s) for s in await self._class_sessions(class_.id)],
        }

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------

    async def list_classes(self, staff: AuthenticatedUser) -> List[Dict[str, Any]]:
        require(staff, Action.MANAGE_CLASSES)
        result = await self.db.execute(
            select(ClassModel)
            .where(ClassModel.course_id == staff.course_id, ClassModel.is_deleted == False)
            .order_by(ClassModel.name)
        )
        return [await self._class_view(c) for c in result.scalars().all()]

    async def get_class(self, class_id: UUID, staff: AuthenticatedUser) -> Dict[str, Any]:
        require(staff, Action.MANAGE_CLASSES)
        return await self._class_view(await self._owned_class(class_id, staff))

    @transactional
    async def create_class(self, data: ClassCreate, staff: AuthenticatedUser) -> Dict[str, Any]:
        require(staff, Action.MANAGE_CLASSES)
        if staff.course_id is None:
            raise ForbiddenError("You are not attached to a course")

        class_ = ClassModel(course_id=staff.course_id, name=data.name.strip(), capacity=data.capacity)
        self.db.add(class_)
        await self.db.flush()

        logger.info(f"Class {class_.id} created in course {class_.course_id}")
        return await self._class_view(class_)

    @transactional
    async def update_class(self, class_id: UUID, data: ClassUpdate, staff: AuthenticatedUser) -> Dict[str, Any]:
        require(staff, Action.MANAGE_CLASSES)
        class_ = await self._owned_class(class_id, staff, lock=True)

        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes:
            changes["name"] = changes["name"].strip()
        for field, value in changes.items():
            setattr(class_, field, value)
        await self.db.flush()

        logger.info(f"Class {class_.id} updated: {sorted(changes)}")
        return await self._class_view(class_)

    @transactional
    async def delete_class(self, class_id: UUID, staff: AuthenticatedUser) -> None:
        """Soft-delete a class and its sessions; refused while anyone is enrolled or waiting"""
        require(staff, Action.MANAGE_CLASSES)
        class_ = await self._owned_class(class_id, staff, lock=True)

        students = await self.db.scalar(
            select(func.count(Student.id)).where(Student.class_id == class_.id, Student.is_deleted == False)
        )
        if students:
            raise ConflictError(f"Class still has {students} active students", code="CLASS_IN_USE")

        sessions = await self._class_sessions(class_.id)
        locked = await self.capacity.lock_sessions([s.id for s in sessions]) if sessions else {}
        for session in locked.values():
            if await self._session_in_use(session):
                raise ConflictError(
                    f"{session.day.value.title()} session {session.time_label} has pending requests",
                    code="CLASS_IN_USE",
                )

        for session in locked.values():
            session.is_deleted = True
        class_.is_deleted = True
        await self.db.flush()
        logger.info(f"Class {class_.id} deleted with {len(locked)} sessions")

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    @transactional
    async def create_session(self, data: SessionCreate, staff: AuthenticatedUser) -> Dict[str, Any]:
        require(staff, Action.MANAGE_CLASSES)
        class_ = await self._owned_class(data.class_id, staff)
        validate_session_times(data.start_time, data.end_time)

        session = Session(
            class_id=class_.id,
            day=data.day,
            start_time=data.start_time,
            end_time=data.end_time,
            capacity=data.capacity,
        )
        self.db.add(session)
        await self.db.flush()

        logger.info(f"Session {session.id} created in class {class_.id}: {session.day.value} {session.time_label}")
        return await self._session_view(session)

    @transactional
    async def update_session(
        self,
        session_id: UUID,
        data: SessionUpdate,
        staff: AuthenticatedUser
    ) -> Dict[str, Any]:
        require(staff, Action.MANAGE_CLASSES)
        session = await self._owned_session(session_id, staff)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        validate_session_times(
            changes.get("start_time", session.start_time),
            changes.get("end_time", session.end_time),
        )

        if changes.get("day", session.day) != session.day and await self._session_in_use(session):
            raise ConflictError("Cannot move a session with students or pending requests to another day",
                                code="SESSION_IN_USE")

        if "capacity" in changes:
            usage = await self.capacity.seat_usage(session)
            if changes["capacity"] < usage.taken:
                raise ConflictError(
                    f"Capacity cannot drop below the {usage.taken} seats already taken",
                    code="CAPACITY_BELOW_USAGE",
                    details={"sessionId": str(session.id), "taken": usage.taken},
                )

        for field, value in changes.items():
            setattr(session, field, value)
        await self.db.flush()

        logger.info(f"Session {session.id} updated: {sorted(changes)}")
        return await self._session_view(session)

    @transactional
    async def delete_session(self, session_id: UUID, staff: AuthenticatedUser) -> None:
        require(staff, Action.MANAGE_CLASSES)
        session = await self._owned_session(session_id, staff)
        if await self._session_in_use(session):
            raise ConflictError("Session still has students or pending requests", code="SESSION_IN_USE")

        session.is_deleted = True
        await self.db.flush()
        logger.info(f"Session {session.id} deleted")
