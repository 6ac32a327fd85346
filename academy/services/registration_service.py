# academy/services/registration_service.py
"""Registration approval workflow: submit, approve, bulk approve, reject, expire."""
import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError

from .base_service import BaseService, transactional
from .capacity_service import CapacityService
from .notification_service import Notifier, notify_safely
from ..core.config import settings
from ..core.exceptions import (
    AcademyException, AlreadyProcessedError, ConflictError, ForbiddenError,
    NotFoundError, ValidationError,
)
from ..core.permissions import Action, require
from ..core.security import hash_password
from ..models.class_model import ClassModel, Session, WeekDay
from ..models.course import Course, CourseStatus
from ..models.registration import StudentRegistration, RegistrationStatus
from ..models.student import Student, StudentNumberSequence
from ..schemas.auth_schemas import AuthenticatedUser
from ..schemas.registration_schemas import RegistrationCreate

logger = logging.getLogger(__name__)

STUDENT_NUMBER_SEQUENCE = "student_number"
STUDENT_NUMBER_PREFIX = "STU"
MAX_REJECTION_REASON = 500


def format_student_number(value: int) -> str:
    return f"{STUDENT_NUMBER_PREFIX}{value:05d}"


def parse_student_number(student_number: Optional[str]) -> int:
    if not student_number:
        return 0
    match = re.fullmatch(rf"{STUDENT_NUMBER_PREFIX}(\d+)", student_number)
    return int(match.group(1)) if match else 0


class RegistrationService(BaseService[StudentRegistration]):
    def __init__(self, db: AsyncSession, notifier: Optional[Notifier] = None):
        super().__init__(StudentRegistration, db)
        self.capacity = CapacityService(db)
        self.notifier = notifier

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self, data: RegistrationCreate) -> Dict[str, Any]:
        """Create a PENDING registration holding one seat in each chosen session"""
        # Hash before any row is locked
        password_hash = await hash_password(data.password)
        return await self._submit(data, password_hash)

    @transactional
    async def _submit(self, data: RegistrationCreate, password_hash: str) -> Dict[str, Any]:
        email = data.email.strip().lower()

        if await self._student_email_exists(email):
            raise ConflictError("An account with this email already exists", code="EMAIL_EXISTS")

        existing = await self.db.scalar(
            select(StudentRegistration).where(func.lower(StudentRegistration.email) == email)
        )
        if existing is not None:
            if existing.status == RegistrationStatus.PENDING:
                raise ConflictError("You already have a pending registration", code="EMAIL_EXISTS")
            if existing.status == RegistrationStatus.APPROVED:
                raise ConflictError("An account with this email already exists", code="EMAIL_EXISTS")
            # A rejected or expired application frees the email for a new one
            await self.db.delete(existing)
            await self.db.flush()

        course = await self.db.get(Course, data.course_id)
        if course is None or course.is_deleted:
            raise NotFoundError("Course", data.course_id)
        if course.status != CourseStatus.ACTIVE:
            raise ValidationError("This course is not accepting registrations")

        sessions = await self.capacity.lock_sessions([data.saturday_session_id, data.sunday_session_id])
        saturday = sessions[data.saturday_session_id]
        sunday = sessions[data.sunday_session_id]
        await self._validate_session_pair(course.id, saturday, sunday)

        for session in (saturday, sunday):
            await self.capacity.ensure_seat(session)

        registration = StudentRegistration(
            surname=data.surname.strip(),
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip() if data.last_name else None,
            email=email,
            phone_number=data.phone_number,
            password_hash=password_hash,
            course_id=course.id,
            saturday_session_id=saturday.id,
            sunday_session_id=sunday.id,
            payment_receipt_url=data.payment_receipt_url,
            payment_receipt_no=data.payment_receipt_no,
            portrait_photo_url=data.portrait_photo_url,
            status=RegistrationStatus.PENDING,
        )
        self.db.add(registration)
        await self.db.flush()

        logger.info(f"Registration {registration.id} submitted for course {course.id}")
        return {
            "registration_id": registration.id,
            "email": email,
            "course_name": course.name,
            "saturday_session": f"Saturday {saturday.time_label}",
            "sunday_session": f"Sunday {sunday.time_label}",
            "submitted_at": registration.created_at,
        }

    async def _validate_session_pair(self, course_id: UUID, saturday: Session, sunday: Session) -> None:
        if saturday.day != WeekDay.SATURDAY:
            raise ValidationError("Selected Saturday session is not on Saturday")
        if sunday.day != WeekDay.SUNDAY:
            raise ValidationError("Selected Sunday session is not on Sunday")
        if saturday.class_id != sunday.class_id:
            raise ValidationError("Saturday and Sunday sessions must belong to the same class")

        for session in (saturday, sunday):
            session_course = await self._session_course_id(session)
            if session_course != course_id:
                raise ValidationError("Selected sessions do not belong to this course")

    async def _session_course_id(self, session: Session) -> Optional[UUID]:
        return await self.db.scalar(select(ClassModel.course_id).where(ClassModel.id == session.class_id))

    async def _student_email_exists(self, email: str) -> bool:
        student_id = await self.db.scalar(
            select(Student.id).where(func.lower(Student.email) == email)
        )
        return student_id is not None

    # ------------------------------------------------------------------
    # Review
    # ------------------------------------------------------------------

    async def approve(self, registration_id: UUID, staff: AuthenticatedUser) -> Dict[str, Any]:
        require(staff, Action.APPROVE_REGISTRATION)
        result = await self._approve(registration_id, staff)
        await self._notify(result["email"], "registration_approved", {
            "studentNumber": result["student_number"],
            "firstName": result["first_name"],
        })
        return {"student_id": result["student_id"], "student_number": result["student_number"]}

    @transactional
    async def _approve(self, registration_id: UUID, staff: AuthenticatedUser) -> Dict[str, Any]:
        return await self._approve_one(registration_id, staff)

    async def _approve_one(self, registration_id: UUID, staff: AuthenticatedUser) -> Dict[str, Any]:
        """Turn a PENDING registration into a Student; caller owns the transaction"""
        registration = await self.get_for_update(registration_id)
        if registration is None:
            raise NotFoundError("Registration", registration_id)
        if registration.status != RegistrationStatus.PENDING:
            raise AlreadyProcessedError(f"Registration already {registration.status.value.lower()}")
        if staff.course_id != registration.course_id:
            raise ForbiddenError("You can only review registrations for your own course")

        if await self._student_email_exists(registration.email.lower()):
            raise ConflictError("Email already exists", code="EMAIL_EXISTS")

        sessions = await self.capacity.lock_sessions(
            [registration.saturday_session_id, registration.sunday_session_id]
        )
        # The registration already holds its seats; only oversubscription blocks it
        for session in sessions.values():
            usage = await self.capacity.seat_usage(session)
            if usage.available < 0:
                raise ConflictError(
                    f"{session.day.value.title()} session {session.time_label} is over capacity",
                    code="CAPACITY_EXCEEDED",
                )

        saturday = sessions[registration.saturday_session_id]
        student_number = await self._next_student_number()

        student = Student(
            uuid=str(uuid.uuid4()),
            student_number=student_number,
            surname=registration.surname,
            first_name=registration.first_name,
            last_name=registration.last_name,
            email=registration.email,
            phone_number=registration.phone_number,
            password_hash=registration.password_hash,
            class_id=saturday.class_id,
            saturday_session_id=registration.saturday_session_id,
            sunday_session_id=registration.sunday_session_id,
            photo_url=registration.portrait_photo_url,
            photo_uploaded_at=datetime.now(timezone.utc) if registration.portrait_photo_url else None,
        )
        self.db.add(student)

        registration.status = RegistrationStatus.APPROVED
        registration.reviewed_by_id = staff.id
        registration.reviewed_at = datetime.now(timezone.utc)
        await self.db.flush()

        logger.info(f"Registration {registration.id} approved as {student_number} by {staff.id}")
        return {
            "student_id": student.id,
            "student_number": student_number,
            "email": student.email,
            "first_name": student.first_name,
        }

    async def _next_student_number(self) -> str:
        """Issue the next STU number from the locked counter row"""
        stmt = (
            select(StudentNumberSequence)
            .where(StudentNumberSequence.name == STUDENT_NUMBER_SEQUENCE)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        sequence = await self.db.scalar(stmt)
        if sequence is None:
            sequence = StudentNumberSequence(name=STUDENT_NUMBER_SEQUENCE, last_value=0)
            self.db.add(sequence)
            await self.db.flush()

        # Numbers issued outside the counter (imports, older rows) are never reused
        # Longest suffix first: STU100000 outranks STU99999
        highest = await self.db.scalar(
            select(Student.student_number)
            .where(Student.student_number.like(f"{STUDENT_NUMBER_PREFIX}%"))
            .order_by(func.length(Student.student_number).desc(), Student.student_number.desc())
            .limit(1)
        )
        next_value = max(sequence.last_value, parse_student_number(highest)) + 1
        sequence.last_value = next_value
        return format_student_number(next_value)

    async def bulk_approve(self, registration_ids: List[UUID], staff: AuthenticatedUser) -> Dict[str, Any]:
        require(staff, Action.BULK_APPROVE_REGISTRATIONS)
        result, notices = await self._bulk_approve(registration_ids, staff)
        for notice in notices:
            await self._notify(notice["email"], "registration_approved", {
                "studentNumber": notice["student_number"],
                "firstName": notice["first_name"],
            })
        return result

    @transactional
    async def _bulk_approve(self, registration_ids: List[UUID], staff: AuthenticatedUser):
        approved: List[UUID] = []
        failed: List[Dict[str, Any]] = []
        students: List[Dict[str, Any]] = []
        notices: List[Dict[str, Any]] = []

        for registration_id in registration_ids:
            try:
                async with self.db.begin_nested():
                    created = await self._approve_one(registration_id, staff)
            except AcademyException as e:
                logger.warning(f"Bulk approval skipped {registration_id}: {e.message}")
                failed.append({"id": registration_id, "reason": e.message})
                continue
            except IntegrityError as e:
                logger.warning(f"Bulk approval skipped {registration_id}: {e.orig}")
                failed.append({"id": registration_id, "reason": "Record conflicts with existing data"})
                continue

            approved.append(registration_id)
            students.append({
                "registration_id": registration_id,
                "student_id": created["student_id"],
                "student_number": created["student_number"],
            })
            notices.append(created)

        logger.info(f"Bulk approval by {staff.id}: {len(approved)} approved, {len(failed)} failed")
        return {"approved": approved, "failed": failed, "students": students}, notices

    async def reject(self, registration_id: UUID, staff: AuthenticatedUser, reason: Optional[str]) -> StudentRegistration:
        require(staff, Action.REJECT_REGISTRATION)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Rejection reason is required")
        if len(reason) > MAX_REJECTION_REASON:
            raise ValidationError(f"Rejection reason must be at most {MAX_REJECTION_REASON} characters")

        registration = await self._reject(registration_id, staff, reason)
        await self._notify(registration.email, "registration_rejected", {
            "firstName": registration.first_name,
            "reason": reason,
        })
        return registration

    @transactional
    async def _reject(self, registration_id: UUID, staff: AuthenticatedUser, reason: str) -> StudentRegistration:
        registration = await self.get_for_update(registration_id)
        if registration is None:
            raise NotFoundError("Registration", registration_id)
        if registration.status != RegistrationStatus.PENDING:
            raise AlreadyProcessedError(f"Registration already {registration.status.value.lower()}")
        if staff.course_id != registration.course_id:
            raise ForbiddenError("You can only review registrations for your own course")

        registration.status = RegistrationStatus.REJECTED
        registration.rejection_reason = reason
        registration.reviewed_by_id = staff.id
        registration.reviewed_at = datetime.now(timezone.utc)
        await self.db.flush()

        logger.info(f"Registration {registration.id} rejected by {staff.id}")
        return registration

    async def expire_stale(
        self,
        staff: AuthenticatedUser,
        older_than_days: Optional[int] = None,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Flip PENDING registrations older than the threshold to EXPIRED"""
        require(staff, Action.EXPIRE_REGISTRATIONS)
        days = older_than_days if older_than_days is not None else settings.registration_expiry_days
        if days is None:
            raise ValidationError("No expiry threshold given and REGISTRATION_EXPIRY_DAYS is not set")
        if days < 1:
            raise ValidationError("Expiry threshold must be at least one day")

        threshold = (now or datetime.now(timezone.utc)) - timedelta(days=days)
        return await self._expire(threshold)

    @transactional
    async def _expire(self, threshold: datetime) -> Dict[str, Any]:
        stale = await self.db.execute(
            select(StudentRegistration.id)
            .where(
                StudentRegistration.status == RegistrationStatus.PENDING,
                StudentRegistration.created_at < threshold
            )
            .order_by(StudentRegistration.id)
            .with_for_update()
        )
        expired_ids = list(stale.scalars().all())

        if expired_ids:
            await self.db.execute(
                update(StudentRegistration)
                .where(
                    StudentRegistration.id.in_(expired_ids),
                    StudentRegistration.status == RegistrationStatus.PENDING
                )
                .values(status=RegistrationStatus.EXPIRED, reviewed_at=datetime.now(timezone.utc))
            )

        logger.info(f"Expired {len(expired_ids)} registrations submitted before {threshold.isoformat()}")
        return {"expired": len(expired_ids), "registration_ids": expired_ids, "threshold": threshold}

    async def list_for_course(
        self,
        staff: AuthenticatedUser,
        status: Optional[RegistrationStatus] = None,
        page: int = 1,
        size: int = 20
    ) -> Dict[str, Any]:
        require(staff, Action.VIEW_REGISTRATIONS)
        if staff.course_id is None:
            raise ForbiddenError("You are not assigned to a course")
        return await self.get_paginated(
            page=page,
            size=size,
            order_by="created_at",
            sort="asc",
            course_id=staff.course_id,
            status=status,
        )

    async def _notify(self, to: str, template: str, context: Dict[str, Any]) -> None:
        if self.notifier is not None:
            await notify_safely(self.notifier, to, template, context)
