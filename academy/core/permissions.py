# academy/core/permissions.py
"""Capability sets per role / teacher sub-role."""
import enum
from typing import Dict, FrozenSet, Optional, Tuple

from ..models.course import TeacherRole
from ..schemas.auth_schemas import AuthenticatedUser, UserRole
from .exceptions import ForbiddenError


class Action(enum.Enum):
    # Registration review
    VIEW_REGISTRATIONS = "view_registrations"
    APPROVE_REGISTRATION = "approve_registration"
    BULK_APPROVE_REGISTRATIONS = "bulk_approve_registrations"
    REJECT_REGISTRATION = "reject_registration"
    EXPIRE_REGISTRATIONS = "expire_registrations"

    # Attendance
    SCAN_ATTENDANCE = "scan_attendance"
    MARK_ATTENDANCE = "mark_attendance"
    BULK_MARK_ATTENDANCE = "bulk_mark_attendance"
    AUTO_MARK_ABSENT = "auto_mark_absent"
    VIEW_ATTENDANCE_REPORTS = "view_attendance_reports"
    VIEW_OWN_ATTENDANCE = "view_own_attendance"

    # Reassignment
    REQUEST_REASSIGNMENT = "request_reassignment"
    REVIEW_REASSIGNMENT = "review_reassignment"

    # Governance
    REPLACE_HEAD_TEACHER = "replace_head_teacher"
    MANAGE_COURSES = "manage_courses"
    MANAGE_CLASSES = "manage_classes"

    # Student self-service
    VIEW_OWN_SCHEDULE = "view_own_schedule"


_TEACHER = frozenset({
    Action.VIEW_REGISTRATIONS,
    Action.APPROVE_REGISTRATION,
    Action.REJECT_REGISTRATION,
    Action.SCAN_ATTENDANCE,
    Action.MARK_ATTENDANCE,
    Action.BULK_MARK_ATTENDANCE,
    Action.VIEW_ATTENDANCE_REPORTS,
    Action.REVIEW_REASSIGNMENT,
})

_HEAD_TEACHER = _TEACHER | {
    Action.BULK_APPROVE_REGISTRATIONS,
    Action.AUTO_MARK_ABSENT,
    Action.MANAGE_CLASSES,
}

_STUDENT = frozenset({
    Action.VIEW_OWN_ATTENDANCE,
    Action.VIEW_OWN_SCHEDULE,
    Action.REQUEST_REASSIGNMENT,
})

_ADMIN = frozenset({
    Action.EXPIRE_REGISTRATIONS,
    Action.REPLACE_HEAD_TEACHER,
    Action.MANAGE_COURSES,
})

CAPABILITIES: Dict[Tuple[UserRole, Optional[TeacherRole]], FrozenSet[Action]] = {
    (UserRole.ADMIN, None): _ADMIN,
    (UserRole.TEACHER, TeacherRole.HEAD): _HEAD_TEACHER,
    (UserRole.TEACHER, TeacherRole.ADDITIONAL): _TEACHER,
    (UserRole.STUDENT, None): _STUDENT,
}


def can(user: Optional[AuthenticatedUser], action: Action) -> bool:
    if user is None:
        return False
    teacher_role = user.teacher_role if user.role == UserRole.TEACHER else None
    return action in CAPABILITIES.get((user.role, teacher_role), frozenset())


def require(user: Optional[AuthenticatedUser], action: Action) -> AuthenticatedUser:
    """Return the user when allowed, raise ForbiddenError otherwise"""
    if not can(user, action):
        raise ForbiddenError(f"Forbidden - {action.value.replace('_', ' ')} not allowed for this account")
    return user
