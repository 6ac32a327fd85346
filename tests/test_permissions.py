import uuid

import pytest

from academy.core.exceptions import ForbiddenError, UnauthorizedError, ValidationError
from academy.core.permissions import Action, can, require
from academy.core.security import (
    create_access_token, decode_access_token, hash_password_sync, verify_password,
)
from academy.models import TeacherRole
from academy.schemas.auth_schemas import AuthenticatedUser, UserRole

ADMIN = AuthenticatedUser(id=uuid.uuid4(), role=UserRole.ADMIN)
HEAD = AuthenticatedUser(id=uuid.uuid4(), role=UserRole.TEACHER, teacher_role=TeacherRole.HEAD, course_id=uuid.uuid4())
ADDITIONAL = AuthenticatedUser(
    id=uuid.uuid4(), role=UserRole.TEACHER, teacher_role=TeacherRole.ADDITIONAL, course_id=uuid.uuid4()
)
STUDENT = AuthenticatedUser(id=uuid.uuid4(), role=UserRole.STUDENT)


@pytest.mark.parametrize("user, action, allowed", [
    (HEAD, Action.APPROVE_REGISTRATION, True),
    (ADDITIONAL, Action.APPROVE_REGISTRATION, True),
    (HEAD, Action.BULK_APPROVE_REGISTRATIONS, True),
    (ADDITIONAL, Action.BULK_APPROVE_REGISTRATIONS, False),
    (HEAD, Action.AUTO_MARK_ABSENT, True),
    (ADDITIONAL, Action.AUTO_MARK_ABSENT, False),
    (ADDITIONAL, Action.SCAN_ATTENDANCE, True),
    (STUDENT, Action.SCAN_ATTENDANCE, False),
    (STUDENT, Action.REQUEST_REASSIGNMENT, True),
    (HEAD, Action.REQUEST_REASSIGNMENT, False),
    (ADMIN, Action.REPLACE_HEAD_TEACHER, True),
    (HEAD, Action.REPLACE_HEAD_TEACHER, False),
    (ADMIN, Action.EXPIRE_REGISTRATIONS, True),
    (ADMIN, Action.APPROVE_REGISTRATION, False),
    (ADMIN, Action.MANAGE_COURSES, True),
    (HEAD, Action.MANAGE_COURSES, False),
    (HEAD, Action.MANAGE_CLASSES, True),
    (ADDITIONAL, Action.MANAGE_CLASSES, False),
    (STUDENT, Action.VIEW_OWN_SCHEDULE, True),
    (ADDITIONAL, Action.VIEW_OWN_SCHEDULE, False),
    (None, Action.VIEW_OWN_ATTENDANCE, False),
])
def test_capabilities(user, action, allowed):
    assert can(user, action) is allowed


def test_teacher_without_sub_role_has_no_capabilities():
    teacher = AuthenticatedUser(id=uuid.uuid4(), role=UserRole.TEACHER)
    assert not can(teacher, Action.SCAN_ATTENDANCE)


def test_require_returns_user_or_raises():
    assert require(HEAD, Action.AUTO_MARK_ABSENT) is HEAD
    with pytest.raises(ForbiddenError) as exc_info:
        require(ADDITIONAL, Action.AUTO_MARK_ABSENT)
    assert exc_info.value.status_code == 403


def test_access_token_round_trip_keeps_claims():
    user = decode_access_token(create_access_token(HEAD))
    assert user == HEAD
    assert user.is_head_teacher


def test_expired_or_tampered_tokens_are_rejected():
    with pytest.raises(UnauthorizedError):
        decode_access_token(create_access_token(STUDENT, expires_minutes=-1))
    with pytest.raises(UnauthorizedError):
        decode_access_token(create_access_token(STUDENT) + "x")


def test_password_hashing():
    hashed = hash_password_sync("correct-horse-battery", rounds=4)
    assert hashed != "correct-horse-battery"
    assert verify_password("correct-horse-battery", hashed)
    assert not verify_password("wrong-password", hashed)
    assert not verify_password("anything", "not-a-bcrypt-hash")


def test_hashing_refuses_passwords_over_72_bytes():
    with pytest.raises(ValidationError):
        hash_password_sync("é" * 40, rounds=4)
