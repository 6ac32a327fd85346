# academy/core/security.py
"""Bearer-token identity and password hashing."""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import bcrypt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from pydantic import ValidationError as PydanticValidationError

from .config import settings
from .exceptions import UnauthorizedError, ValidationError
from .permissions import Action, require
from ..schemas.auth_schemas import AuthenticatedUser

bearer_scheme = HTTPBearer(auto_error=False)


def hash_password_sync(password: str, rounds: Optional[int] = None) -> str:
    secret = password.encode("utf-8")
    if len(secret) > 72:
        raise ValidationError("Password must be at most 72 bytes")
    salt = bcrypt.gensalt(rounds=rounds or settings.password_hash_rounds)
    return bcrypt.hashpw(secret, salt).decode("utf-8")


async def hash_password(password: str) -> str:
    """Hash off the event loop; bcrypt is deliberately slow"""
    return await asyncio.to_thread(hash_password_sync, password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user: AuthenticatedUser, expires_minutes: int = 480) -> str:
    """Issue a token carrying the claims the API reads back"""
    claims = {
        "sub": str(user.id),
        "role": user.role.value,
        "teacherRole": user.teacher_role.value if user.teacher_role else None,
        "courseId": str(user.course_id) if user.course_id else None,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> AuthenticatedUser:
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise UnauthorizedError("Invalid or expired token")

    try:
        return AuthenticatedUser(
            id=payload.get("sub"),
            role=payload.get("role"),
            teacher_role=payload.get("teacherRole"),
            course_id=payload.get("courseId"),
        )
    except PydanticValidationError:
        raise UnauthorizedError("Token is missing identity claims")


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> AuthenticatedUser:
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError()
    return decode_access_token(credentials.credentials)


def require_permission(action: Action) -> Callable:
    """Dependency factory: authenticated user allowed to perform `action`"""
    async def dependency(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
        return require(user, action)
    return dependency
