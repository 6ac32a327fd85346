# academy/routers/courses.py
from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.permissions import Action
from ..core.security import require_permission
from ..schemas.auth_schemas import AuthenticatedUser
from ..schemas.course_schemas import (
    Course, CourseCreate, CourseCreated, CourseSessions, CourseUpdate,
    ReplaceHeadTeacherRequest, ReplaceHeadTeacherResult,
)
from ..services.course_service import CourseService

router = APIRouter(prefix="/courses", tags=["Courses"])


@router.get("", response_model=List[Course])
async def list_courses(db: AsyncSession = Depends(get_db)):
    """Courses currently open for registration"""
    service = CourseService(db)
    return await service.list_active_courses()


@router.get("/{course_id}/sessions", response_model=CourseSessions)
async def get_course_sessions(course_id: UUID, db: AsyncSession = Depends(get_db)):
    service = CourseService(db)
    return await service.course_sessions(course_id)


@router.post("", response_model=CourseCreated, status_code=status.HTTP_201_CREATED)
async def create_course(
    body: CourseCreate,
    user: AuthenticatedUser = Depends(require_permission(Action.MANAGE_COURSES)),
    db: AsyncSession = Depends(get_db)
):
    service = CourseService(db)
    return await service.create_course(body, user)


@router.patch("/{course_id}", response_model=Course)
async def update_course(
    course_id: UUID,
    body: CourseUpdate,
    user: AuthenticatedUser = Depends(require_permission(Action.MANAGE_COURSES)),
    db: AsyncSession = Depends(get_db)
):
    service = CourseService(db)
    return await service.update_course(course_id, body, user)


@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_course(
    course_id: UUID,
    user: AuthenticatedUser = Depends(require_permission(Action.MANAGE_COURSES)),
    db: AsyncSession = Depends(get_db)
):
    service = CourseService(db)
    await service.delete_course(course_id, user)


@router.post("/{course_id}/replace-head-teacher", response_model=ReplaceHeadTeacherResult)
async def replace_head_teacher(
    course_id: UUID,
    body: ReplaceHeadTeacherRequest,
    user: AuthenticatedUser = Depends(require_permission(Action.REPLACE_HEAD_TEACHER)),
    db: AsyncSession = Depends(get_db)
):
    service = CourseService(db)
    return await service.replace_head_teacher(
        course_id, body.new_head_teacher_id, user, remove_old_teacher=body.remove_old_teacher
    )
