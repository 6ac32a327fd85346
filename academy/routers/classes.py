# academy/routers/classes.py
from typing import List
from uuid import UUID
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.permissions import Action
from ..core.security import require_permission
from ..schemas.auth_schemas import AuthenticatedUser
from ..schemas.class_schemas import (
    ClassCreate, ClassDetail, ClassUpdate, SessionCreate, SessionUpdate, SessionWithSeats,
)
from ..services.class_service import ClassService

# Head teachers manage their own course's classes and sessions
router = APIRouter(prefix="/classes", tags=["Classes"])
session_router = APIRouter(prefix="/sessions", tags=["Sessions"])

manage_classes = require_permission(Action.MANAGE_CLASSES)


@router.get("", response_model=List[ClassDetail])
async def list_classes(
    user: AuthenticatedUser = Depends(manage_classes),
    db: AsyncSession = Depends(get_db)
):
    service = ClassService(db)
    return await service.list_classes(user)


@router.post("", response_model=ClassDetail, status_code=status.HTTP_201_CREATED)
async def create_class(
    body: ClassCreate,
    user: AuthenticatedUser = Depends(manage_classes),
    db: AsyncSession = Depends(get_db)
):
    service = ClassService(db)
    return await service.create_class(body, user)


@router.get("/{class_id}", response_model=ClassDetail)
async def get_class(
    class_id: UUID,
    user: AuthenticatedUser = Depends(manage_classes),
    db: AsyncSession = Depends(get_db)
):
    service = ClassService(db)
    return await service.get_class(class_id, user)


@router.patch("/{class_id}", response_model=ClassDetail)
async def update_class(
    class_id: UUID,
    body: ClassUpdate,
    user: AuthenticatedUser = Depends(manage_classes),
    db: AsyncSession = Depends(get_db)
):
    service = ClassService(db)
    return await service.update_class(class_id, body, user)


@router.delete("/{class_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_class(
    class_id: UUID,
    user: AuthenticatedUser = Depends(manage_classes),
    db: AsyncSession = Depends(get_db)
):
    service = ClassService(db)
    await service.delete_class(class_id, user)


@session_router.post("", response_model=SessionWithSeats, status_code=status.HTTP_201_CREATED)
async def create_session(
    body: SessionCreate,
    user: AuthenticatedUser = Depends(manage_classes),
    db: AsyncSession = Depends(get_db)
):
    service = ClassService(db)
    return await service.create_session(body, user)


@session_router.patch("/{session_id}", response_model=SessionWithSeats)
async def update_session(
    session_id: UUID,
    body: SessionUpdate,
    user: AuthenticatedUser = Depends(manage_classes),
    db: AsyncSession = Depends(get_db)
):
    service = ClassService(db)
    return await service.update_session(session_id, body, user)


@session_router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: UUID,
    user: AuthenticatedUser = Depends(manage_classes),
    db: AsyncSession = Depends(get_db)
):
    service = ClassService(db)
    await service.delete_session(session_id, user)
