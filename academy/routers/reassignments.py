# academy/routers/reassignments.py
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.permissions import Action
from ..core.security import require_permission
from ..models.reassignment import RequestStatus
from ..schemas.auth_schemas import AuthenticatedUser
from ..schemas.reassignment_schemas import (
    DenyRequest, ReassignmentCreate, ReassignmentOptions, ReassignmentRequest,
)
from ..services.notification_service import Notifier, get_notifier
from ..services.reassignment_service import ReassignmentService

router = APIRouter(prefix="/reassignments", tags=["Reassignments"])


@router.get("/mine", response_model=List[ReassignmentRequest])
async def list_my_requests(
    user: AuthenticatedUser = Depends(require_permission(Action.REQUEST_REASSIGNMENT)),
    db: AsyncSession = Depends(get_db)
):
    service = ReassignmentService(db)
    return await service.list_for_student(user)


@router.get("/options", response_model=ReassignmentOptions)
async def get_reassignment_options(
    user: AuthenticatedUser = Depends(require_permission(Action.REQUEST_REASSIGNMENT)),
    db: AsyncSession = Depends(get_db)
):
    service = ReassignmentService(db)
    return await service.options(user)


@router.post("", response_model=ReassignmentRequest, status_code=status.HTTP_201_CREATED)
async def request_reassignment(
    body: ReassignmentCreate,
    user: AuthenticatedUser = Depends(require_permission(Action.REQUEST_REASSIGNMENT)),
    db: AsyncSession = Depends(get_db)
):
    service = ReassignmentService(db)
    return await service.request(
        user, body.to_session_id, from_session_id=body.from_session_id, reason=body.reason
    )


@router.delete("/{request_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_reassignment(
    request_id: UUID,
    user: AuthenticatedUser = Depends(require_permission(Action.REQUEST_REASSIGNMENT)),
    db: AsyncSession = Depends(get_db)
):
    service = ReassignmentService(db)
    await service.cancel(request_id, user)


@router.get("", response_model=List[ReassignmentRequest])
async def list_course_requests(
    status: Optional[RequestStatus] = Query(None),
    user: AuthenticatedUser = Depends(require_permission(Action.REVIEW_REASSIGNMENT)),
    db: AsyncSession = Depends(get_db)
):
    service = ReassignmentService(db)
    return await service.list_for_course(user, status=status)


@router.post("/{request_id}/approve", response_model=ReassignmentRequest)
async def approve_reassignment(
    request_id: UUID,
    user: AuthenticatedUser = Depends(require_permission(Action.REVIEW_REASSIGNMENT)),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
):
    service = ReassignmentService(db, notifier)
    return await service.approve(request_id, user)


@router.post("/{request_id}/deny", response_model=ReassignmentRequest)
async def deny_reassignment(
    request_id: UUID,
    body: DenyRequest,
    user: AuthenticatedUser = Depends(require_permission(Action.REVIEW_REASSIGNMENT)),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
):
    service = ReassignmentService(db, notifier)
    return await service.deny(request_id, user, reason=body.reason)
