# academy/routers/registrations.py
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.permissions import Action
from ..core.security import require_permission
from ..models.registration import RegistrationStatus
from ..schemas.auth_schemas import AuthenticatedUser
from ..schemas.common import PaginatedResponse
from ..schemas.registration_schemas import (
    ApprovalResult, BulkApproveRequest, BulkApproveResult, ExpireRequest, ExpireResult,
    Registration, RegistrationCreate, RegistrationSubmitted, RejectRequest,
)
from ..services.notification_service import Notifier, get_notifier
from ..services.registration_service import RegistrationService

# Public submission lives at /register, staff review under /registrations
public_router = APIRouter(tags=["Registration"])
router = APIRouter(prefix="/registrations", tags=["Registrations"])


@public_router.post("/register", response_model=RegistrationSubmitted, status_code=status.HTTP_201_CREATED)
async def submit_registration(
    registration: RegistrationCreate,
    db: AsyncSession = Depends(get_db)
):
    service = RegistrationService(db)
    return await service.submit(registration)


@router.get("", response_model=PaginatedResponse[Registration])
async def list_registrations(
    status: Optional[RegistrationStatus] = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    user: AuthenticatedUser = Depends(require_permission(Action.VIEW_REGISTRATIONS)),
    db: AsyncSession = Depends(get_db)
):
    service = RegistrationService(db)
    return await service.list_for_course(user, status=status, page=page, size=size)


@router.post("/bulk-approve", response_model=BulkApproveResult)
async def bulk_approve_registrations(
    body: BulkApproveRequest,
    user: AuthenticatedUser = Depends(require_permission(Action.BULK_APPROVE_REGISTRATIONS)),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
):
    service = RegistrationService(db, notifier)
    return await service.bulk_approve(body.registration_ids, user)


@router.post("/expire", response_model=ExpireResult)
async def expire_registrations(
    body: ExpireRequest,
    user: AuthenticatedUser = Depends(require_permission(Action.EXPIRE_REGISTRATIONS)),
    db: AsyncSession = Depends(get_db)
):
    service = RegistrationService(db)
    return await service.expire_stale(user, older_than_days=body.older_than_days)


@router.post("/{registration_id}/approve", response_model=ApprovalResult)
async def approve_registration(
    registration_id: UUID,
    user: AuthenticatedUser = Depends(require_permission(Action.APPROVE_REGISTRATION)),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
):
    service = RegistrationService(db, notifier)
    return await service.approve(registration_id, user)


@router.post("/{registration_id}/reject", response_model=Registration)
async def reject_registration(
    registration_id: UUID,
    body: RejectRequest,
    user: AuthenticatedUser = Depends(require_permission(Action.REJECT_REGISTRATION)),
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier)
):
    service = RegistrationService(db, notifier)
    return await service.reject(registration_id, user, body.reason)
