# academy/routers/students.py
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.database import get_db
from ..core.permissions import Action
from ..core.security import require_permission
from ..schemas.auth_schemas import AuthenticatedUser
from ..schemas.student_schemas import Schedule
from ..services.student_service import StudentService

router = APIRouter(prefix="/students", tags=["Students"])


@router.get("/me/schedule", response_model=Schedule)
async def get_my_schedule(
    user: AuthenticatedUser = Depends(require_permission(Action.VIEW_OWN_SCHEDULE)),
    db: AsyncSession = Depends(get_db)
):
    service = StudentService(db)
    return await service.schedule(user)
