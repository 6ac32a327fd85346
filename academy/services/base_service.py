# academy/services/base_service.py
"""Base service with common query helpers and the transaction wrapper."""
import functools
import logging
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import DBAPIError
from typing import Type, Any, Optional, TypeVar, Generic

from ..core.database import is_lock_contention
from ..core.exceptions import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

T = TypeVar('T')


def transactional(func):
    """Commit on success, roll back on any error.

    Lock waits that the store gives up on surface as a retryable conflict.
    """
    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            result = await func(self, *args, **kwargs)
            await self.db.commit()
            return result
        except DBAPIError as e:
            await self.db.rollback()
            if is_lock_contention(e):
                logger.warning(f"Lock contention in {func.__qualname__}: {e.orig}")
                raise ConflictError(
                    "The resource is busy, please retry",
                    code="LOCK_TIMEOUT",
                    retryable=True,
                ) from e
            raise
        except Exception:
            await self.db.rollback()
            raise
    return wrapper


class BaseService(Generic[T]):
    def __init__(self, model: Type[T], db: AsyncSession):
        self.model = model
        self.db = db

    async def get(self, id: Any) -> Optional[T]:
        stmt = select(self.model).where(self.model.id == id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_or_404(self, id: Any, resource: Optional[str] = None) -> T:
        obj = await self.get(id)
        if obj is None:
            raise NotFoundError(resource or self.model.__name__, id)
        return obj

    async def get_for_update(self, id: Any) -> Optional[T]:
        """Load a row with SELECT ... FOR UPDATE, overwriting any stale identity"""
        stmt = (
            select(self.model)
            .where(self.model.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_paginated(
        self,
        page: int = 1,
        size: int = 20,
        include_deleted: bool = False,
        order_by: str = None,
        sort: str = "asc",
        **filters
    ):
        """Get paginated results with optional soft delete filtering"""
        offset = (page - 1) * size

        stmt = select(self.model)
        count_stmt = select(func.count()).select_from(self.model)

        if hasattr(self.model, 'is_deleted') and not include_deleted:
            stmt = stmt.where(self.model.is_deleted == False)
            count_stmt = count_stmt.where(self.model.is_deleted == False)

        for key, value in filters.items():
            if hasattr(self.model, key) and value is not None:
                stmt = stmt.where(getattr(self.model, key) == value)
                count_stmt = count_stmt.where(getattr(self.model, key) == value)

        count_result = await self.db.execute(count_stmt)
        total = count_result.scalar()

        if order_by and hasattr(self.model, order_by):
            order_field = getattr(self.model, order_by)
            if sort.lower() == "desc":
                stmt = stmt.order_by(order_field.desc())
            else:
                stmt = stmt.order_by(order_field.asc())

        stmt = stmt.offset(offset).limit(size)
        result = await self.db.execute(stmt)
        items = result.scalars().all()

        return {
            "items": items,
            "total": total,
            "page": page,
            "size": size,
            "total_pages": (total + size - 1) // size,
            "has_next": page * size < total,
            "has_previous": page > 1,
        }
