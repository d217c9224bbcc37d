# tutorhub/services/base_service.py
"""Base service with common query helpers."""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Type, List, Optional, TypeVar, Generic

T = TypeVar('T')

class BaseService(Generic[T]):
    def __init__(self, model: Type[T], db: AsyncSession):
        self.model = model
        self.db = db

    async def get_multi(
        self,
        skip: int = 0,
        limit: Optional[int] = 100,
        order_by: Optional[str] = None,
        sort: str = "asc",
        include_deleted: bool = False,
        **filters
    ) -> List[T]:
        """Filtered rows by column equality; ``limit=None`` returns everything"""
        stmt = select(self.model)

        if not include_deleted:
            stmt = stmt.where(self.model.is_deleted == False)

        for key, value in filters.items():
            if hasattr(self.model, key) and value is not None:
                stmt = stmt.where(getattr(self.model, key) == value)

        if order_by and hasattr(self.model, order_by):
            order_field = getattr(self.model, order_by)
            stmt = stmt.order_by(order_field.desc() if sort.lower() == "desc" else order_field.asc())

        stmt = stmt.offset(skip)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())
