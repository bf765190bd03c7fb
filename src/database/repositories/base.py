"""
Base repository pattern for database operations.
"""

from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

ModelType = TypeVar("ModelType")


class BaseRepository(Generic[ModelType]):
    """
    Base repository providing tenant-scoped lookups.

    Repositories flush but never commit; the caller's session scope
    (src.database.connection.get_session) owns the transaction.
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class with id and tenant_id columns
            session: Async database session
        """
        self.model = model
        self.session = session

    async def get(self, tenant_id: str, id: Any) -> Optional[ModelType]:
        """
        Get record by ID within a tenant.

        Returns:
            Model instance or None
        """
        result = await self.session.execute(
            select(self.model).where(self.model.id == id, self.model.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none()

    async def exists(self, tenant_id: str, id: Any) -> bool:
        result = await self.session.execute(
            select(self.model.id).where(self.model.id == id, self.model.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none() is not None
