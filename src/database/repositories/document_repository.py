"""
Repository for generated document metadata.
"""

from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.models.generation import Document
from src.database.repositories.base import BaseRepository
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


class DocumentRepository(BaseRepository[Document]):
    def __init__(self, session: AsyncSession):
        super().__init__(Document, session)

    async def list_for_tenant(
        self,
        tenant_id: str,
        template_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Document]:
        """Newest first, optionally filtered by template and correlation id."""
        query = select(Document).where(Document.tenant_id == tenant_id)
        if template_id is not None:
            query = query.where(Document.template_id == template_id)
        if correlation_id is not None:
            query = query.where(Document.correlation_id == correlation_id)
        query = query.order_by(Document.created_at.desc(), Document.id).limit(limit).offset(offset)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def delete_returning(self, tenant_id: str, document_id: UUID) -> Optional[Document]:
        """Delete the row and return it so the caller can remove stored content."""
        stmt = (
            delete(Document)
            .where(Document.id == document_id, Document.tenant_id == tenant_id)
            .returning(Document)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        deleted = result.scalar_one_or_none()
        if deleted:
            logger.info(f"Deleted document metadata: {document_id}")
        return deleted
