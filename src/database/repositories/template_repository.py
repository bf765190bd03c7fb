"""
Read access to the template catalog (templates, variants, versions,
environments, themes).
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.database.models.template import (
    DocumentTemplate,
    Environment,
    EnvironmentActivation,
    TemplateVariant,
    TemplateVersion,
    Tenant,
    ThemeRecord,
)
from src.database.repositories.base import BaseRepository
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


class TemplateRepository(BaseRepository[DocumentTemplate]):
    """Tenant-scoped lookups used to validate and resolve template references."""

    def __init__(self, session: AsyncSession):
        super().__init__(DocumentTemplate, session)

    async def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        return await self.session.get(Tenant, tenant_id)

    async def get_variant(self, tenant_id: str, template_id: str, variant_id: str) -> Optional[TemplateVariant]:
        result = await self.session.execute(
            select(TemplateVariant).where(
                TemplateVariant.id == variant_id,
                TemplateVariant.template_id == template_id,
                TemplateVariant.tenant_id == tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_variants(self, tenant_id: str, template_id: str) -> List[TemplateVariant]:
        """Variants of a template in creation order."""
        result = await self.session.execute(
            select(TemplateVariant)
            .where(TemplateVariant.template_id == template_id, TemplateVariant.tenant_id == tenant_id)
            .order_by(TemplateVariant.created_at, TemplateVariant.id)
        )
        return list(result.scalars().all())

    async def get_version(
        self,
        tenant_id: str,
        template_id: str,
        variant_id: str,
        version_id: str,
    ) -> Optional[TemplateVersion]:
        result = await self.session.execute(
            select(TemplateVersion).where(
                TemplateVersion.id == version_id,
                TemplateVersion.variant_id == variant_id,
                TemplateVersion.template_id == template_id,
                TemplateVersion.tenant_id == tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_environment(self, tenant_id: str, environment_id: str) -> Optional[Environment]:
        result = await self.session.execute(
            select(Environment).where(Environment.id == environment_id, Environment.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none()

    async def get_active_version_id(
        self,
        tenant_id: str,
        environment_id: str,
        variant_id: str,
    ) -> Optional[str]:
        """Version currently activated for a variant in an environment."""
        result = await self.session.execute(
            select(EnvironmentActivation.version_id).where(
                EnvironmentActivation.environment_id == environment_id,
                EnvironmentActivation.variant_id == variant_id,
                EnvironmentActivation.tenant_id == tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_theme(self, tenant_id: str, theme_id: Optional[str]) -> Optional[ThemeRecord]:
        if not theme_id:
            return None
        result = await self.session.execute(
            select(ThemeRecord).where(ThemeRecord.id == theme_id, ThemeRecord.tenant_id == tenant_id)
        )
        return result.scalar_one_or_none()
