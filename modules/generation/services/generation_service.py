"""
Generation service: entry point for submitting and querying generation jobs.

Submissions are validated synchronously and enqueued as PENDING requests;
rendering happens asynchronously in the job poller.
"""

from collections import Counter
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence, Union
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from modules.generation.core.exceptions import NotFoundException, ValidationFailedException
from modules.generation.core.interfaces import BatchProgress, GenerationStatus, IContentStore
from modules.generation.services.variant_resolver import VariantCriteria, VariantResolver
from src.database.connection import get_session
from src.database.models.generation import Document, GenerationRequest
from src.database.repositories import (
    DocumentRepository,
    GenerationRequestRepository,
    TemplateRepository,
)
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

MAX_FILENAME_LENGTH = 255


@dataclass
class GenerationItem:
    """
    One document to generate.

    Exactly one of variant_id / criteria and exactly one of
    version_id / environment_id must be given.
    """
    template_id: str
    data: Dict[str, Any]
    variant_id: Optional[str] = None
    criteria: Optional[Union[VariantCriteria, Dict[str, Any]]] = None
    version_id: Optional[str] = None
    environment_id: Optional[str] = None
    filename: Optional[str] = None
    correlation_id: Optional[str] = None
    created_by: Optional[str] = None

    def variant_criteria(self) -> Optional[VariantCriteria]:
        if self.criteria is None or isinstance(self.criteria, VariantCriteria):
            return self.criteria
        return VariantCriteria.from_dict(self.criteria)


def find_duplicates(values: Sequence[Optional[str]]) -> List[str]:
    """Non-null values occurring more than once, in first-seen order."""
    counts = Counter(value for value in values if value is not None)
    seen = []
    for value in values:
        if value is not None and counts[value] > 1 and value not in seen:
            seen.append(value)
    return seen


def _to_uuid(value: Union[str, UUID]) -> Optional[UUID]:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


class GenerationService:
    """
    Validates and enqueues generation requests; exposes cancel and queries.

    Example:
        service = GenerationService(content_store=store)
        request = await service.submit_single("acme", "invoice", {"name": "Ada"},
                                              variant_id="default", version_id="v1")
    """

    def __init__(
        self,
        content_store: IContentStore,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        variant_resolver: Optional[VariantResolver] = None,
    ):
        self.content_store = content_store
        self.session_maker = session_maker
        self.variant_resolver = variant_resolver or VariantResolver()

    def _session(self):
        return get_session(self.session_maker)

    # ==========================================================================
    # SUBMISSION
    # ==========================================================================

    async def submit_single(
        self,
        tenant_id: str,
        template_id: str,
        data: Dict[str, Any],
        variant_id: Optional[str] = None,
        criteria: Optional[Union[VariantCriteria, Dict[str, Any]]] = None,
        version_id: Optional[str] = None,
        environment_id: Optional[str] = None,
        filename: Optional[str] = None,
        correlation_id: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> GenerationRequest:
        """
        Enqueue one request.

        Returns:
            The PENDING GenerationRequest

        Raises:
            ValidationFailedException: Malformed submission
            NotFoundException: Unknown template, variant, version or environment
            NoMatchingVariantException: Criteria select no variant
        """
        item = GenerationItem(
            template_id=template_id,
            data=data,
            variant_id=variant_id,
            criteria=criteria,
            version_id=version_id,
            environment_id=environment_id,
            filename=filename,
            correlation_id=correlation_id,
            created_by=created_by,
        )
        errors = self._shape_errors(item)
        if errors:
            raise ValidationFailedException("Invalid generation request: " + "; ".join(errors), errors=errors)

        async with self._session() as session:
            request = await self._build_request(TemplateRepository(session), tenant_id, item)
            session.add(request)
            await session.flush()

        logger.info(f"Enqueued generation request {request.id} (tenant={tenant_id}, template={template_id})")
        return request

    async def submit_batch(self, tenant_id: str, items: Sequence[GenerationItem]) -> UUID:
        """
        Enqueue a batch atomically.

        Every item is validated and resolved before any row is written; the
        batch row and all request rows are inserted in one transaction.

        Returns:
            The batch id

        Raises:
            ValidationFailedException: Empty batch, malformed item, or duplicate
                correlation ids / filenames (all duplicates listed)
            NotFoundException / NoMatchingVariantException: Bad reference in any item
        """
        if not items:
            raise ValidationFailedException("Batch must contain at least one item",
                                            errors=["Batch must contain at least one item"])

        duplicate_correlation_ids = find_duplicates([item.correlation_id for item in items])
        duplicate_filenames = find_duplicates([item.filename for item in items])
        if duplicate_correlation_ids or duplicate_filenames:
            errors = []
            if duplicate_correlation_ids:
                errors.append(f"Duplicate correlationId values: {', '.join(duplicate_correlation_ids)}")
            if duplicate_filenames:
                errors.append(f"Duplicate filename values: {', '.join(duplicate_filenames)}")
            raise ValidationFailedException(
                "; ".join(errors),
                errors=errors,
                duplicate_correlation_ids=duplicate_correlation_ids,
                duplicate_filenames=duplicate_filenames,
            )

        errors = [
            f"items[{index}]: {error}"
            for index, item in enumerate(items)
            for error in self._shape_errors(item)
        ]
        if errors:
            raise ValidationFailedException("Invalid batch: " + "; ".join(errors), errors=errors)

        async with self._session() as session:
            templates = TemplateRepository(session)
            requests = [await self._build_request(templates, tenant_id, item) for item in items]
            batch = await GenerationRequestRepository(session).create_batch(tenant_id, requests)

        logger.info(f"Enqueued batch {batch.id} with {len(items)} requests (tenant={tenant_id})")
        return batch.id

    def _shape_errors(self, item: GenerationItem) -> List[str]:
        errors = []
        if not item.template_id:
            errors.append("templateId is required")
        if (item.variant_id is None) == (item.criteria is None):
            errors.append("exactly one of variantId or variant criteria is required")
        if (item.version_id is None) == (item.environment_id is None):
            errors.append("exactly one of versionId or environmentId is required")
        if not isinstance(item.data, dict):
            errors.append("data must be a JSON object")
        if item.filename is not None and (not item.filename.strip() or len(item.filename) > MAX_FILENAME_LENGTH):
            errors.append(f"filename must be 1-{MAX_FILENAME_LENGTH} characters")
        return errors

    async def _build_request(
        self,
        templates: TemplateRepository,
        tenant_id: str,
        item: GenerationItem,
    ) -> GenerationRequest:
        """Check every reference belongs to the tenant and build an unsaved request."""
        if await templates.get_tenant(tenant_id) is None:
            raise NotFoundException("Tenant", tenant_id)
        if not await templates.exists(tenant_id, item.template_id):
            raise NotFoundException("Template", item.template_id)

        variants = await templates.list_variants(tenant_id, item.template_id)
        variant_id = self.variant_resolver.resolve(
            item.template_id, variants, variant_id=item.variant_id, criteria=item.variant_criteria()
        )

        if item.version_id is not None:
            version = await templates.get_version(tenant_id, item.template_id, variant_id, item.version_id)
            if version is None:
                raise NotFoundException("Version", f"{item.template_id}/{variant_id}/{item.version_id}")
        else:
            if await templates.get_environment(tenant_id, item.environment_id) is None:
                raise NotFoundException("Environment", item.environment_id)
            if await templates.get_active_version_id(tenant_id, item.environment_id, variant_id) is None:
                raise NotFoundException("Active version", f"{item.environment_id}/{variant_id}")

        return GenerationRequest(
            tenant_id=tenant_id,
            template_id=item.template_id,
            variant_id=variant_id,
            version_id=item.version_id,
            environment_id=item.environment_id,
            data=item.data,
            filename=item.filename,
            correlation_id=item.correlation_id,
            created_by=item.created_by,
            status=GenerationStatus.PENDING.value,
        )

    # ==========================================================================
    # JOBS
    # ==========================================================================

    async def cancel(self, tenant_id: str, request_id: Union[str, UUID]) -> bool:
        """
        Cancel a PENDING or IN_PROGRESS request owned by the tenant.

        Best effort: a render already running is not interrupted, but its
        completion will not overwrite the CANCELLED status.
        """
        request_uuid = _to_uuid(request_id)
        if request_uuid is None:
            return False
        async with self._session() as session:
            cancelled = await GenerationRequestRepository(session).cancel(tenant_id, request_uuid)
        if cancelled:
            logger.info(f"Cancelled generation request {request_uuid}")
        return cancelled

    async def get_job(self, tenant_id: str, request_id: Union[str, UUID]) -> Optional[GenerationRequest]:
        request_uuid = _to_uuid(request_id)
        if request_uuid is None:
            return None
        async with self._session() as session:
            return await GenerationRequestRepository(session).get(tenant_id, request_uuid)

    async def list_jobs(
        self,
        tenant_id: str,
        status: Optional[GenerationStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[GenerationRequest]:
        async with self._session() as session:
            return await GenerationRequestRepository(session).list_for_tenant(tenant_id, status, limit, offset)

    async def get_batch_progress(self, tenant_id: str, batch_id: Union[str, UUID]) -> Optional[BatchProgress]:
        """Aggregate member request statuses of a batch."""
        batch_uuid = _to_uuid(batch_id)
        if batch_uuid is None:
            return None
        async with self._session() as session:
            return await GenerationRequestRepository(session).batch_progress(tenant_id, batch_uuid)

    async def requeue_stale_claims(self, older_than: timedelta) -> int:
        """Operator recovery: return long-running IN_PROGRESS claims to PENDING."""
        async with self._session() as session:
            return await GenerationRequestRepository(session).requeue_stale_claims(older_than)

    # ==========================================================================
    # DOCUMENTS
    # ==========================================================================

    async def list_documents(
        self,
        tenant_id: str,
        template_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Document]:
        async with self._session() as session:
            return await DocumentRepository(session).list_for_tenant(
                tenant_id, template_id, correlation_id, limit, offset
            )

    async def get_document(self, tenant_id: str, document_id: Union[str, UUID]) -> Optional[Document]:
        document_uuid = _to_uuid(document_id)
        if document_uuid is None:
            return None
        async with self._session() as session:
            return await DocumentRepository(session).get(tenant_id, document_uuid)

    async def get_document_content(self, tenant_id: str, document_id: Union[str, UUID]) -> Optional[bytes]:
        document = await self.get_document(tenant_id, document_id)
        if document is None:
            return None
        return await self.content_store.get(document.storage_key)

    async def delete_document(self, tenant_id: str, document_id: Union[str, UUID]) -> bool:
        """Delete metadata, then stored content."""
        document_uuid = _to_uuid(document_id)
        if document_uuid is None:
            return False
        async with self._session() as session:
            document = await DocumentRepository(session).delete_returning(tenant_id, document_uuid)
        if document is None:
            return False
        await self.content_store.delete(document.storage_key)
        return True
