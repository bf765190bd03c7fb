"""
Document Generation Executor.

Runs one claimed request end to end:
1. Resolve the template version (environment -> active version)
2. Select the theme (version override > template default > tenant default)
   and layer the template-level style overrides on top
3. Render the graph to PDF
4. Store the bytes and record the Document
5. Move the request to COMPLETED, or FAILED on any error
"""

import asyncio
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from modules.generation.config import GenerationConfig, get_generation_config
from modules.generation.core.exceptions import (
    DocumentTooLargeException,
    GenerationException,
    NotFoundException,
)
from modules.generation.core.interfaces import GenerationResult, IContentStore, document_storage_key
from modules.generation.expressions import ExpressionEvaluator
from modules.generation.model import TemplateGraph, Theme
from modules.generation.renderers import PDF_CONTENT_TYPE, ContentRenderer
from src.database.connection import get_session
from src.database.models.generation import Document, GenerationRequest
from src.database.models.types import utc_now
from src.database.repositories import GenerationRequestRepository, TemplateRepository
from shared.utils.logger import job_logger, log_error, setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class ClaimedJob:
    """Detached snapshot of a claimed request row."""
    id: uuid.UUID
    tenant_id: str
    template_id: str
    variant_id: str
    version_id: Optional[str]
    environment_id: Optional[str]
    data: Dict[str, Any]
    filename: str
    correlation_id: Optional[str]
    created_by: Optional[str] = None

    @classmethod
    def from_request(cls, request: GenerationRequest) -> "ClaimedJob":
        return cls(
            id=request.id,
            tenant_id=request.tenant_id,
            template_id=request.template_id,
            variant_id=request.variant_id,
            version_id=request.version_id,
            environment_id=request.environment_id,
            data=request.data or {},
            filename=request.effective_filename,
            correlation_id=request.correlation_id,
            created_by=request.created_by,
        )


@dataclass(frozen=True)
class LoadedTemplate:
    version_id: str
    graph: TemplateGraph
    theme: Optional[Theme]


class DocumentGenerationExecutor:
    """
    Executes claimed generation requests.

    Example:
        executor = DocumentGenerationExecutor(content_store, instance_id="worker-1")
        result = await executor.execute(ClaimedJob.from_request(request))
    """

    def __init__(
        self,
        content_store: IContentStore,
        instance_id: str,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        config: Optional[GenerationConfig] = None,
        renderer: Optional[ContentRenderer] = None,
    ):
        self.content_store = content_store
        self.instance_id = instance_id
        self.session_maker = session_maker
        self.config = config or get_generation_config()
        self.renderer = renderer or ContentRenderer(
            evaluator=ExpressionEvaluator(
                backend_config=self.config.expression_backend_config(),
                default_language=self.config.default_expression_language,
            ),
            max_render_nodes=self.config.max_render_nodes,
        )

    def _session(self):
        return get_session(self.session_maker)

    def _expires_at(self, completed_at: datetime) -> Optional[datetime]:
        if self.config.retention_days <= 0:
            return None
        return completed_at + timedelta(days=self.config.retention_days)

    async def execute(self, job: ClaimedJob) -> GenerationResult:
        """
        Generate the document for one claimed request.

        Never raises for job-level errors: they are recorded on the request
        as FAILED and returned in the result.
        """
        start_time = time.time()
        log = job_logger(logger, job.id, job.correlation_id)
        try:
            template = await self._load_template(job)

            # Rendering is CPU bound; keep the event loop free for other jobs
            content = await asyncio.to_thread(self.renderer.render_pdf, template.graph, template.theme, job.data)

            size = len(content)
            if size > self.config.max_document_size_bytes:
                raise DocumentTooLargeException(
                    f"Document size {size} bytes exceeds limit of {self.config.max_document_size_bytes} bytes"
                )

            document_id = await self._store(job, template.version_id, content)
            generation_time = (time.time() - start_time) * 1000

            if document_id is None:
                log.info("Cancelled during generation; discarded output")
                return GenerationResult(
                    success=False,
                    request_id=str(job.id),
                    generation_time_ms=generation_time,
                    error_message="Cancelled during generation",
                )

            log.info(f"✅ Generated document {document_id} in {generation_time:.2f}ms")
            return GenerationResult(
                success=True,
                request_id=str(job.id),
                document_id=str(document_id),
                size_bytes=size,
                generation_time_ms=generation_time,
            )

        except Exception as e:
            if isinstance(e, GenerationException):
                log.warning(f"❌ Generation failed: {e}")
            else:
                log_error(log, e, "Unexpected generation error")
            await self._fail(job, str(e) or type(e).__name__)
            return GenerationResult(
                success=False,
                request_id=str(job.id),
                generation_time_ms=(time.time() - start_time) * 1000,
                error_message=str(e),
            )

    async def _load_template(self, job: ClaimedJob) -> LoadedTemplate:
        async with self._session() as session:
            templates = TemplateRepository(session)

            version_id = job.version_id
            if version_id is None:
                version_id = await templates.get_active_version_id(job.tenant_id, job.environment_id, job.variant_id)
                if version_id is None:
                    raise NotFoundException("Active version", f"{job.environment_id}/{job.variant_id}")

            version = await templates.get_version(job.tenant_id, job.template_id, job.variant_id, version_id)
            if version is None:
                raise NotFoundException("Version", f"{job.template_id}/{job.variant_id}/{version_id}")

            graph = TemplateGraph.from_dict(version.template_model)
            template = await templates.get(job.tenant_id, job.template_id)
            tenant = await templates.get_tenant(job.tenant_id)

            theme_ids = [
                version.theme_id or graph.theme_id,
                template.theme_id if template else None,
                tenant.default_theme_id if tenant else None,
            ]
            themes = [await self._load_theme(templates, job.tenant_id, theme_id) for theme_id in theme_ids]
            theme = self.renderer.style_resolver.select_theme(*themes)
            if template is not None:
                theme = self.renderer.style_resolver.with_template_overrides(
                    theme, template.document_styles, template.page_settings
                )

        return LoadedTemplate(version_id=version_id, graph=graph, theme=theme)

    async def _load_theme(self, templates: TemplateRepository, tenant_id: str, theme_id: Optional[str]) -> Optional[Theme]:
        record = await templates.get_theme(tenant_id, theme_id)
        if record is None:
            if theme_id:
                logger.warning(f"Theme {theme_id} not found for tenant {tenant_id}; falling back")
            return None
        return Theme.model_validate(record.to_theme_dict())

    async def _store(self, job: ClaimedJob, version_id: str, content: bytes) -> Optional[uuid.UUID]:
        """
        Put content, then complete the request and insert the Document row
        in one transaction.

        Returns:
            Document id, or None if the request left IN_PROGRESS meanwhile
            (the stored content is removed again)
        """
        document_id = uuid.uuid4()
        storage_key = document_storage_key(job.tenant_id, str(document_id))
        await self.content_store.put(storage_key, content, PDF_CONTENT_TYPE, len(content))

        completed_at = utc_now()
        try:
            async with self._session() as session:
                completed = await GenerationRequestRepository(session).mark_completed(
                    job.id,
                    self.instance_id,
                    document_id,
                    completed_at=completed_at,
                    expires_at=self._expires_at(completed_at),
                )
                if completed:
                    session.add(Document(
                        id=document_id,
                        tenant_id=job.tenant_id,
                        template_id=job.template_id,
                        variant_id=job.variant_id,
                        version_id=version_id,
                        generation_request_id=job.id,
                        filename=job.filename,
                        correlation_id=job.correlation_id,
                        created_by=job.created_by,
                        content_type=PDF_CONTENT_TYPE,
                        size_bytes=len(content),
                        storage_key=storage_key,
                        created_at=completed_at,
                    ))
        except Exception:
            await self._discard(storage_key)
            raise

        if not completed:
            await self._discard(storage_key)
            return None
        return document_id

    async def _discard(self, storage_key: str) -> None:
        """Remove content whose Document row was never committed."""
        try:
            await self.content_store.delete(storage_key)
        except Exception as e:
            log_error(logger, e, f"Failed to remove orphaned content {storage_key}")

    async def _fail(self, job: ClaimedJob, error_message: str) -> None:
        completed_at = utc_now()
        async with self._session() as session:
            failed = await GenerationRequestRepository(session).mark_failed(
                job.id,
                self.instance_id,
                error_message,
                completed_at=completed_at,
                expires_at=self._expires_at(completed_at),
            )
        if not failed:
            logger.info(f"Request {job.id} no longer IN_PROGRESS; failure not recorded")
