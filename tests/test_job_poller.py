"""
Tests for claiming, executing and completing generation jobs.
"""

import asyncio
import io
from datetime import timedelta

import pytest
from pypdf import PdfReader
from sqlalchemy import func, select

from modules.generation.config import GenerationConfig
from modules.generation.core.interfaces import GenerationStatus
from modules.generation.model import Orientation
from modules.generation.worker import JobPoller
from src.database.connection import get_session
from src.database.models import Document, DocumentTemplate, TemplateVersion, Tenant, ThemeRecord
from src.database.models.types import utc_now
from src.database.repositories import GenerationRequestRepository, MAX_ERROR_MESSAGE_LENGTH
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

TENANT = "acme"
TEMPLATE = "invoice"


async def submit(service, count=1, **overrides):
    fields = dict(variant_id="default", version_id="v1")
    fields.update(overrides)
    data = fields.pop("data", {"name": "Ada"})
    return [await service.submit_single(TENANT, TEMPLATE, data, **fields) for _ in range(count)]


def pdf_text(content: bytes) -> str:
    reader = PdfReader(io.BytesIO(content))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def make_poller(content_store, session_maker, instance_id, **config):
    options = dict(poll_interval_ms=20, max_concurrent_jobs=2, adaptive_batch_enabled=False, instance_id=instance_id)
    options.update(config)
    return JobPoller(content_store, session_maker=session_maker, config=GenerationConfig(**options))


# ==============================================================================
# CLAIMING
# ==============================================================================

@pytest.mark.asyncio
async def test_claim_marks_rows_in_progress_oldest_first(service, poller):
    requests = await submit(service, count=3)

    claimed = await poller.claim(2)

    assert [job.id for job in claimed] == [request.id for request in requests[:2]]
    job = await service.get_job(TENANT, requests[0].id)
    assert job.status == GenerationStatus.IN_PROGRESS.value
    assert job.claimed_by == "test-worker"
    assert job.claimed_at is not None
    assert (await service.get_job(TENANT, requests[2].id)).status == GenerationStatus.PENDING.value


@pytest.mark.asyncio
async def test_concurrent_claims_never_overlap(service, content_store, session_maker, catalog):
    await submit(service, count=10)
    pollers = [make_poller(content_store, session_maker, f"worker-{index}") for index in range(3)]

    results = await asyncio.gather(*(poller.claim(4) for poller in pollers))

    claimed_ids = [job.id for jobs in results for job in jobs]
    assert len(claimed_ids) == len(set(claimed_ids))
    assert len(claimed_ids) == 10

    jobs = await service.list_jobs(TENANT, status=GenerationStatus.IN_PROGRESS)
    owners = {job.id: job.claimed_by for job in jobs}
    for poller, jobs_for_poller in zip(pollers, results):
        assert all(owners[job.id] == poller.instance_id for job in jobs_for_poller)


@pytest.mark.asyncio
async def test_claim_skips_cancelled_requests(service, poller):
    first, second = await submit(service, count=2)
    await service.cancel(TENANT, first.id)

    claimed = await poller.claim(5)

    assert [job.id for job in claimed] == [second.id]


# ==============================================================================
# EXECUTION
# ==============================================================================

@pytest.mark.asyncio
async def test_end_to_end_generation(service, poller, content_store):
    [request] = await submit(service, filename="hello.pdf", correlation_id="order-42")

    results = await poller.poll_once()

    assert [result.success for result in results] == [True]
    assert results[0].timestamp.tzinfo is not None
    job = await service.get_job(TENANT, request.id)
    assert job.status == GenerationStatus.COMPLETED.value
    assert job.document_id is not None
    assert job.completed_at is not None
    assert job.expires_at is not None

    document = await service.get_document(TENANT, job.document_id)
    assert document.filename == "hello.pdf"
    assert document.correlation_id == "order-42"
    assert document.version_id == "v1"
    assert document.generation_request_id == request.id
    assert document.storage_key == f"documents/{TENANT}/{document.id}"

    content = await service.get_document_content(TENANT, document.id)
    assert content.startswith(b"%PDF")
    assert document.size_bytes == len(content)
    assert "Hello Ada" in pdf_text(content)


@pytest.mark.asyncio
async def test_default_filename_uses_request_id(service, poller):
    [request] = await submit(service)
    await poller.poll_once()

    job = await service.get_job(TENANT, request.id)
    document = await service.get_document(TENANT, job.document_id)
    assert document.filename == f"document-{request.id}.pdf"


@pytest.mark.asyncio
async def test_environment_resolves_active_version(service, poller):
    [request] = await submit(service, version_id=None, environment_id="prod", data={"name": "Grace"})

    await poller.poll_once()

    job = await service.get_job(TENANT, request.id)
    document = await service.get_document(TENANT, job.document_id)
    assert document.version_id == "v1"
    assert "Hello Grace" in pdf_text(await service.get_document_content(TENANT, document.id))


@pytest.mark.asyncio
async def test_render_failure_marks_request_failed(service, poller, content_store, session_maker):
    [request] = await submit(service, version_id="broken")

    [result] = await poller.poll_once()

    assert result.success is False
    job = await service.get_job(TENANT, request.id)
    assert job.status == GenerationStatus.FAILED.value
    assert job.error_message
    assert len(job.error_message) <= MAX_ERROR_MESSAGE_LENGTH
    assert job.document_id is None
    assert len(content_store) == 0
    async with get_session(session_maker) as session:
        assert (await session.execute(select(func.count()).select_from(Document))).scalar_one() == 0


@pytest.mark.asyncio
async def test_oversized_document_fails(service, content_store, session_maker, catalog):
    [request] = await submit(service)
    poller = make_poller(content_store, session_maker, "small-worker", max_document_size_bytes=100)

    await poller.poll_once()

    job = await service.get_job(TENANT, request.id)
    assert job.status == GenerationStatus.FAILED.value
    assert "exceeds" in job.error_message
    assert len(content_store) == 0


@pytest.mark.asyncio
async def test_cancel_during_generation_discards_output(service, poller, content_store, session_maker):
    [request] = await submit(service)
    [job] = await poller.claim(1)

    assert await service.cancel(TENANT, request.id) is True
    result = await poller.executor.execute(job)

    assert result.success is False
    stored = await service.get_job(TENANT, request.id)
    assert stored.status == GenerationStatus.CANCELLED.value
    assert stored.document_id is None
    assert len(content_store) == 0
    async with get_session(session_maker) as session:
        assert (await session.execute(select(func.count()).select_from(Document))).scalar_one() == 0


@pytest.mark.asyncio
async def test_completion_error_removes_stored_content(service, poller, content_store, session_maker, monkeypatch):
    [request] = await submit(service)

    async def unavailable(self, *args, **kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(GenerationRequestRepository, "mark_completed", unavailable)

    [result] = await poller.poll_once()

    assert result.success is False
    assert "database unavailable" in result.error_message
    assert len(content_store) == 0
    job = await service.get_job(TENANT, request.id)
    assert job.status == GenerationStatus.FAILED.value
    async with get_session(session_maker) as session:
        assert (await session.execute(select(func.count()).select_from(Document))).scalar_one() == 0


@pytest.mark.asyncio
async def test_document_records_submitter(service, poller):
    [request] = await submit(service, created_by="ada@example.com")

    await poller.poll_once()

    job = await service.get_job(TENANT, request.id)
    assert job.created_by == "ada@example.com"
    document = await service.get_document(TENANT, job.document_id)
    assert document.created_by == "ada@example.com"
    assert document.to_dict()["created_by"] == "ada@example.com"


@pytest.mark.asyncio
async def test_completed_request_cannot_be_cancelled(service, poller):
    [request] = await submit(service)
    await poller.poll_once()

    assert await service.cancel(TENANT, request.id) is False
    assert (await service.get_job(TENANT, request.id)).status == GenerationStatus.COMPLETED.value


@pytest.mark.asyncio
async def test_other_instance_cannot_complete_a_claim(service, poller, content_store, session_maker):
    [request] = await submit(service)
    [job] = await poller.claim(1)
    intruder = make_poller(content_store, session_maker, "intruder")

    result = await intruder.executor.execute(job)

    assert result.success is False
    assert (await service.get_job(TENANT, request.id)).status == GenerationStatus.IN_PROGRESS.value
    assert len(content_store) == 0


@pytest.mark.asyncio
async def test_batch_progress_after_processing(service, poller):
    from modules.generation.services import GenerationItem

    batch_id = await service.submit_batch(TENANT, [
        GenerationItem(template_id=TEMPLATE, data={"name": "A"}, variant_id="default", version_id="v1"),
        GenerationItem(template_id=TEMPLATE, data={"name": "B"}, variant_id="default", version_id="broken"),
    ])

    await poller.poll_once()

    progress = await service.get_batch_progress(TENANT, batch_id)
    assert (progress.completed, progress.failed, progress.pending) == (1, 1, 0)
    assert progress.is_finished is True


@pytest.mark.asyncio
async def test_document_queries_and_delete(service, poller, content_store):
    await submit(service, correlation_id="a")
    await submit(service, correlation_id="b")
    await poller.poll_once()

    documents = await service.list_documents(TENANT)
    assert len(documents) == 2
    assert await service.list_documents(TENANT, template_id="other") == []
    assert await service.list_documents("other") == []

    [document] = await service.list_documents(TENANT, correlation_id="a")
    assert await service.delete_document("other", document.id) is False
    assert await service.delete_document(TENANT, document.id) is True

    assert await service.get_document(TENANT, document.id) is None
    assert await content_store.exists(document.storage_key) is False
    assert [d.correlation_id for d in await service.list_documents(TENANT)] == ["b"]


# ==============================================================================
# THEMES
# ==============================================================================

@pytest.mark.asyncio
async def test_theme_cascade_version_then_template_then_tenant(service, poller, session_maker, graph_builder):
    async with get_session(session_maker) as session:
        session.add(TemplateVersion(
            id="v2-themed", tenant_id=TENANT, template_id=TEMPLATE, variant_id="default", version_number=2,
            template_model=graph_builder().text("greeting", "Hi").build(themeRef={"themeId": "tenant-theme"}), status="published",
        ))
    [plain] = await submit(service)
    [themed] = await submit(service, version_id="v2-themed")
    plain_job, themed_job = await poller.claim(2)
    assert (plain_job.id, themed_job.id) == (plain.id, themed.id)

    assert (await poller.executor._load_template(plain_job)).theme.name == "Tenant"

    async with get_session(session_maker) as session:
        template = await session.get(DocumentTemplate, TEMPLATE)
        template.theme_id = "template-theme"

    assert (await poller.executor._load_template(plain_job)).theme.name == "Template"
    assert (await poller.executor._load_template(themed_job)).theme.name == "Tenant"

    async with get_session(session_maker) as session:
        tenant = await session.get(Tenant, TENANT)
        tenant.default_theme_id = None
        template = await session.get(DocumentTemplate, TEMPLATE)
        template.theme_id = None

    assert (await poller.executor._load_template(plain_job)).theme.name == "default"


@pytest.mark.asyncio
async def test_version_theme_column_precedes_graph_theme_ref(service, poller, session_maker, graph_builder):
    async with get_session(session_maker) as session:
        session.add(TemplateVersion(
            id="v3-themed", tenant_id=TENANT, template_id=TEMPLATE, variant_id="default", version_number=3,
            template_model=graph_builder().text("greeting", "Hi").build(themeRef={"themeId": "tenant-theme"}),
            theme_id="template-theme", status="published",
        ))
    await submit(service, version_id="v3-themed")
    [job] = await poller.claim(1)

    assert (await poller.executor._load_template(job)).theme.name == "Template"


@pytest.mark.asyncio
async def test_template_style_overrides_layer_over_theme(service, poller, session_maker):
    async with get_session(session_maker) as session:
        template = await session.get(DocumentTemplate, TEMPLATE)
        template.document_styles = {"fontSize": "14pt"}
        template.page_settings = {"format": "A4", "orientation": "landscape"}
    [request] = await submit(service)
    [job] = await poller.claim(1)

    theme = (await poller.executor._load_template(job)).theme

    assert theme.name == "Tenant"
    assert theme.document_styles == {"fontSize": "14pt", "color": "#111111"}
    assert theme.page_settings.orientation == Orientation.LANDSCAPE

    await poller.executor.execute(job)
    document = await service.get_document(TENANT, (await service.get_job(TENANT, request.id)).document_id)
    page = PdfReader(io.BytesIO(await service.get_document_content(TENANT, document.id))).pages[0]
    assert float(page.mediabox.width) > float(page.mediabox.height)


@pytest.mark.asyncio
async def test_missing_theme_falls_back_to_defaults(service, poller, session_maker):
    async with get_session(session_maker) as session:
        theme = await session.get(ThemeRecord, "tenant-theme")
        await session.delete(theme)
    [request] = await submit(service)

    [result] = await poller.poll_once()

    assert result.success is True
    assert (await service.get_job(TENANT, request.id)).status == GenerationStatus.COMPLETED.value


# ==============================================================================
# LIFECYCLE AND RECOVERY
# ==============================================================================

@pytest.mark.asyncio
async def test_background_loop_drains_queue(service, poller):
    requests = await submit(service, count=5)

    await poller.start()
    try:
        for _ in range(200):
            done = await service.list_jobs(TENANT, status=GenerationStatus.COMPLETED)
            if len(done) == len(requests):
                break
            await asyncio.sleep(0.05)
    finally:
        await poller.stop()

    assert len(await service.list_jobs(TENANT, status=GenerationStatus.COMPLETED)) == 5
    assert poller.active_jobs == 0
    assert poller.is_running is False


@pytest.mark.asyncio
async def test_requeue_stale_claims(service, poller, session_maker):
    [request] = await submit(service)
    await poller.claim(1)

    async with get_session(session_maker) as session:
        repository = GenerationRequestRepository(session)
        assert await repository.requeue_stale_claims(timedelta(minutes=5)) == 0
        requeued = await repository.requeue_stale_claims(timedelta(minutes=5), now=utc_now() + timedelta(minutes=10))
    assert requeued == 1

    job = await service.get_job(TENANT, request.id)
    assert job.status == GenerationStatus.PENDING.value
    assert job.claimed_by is None

    [reclaimed] = await poller.claim(1)
    assert reclaimed.id == request.id


@pytest.mark.asyncio
async def test_poll_once_on_empty_queue(poller):
    assert await poller.poll_once() == []
