"""
Tests for request submission, validation, cancellation and queries.
"""

import pytest
from sqlalchemy import func, select

from modules.generation.core.exceptions import (
    NoMatchingVariantException,
    NotFoundException,
    ValidationFailedException,
)
from modules.generation.core.interfaces import GenerationStatus
from modules.generation.services import GenerationItem, find_duplicates
from src.database.connection import get_session
from src.database.models import GenerationBatch, GenerationRequest
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

TENANT = "acme"
TEMPLATE = "invoice"


def item(**overrides):
    fields = dict(template_id=TEMPLATE, data={"name": "Ada"}, variant_id="default", version_id="v1")
    fields.update(overrides)
    return GenerationItem(**fields)


async def count_rows(session_maker, model):
    async with get_session(session_maker) as session:
        return (await session.execute(select(func.count()).select_from(model))).scalar_one()


# ==============================================================================
# SINGLE SUBMISSION
# ==============================================================================

@pytest.mark.asyncio
async def test_submit_single_enqueues_pending_request(service):
    request = await service.submit_single(
        TENANT, TEMPLATE, {"name": "Ada"}, variant_id="default", version_id="v1",
        filename="ada.pdf", correlation_id="order-1",
    )

    stored = await service.get_job(TENANT, request.id)
    assert stored.status == GenerationStatus.PENDING.value
    assert stored.variant_id == "default"
    assert stored.filename == "ada.pdf"
    assert stored.correlation_id == "order-1"
    assert stored.claimed_by is None


@pytest.mark.asyncio
async def test_submit_with_criteria_resolves_variant(service):
    request = await service.submit_single(
        TENANT, TEMPLATE, {}, criteria={"required": {"language": "nl"}}, version_id="v1-nl",
    )
    assert request.variant_id == "dutch"


@pytest.mark.asyncio
async def test_submit_with_environment(service):
    request = await service.submit_single(TENANT, TEMPLATE, {}, variant_id="default", environment_id="prod")
    assert request.environment_id == "prod"
    assert request.version_id is None


@pytest.mark.asyncio
async def test_submit_rejects_unmatched_criteria(service):
    with pytest.raises(NoMatchingVariantException):
        await service.submit_single(TENANT, TEMPLATE, {}, criteria={"language": "fr"}, version_id="v1")


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [
    {"template_id": "missing"},
    {"variant_id": "missing"},
    {"version_id": "missing"},
    {"version_id": "v1-nl"},  # belongs to another variant
    {"version_id": None, "environment_id": "missing"},
    {"version_id": None, "environment_id": "staging"},  # nothing activated
])
async def test_submit_rejects_unknown_references(service, session_maker, overrides):
    fields = item(**overrides)
    with pytest.raises(NotFoundException):
        await service.submit_single(
            TENANT, fields.template_id, fields.data, variant_id=fields.variant_id,
            version_id=fields.version_id, environment_id=fields.environment_id,
        )
    assert await count_rows(session_maker, GenerationRequest) == 0


@pytest.mark.asyncio
async def test_submit_is_tenant_scoped(service):
    with pytest.raises(NotFoundException):
        await service.submit_single("other", TEMPLATE, {}, variant_id="default", version_id="v1")


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [
    {"variant_id": None},
    {"criteria": {"language": "en"}},
    {"version_id": None},
    {"environment_id": "prod"},
    {"data": ["not", "an", "object"]},
    {"filename": "   "},
    {"filename": "x" * 256},
])
async def test_submit_rejects_malformed_requests(service, overrides):
    fields = item(**overrides)
    with pytest.raises(ValidationFailedException):
        await service.submit_single(
            TENANT, fields.template_id, fields.data, variant_id=fields.variant_id, criteria=fields.criteria,
            version_id=fields.version_id, environment_id=fields.environment_id, filename=fields.filename,
        )


# ==============================================================================
# BATCHES
# ==============================================================================

def test_find_duplicates_ignores_missing_values():
    assert find_duplicates(["a", None, "b", "a", None, "b", "c"]) == ["a", "b"]


@pytest.mark.asyncio
async def test_submit_batch_creates_batch_and_requests(service):
    batch_id = await service.submit_batch(TENANT, [
        item(correlation_id="1", filename="one.pdf"),
        item(correlation_id="2", filename="two.pdf"),
        item(criteria={"language": "nl"}, variant_id=None, version_id="v1-nl"),
    ])

    progress = await service.get_batch_progress(TENANT, batch_id)
    assert progress.total == 3
    assert progress.pending == 3
    assert progress.is_finished is False

    jobs = await service.list_jobs(TENANT)
    assert len(jobs) == 3
    assert {job.batch_id for job in jobs} == {batch_id}


@pytest.mark.asyncio
async def test_submit_batch_reports_every_duplicate(service, session_maker):
    items = [
        item(correlation_id="a", filename="x.pdf"),
        item(correlation_id="a", filename="y.pdf"),
        item(correlation_id="b", filename="x.pdf"),
        item(correlation_id="b", filename="z.pdf"),
    ]
    with pytest.raises(ValidationFailedException) as exc_info:
        await service.submit_batch(TENANT, items)

    assert exc_info.value.duplicate_correlation_ids == ["a", "b"]
    assert exc_info.value.duplicate_filenames == ["x.pdf"]
    assert await count_rows(session_maker, GenerationRequest) == 0


@pytest.mark.asyncio
async def test_submit_batch_is_all_or_nothing(service, session_maker):
    items = [item(correlation_id=str(index)) for index in range(5)]
    items.append(item(correlation_id="bad", template_id="missing"))

    with pytest.raises(NotFoundException):
        await service.submit_batch(TENANT, items)

    assert await count_rows(session_maker, GenerationRequest) == 0
    assert await count_rows(session_maker, GenerationBatch) == 0


@pytest.mark.asyncio
async def test_submit_batch_rejects_empty_batch(service):
    with pytest.raises(ValidationFailedException):
        await service.submit_batch(TENANT, [])


@pytest.mark.asyncio
async def test_submit_batch_lists_item_errors(service):
    with pytest.raises(ValidationFailedException) as exc_info:
        await service.submit_batch(TENANT, [item(), item(version_id=None)])
    assert exc_info.value.errors[0].startswith("items[1]")


# ==============================================================================
# CANCELLATION AND QUERIES
# ==============================================================================

@pytest.mark.asyncio
async def test_cancel_pending_request_once(service):
    request = await service.submit_single(TENANT, TEMPLATE, {}, variant_id="default", version_id="v1")

    assert await service.cancel(TENANT, request.id) is True
    assert await service.cancel(TENANT, request.id) is False

    job = await service.get_job(TENANT, request.id)
    assert job.status == GenerationStatus.CANCELLED.value
    assert job.completed_at is not None


@pytest.mark.asyncio
async def test_cancel_is_tenant_scoped(service):
    request = await service.submit_single(TENANT, TEMPLATE, {}, variant_id="default", version_id="v1")
    assert await service.cancel("other", request.id) is False
    assert await service.cancel(TENANT, "not-a-uuid") is False


@pytest.mark.asyncio
async def test_list_jobs_filters_by_status(service):
    first = await service.submit_single(TENANT, TEMPLATE, {}, variant_id="default", version_id="v1")
    await service.submit_single(TENANT, TEMPLATE, {}, variant_id="default", version_id="v1")
    await service.cancel(TENANT, first.id)

    cancelled = await service.list_jobs(TENANT, status=GenerationStatus.CANCELLED)
    pending = await service.list_jobs(TENANT, status=GenerationStatus.PENDING)

    assert [job.id for job in cancelled] == [first.id]
    assert len(pending) == 1
    assert await service.list_jobs("other") == []


@pytest.mark.asyncio
async def test_unknown_ids_return_nothing(service):
    assert await service.get_job(TENANT, "not-a-uuid") is None
    assert await service.get_batch_progress(TENANT, "00000000-0000-0000-0000-000000000000") is None
    assert await service.get_document(TENANT, "not-a-uuid") is None
    assert await service.delete_document(TENANT, "not-a-uuid") is False
