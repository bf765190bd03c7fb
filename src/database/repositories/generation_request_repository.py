"""
Repository for generation requests and batches.

Every status transition is a single conditional UPDATE guarded by the
row's current status, so concurrent claim/complete/cancel calls resolve
in the database without any external lock.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from modules.generation.core.interfaces import BatchProgress, CANCELLABLE_STATUSES, GenerationStatus
from src.database.models.generation import GenerationBatch, GenerationRequest
from src.database.models.types import utc_now
from src.database.repositories.base import BaseRepository
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

MAX_ERROR_MESSAGE_LENGTH = 1000

PENDING = GenerationStatus.PENDING.value
IN_PROGRESS = GenerationStatus.IN_PROGRESS.value


class GenerationRequestRepository(BaseRepository[GenerationRequest]):
    """Queue operations over document_generation_requests."""

    def __init__(self, session: AsyncSession):
        super().__init__(GenerationRequest, session)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_batch(
        self,
        tenant_id: str,
        requests: Sequence[GenerationRequest],
    ) -> GenerationBatch:
        """
        Insert a batch row and all of its requests in the current transaction.

        Args:
            tenant_id: Owning tenant
            requests: Unsaved request instances (batch_id is assigned here)

        Returns:
            The new GenerationBatch
        """
        batch = GenerationBatch(tenant_id=tenant_id, total_count=len(requests))
        self.session.add(batch)
        await self.session.flush()

        for request in requests:
            request.batch_id = batch.id
        self.session.add_all(list(requests))
        await self.session.flush()

        logger.info(f"Created batch {batch.id} with {len(requests)} requests")
        return batch

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_for_tenant(
        self,
        tenant_id: str,
        status: Optional[GenerationStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[GenerationRequest]:
        """Newest first, optionally filtered by status."""
        query = select(GenerationRequest).where(GenerationRequest.tenant_id == tenant_id)
        if status is not None:
            query = query.where(GenerationRequest.status == GenerationStatus(status).value)
        query = query.order_by(GenerationRequest.created_at.desc(), GenerationRequest.id).limit(limit).offset(offset)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def batch_progress(self, tenant_id: str, batch_id: UUID) -> Optional[BatchProgress]:
        batch = await self.session.get(GenerationBatch, batch_id)
        if batch is None or batch.tenant_id != tenant_id:
            return None

        result = await self.session.execute(
            select(GenerationRequest.status, func.count())
            .where(GenerationRequest.batch_id == batch_id, GenerationRequest.tenant_id == tenant_id)
            .group_by(GenerationRequest.status)
        )
        counts: Dict[str, int] = {status: count for status, count in result.all()}
        return BatchProgress(
            batch_id=str(batch_id),
            total=batch.total_count,
            pending=counts.get(PENDING, 0),
            in_progress=counts.get(IN_PROGRESS, 0),
            completed=counts.get(GenerationStatus.COMPLETED.value, 0),
            failed=counts.get(GenerationStatus.FAILED.value, 0),
            cancelled=counts.get(GenerationStatus.CANCELLED.value, 0),
        )

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    async def claim_pending(
        self,
        instance_id: str,
        limit: int,
        now: Optional[datetime] = None,
    ) -> List[GenerationRequest]:
        """
        Atomically claim up to `limit` PENDING requests, oldest first.

        The candidate subquery uses FOR UPDATE SKIP LOCKED on PostgreSQL so
        concurrent pollers pick disjoint rows; the outer status guard makes a
        row claimable by exactly one statement on every backend.

        Returns:
            The claimed rows, now IN_PROGRESS and owned by instance_id
        """
        now = now or utc_now()
        candidates = (
            select(GenerationRequest.id)
            .where(GenerationRequest.status == PENDING)
            .order_by(GenerationRequest.created_at, GenerationRequest.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )
        stmt = (
            update(GenerationRequest)
            .where(GenerationRequest.id.in_(candidates), GenerationRequest.status == PENDING)
            .values(status=IN_PROGRESS, claimed_by=instance_id, claimed_at=now, started_at=now)
            .returning(GenerationRequest)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        claimed = sorted(result.scalars().all(), key=lambda request: (request.created_at, str(request.id)))
        await self.session.flush()
        return claimed

    async def mark_completed(
        self,
        request_id: UUID,
        instance_id: str,
        document_id: UUID,
        completed_at: datetime,
        expires_at: Optional[datetime],
    ) -> bool:
        """
        IN_PROGRESS -> COMPLETED for the claiming instance.

        Returns:
            False when the request was cancelled (or reclaimed) meanwhile
        """
        stmt = (
            update(GenerationRequest)
            .where(
                GenerationRequest.id == request_id,
                GenerationRequest.status == IN_PROGRESS,
                GenerationRequest.claimed_by == instance_id,
            )
            .values(
                status=GenerationStatus.COMPLETED.value,
                document_id=document_id,
                completed_at=completed_at,
                expires_at=expires_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def mark_failed(
        self,
        request_id: UUID,
        instance_id: str,
        error_message: str,
        completed_at: Optional[datetime] = None,
        expires_at: Optional[datetime] = None,
    ) -> bool:
        """IN_PROGRESS -> FAILED for the claiming instance; message truncated."""
        stmt = (
            update(GenerationRequest)
            .where(
                GenerationRequest.id == request_id,
                GenerationRequest.status == IN_PROGRESS,
                GenerationRequest.claimed_by == instance_id,
            )
            .values(
                status=GenerationStatus.FAILED.value,
                error_message=(error_message or "Unknown error")[:MAX_ERROR_MESSAGE_LENGTH],
                completed_at=completed_at or utc_now(),
                expires_at=expires_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def cancel(self, tenant_id: str, request_id: UUID) -> bool:
        """
        PENDING/IN_PROGRESS -> CANCELLED.

        Returns:
            True only if this call performed the transition
        """
        stmt = (
            update(GenerationRequest)
            .where(
                GenerationRequest.id == request_id,
                GenerationRequest.tenant_id == tenant_id,
                GenerationRequest.status.in_([status.value for status in CANCELLABLE_STATUSES]),
            )
            .values(status=GenerationStatus.CANCELLED.value, completed_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def requeue_stale_claims(self, older_than: timedelta, now: Optional[datetime] = None) -> int:
        """
        Return IN_PROGRESS rows claimed before now - older_than to PENDING.

        Operator recovery for claims orphaned by crashed workers; never run
        automatically by the poller.
        """
        cutoff = (now or utc_now()) - older_than
        stmt = (
            update(GenerationRequest)
            .where(GenerationRequest.status == IN_PROGRESS, GenerationRequest.claimed_at < cutoff)
            .values(status=PENDING, claimed_by=None, claimed_at=None, started_at=None)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        if result.rowcount:
            logger.warning(f"Requeued {result.rowcount} stale claims older than {older_than}")
        return result.rowcount
