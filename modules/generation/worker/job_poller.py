"""
Job poller.

Claims PENDING generation requests and executes them with bounded
concurrency. A drain loop keeps claiming until the queue is empty or every
slot is busy; each finished job wakes the loop so freed slots are refilled
immediately, and the poll interval is the fallback.
"""

import asyncio
import os
import socket
import time
from typing import List, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from modules.generation.config import GenerationConfig, get_generation_config
from modules.generation.core.interfaces import GenerationResult, IContentStore
from modules.generation.worker.batch_sizer import AdaptiveBatchSizer
from modules.generation.worker.executor import ClaimedJob, DocumentGenerationExecutor
from src.database.connection import get_session
from src.database.repositories import GenerationRequestRepository
from shared.utils.logger import log_error, setup_logger

logger = setup_logger(__name__)


def default_instance_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


class JobPoller:
    """
    Background worker loop.

    Example:
        poller = JobPoller(content_store)
        await poller.start()
        ...
        await poller.stop()
    """

    def __init__(
        self,
        content_store: IContentStore,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
        config: Optional[GenerationConfig] = None,
        executor: Optional[DocumentGenerationExecutor] = None,
        batch_sizer: Optional[AdaptiveBatchSizer] = None,
    ):
        self.config = config or get_generation_config()
        self.instance_id = self.config.instance_id or default_instance_id()
        self.session_maker = session_maker
        self.executor = executor or DocumentGenerationExecutor(
            content_store,
            instance_id=self.instance_id,
            session_maker=session_maker,
            config=self.config,
        )
        self.batch_sizer = batch_sizer or AdaptiveBatchSizer(
            min_batch_size=self.config.min_batch_size,
            max_batch_size=self.config.max_batch_size,
            fast_threshold_ms=self.config.fast_threshold_ms,
            slow_threshold_ms=self.config.slow_threshold_ms,
            enabled=self.config.adaptive_batch_enabled,
        )

        self._active: Set[asyncio.Task] = set()
        self._drain_lock = asyncio.Lock()
        self._wake = asyncio.Event()
        self._running = False
        self._loop_task: Optional[asyncio.Task] = None

    @property
    def active_jobs(self) -> int:
        return len(self._active)

    @property
    def is_running(self) -> bool:
        return self._running

    # ==========================================================================
    # LIFECYCLE
    # ==========================================================================

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._loop_task = asyncio.create_task(self._run(), name=f"job-poller-{self.instance_id}")
        logger.info(
            f"Job poller started: instance={self.instance_id}, "
            f"max_concurrent_jobs={self.config.max_concurrent_jobs}, "
            f"poll_interval={self.config.poll_interval_ms}ms"
        )

    async def stop(self, timeout: float = 30.0) -> None:
        """Stop claiming and wait for in-flight jobs to finish."""
        if not self._running:
            return
        self._running = False
        self._wake.set()
        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None
        if not await self.await_idle(timeout):
            logger.warning(f"Stopped with {self.active_jobs} job(s) still running")
        logger.info(f"Job poller stopped: instance={self.instance_id}")

    async def await_idle(self, timeout: float = 10.0) -> bool:
        """Wait until no job is running. Returns False on timeout."""
        if not self._active:
            return True
        _, pending = await asyncio.wait(set(self._active), timeout=timeout)
        return not pending

    async def _run(self) -> None:
        interval = self.config.poll_interval_ms / 1000
        while self._running:
            self._wake.clear()
            try:
                await self.drain()
            except Exception as e:
                log_error(logger, e, "Job poller drain failed")
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    # ==========================================================================
    # CLAIMING
    # ==========================================================================

    async def drain(self) -> int:
        """
        Claim and start jobs until the queue is empty or all slots are busy.

        Returns:
            Number of jobs started
        """
        started = 0
        async with self._drain_lock:
            while self.active_jobs < self.config.max_concurrent_jobs:
                available = self.config.max_concurrent_jobs - self.active_jobs
                requested = self.batch_sizer.batch_size
                batch_size = min(requested, available)

                jobs = await self.claim(batch_size)
                if not jobs:
                    logger.debug(
                        f"No pending jobs | batch={requested}, "
                        f"active={self.active_jobs}/{self.config.max_concurrent_jobs}"
                    )
                    break

                logger.info(
                    f"Claimed {len(jobs)} job(s) | requested batch={requested}, available slots={available}"
                )
                for job in jobs:
                    task = asyncio.create_task(self._run_job(job), name=f"generation-{job.id}")
                    self._active.add(task)
                    task.add_done_callback(self._job_done)
                    started += 1
        return started

    async def claim(self, limit: int) -> List[ClaimedJob]:
        """Claim up to limit requests in a transaction of its own."""
        if limit <= 0:
            return []
        async with get_session(self.session_maker) as session:
            requests = await GenerationRequestRepository(session).claim_pending(self.instance_id, limit)
            return [ClaimedJob.from_request(request) for request in requests]

    async def poll_once(self) -> List[GenerationResult]:
        """Claim one batch and run it to completion."""
        jobs = await self.claim(min(self.batch_sizer.batch_size, self.config.max_concurrent_jobs))
        if not jobs:
            return []
        semaphore = asyncio.Semaphore(self.config.max_concurrent_jobs)

        async def bounded(job: ClaimedJob) -> GenerationResult:
            async with semaphore:
                return await self._run_job(job)

        return list(await asyncio.gather(*(bounded(job) for job in jobs)))

    # ==========================================================================
    # EXECUTION
    # ==========================================================================

    async def _run_job(self, job: ClaimedJob) -> GenerationResult:
        start_time = time.time()
        try:
            result = await self.executor.execute(job)
        except Exception as e:
            log_error(logger, e, f"Job execution failed for request {job.id}")
            result = GenerationResult(success=False, request_id=str(job.id), error_message=str(e))

        duration_ms = (time.time() - start_time) * 1000
        self.batch_sizer.record_job_completion(duration_ms)
        logger.info(f"Job finished: {job.id} in {duration_ms:.0f}ms | success={result.success}")
        return result

    def _job_done(self, task: asyncio.Task) -> None:
        self._active.discard(task)
        # Slot freed; look for more work right away
        self._wake.set()
