"""
Background generation worker: claiming, execution and batch sizing.
"""

from modules.generation.worker.batch_sizer import AdaptiveBatchSizer
from modules.generation.worker.executor import ClaimedJob, DocumentGenerationExecutor
from modules.generation.worker.job_poller import JobPoller, default_instance_id

__all__ = [
    "AdaptiveBatchSizer",
    "ClaimedJob",
    "DocumentGenerationExecutor",
    "JobPoller",
    "default_instance_id",
]
