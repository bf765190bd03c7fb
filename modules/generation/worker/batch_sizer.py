"""
Adaptive claim batch size.

Tracks an exponential moving average of job durations and grows the claim
batch while jobs are fast, halving it when they turn slow.
"""

import threading
from typing import Optional

from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

EMA_ALPHA = 0.2


class AdaptiveBatchSizer:
    """Batch size in [min_batch_size, max_batch_size], starting at the minimum."""

    def __init__(
        self,
        min_batch_size: int = 1,
        max_batch_size: int = 10,
        fast_threshold_ms: float = 2000,
        slow_threshold_ms: float = 5000,
        enabled: bool = True,
    ):
        if min_batch_size < 1 or max_batch_size < min_batch_size:
            raise ValueError(f"Invalid batch size bounds: [{min_batch_size}, {max_batch_size}]")
        self.min_batch_size = min_batch_size
        self.max_batch_size = max_batch_size
        self.fast_threshold_ms = fast_threshold_ms
        self.slow_threshold_ms = slow_threshold_ms
        self.enabled = enabled

        self._batch_size = min_batch_size if enabled else max_batch_size
        self._average_ms: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def batch_size(self) -> int:
        return self._batch_size

    @property
    def average_ms(self) -> Optional[float]:
        return self._average_ms

    def record_job_completion(self, duration_ms: float) -> None:
        if not self.enabled:
            return
        with self._lock:
            if self._average_ms is None:
                self._average_ms = float(duration_ms)
            else:
                self._average_ms = EMA_ALPHA * duration_ms + (1 - EMA_ALPHA) * self._average_ms

            previous = self._batch_size
            if self._average_ms < self.fast_threshold_ms:
                self._batch_size = min(self.max_batch_size, self._batch_size + 1)
            elif self._average_ms > self.slow_threshold_ms:
                self._batch_size = max(self.min_batch_size, self._batch_size // 2)

            if self._batch_size != previous:
                logger.debug(
                    f"Batch size {previous} -> {self._batch_size} (avg {self._average_ms:.0f}ms)"
                )
