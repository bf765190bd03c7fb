"""
Tests for adaptive claim batch sizing.
"""

from modules.generation.worker import AdaptiveBatchSizer


def make_sizer(**overrides):
    options = dict(min_batch_size=1, max_batch_size=10, fast_threshold_ms=2000, slow_threshold_ms=5000)
    options.update(overrides)
    return AdaptiveBatchSizer(**options)


def test_starts_at_minimum():
    assert make_sizer().batch_size == 1


def test_fast_jobs_increase_batch_size():
    sizer = make_sizer()
    for _ in range(10):
        sizer.record_job_completion(100)
    assert sizer.batch_size > 1
    assert sizer.batch_size <= 10


def test_slow_jobs_decrease_batch_size():
    sizer = make_sizer()
    for _ in range(10):
        sizer.record_job_completion(100)
    ramped = sizer.batch_size

    for _ in range(30):
        sizer.record_job_completion(10_000)

    assert sizer.batch_size < ramped
    assert sizer.batch_size == 1


def test_jobs_between_thresholds_keep_size_stable():
    sizer = make_sizer()
    for _ in range(20):
        sizer.record_job_completion(3000)
    assert sizer.batch_size == 1


def test_never_drops_below_minimum():
    sizer = make_sizer(min_batch_size=3)
    for _ in range(50):
        sizer.record_job_completion(60_000)
    assert sizer.batch_size == 3


def test_never_exceeds_maximum():
    sizer = make_sizer(max_batch_size=4)
    for _ in range(50):
        sizer.record_job_completion(10)
    assert sizer.batch_size == 4


def test_disabled_sizer_uses_maximum():
    sizer = make_sizer(enabled=False)
    for _ in range(10):
        sizer.record_job_completion(60_000)
    assert sizer.batch_size == 10
