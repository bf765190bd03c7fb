"""
Generation module configuration.

Centralizes worker and rendering settings for standalone usage; defaults
come from the application Settings.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from modules.generation.core.interfaces import ExpressionLanguage
from shared.utils.config import Settings, get_settings


@dataclass
class GenerationConfig:
    """
    Configuration for the generation worker and renderer.

    Example:
        config = GenerationConfig.from_settings(get_settings())
        config.max_concurrent_jobs = 4
    """

    # Poller
    poll_interval_ms: int = 500
    min_batch_size: int = 1
    max_batch_size: int = 10
    max_concurrent_jobs: int = 2
    adaptive_batch_enabled: bool = True
    fast_threshold_ms: int = 2000
    slow_threshold_ms: int = 5000
    instance_id: Optional[str] = None

    # Rendering
    max_document_size_bytes: int = 50 * 1024 * 1024
    script_timeout_ms: int = 1000
    max_render_nodes: Optional[int] = 100_000
    default_expression_language: ExpressionLanguage = ExpressionLanguage.JSONATA

    # Retention
    retention_days: int = 7

    def __post_init__(self):
        if self.poll_interval_ms <= 0:
            raise ValueError("poll_interval_ms must be positive")
        if self.max_concurrent_jobs < 1:
            raise ValueError("max_concurrent_jobs must be at least 1")
        if self.min_batch_size < 1 or self.max_batch_size < self.min_batch_size:
            raise ValueError(f"Invalid batch size bounds: [{self.min_batch_size}, {self.max_batch_size}]")

    @classmethod
    def from_settings(cls, settings: Settings) -> "GenerationConfig":
        return cls(
            poll_interval_ms=settings.GENERATION_POLL_INTERVAL_MS,
            min_batch_size=settings.GENERATION_MIN_BATCH_SIZE,
            max_batch_size=settings.GENERATION_MAX_BATCH_SIZE,
            max_concurrent_jobs=settings.GENERATION_MAX_CONCURRENT_JOBS,
            adaptive_batch_enabled=settings.GENERATION_ADAPTIVE_BATCH_ENABLED,
            fast_threshold_ms=settings.GENERATION_FAST_THRESHOLD_MS,
            slow_threshold_ms=settings.GENERATION_SLOW_THRESHOLD_MS,
            instance_id=settings.GENERATION_INSTANCE_ID,
            max_document_size_bytes=settings.max_document_size_bytes,
            script_timeout_ms=settings.GENERATION_SCRIPT_TIMEOUT_MS,
            max_render_nodes=settings.GENERATION_MAX_RENDER_NODES,
            retention_days=settings.GENERATION_RETENTION_DAYS,
        )

    def expression_backend_config(self) -> Dict[ExpressionLanguage, Dict[str, Any]]:
        return {ExpressionLanguage.PYTHON: {"timeout_ms": self.script_timeout_ms}}


# Global configuration instance
_config_instance: Optional[GenerationConfig] = None


def get_generation_config() -> GenerationConfig:
    """
    Get global generation config instance.

    Returns:
        GenerationConfig built from Settings on first use
    """
    global _config_instance
    if _config_instance is None:
        _config_instance = GenerationConfig.from_settings(get_settings())
    return _config_instance


def set_generation_config(config: GenerationConfig) -> None:
    """
    Set global generation config instance.

    Args:
        config: GenerationConfig instance
    """
    global _config_instance
    _config_instance = config
