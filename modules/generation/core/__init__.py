"""
Core components for generation module.
"""

from modules.generation.core.interfaces import (
    IExpressionBackend,
    INodeRenderer,
    IContentStore,
    Expression,
    ExpressionLanguage,
    GenerationResult,
    GenerationStatus,
    BatchProgress,
    TERMINAL_STATUSES,
    CANCELLABLE_STATUSES,
    document_storage_key,
)

from modules.generation.core.registry import (
    NodeRendererRegistry,
    ExpressionBackendRegistry,
    register_node_renderer,
    register_expression_backend,
)

from modules.generation.core.exceptions import (
    GenerationException,
    ValidationFailedException,
    NotFoundException,
    NoMatchingVariantException,
    RenderFailureException,
    ExpressionException,
    ExpressionTimeoutException,
    DocumentTooLargeException,
    StorageFailureException,
    ConfigurationException,
    JobNotFoundException,
)

__all__ = [
    # Interfaces
    "IExpressionBackend",
    "INodeRenderer",
    "IContentStore",
    # Types
    "Expression",
    "ExpressionLanguage",
    "GenerationResult",
    "GenerationStatus",
    "BatchProgress",
    "TERMINAL_STATUSES",
    "CANCELLABLE_STATUSES",
    "document_storage_key",
    # Registries
    "NodeRendererRegistry",
    "ExpressionBackendRegistry",
    "register_node_renderer",
    "register_expression_backend",
    # Exceptions
    "GenerationException",
    "ValidationFailedException",
    "NotFoundException",
    "NoMatchingVariantException",
    "RenderFailureException",
    "ExpressionException",
    "ExpressionTimeoutException",
    "DocumentTooLargeException",
    "StorageFailureException",
    "ConfigurationException",
    "JobNotFoundException",
]
