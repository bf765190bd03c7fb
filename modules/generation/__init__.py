"""
Generation Module

Asynchronous document generation: template graphs are rendered against
JSON data into PDFs by a polling worker.
"""

__version__ = "1.0.0"

from modules.generation.core.interfaces import (
    IContentStore,
    IExpressionBackend,
    INodeRenderer,
    BatchProgress,
    ExpressionLanguage,
    GenerationResult,
    GenerationStatus,
)

from modules.generation.core.registry import (
    ExpressionBackendRegistry,
    NodeRendererRegistry,
    register_expression_backend,
    register_node_renderer,
)

# Export configuration
from modules.generation.config import (
    GenerationConfig,
    get_generation_config,
    set_generation_config,
)

__all__ = [
    # Interfaces
    "IContentStore",
    "IExpressionBackend",
    "INodeRenderer",
    # Types
    "BatchProgress",
    "ExpressionLanguage",
    "GenerationResult",
    "GenerationStatus",
    # Registries
    "ExpressionBackendRegistry",
    "NodeRendererRegistry",
    "register_expression_backend",
    "register_node_renderer",
    # Configuration
    "GenerationConfig",
    "get_generation_config",
    "set_generation_config",
]
