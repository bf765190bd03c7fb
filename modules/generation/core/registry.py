"""
Registry pattern implementation for generation components.

Node renderers and expression backends self-register with these registries.
Adding a node type or expression language needs no core code changes.
"""

from typing import Dict, Callable, Any, Optional, List
from modules.generation.core.interfaces import (
    IExpressionBackend,
    INodeRenderer,
    ExpressionLanguage,
)
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


# ==============================================================================
# NODE RENDERER REGISTRY
# ==============================================================================

class NodeRendererRegistry:
    """
    Registry mapping node type tags to renderers.

    Renderers self-register using @register_node_renderer decorator.
    Unknown tags resolve to None so callers can render them as empty.
    """

    _REGISTRY: Dict[str, INodeRenderer] = {}

    @classmethod
    def register(cls, node_type: str, renderer: INodeRenderer) -> None:
        """
        Register a renderer instance for a node type.

        Args:
            node_type: Type tag (text, container, loop, ...)
            renderer: Stateless renderer instance
        """
        if node_type in cls._REGISTRY:
            logger.warning(f"Node renderer '{node_type}' already registered, overwriting")

        cls._REGISTRY[node_type] = renderer
        logger.debug(f"Registered node renderer: {node_type}")

    @classmethod
    def get(cls, node_type: str) -> Optional[INodeRenderer]:
        """Get the renderer for a node type, None if unknown"""
        return cls._REGISTRY.get(node_type)

    @classmethod
    def list_node_types(cls) -> List[str]:
        """Get list of registered node types"""
        return list(cls._REGISTRY.keys())

    @classmethod
    def is_registered(cls, node_type: str) -> bool:
        """Check if node type is registered"""
        return node_type in cls._REGISTRY


def register_node_renderer(*node_types: str):
    """
    Decorator to register a node renderer for one or more type tags.

    Usage:
        @register_node_renderer("container", "root")
        class ContainerRenderer(INodeRenderer):
            def render(self, node, context):
                ...
    """
    def decorator(cls):
        instance = cls()
        for node_type in node_types:
            NodeRendererRegistry.register(node_type, instance)
        return cls
    return decorator


# ==============================================================================
# EXPRESSION BACKEND REGISTRY
# ==============================================================================

class ExpressionBackendRegistry:
    """
    Registry for expression language backends.

    Backends self-register using @register_expression_backend decorator.
    """

    _REGISTRY: Dict[ExpressionLanguage, Callable[..., IExpressionBackend]] = {}

    @classmethod
    def register(
        cls,
        language: ExpressionLanguage,
        factory_func: Callable[..., IExpressionBackend]
    ) -> None:
        """Register an expression backend factory function"""
        if language in cls._REGISTRY:
            logger.warning(f"Expression backend '{language.value}' already registered, overwriting")

        cls._REGISTRY[language] = factory_func
        logger.debug(f"Registered expression backend: {language.value}")

    @classmethod
    def get(cls, language: ExpressionLanguage, config: Optional[Dict[str, Any]] = None) -> IExpressionBackend:
        """
        Create backend instance from registry.

        Args:
            language: Expression language
            config: Backend configuration (timeouts etc.)

        Returns:
            IExpressionBackend instance

        Raises:
            ValueError: If language not registered
        """
        factory_func = cls._REGISTRY.get(language)

        if not factory_func:
            available = [lang.value for lang in cls._REGISTRY]
            raise ValueError(
                f"Expression backend '{language.value}' not registered. "
                f"Available: {available}. "
                f"Make sure the backend module has been imported."
            )

        return factory_func(config or {})

    @classmethod
    def list_languages(cls) -> List[ExpressionLanguage]:
        """Get list of registered languages"""
        return list(cls._REGISTRY.keys())


def register_expression_backend(language: ExpressionLanguage):
    """
    Decorator to register an expression backend.

    Usage:
        @register_expression_backend(ExpressionLanguage.JSONATA)
        class JsonataBackend(IExpressionBackend):
            def evaluate(self, raw, context):
                ...
    """
    def decorator(cls):
        def factory(config):
            return cls(config)
        ExpressionBackendRegistry.register(language, factory)
        return cls
    return decorator
