"""
Core interfaces for the generation module.

Expression backends, node renderers and content stores implement these
interfaces and are swapped without touching the engine.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional, TYPE_CHECKING
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

if TYPE_CHECKING:
    from modules.generation.renderers.blocks import Block
    from modules.generation.renderers.context import RenderContext
    from modules.generation.model.template_graph import Node


# ==============================================================================
# STATUS AND RESULT TYPES
# ==============================================================================

class GenerationStatus(str, Enum):
    """Generation request status, persisted as these literals"""
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    GenerationStatus.COMPLETED,
    GenerationStatus.FAILED,
    GenerationStatus.CANCELLED,
})

CANCELLABLE_STATUSES = (GenerationStatus.PENDING, GenerationStatus.IN_PROGRESS)


class ExpressionLanguage(str, Enum):
    """Expression backends selectable per expression"""
    SIMPLE_PATH = "simple_path"
    JSONATA = "jsonata"
    PYTHON = "python"


@dataclass(frozen=True)
class Expression:
    """A typed expression string embedded in a template."""
    raw: str
    language: ExpressionLanguage = ExpressionLanguage.JSONATA

    @classmethod
    def from_value(cls, value: Any) -> Optional["Expression"]:
        """Build from a template prop: a plain string or {"raw", "language"}."""
        if value is None:
            return None
        if isinstance(value, Expression):
            return value
        if isinstance(value, str):
            return cls(raw=value)
        if isinstance(value, dict) and value.get("raw") is not None:
            language = value.get("language") or ExpressionLanguage.JSONATA.value
            return cls(raw=str(value["raw"]), language=ExpressionLanguage(language))
        return None


@dataclass
class GenerationResult:
    """
    Result of rendering one request.

    Produced by the executor and logged by the poller.
    """
    success: bool
    request_id: str
    document_id: Optional[str] = None
    size_bytes: int = 0
    generation_time_ms: float = 0.0
    error_message: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return {
            "success": self.success,
            "request_id": self.request_id,
            "document_id": self.document_id,
            "size_bytes": self.size_bytes,
            "generation_time_ms": self.generation_time_ms,
            "error_message": self.error_message,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass
class BatchProgress:
    """Aggregated status of the requests in one batch"""
    batch_id: str
    total: int
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0

    @property
    def is_finished(self) -> bool:
        return self.completed + self.failed + self.cancelled >= self.total

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "total": self.total,
            "pending": self.pending,
            "in_progress": self.in_progress,
            "completed": self.completed,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "is_finished": self.is_finished,
        }


# ==============================================================================
# EXPRESSION BACKEND INTERFACE
# ==============================================================================

class IExpressionBackend(ABC):
    """
    Abstract interface for one expression language.

    Backends must be deterministic and side-effect-free. Backends that run
    script code must bound execution time and deny ambient I/O.

    Example:
        @register_expression_backend(ExpressionLanguage.SIMPLE_PATH)
        class SimplePathBackend(IExpressionBackend):
            def evaluate(self, raw, context):
                ...
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}

    @abstractmethod
    def evaluate(self, raw: str, context: Dict[str, Any]) -> Any:
        """
        Evaluate an expression against a JSON-like context.

        Args:
            raw: Expression source
            context: Data context with loop variables merged in

        Returns:
            JSON-compatible value, None when a path does not resolve

        Raises:
            ExpressionException: If evaluation fails
        """
        pass


# ==============================================================================
# NODE RENDERER INTERFACE
# ==============================================================================

class INodeRenderer(ABC):
    """
    Abstract interface for template node renderers.

    One renderer per node type tag; renderers self-register with the
    NodeRendererRegistry.
    """

    @abstractmethod
    def render(self, node: "Node", context: "RenderContext") -> List["Block"]:
        """
        Render a node into an ordered list of content blocks.

        Args:
            node: Node being rendered
            context: Graph, data scope, inherited styles and evaluator

        Returns:
            Blocks in document order (possibly empty)
        """
        pass


# ==============================================================================
# CONTENT STORE INTERFACE
# ==============================================================================

class IContentStore(ABC):
    """
    Abstract interface for rendered document storage.

    Keys follow documents/{tenantId}/{documentId}.
    """

    @abstractmethod
    async def put(self, key: str, content: bytes, content_type: str, size: int) -> None:
        """Store content under key."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[bytes]:
        """Return stored bytes or None."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete content, True if it existed."""
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if key is stored."""
        pass


def document_storage_key(tenant_id: str, document_id: str) -> str:
    """Content store key for a generated document"""
    return f"documents/{tenant_id}/{document_id}"
