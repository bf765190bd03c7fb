"""
Render context threaded through the graph walk.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from modules.generation.core.exceptions import RenderFailureException
from modules.generation.core.interfaces import Expression
from modules.generation.core.registry import NodeRendererRegistry
from modules.generation.expressions.evaluator import ExpressionEvaluator
from modules.generation.model.template_graph import Node, Slot, TemplateGraph
from modules.generation.renderers.blocks import Block
from modules.generation.styles.resolver import ResolvedTheme, StyleCascadeResolver
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


class RenderBudget:
    """Counts node visits for one render and fails past the ceiling."""

    def __init__(self, max_nodes: Optional[int] = None):
        self.max_nodes = max_nodes
        self.visited = 0

    def tick(self, node: Node) -> None:
        self.visited += 1
        if self.max_nodes is not None and self.visited > self.max_nodes:
            raise RenderFailureException(
                f"Render exceeded {self.max_nodes} node visits (at node '{node.id}')"
            )


@dataclass
class PageChrome:
    """Blocks repeated on every page."""
    header: List[Block] = field(default_factory=list)
    footer: List[Block] = field(default_factory=list)


@dataclass
class RenderContext:
    """
    Immutable-per-scope render state.

    Loop and style scopes are entered by deriving a new context with
    `with_loop` / `for_node`; graph, theme, evaluator, budget and page
    chrome are shared by the whole render.
    """
    graph: TemplateGraph
    theme: ResolvedTheme
    data: Dict[str, Any]
    evaluator: ExpressionEvaluator
    style_resolver: StyleCascadeResolver
    budget: RenderBudget
    chrome: PageChrome
    loop_context: Dict[str, Any] = field(default_factory=dict)
    inherited: Dict[str, Any] = field(default_factory=dict)
    style: Dict[str, Any] = field(default_factory=dict)

    # ------------------------------------------------------------------
    # Scope derivation
    # ------------------------------------------------------------------

    def with_loop(self, variables: Dict[str, Any]) -> "RenderContext":
        return replace(self, loop_context={**self.loop_context, **variables})

    def for_node(self, node: Node) -> "RenderContext":
        resolved = self.style_resolver.resolve_node(node, self.inherited, self.theme.presets)
        return replace(self, style=resolved.effective, inherited=resolved.inherited)

    # ------------------------------------------------------------------
    # Graph walk
    # ------------------------------------------------------------------

    def render_node(self, node: Optional[Node]) -> List[Block]:
        """Render one node; unknown types and missing nodes render empty."""
        if node is None:
            return []
        self.budget.tick(node)

        renderer = NodeRendererRegistry.get(node.type)
        if renderer is None:
            logger.debug(f"No renderer for node type '{node.type}' ({node.id}), skipping")
            return []
        return renderer.render(node, self.for_node(node))

    def render_slot(self, slot: Optional[Slot]) -> List[Block]:
        if slot is None:
            return []
        blocks: List[Block] = []
        for child in self.graph.children(slot):
            blocks.extend(self.render_node(child))
        return blocks

    def render_children(self, node: Node) -> List[Block]:
        """Render every slot of a node in order."""
        blocks: List[Block] = []
        for slot in self.graph.node_slots(node):
            blocks.extend(self.render_slot(slot))
        return blocks

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def expression(self, value: Any) -> Optional[Expression]:
        """Build an expression from a node prop in the default language."""
        expression = Expression.from_value(value)
        if expression is not None and isinstance(value, str):
            expression = Expression(expression.raw, self.evaluator.default_language)
        return expression

    def evaluate(self, expression: Expression) -> Any:
        return self.evaluator.evaluate(expression, self.data, self.loop_context)

    def evaluate_condition(self, expression: Expression) -> bool:
        return self.evaluator.evaluate_condition(expression, self.data, self.loop_context)

    def evaluate_iterable(self, expression: Expression) -> List[Any]:
        return self.evaluator.evaluate_iterable(expression, self.data, self.loop_context)

    def evaluate_to_string(self, expression: Expression) -> str:
        return self.evaluator.evaluate_to_string(expression, self.data, self.loop_context)

    def process_template(self, text: str) -> str:
        return self.evaluator.process_template(text, self.data, self.loop_context)
