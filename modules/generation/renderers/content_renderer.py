"""
Content renderer.

Walks a template graph depth-first from its root and produces a
RenderedDocument of styled blocks; PDF bytes come from the document
assembler.
"""

from typing import Any, Dict, Optional

from modules.generation.core.exceptions import RenderFailureException
from modules.generation.expressions.evaluator import ExpressionEvaluator
from modules.generation.model.template_graph import TemplateGraph
from modules.generation.model.theme import Theme
from modules.generation.renderers.blocks import RenderedDocument
from modules.generation.renderers.context import PageChrome, RenderBudget, RenderContext
from modules.generation.renderers.pdf_assembler import ReportlabDocumentAssembler
from modules.generation.styles.resolver import StyleCascadeResolver, inheritable_subset
from shared.utils.logger import setup_logger

import modules.generation.renderers.node_renderers  # noqa: F401  (registers node types)

logger = setup_logger(__name__)


class ContentRenderer:
    """
    Renders template graphs against JSON data.

    Example:
        renderer = ContentRenderer()
        pdf_bytes = renderer.render_pdf(graph, theme, {"name": "Ada"})
    """

    def __init__(
        self,
        evaluator: Optional[ExpressionEvaluator] = None,
        style_resolver: Optional[StyleCascadeResolver] = None,
        assembler: Optional[ReportlabDocumentAssembler] = None,
        max_render_nodes: Optional[int] = None,
    ):
        self.evaluator = evaluator or ExpressionEvaluator()
        self.style_resolver = style_resolver or StyleCascadeResolver()
        self.assembler = assembler or ReportlabDocumentAssembler()
        self.max_render_nodes = max_render_nodes

    def render(
        self,
        graph: TemplateGraph,
        theme: Optional[Theme],
        data: Dict[str, Any],
    ) -> RenderedDocument:
        """
        Render a graph into blocks.

        Args:
            graph: Template graph
            theme: Theme already selected by the theme cascade (None for defaults)
            data: Request data payload

        Returns:
            RenderedDocument

        Raises:
            RenderFailureException: On expression errors or exhausted render budget
        """
        if not isinstance(data, dict):
            raise RenderFailureException("Render data must be a JSON object")

        resolved_theme = self.style_resolver.resolve_theme(graph, theme)
        chrome = PageChrome()
        context = RenderContext(
            graph=graph,
            theme=resolved_theme,
            data=data,
            evaluator=self.evaluator,
            style_resolver=self.style_resolver,
            budget=RenderBudget(self.max_render_nodes),
            chrome=chrome,
            inherited=inheritable_subset(resolved_theme.document_styles),
        )

        blocks = context.render_node(graph.get_node(graph.root))
        logger.debug(f"Rendered {context.budget.visited} nodes into {len(blocks)} blocks")
        return RenderedDocument(blocks=blocks, theme=resolved_theme, header=chrome.header, footer=chrome.footer)

    def render_pdf(self, graph: TemplateGraph, theme: Optional[Theme], data: Dict[str, Any]) -> bytes:
        """Render and assemble into PDF bytes."""
        return self.assembler.assemble(self.render(graph, theme, data))
