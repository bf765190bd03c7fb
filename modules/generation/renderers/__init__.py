"""
Content rendering for generation module.

Importing this package registers every built-in node renderer.
"""

from modules.generation.renderers import node_renderers  # noqa: F401
from modules.generation.renderers.blocks import RenderedDocument
from modules.generation.renderers.content_renderer import ContentRenderer
from modules.generation.renderers.pdf_assembler import PDF_CONTENT_TYPE, ReportlabDocumentAssembler

__all__ = [
    "ContentRenderer",
    "RenderedDocument",
    "ReportlabDocumentAssembler",
    "PDF_CONTENT_TYPE",
]
