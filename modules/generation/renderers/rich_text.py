"""
Rich-text (TipTap JSON) to paragraph blocks.

Supported block nodes: paragraph, heading (levels 1-6), bulletList,
orderedList. Inline nodes: text (marks bold/italic/underline/strike and
textStyle color, `{{expr}}` placeholders) and expression atoms.
"""

from typing import Any, Dict, List, Optional

from modules.generation.core.interfaces import Expression, ExpressionLanguage
from modules.generation.renderers.blocks import ParagraphBlock, TextRun
from modules.generation.renderers.context import RenderContext

HEADING_FONT_SIZES = {1: "24pt", 2: "18pt", 3: "14pt"}


def convert_rich_text(content: Any, context: RenderContext) -> List[ParagraphBlock]:
    """
    Convert a TipTap document (or plain string) into paragraphs.

    Args:
        content: {"type": "doc", "content": [...]}, a bare node list or a string
        context: Current render context (data scope and node style)

    Returns:
        Paragraph blocks styled with the text node's effective style
    """
    if content is None:
        return []
    if isinstance(content, str):
        return [_paragraph([TextRun(context.process_template(content))], context.style)]

    nodes = content.get("content") if isinstance(content, dict) else content
    if not isinstance(nodes, list):
        return []

    paragraphs: List[ParagraphBlock] = []
    for node in nodes:
        if isinstance(node, dict):
            paragraphs.extend(_convert_block(node, context))
    return paragraphs


def _paragraph(runs: List[TextRun], style: Dict[str, Any], **kwargs) -> ParagraphBlock:
    return ParagraphBlock(style=dict(style), runs=runs, **kwargs)


def _convert_block(node: Dict[str, Any], context: RenderContext) -> List[ParagraphBlock]:
    node_type = node.get("type")

    if node_type == "paragraph":
        return [_paragraph(_inline_runs(node.get("content"), context), context.style)]

    if node_type == "heading":
        level = int((node.get("attrs") or {}).get("level", 1))
        style = {
            **context.style,
            "fontWeight": "bold",
            "fontSize": HEADING_FONT_SIZES.get(level, context.style.get("fontSize", "12pt")),
        }
        return [_paragraph(_inline_runs(node.get("content"), context), style, heading_level=level)]

    if node_type in ("bulletList", "orderedList"):
        ordered = node_type == "orderedList"
        start = int((node.get("attrs") or {}).get("start", 1))
        items: List[ParagraphBlock] = []
        for index, item in enumerate(i for i in node.get("content") or [] if i.get("type") == "listItem"):
            marker = f"{start + index}." if ordered else "•"
            for child in item.get("content") or []:
                if child.get("type") == "paragraph":
                    items.append(_paragraph(
                        _inline_runs(child.get("content"), context),
                        context.style,
                        list_marker=marker,
                    ))
        return items

    return []


def _inline_runs(content: Optional[List[Dict[str, Any]]], context: RenderContext) -> List[TextRun]:
    runs: List[TextRun] = []
    for child in content or []:
        child_type = child.get("type")

        if child_type == "text":
            run = TextRun(context.process_template(child.get("text") or ""))
            _apply_marks(run, child.get("marks") or [])
            runs.append(run)

        elif child_type == "expression":
            attrs = child.get("attrs") or {}
            raw = attrs.get("expression") or ""
            language = attrs.get("language")
            expression = Expression(
                raw,
                ExpressionLanguage(language) if language else context.evaluator.default_language,
            )
            runs.append(TextRun(context.evaluate_to_string(expression)))

        elif child_type == "hardBreak":
            runs.append(TextRun("\n"))
    return runs


def _apply_marks(run: TextRun, marks: List[Dict[str, Any]]) -> None:
    for mark in marks:
        mark_type = mark.get("type")
        if mark_type == "bold":
            run.bold = True
        elif mark_type == "italic":
            run.italic = True
        elif mark_type == "underline":
            run.underline = True
        elif mark_type == "strike":
            run.strike = True
        elif mark_type == "textStyle":
            color = (mark.get("attrs") or {}).get("color")
            if isinstance(color, str) and color.startswith("#"):
                run.color = color
