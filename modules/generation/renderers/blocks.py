"""
Styled content blocks produced by the content renderer.

Blocks are the hand-off format to document assembly: an ordered tree of
paragraphs, stacks, column rows, tables and page breaks, each carrying the
effective style map of the node that produced it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from modules.generation.styles.resolver import ResolvedTheme


@dataclass
class TextRun:
    """Inline text with formatting marks."""
    text: str
    bold: bool = False
    italic: bool = False
    underline: bool = False
    strike: bool = False
    color: Optional[str] = None


@dataclass
class Block:
    style: Dict[str, Any] = field(default_factory=dict)

    def text_content(self) -> str:
        return ""


@dataclass
class ParagraphBlock(Block):
    runs: List[TextRun] = field(default_factory=list)
    heading_level: int = 0
    list_marker: Optional[str] = None

    def text_content(self) -> str:
        return "".join(run.text for run in self.runs)


@dataclass
class ContainerBlock(Block):
    """Children stacked vertically."""
    children: List[Block] = field(default_factory=list)

    def text_content(self) -> str:
        return "\n".join(text for text in (child.text_content() for child in self.children) if text)


@dataclass
class ColumnBlock:
    children: List[Block]
    size: float = 1.0


@dataclass
class ColumnsBlock(Block):
    """Columns side by side, widths proportional to size."""
    columns: List[ColumnBlock] = field(default_factory=list)
    gap: float = 8.0

    def text_content(self) -> str:
        parts = []
        for column in self.columns:
            parts.extend(child.text_content() for child in column.children)
        return "\n".join(part for part in parts if part)


@dataclass
class TableCellBlock:
    row: int
    col: int
    children: List[Block] = field(default_factory=list)
    row_span: int = 1
    col_span: int = 1
    header: bool = False
    style: Dict[str, Any] = field(default_factory=dict)


@dataclass
class TableBlock(Block):
    """
    Grid of cells addressed by row/column.

    Cells covered by a merge span are omitted; only the anchor cell is present.
    """
    row_count: int = 0
    col_count: int = 0
    cells: List[TableCellBlock] = field(default_factory=list)
    column_widths: List[float] = field(default_factory=list)
    header_rows: int = 0
    border_style: str = "all"

    def text_content(self) -> str:
        parts = []
        for cell in self.cells:
            parts.extend(child.text_content() for child in cell.children)
        return "\n".join(part for part in parts if part)


@dataclass
class PageBreakBlock(Block):
    pass


@dataclass
class RenderedDocument:
    """Output of the content renderer, input to document assembly."""
    blocks: List[Block]
    theme: ResolvedTheme
    header: List[Block] = field(default_factory=list)
    footer: List[Block] = field(default_factory=list)

    def text_content(self) -> str:
        return "\n".join(text for text in (block.text_content() for block in self.blocks) if text)
