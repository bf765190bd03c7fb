"""
PDF assembly with reportlab platypus.

Turns styled content blocks into flowables and builds the paginated
document. Page headers and footers are drawn on every page.
"""

from io import BytesIO
from typing import Any, Dict, List, Optional, Tuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY, TA_LEFT, TA_RIGHT
from reportlab.lib.pagesizes import A4, LETTER, landscape, portrait
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import (
    Flowable,
    Frame,
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from modules.generation.core.exceptions import RenderFailureException
from modules.generation.model.theme import Orientation, PageFormat, PageSettings
from modules.generation.renderers.blocks import (
    Block,
    ColumnsBlock,
    ContainerBlock,
    PageBreakBlock,
    ParagraphBlock,
    RenderedDocument,
    TableBlock,
    TextRun,
)
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

PDF_CONTENT_TYPE = "application/pdf"

DEFAULT_FONT_SIZE = 11.0
BORDER_COLOR = colors.gray
BORDER_WIDTH = 0.5
CELL_PADDING = 6

PAGE_SIZES = {PageFormat.A4: A4, PageFormat.LETTER: LETTER}

# family -> (regular, bold, italic, bold italic)
FONT_FAMILIES = {
    "helvetica": ("Helvetica", "Helvetica-Bold", "Helvetica-Oblique", "Helvetica-BoldOblique"),
    "times": ("Times-Roman", "Times-Bold", "Times-Italic", "Times-BoldItalic"),
    "courier": ("Courier", "Courier-Bold", "Courier-Oblique", "Courier-BoldOblique"),
}
SERIF_HINTS = ("times", "georgia", "garamond", "serif", "cambria", "palatino")
MONO_HINTS = ("courier", "mono", "consolas", "menlo")

ALIGNMENTS = {"left": TA_LEFT, "center": TA_CENTER, "right": TA_RIGHT, "justify": TA_JUSTIFY}


# ==============================================================================
# STYLE CONVERSION
# ==============================================================================

def parse_size(value: Any, base: float = DEFAULT_FONT_SIZE) -> Optional[float]:
    """CSS-like length to points (px, pt, mm, cm, em, rem or bare number)."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip().lower()
    units = (("px", 0.75), ("pt", 1.0), ("mm", mm), ("cm", 10 * mm), ("rem", base), ("em", base))
    try:
        for suffix, factor in units:
            if text.endswith(suffix):
                return float(text[: -len(suffix)]) * factor
        return float(text)
    except ValueError:
        return None


def parse_color(value: Any) -> Optional[colors.Color]:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return colors.toColor(value.strip())
    except ValueError:
        logger.debug(f"Ignoring unparseable color '{value}'")
        return None


def font_family(value: Any) -> str:
    name = str(value or "").lower()
    if any(hint in name for hint in MONO_HINTS):
        return "courier"
    if any(hint in name for hint in SERIF_HINTS):
        return "times"
    return "helvetica"


def is_bold(style: Dict[str, Any]) -> bool:
    weight = str(style.get("fontWeight", "")).lower()
    if weight in ("bold", "bolder"):
        return True
    return weight.isdigit() and int(weight) >= 600


def font_name(style: Dict[str, Any], force_bold: bool = False) -> str:
    regular, bold, italic, bold_italic = FONT_FAMILIES[font_family(style.get("fontFamily"))]
    bold_on = force_bold or is_bold(style)
    italic_on = str(style.get("fontStyle", "")).lower() == "italic"
    if bold_on and italic_on:
        return bold_italic
    if bold_on:
        return bold
    if italic_on:
        return italic
    return regular


def paragraph_style(style: Dict[str, Any], force_bold: bool = False, bullet: bool = False) -> ParagraphStyle:
    font_size = parse_size(style.get("fontSize")) or DEFAULT_FONT_SIZE
    leading = font_size * 1.2
    line_height = style.get("lineHeight")
    if isinstance(line_height, (int, float)) and not isinstance(line_height, bool):
        leading = font_size * float(line_height)
    elif isinstance(line_height, str) and line_height.strip():
        text = line_height.strip()
        if text.endswith("%"):
            try:
                leading = font_size * float(text[:-1]) / 100
            except ValueError:
                pass
        else:
            size = parse_size(text, font_size)
            if size:
                leading = size if text[-1].isalpha() else font_size * size

    margin_bottom = parse_size(style.get("marginBottom"), font_size)
    return ParagraphStyle(
        name="block",
        fontName=font_name(style, force_bold),
        fontSize=font_size,
        leading=leading,
        textColor=parse_color(style.get("color")) or colors.black,
        alignment=ALIGNMENTS.get(str(style.get("textAlign", "left")).lower(), TA_LEFT),
        spaceBefore=parse_size(style.get("marginTop")) or 0,
        spaceAfter=font_size * 0.5 if margin_bottom is None else margin_bottom,
        leftIndent=(parse_size(style.get("marginLeft")) or 0) + (14 if bullet else 0),
        rightIndent=parse_size(style.get("marginRight")) or 0,
        backColor=parse_color(style.get("backgroundColor")),
        bulletIndent=parse_size(style.get("marginLeft")) or 0,
    )


def run_markup(run: TextRun) -> str:
    text = escape(run.text).replace("\n", "<br/>")
    if run.bold:
        text = f"<b>{text}</b>"
    if run.italic:
        text = f"<i>{text}</i>"
    if run.underline:
        text = f"<u>{text}</u>"
    if run.strike:
        text = f"<strike>{text}</strike>"
    if run.color:
        text = f'<font color="{run.color}">{text}</font>'
    return text


def box_padding(style: Dict[str, Any]) -> Tuple[float, float, float, float]:
    """(left, right, top, bottom) padding of a boxed block."""
    padding = parse_size(style.get("padding"))
    sides = []
    for key in ("paddingLeft", "paddingRight", "paddingTop", "paddingBottom"):
        value = parse_size(style.get(key))
        sides.append((padding if value is None else value) or 0.0)
    return tuple(sides)


def box_border(style: Dict[str, Any]) -> Optional[Tuple[float, colors.Color]]:
    border_width = parse_size(style.get("borderWidth"))
    border_color = parse_color(style.get("borderColor"))
    if border_width or border_color is not None or style.get("borderStyle") not in (None, "none"):
        return border_width or BORDER_WIDTH, border_color or BORDER_COLOR
    return None


def has_box(style: Dict[str, Any]) -> bool:
    keys = ("backgroundColor", "padding", "paddingTop", "paddingBottom", "paddingLeft",
            "paddingRight", "borderWidth", "borderColor", "borderStyle")
    return any(style.get(key) not in (None, "") for key in keys)


def split_at_page_breaks(flowables: List[Flowable]) -> List[List[Flowable]]:
    segments: List[List[Flowable]] = [[]]
    for flowable in flowables:
        if isinstance(flowable, PageBreak):
            segments.append([])
        else:
            segments[-1].append(flowable)
    return segments


def without_page_breaks(flowables: List[Flowable]) -> List[Flowable]:
    return [flowable for flowable in flowables if not isinstance(flowable, PageBreak)]


# ==============================================================================
# SPLITTABLE COLUMN GROUP
# ==============================================================================

class ColumnGroup(Flowable):
    """
    Side-by-side flowable lists with optional padding, background and border.

    Used for boxed containers (one column) and columns blocks. When the group
    does not fit the frame, every column is cut at the available height and
    the remainder continues in a new group with the same decoration.
    """

    def __init__(
        self,
        columns: List[List[Flowable]],
        widths: List[float],
        gap: float = 0.0,
        padding: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0),
        background: Optional[colors.Color] = None,
        border: Optional[Tuple[float, colors.Color]] = None,
    ):
        Flowable.__init__(self)
        self.columns = [list(column) for column in columns]
        self.widths = list(widths)
        self.gap = gap
        self.padding = padding
        self.background = background
        self.border = border
        self.width = sum(self.widths) + padding[0] + padding[1]
        self.height = 0.0

    @staticmethod
    def content_widths(widths: List[float], gap: float) -> List[float]:
        """Usable width per column once the gap is shared between neighbours."""
        last = len(widths) - 1
        return [
            max(width - (gap / 2 if index > 0 else 0) - (gap / 2 if index < last else 0), 1)
            for index, width in enumerate(widths)
        ]

    def _offsets(self) -> List[float]:
        offsets = []
        x = self.padding[0]
        for index, width in enumerate(self.widths):
            offsets.append(x + (self.gap / 2 if index > 0 else 0))
            x += width
        return offsets

    def _copy(self, columns: List[List[Flowable]]) -> "ColumnGroup":
        return ColumnGroup(columns, self.widths, self.gap, self.padding, self.background, self.border)

    def _column_height(self, content: List[Flowable], width: float, avail_height: float) -> float:
        total = 0.0
        for index, flowable in enumerate(content):
            if index:
                total += content[index - 1].getSpaceAfter() + flowable.getSpaceBefore()
            total += flowable.wrapOn(self.canv, width, avail_height)[1]
        return total

    def wrap(self, availWidth, availHeight):
        vertical = self.padding[2] + self.padding[3]
        heights = [
            self._column_height(content, width, max(availHeight - vertical, 0))
            for content, width in zip(self.columns, self.content_widths(self.widths, self.gap))
        ]
        self.height = max(heights, default=0.0) + vertical
        return self.width, self.height

    def _cut(self, content: List[Flowable], width: float, height: float) -> Tuple[List[Flowable], List[Flowable]]:
        """Split one column into the part that fits in height and the rest."""
        used = 0.0
        for index, flowable in enumerate(content):
            if index:
                used += content[index - 1].getSpaceAfter() + flowable.getSpaceBefore()
            remaining = height - used
            if remaining <= 0:
                return content[:index], content[index:]
            flowable_height = flowable.wrapOn(self.canv, width, remaining)[1]
            if flowable_height <= remaining:
                used += flowable_height
                continue
            parts = flowable.splitOn(self.canv, width, remaining)
            if parts:
                return content[:index] + parts[:1], parts[1:] + content[index + 1:]
            return content[:index], content[index:]
        return content, []

    def split(self, availWidth, availHeight):
        inner_height = availHeight - self.padding[2] - self.padding[3]
        if inner_height <= 0:
            return []

        fitted, rest = [], []
        for content, width in zip(self.columns, self.content_widths(self.widths, self.gap)):
            head, tail = self._cut(content, width, inner_height)
            fitted.append(head)
            rest.append(tail)

        if not any(fitted) or not any(rest):
            return []
        return [self._copy(fitted), self._copy(rest)]

    def draw(self):
        canvas = self.canv
        if self.background is not None:
            canvas.saveState()
            canvas.setFillColor(self.background)
            canvas.rect(0, 0, self.width, self.height, stroke=0, fill=1)
            canvas.restoreState()

        widths = self.content_widths(self.widths, self.gap)
        for content, x, width in zip(self.columns, self._offsets(), widths):
            y = self.height - self.padding[2]
            for index, flowable in enumerate(content):
                if index:
                    y -= content[index - 1].getSpaceAfter() + flowable.getSpaceBefore()
                flowable_width, flowable_height = flowable.wrapOn(canvas, width, y)
                y -= flowable_height
                flowable.drawOn(canvas, x, y, _sW=width - flowable_width)

        if self.border is not None:
            line_width, color = self.border
            canvas.saveState()
            canvas.setStrokeColor(color)
            canvas.setLineWidth(line_width)
            canvas.rect(0, 0, self.width, self.height, stroke=1, fill=0)
            canvas.restoreState()


# ==============================================================================
# ASSEMBLER
# ==============================================================================

class ReportlabDocumentAssembler:
    """Builds PDF bytes from a RenderedDocument."""

    def page_geometry(self, settings: PageSettings) -> Tuple[Tuple[float, float], Dict[str, float]]:
        size = PAGE_SIZES.get(settings.format, A4)
        size = landscape(size) if settings.orientation == Orientation.LANDSCAPE else portrait(size)
        margins = {
            "leftMargin": settings.margins.left * mm,
            "rightMargin": settings.margins.right * mm,
            "topMargin": settings.margins.top * mm,
            "bottomMargin": settings.margins.bottom * mm,
        }
        return size, margins

    def assemble(self, document: RenderedDocument) -> bytes:
        """
        Build the PDF.

        Raises:
            RenderFailureException: If reportlab cannot lay out the content
        """
        page_size, margins = self.page_geometry(document.theme.page_settings)
        width = page_size[0] - margins["leftMargin"] - margins["rightMargin"]

        buffer = BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=page_size, title="Generated document", **margins)

        story = self.flowables(document.blocks, width)
        if not story:
            story = [Spacer(1, 0)]

        def draw_chrome(canvas, _doc):
            self._draw_band(canvas, document.header, width, margins["leftMargin"],
                            page_size[1] - margins["topMargin"], margins["topMargin"])
            self._draw_band(canvas, document.footer, width, margins["leftMargin"],
                            0, margins["bottomMargin"])

        try:
            doc.build(story, onFirstPage=draw_chrome, onLaterPages=draw_chrome)
        except Exception as e:
            raise RenderFailureException(f"Document assembly failed: {e}") from e

        pdf_content = buffer.getvalue()
        buffer.close()
        return pdf_content

    def _draw_band(self, canvas, blocks: List[Block], width: float, x: float, y: float, height: float) -> None:
        if not blocks or height <= 0:
            return
        frame = Frame(x, y, width, height, leftPadding=0, rightPadding=0,
                      topPadding=4, bottomPadding=4, showBoundary=0)
        frame.addFromList(self.flowables(blocks, width), canvas)

    # ------------------------------------------------------------------
    # Block conversion
    # ------------------------------------------------------------------

    def flowables(self, blocks: List[Block], width: float, force_bold: bool = False) -> List[Flowable]:
        result: List[Flowable] = []
        for block in blocks:
            result.extend(self.flowable(block, width, force_bold))
        return result

    def flowable(self, block: Block, width: float, force_bold: bool = False) -> List[Flowable]:
        if isinstance(block, ParagraphBlock):
            return [self._paragraph(block, force_bold)]
        if isinstance(block, ContainerBlock):
            return self._container(block, width)
        if isinstance(block, ColumnsBlock):
            return [self._columns(block, width)]
        if isinstance(block, TableBlock):
            return [self._table(block, width)]
        if isinstance(block, PageBreakBlock):
            return [PageBreak()]
        return []

    def _paragraph(self, block: ParagraphBlock, force_bold: bool) -> Paragraph:
        markup = "".join(run_markup(run) for run in block.runs) or "&nbsp;"
        style = paragraph_style(block.style, force_bold, bullet=block.list_marker is not None)
        if block.list_marker is not None:
            return Paragraph(markup, style, bulletText=block.list_marker)
        return Paragraph(markup, style)

    def _container(self, block: ContainerBlock, width: float) -> List[Flowable]:
        top = parse_size(block.style.get("marginTop"))
        bottom = parse_size(block.style.get("marginBottom"))
        result: List[Flowable] = [Spacer(1, top)] if top else []

        if has_box(block.style):
            padding = box_padding(block.style)
            inner = max(width - padding[0] - padding[1], 1)
            background = parse_color(block.style.get("backgroundColor"))
            border = box_border(block.style)
            # A page break ends the box on this page and reopens it on the next
            for index, segment in enumerate(split_at_page_breaks(self.flowables(block.children, inner))):
                if index:
                    result.append(PageBreak())
                result.append(ColumnGroup([segment], [inner], padding=padding, background=background, border=border))
        else:
            result.extend(self.flowables(block.children, width))

        if bottom:
            result.append(Spacer(1, bottom))
        return result

    def _columns(self, block: ColumnsBlock, width: float) -> ColumnGroup:
        widths = [width * column.size for column in block.columns]
        content_widths = ColumnGroup.content_widths(widths, block.gap)
        columns = [
            without_page_breaks(self.flowables(column.children, content_width))
            for column, content_width in zip(block.columns, content_widths)
        ]
        return ColumnGroup(columns, widths, gap=block.gap, background=parse_color(block.style.get("backgroundColor")))

    def _table(self, block: TableBlock, width: float) -> Table:
        widths = [width * fraction for fraction in block.column_widths]
        grid: List[List[Any]] = [["" for _ in range(block.col_count)] for _ in range(block.row_count)]
        commands: List[Tuple] = [
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("LEFTPADDING", (0, 0), (-1, -1), CELL_PADDING),
            ("RIGHTPADDING", (0, 0), (-1, -1), CELL_PADDING),
            ("TOPPADDING", (0, 0), (-1, -1), CELL_PADDING),
            ("BOTTOMPADDING", (0, 0), (-1, -1), CELL_PADDING),
        ]

        for cell in block.cells:
            cell_width = sum(widths[cell.col:cell.col + cell.col_span]) - 2 * CELL_PADDING
            content = self.flowables(cell.children, max(cell_width, 1), force_bold=cell.header)
            grid[cell.row][cell.col] = without_page_breaks(content) or ""
            if cell.row_span > 1 or cell.col_span > 1:
                commands.append((
                    "SPAN",
                    (cell.col, cell.row),
                    (cell.col + cell.col_span - 1, cell.row + cell.row_span - 1),
                ))
            background = parse_color(cell.style.get("backgroundColor"))
            if background is not None:
                commands.append(("BACKGROUND", (cell.col, cell.row), (cell.col, cell.row), background))

        commands.extend(self._border_commands(block.border_style))
        background = parse_color(block.style.get("backgroundColor"))
        if background is not None:
            commands.insert(0, ("BACKGROUND", (0, 0), (-1, -1), background))

        table = Table(grid, colWidths=widths, repeatRows=block.header_rows)
        table.setStyle(TableStyle(commands))
        return table

    @staticmethod
    def _border_commands(border_style: str) -> List[Tuple]:
        if border_style == "none":
            return []
        if border_style == "horizontal":
            return [
                ("LINEABOVE", (0, 0), (-1, 0), BORDER_WIDTH, BORDER_COLOR),
                ("LINEBELOW", (0, 0), (-1, -1), BORDER_WIDTH, BORDER_COLOR),
            ]
        if border_style == "vertical":
            return [
                ("LINEBEFORE", (0, 0), (-1, -1), BORDER_WIDTH, BORDER_COLOR),
                ("LINEAFTER", (-1, 0), (-1, -1), BORDER_WIDTH, BORDER_COLOR),
            ]
        return [("GRID", (0, 0), (-1, -1), BORDER_WIDTH, BORDER_COLOR)]
