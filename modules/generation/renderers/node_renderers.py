"""
Built-in node renderers.

Each renderer registers itself for one or more node type tags.
"""

from typing import Any, Dict, List, Optional, Set, Tuple

from modules.generation.core.interfaces import INodeRenderer
from modules.generation.core.registry import register_node_renderer
from modules.generation.model.template_graph import Node
from modules.generation.renderers.blocks import (
    Block,
    ColumnBlock,
    ColumnsBlock,
    ContainerBlock,
    PageBreakBlock,
    ParagraphBlock,
    TableBlock,
    TableCellBlock,
    TextRun,
)
from modules.generation.renderers.context import RenderContext
from modules.generation.renderers.rich_text import convert_rich_text
from modules.generation.styles.resolver import inheritable_subset

BORDER_STYLES = ("all", "horizontal", "vertical", "none")


def _number(value: Any, default: Optional[float] = None) -> Optional[float]:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    return default


def _proportions(sizes: Any, count: int) -> List[float]:
    """Normalize declared sizes to fractions, equal split when absent or mismatched."""
    if isinstance(sizes, list) and len(sizes) == count:
        values = [_number(size, 0.0) for size in sizes]
        total = sum(values)
        if total > 0 and all(v >= 0 for v in values):
            return [v / total for v in values]
    return [1.0 / count] * count if count else []


def _border_style(value: Any) -> str:
    return value if value in BORDER_STYLES else "all"


@register_node_renderer("root", "container")
class ContainerRenderer(INodeRenderer):
    """Stacks the children of every slot vertically."""

    def render(self, node: Node, context: RenderContext) -> List[Block]:
        return [ContainerBlock(style=context.style, children=context.render_children(node))]


@register_node_renderer("text")
class TextRenderer(INodeRenderer):
    def render(self, node: Node, context: RenderContext) -> List[Block]:
        return list(convert_rich_text(node.props.get("content"), context))


@register_node_renderer("columns")
class ColumnsRenderer(INodeRenderer):
    """
    Side-by-side columns.

    Props: columnSizes (ratios, one per slot), gap (points, default 8).
    Slots named column-N are ordered by N.
    """

    def render(self, node: Node, context: RenderContext) -> List[Block]:
        slots = context.graph.node_slots(node)
        if not slots:
            return []

        def column_index(slot) -> int:
            suffix = slot.name.removeprefix("column-")
            return int(suffix) if suffix.isdigit() else 0

        slots = sorted(slots, key=column_index)
        sizes = _proportions(node.props.get("columnSizes"), len(slots))
        columns = [
            ColumnBlock(children=context.render_slot(slot), size=size)
            for slot, size in zip(slots, sizes)
        ]
        gap = _number(node.props.get("gap"), 8.0)
        return [ColumnsBlock(style=context.style, columns=columns, gap=gap)]


@register_node_renderer("table")
class TableRenderer(INodeRenderer):
    """
    Static grid.

    Props: rows, columns, columnWidths, headerRows, borderStyle
    (all/horizontal/vertical/none), merges [{row, col, rowSpan, colSpan}].
    Cell content lives in slots named cell-{row}-{col}.
    """

    def render(self, node: Node, context: RenderContext) -> List[Block]:
        row_count = int(_number(node.props.get("rows"), 0))
        col_count = int(_number(node.props.get("columns"), 0))
        if row_count <= 0 or col_count <= 0:
            return []

        merges = self._merges(node.props.get("merges"), row_count, col_count)
        covered = self._covered_cells(merges)
        header_rows = int(_number(node.props.get("headerRows"), 0))

        cells: List[TableCellBlock] = []
        for row in range(row_count):
            for col in range(col_count):
                if (row, col) in covered:
                    continue
                row_span, col_span = merges.get((row, col), (1, 1))
                slot = context.graph.slot_by_name(node, f"cell-{row}-{col}")
                cells.append(TableCellBlock(
                    row=row,
                    col=col,
                    children=context.render_slot(slot),
                    row_span=row_span,
                    col_span=col_span,
                    header=row < header_rows,
                ))

        return [TableBlock(
            style=context.style,
            row_count=row_count,
            col_count=col_count,
            cells=cells,
            column_widths=_proportions(node.props.get("columnWidths"), col_count),
            header_rows=header_rows,
            border_style=_border_style(node.props.get("borderStyle")),
        )]

    @staticmethod
    def _merges(raw: Any, row_count: int, col_count: int) -> Dict[Tuple[int, int], Tuple[int, int]]:
        """Valid merges by anchor cell; a merge overlapping an earlier one is dropped."""
        merges: Dict[Tuple[int, int], Tuple[int, int]] = {}
        occupied: Set[Tuple[int, int]] = set()
        for entry in raw if isinstance(raw, list) else []:
            if not isinstance(entry, dict):
                continue
            try:
                row, col = int(entry["row"]), int(entry["col"])
                row_span, col_span = int(entry["rowSpan"]), int(entry["colSpan"])
            except (KeyError, TypeError, ValueError):
                continue
            if row_span < 1 or col_span < 1 or row + row_span > row_count or col + col_span > col_count:
                continue
            area = {(r, c) for r in range(row, row + row_span) for c in range(col, col + col_span)}
            if area & occupied:
                continue
            occupied |= area
            merges[(row, col)] = (row_span, col_span)
        return merges

    @staticmethod
    def _covered_cells(merges: Dict[Tuple[int, int], Tuple[int, int]]) -> Set[Tuple[int, int]]:
        covered = set()
        for (row, col), (row_span, col_span) in merges.items():
            for r in range(row, row + row_span):
                for c in range(col, col + col_span):
                    if (r, c) != (row, col):
                        covered.add((r, c))
        return covered


@register_node_renderer("conditional")
class ConditionalRenderer(INodeRenderer):
    """Renders children when `condition` is truthy (falsy with inverse=true)."""

    def render(self, node: Node, context: RenderContext) -> List[Block]:
        expression = context.expression(node.props.get("condition"))
        if expression is None:
            return []
        show = context.evaluate_condition(expression)
        if node.props.get("inverse"):
            show = not show
        return context.render_children(node) if show else []


def _loop_variables(item: Any, index: int, total: int, item_alias: str,
                    index_alias: Optional[str]) -> Dict[str, Any]:
    variables = {
        item_alias: item,
        f"{item_alias}_index": index,
        f"{item_alias}_first": index == 0,
        f"{item_alias}_last": index == total - 1,
    }
    if index_alias:
        variables[index_alias] = index
    return variables


@register_node_renderer("loop")
class LoopRenderer(INodeRenderer):
    """
    Renders children once per array element.

    Props: expression, itemAlias (default "item"), indexAlias.
    """

    def render(self, node: Node, context: RenderContext) -> List[Block]:
        expression = context.expression(node.props.get("expression"))
        if expression is None:
            return []
        items = context.evaluate_iterable(expression)
        item_alias = node.props.get("itemAlias") or "item"
        index_alias = node.props.get("indexAlias")

        blocks: List[Block] = []
        for index, item in enumerate(items):
            scope = context.with_loop(_loop_variables(item, index, len(items), item_alias, index_alias))
            blocks.extend(scope.render_children(node))
        return blocks


@register_node_renderer("datatable")
class DatatableRenderer(INodeRenderer):
    """
    Table with one row per array element.

    Props: expression, itemAlias, indexAlias, headerEnabled (default true),
    borderStyle. The first slot holds datatable-column nodes whose props
    carry `header` and `width`; each column's first slot is the cell body.
    """

    def render(self, node: Node, context: RenderContext) -> List[Block]:
        expression = context.expression(node.props.get("expression"))
        slots = context.graph.node_slots(node)
        if expression is None or not slots:
            return []
        columns = context.graph.children(slots[0])
        if not columns:
            return []

        items = context.evaluate_iterable(expression)
        header_enabled = node.props.get("headerEnabled", True) is not False
        if not items and not header_enabled:
            return []

        item_alias = node.props.get("itemAlias") or "item"
        index_alias = node.props.get("indexAlias")
        cells: List[TableCellBlock] = []
        row = 0

        if header_enabled:
            for col, column in enumerate(columns):
                header = ParagraphBlock(style=inheritable_subset(context.style), runs=[TextRun(str(column.props.get("header") or ""))])
                cells.append(TableCellBlock(row=0, col=col, children=[header], header=True, style=dict(column.styles)))
            row = 1

        for index, item in enumerate(items):
            scope = context.with_loop(_loop_variables(item, index, len(items), item_alias, index_alias))
            for col, column in enumerate(columns):
                context.budget.tick(column)
                column_slots = scope.graph.node_slots(column)
                body = scope.render_slot(column_slots[0]) if column_slots else []
                cells.append(TableCellBlock(row=row, col=col, children=body, style=dict(column.styles)))
            row += 1

        widths = [_number(column.props.get("width"), 33.0) for column in columns]
        return [TableBlock(
            style=context.style,
            row_count=row,
            col_count=len(columns),
            cells=cells,
            column_widths=_proportions(widths, len(columns)),
            header_rows=1 if header_enabled else 0,
            border_style=_border_style(node.props.get("borderStyle")),
        )]


@register_node_renderer("pagebreak")
class PageBreakRenderer(INodeRenderer):
    def render(self, node: Node, context: RenderContext) -> List[Block]:
        return [PageBreakBlock()]


@register_node_renderer("pageheader")
class PageHeaderRenderer(INodeRenderer):
    """Collects children into the header repeated on every page."""

    def render(self, node: Node, context: RenderContext) -> List[Block]:
        context.chrome.header.extend(context.render_children(node))
        return []


@register_node_renderer("pagefooter")
class PageFooterRenderer(INodeRenderer):
    """Collects children into the footer repeated on every page."""

    def render(self, node: Node, context: RenderContext) -> List[Block]:
        context.chrome.footer.extend(context.render_children(node))
        return []
