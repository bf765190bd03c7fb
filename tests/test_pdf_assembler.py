"""
Tests for PDF assembly: pagination of boxed containers, columns and tables.
"""

import io

from pypdf import PdfReader

from modules.generation.model import TemplateGraph
from modules.generation.renderers import ContentRenderer


def pdf_pages(content: bytes):
    reader = PdfReader(io.BytesIO(content))
    return [page.extract_text() or "" for page in reader.pages]


def long_text(builder, count, parent="root", slot="children", prefix="Line"):
    for index in range(count):
        builder.text(f"{prefix}-{index}", f"{prefix} {index:03d}", parent=parent, slot=slot)
    return builder


def assert_all_lines_present(pages, count, prefix="Line"):
    text = "\n".join(pages)
    missing = [index for index in range(count) if f"{prefix} {index:03d}" not in text]
    assert missing == []


def test_single_page_document(graph_builder, renderer):
    graph = graph_builder().text("greeting", "Hello world").graph()

    pages = pdf_pages(renderer.render_pdf(graph, None, {}))

    assert len(pages) == 1
    assert "Hello world" in pages[0]


def test_padded_root_flows_across_pages(graph_builder, renderer):
    builder = long_text(graph_builder(root_styles={"padding": "10pt"}), 120)

    pages = pdf_pages(renderer.render_pdf(builder.graph(), None, {}))

    assert len(pages) > 1
    assert_all_lines_present(pages, 120)


def test_bordered_shaded_container_flows_across_pages(graph_builder, renderer):
    builder = graph_builder().add("box", "container", styles={
        "backgroundColor": "#eeeeee",
        "borderWidth": "1pt",
        "padding": "8pt",
    })
    long_text(builder, 100, parent="box")

    pages = pdf_pages(renderer.render_pdf(builder.graph(), None, {}))

    assert len(pages) > 1
    assert_all_lines_present(pages, 100)


def test_page_breaks_inside_shaded_container(graph_builder, renderer):
    graph = (
        graph_builder()
        .add("box", "container", styles={"backgroundColor": "#eeeeee"})
        .add("each", "loop", parent="box", props={"expression": "items"})
        .text("line", "Item {{item}}", parent="each")
        .add("break", "pagebreak", parent="each")
        .graph()
    )

    pages = pdf_pages(renderer.render_pdf(graph, None, {"items": ["A", "B", "C"]}))

    assert len(pages) >= 3
    assert "Item A" in pages[0]
    assert "Item B" in pages[1]
    assert "Item C" in pages[2]


def test_long_column_flows_across_pages(graph_builder, renderer):
    builder = graph_builder().add("cols", "columns", props={"columnSizes": [1, 1], "gap": 12})
    builder.text("side", "Sidebar", parent="cols", slot="column-1")
    long_text(builder, 150, parent="cols", slot="column-0")

    pages = pdf_pages(renderer.render_pdf(builder.graph(), None, {}))

    assert len(pages) > 1
    assert "Sidebar" in pages[0]
    assert_all_lines_present(pages, 150)


def test_boxed_container_inside_long_column(graph_builder, renderer):
    builder = graph_builder().add("cols", "columns", props={"columnSizes": [2, 1]})
    builder.add("box", "container", parent="cols", slot="column-0", styles={"padding": "6pt", "borderWidth": "1pt"})
    long_text(builder, 120, parent="box")

    pages = pdf_pages(renderer.render_pdf(builder.graph(), None, {}))

    assert len(pages) > 1
    assert_all_lines_present(pages, 120)


def test_page_break_inside_table_cell_is_ignored(graph_builder, renderer):
    builder = graph_builder().add("grid", "table", props={"rows": 1, "columns": 2})
    builder.text("left", "Left cell", parent="grid", slot="cell-0-0")
    builder.add("break", "pagebreak", parent="grid", slot="cell-0-0")
    builder.text("right", "Right cell", parent="grid", slot="cell-0-1")

    pages = pdf_pages(renderer.render_pdf(builder.graph(), None, {}))

    assert len(pages) == 1
    assert "Left cell" in pages[0]
    assert "Right cell" in pages[0]


def test_long_loop_in_padded_root():
    graph = TemplateGraph.from_dict({
        "root": "root",
        "nodes": {
            "root": {"id": "root", "type": "root", "slotIds": ["root-children"], "styles": {"padding": "12pt"}},
            "each": {"id": "each", "type": "loop", "slotIds": ["each-children"], "props": {"expression": "items"}},
            "line": {"id": "line", "type": "text", "props": {"content": "Entry {{item}}"}},
        },
        "slots": {
            "root-children": {"id": "root-children", "name": "children", "nodeId": "root", "childNodeIds": ["each"]},
            "each-children": {"id": "each-children", "name": "children", "nodeId": "each", "childNodeIds": ["line"]},
        },
    })

    pages = pdf_pages(ContentRenderer().render_pdf(graph, None, {"items": list(range(200))}))

    assert len(pages) > 2
    assert "Entry 199" in pages[-1]
