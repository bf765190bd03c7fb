"""
Tests for theme selection and the per-node style cascade.
"""

from modules.generation.model import Theme
from modules.generation.model.theme import BlockStylePreset, PageFormat
from modules.generation.styles import INHERITABLE_KEYS, StyleCascadeResolver


def make_theme(name, **styles):
    return Theme(name=name, document_styles=styles)


def test_theme_selection_priority():
    resolver = StyleCascadeResolver()
    version, template, tenant = make_theme("version"), make_theme("template"), make_theme("tenant")

    assert resolver.select_theme(version, template, tenant).name == "version"
    assert resolver.select_theme(None, template, tenant).name == "template"
    assert resolver.select_theme(None, None, tenant).name == "tenant"
    assert resolver.select_theme(None, None, None).name == "default"


def test_document_override_wins_over_theme(graph_builder):
    resolver = StyleCascadeResolver()
    graph = graph_builder().text("a", "x").graph(
        documentStylesOverride={"fontSize": "14pt"},
        pageSettingsOverride={"format": "Letter"},
    )
    theme = make_theme("brand", fontSize="10pt", color="#333333")

    resolved = resolver.resolve_theme(graph, theme)

    assert resolved.document_styles == {"fontSize": "14pt", "color": "#333333"}
    assert resolved.page_settings.format == PageFormat.LETTER
    assert resolved.theme_name == "brand"


def test_node_style_precedence(graph_builder):
    resolver = StyleCascadeResolver()
    graph = graph_builder().text(
        "a", "x",
        styles={"color": "#ff0000"},
        style_preset="callout",
    ).graph()
    presets = {"callout": BlockStylePreset(styles={"color": "#00ff00", "fontWeight": "bold"})}

    resolved = resolver.resolve_node(graph.get_node("a"), {"color": "#000000", "fontSize": "9pt"}, presets)

    assert resolved.effective == {"color": "#ff0000", "fontWeight": "bold", "fontSize": "9pt"}


def test_only_typography_is_inherited(graph_builder):
    resolver = StyleCascadeResolver()
    graph = graph_builder().add(
        "box", "container",
        styles={"color": "#123456", "marginTop": "10pt", "backgroundColor": "#eeeeee", "fontFamily": "Times"},
    ).graph()

    resolved = resolver.resolve_node(graph.get_node("box"), {}, {})

    assert resolved.effective["marginTop"] == "10pt"
    assert resolved.inherited == {"color": "#123456", "fontFamily": "Times"}
    assert set(resolved.inherited) <= INHERITABLE_KEYS


def test_preset_restricted_to_other_node_types_is_ignored(graph_builder):
    resolver = StyleCascadeResolver()
    graph = graph_builder().text("a", "x", style_preset="boxed").graph()
    presets = {"boxed": BlockStylePreset(styles={"color": "#00ff00"}, applicableTo=["container"])}

    resolved = resolver.resolve_node(graph.get_node("a"), {}, presets)

    assert "color" not in resolved.effective


def test_unknown_preset_is_ignored(graph_builder):
    resolver = StyleCascadeResolver()
    graph = graph_builder().text("a", "x", style_preset="missing").graph()
    assert resolver.resolve_node(graph.get_node("a"), {"color": "#000000"}, {}).effective == {"color": "#000000"}


def test_styles_cascade_through_render(graph_builder, renderer):
    graph = (
        graph_builder()
        .add("box", "container", styles={"color": "#aa0000", "paddingTop": "4pt"})
        .text("inner", "Hi", parent="box")
        .graph()
    )
    theme = make_theme("brand", fontSize="10pt", color="#333333")

    document = renderer.render(graph, theme, {})

    root_block = document.blocks[0]
    box_block = root_block.children[0]
    paragraph = box_block.children[0]
    assert root_block.style["color"] == "#333333"
    assert box_block.style["paddingTop"] == "4pt"
    assert paragraph.style["color"] == "#aa0000"
    assert paragraph.style["fontSize"] == "10pt"
    assert "paddingTop" not in paragraph.style
