"""
Style cascade resolution.

Effective style of a node, merged per key, lowest priority first:
    theme documentStyles -> template documentStylesOverride
    -> node stylePreset (theme preset table) -> node inline styles

Typography keys cascade to descendants; every other key (spacing,
borders, background, layout) applies only to the node that sets it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from modules.generation.model.template_graph import Node, TemplateGraph
from modules.generation.model.theme import (
    BlockStylePreset,
    DEFAULT_PAGE_SETTINGS,
    EMPTY_THEME,
    PageSettings,
    Theme,
)
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)

INHERITABLE_KEYS = frozenset({
    "fontFamily",
    "fontSize",
    "fontWeight",
    "fontStyle",
    "color",
    "lineHeight",
    "letterSpacing",
    "textAlign",
})


def inheritable_subset(styles: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in styles.items() if key in INHERITABLE_KEYS and value is not None}


@dataclass(frozen=True)
class ResolvedTheme:
    """Document-level styling after the theme cascade."""
    document_styles: Dict[str, Any] = field(default_factory=dict)
    page_settings: PageSettings = DEFAULT_PAGE_SETTINGS
    presets: Dict[str, BlockStylePreset] = field(default_factory=dict)
    theme_name: str = ""


@dataclass(frozen=True)
class ResolvedStyle:
    """Styles for one node: what it renders with and what its children inherit."""
    effective: Dict[str, Any]
    inherited: Dict[str, Any]


class StyleCascadeResolver:
    """Merges theme, document, preset and inline styles."""

    def select_theme(
        self,
        version_theme: Optional[Theme] = None,
        template_theme: Optional[Theme] = None,
        tenant_theme: Optional[Theme] = None,
    ) -> Theme:
        """First available of version override, template default, tenant default."""
        for theme in (version_theme, template_theme, tenant_theme):
            if theme is not None:
                return theme
        return EMPTY_THEME

    def resolve_theme(self, graph: TemplateGraph, theme: Optional[Theme] = None) -> ResolvedTheme:
        theme = theme or EMPTY_THEME
        document_styles = {**theme.document_styles, **graph.document_styles_override}
        page_settings = graph.page_settings_override or theme.page_settings or DEFAULT_PAGE_SETTINGS
        return ResolvedTheme(
            document_styles={k: v for k, v in document_styles.items() if v is not None},
            page_settings=page_settings,
            presets=dict(theme.block_style_presets),
            theme_name=theme.name,
        )

    def with_template_overrides(
        self,
        theme: Theme,
        document_styles: Optional[Mapping[str, Any]] = None,
        page_settings: Optional[Mapping[str, Any]] = None,
    ) -> Theme:
        """
        Layer template-level document styles and page settings over a theme.

        Graph-level overrides still win over these in resolve_theme.
        """
        update: Dict[str, Any] = {}
        if document_styles:
            update["document_styles"] = {**theme.document_styles, **document_styles}
        if page_settings:
            update["page_settings"] = PageSettings.model_validate(page_settings)
        return theme.model_copy(update=update) if update else theme

    def preset_styles(self, node: Node, presets: Mapping[str, BlockStylePreset]) -> Dict[str, Any]:
        if not node.style_preset:
            return {}
        preset = presets.get(node.style_preset)
        if preset is None:
            logger.debug(f"Unknown style preset '{node.style_preset}' on node {node.id}")
            return {}
        if not preset.applies_to(node.type):
            return {}
        return dict(preset.styles)

    def resolve_node(
        self,
        node: Node,
        inherited: Mapping[str, Any],
        presets: Mapping[str, BlockStylePreset],
    ) -> ResolvedStyle:
        """
        Resolve a node's styles.

        Args:
            node: Node being rendered
            inherited: Typography inherited from the parent (document styles at the root)
            presets: Theme preset table

        Returns:
            ResolvedStyle with the node's effective map and the inheritable
            subset passed to its children
        """
        own = {**self.preset_styles(node, presets), **node.styles}
        own = {k: v for k, v in own.items() if v is not None}
        effective = {**inherited, **own}
        return ResolvedStyle(effective=effective, inherited=inheritable_subset(effective))
