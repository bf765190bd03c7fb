"""
Template graph and theme models.
"""

from modules.generation.model.theme import (
    BlockStylePreset,
    DEFAULT_PAGE_SETTINGS,
    EMPTY_THEME,
    Margins,
    Orientation,
    PageFormat,
    PageSettings,
    Theme,
)
from modules.generation.model.template_graph import (
    Node,
    Slot,
    TemplateGraph,
    ThemeRefOverride,
)

__all__ = [
    "BlockStylePreset",
    "DEFAULT_PAGE_SETTINGS",
    "EMPTY_THEME",
    "Margins",
    "Orientation",
    "PageFormat",
    "PageSettings",
    "Theme",
    "Node",
    "Slot",
    "TemplateGraph",
    "ThemeRefOverride",
]
