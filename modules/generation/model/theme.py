"""
Theme and page settings models.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PageFormat(str, Enum):
    A4 = "A4"
    LETTER = "Letter"


class Orientation(str, Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"


class Margins(BaseModel):
    """Page margins in millimetres"""

    model_config = ConfigDict(frozen=True)

    top: float = 20
    right: float = 20
    bottom: float = 20
    left: float = 20


class PageSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    format: PageFormat = PageFormat.A4
    orientation: Orientation = Orientation.PORTRAIT
    margins: Margins = Field(default_factory=Margins)


DEFAULT_PAGE_SETTINGS = PageSettings()


class BlockStylePreset(BaseModel):
    """
    Named style bundle a node can reference via stylePreset.

    applicable_to restricts the preset to specific node types; empty means
    every type.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    label: str = ""
    styles: Dict[str, Any] = Field(default_factory=dict)
    applicable_to: List[str] = Field(default_factory=list, alias="applicableTo")

    def applies_to(self, node_type: str) -> bool:
        return not self.applicable_to or node_type in self.applicable_to


class Theme(BaseModel):
    """Named bundle of document style defaults, page settings and presets."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: Optional[str] = None
    name: str = ""
    document_styles: Dict[str, Any] = Field(default_factory=dict, alias="documentStyles")
    page_settings: Optional[PageSettings] = Field(None, alias="pageSettings")
    block_style_presets: Dict[str, BlockStylePreset] = Field(default_factory=dict, alias="blockStylePresets")


EMPTY_THEME = Theme(name="default")
