"""
Normalized node/slot template graph.

A graph is a tree rooted at `root`: nodes own ordered slots, slots own
ordered child node ids. Graphs are read-only inputs to the renderer.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from modules.generation.core.exceptions import RenderFailureException
from modules.generation.model.theme import PageSettings


class Node(BaseModel):
    """One layout element (text, container, loop, ...)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    type: str
    slot_ids: List[str] = Field(default_factory=list, alias="slotIds")
    styles: Dict[str, Any] = Field(default_factory=dict)
    style_preset: Optional[str] = Field(None, alias="stylePreset")
    props: Dict[str, Any] = Field(default_factory=dict)


class Slot(BaseModel):
    """Named, ordered list of child nodes owned by one node."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    name: str
    node_id: str = Field(..., alias="nodeId")
    child_node_ids: List[str] = Field(default_factory=list, alias="childNodeIds")


class ThemeRefOverride(BaseModel):
    """Explicit theme selection for a template version"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    theme_id: str = Field(..., alias="themeId")


class TemplateGraph(BaseModel):
    """
    Template layout graph plus version-level presentation overrides.

    theme_ref is "inherit" (template/tenant default theme) or an explicit
    ThemeRefOverride.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    root: str
    nodes: Dict[str, Node]
    slots: Dict[str, Slot] = Field(default_factory=dict)
    theme_ref: Union[ThemeRefOverride, str] = Field("inherit", alias="themeRef")
    document_styles_override: Dict[str, Any] = Field(default_factory=dict, alias="documentStylesOverride")
    page_settings_override: Optional[PageSettings] = Field(None, alias="pageSettingsOverride")

    @model_validator(mode="after")
    def _check_tree(self) -> "TemplateGraph":
        if self.root not in self.nodes:
            raise ValueError(f"root node '{self.root}' is not defined")
        if isinstance(self.theme_ref, str) and self.theme_ref != "inherit":
            raise ValueError(f"themeRef must be 'inherit' or an override, got '{self.theme_ref}'")

        parent_slot: Dict[str, str] = {}
        for slot_id, slot in self.slots.items():
            if slot.node_id not in self.nodes:
                raise ValueError(f"slot '{slot_id}' belongs to unknown node '{slot.node_id}'")
            for child_id in slot.child_node_ids:
                if child_id not in self.nodes:
                    raise ValueError(f"slot '{slot_id}' references unknown node '{child_id}'")
                if child_id in parent_slot:
                    raise ValueError(
                        f"node '{child_id}' appears under slots '{parent_slot[child_id]}' and '{slot_id}'"
                    )
                if child_id == self.root:
                    raise ValueError(f"root node '{self.root}' cannot be a child")
                parent_slot[child_id] = slot_id

        # Walk from root; revisiting a node means a cycle
        visited = set()
        stack = [self.root]
        while stack:
            node_id = stack.pop()
            if node_id in visited:
                raise ValueError(f"cycle detected at node '{node_id}'")
            visited.add(node_id)
            for slot_id in self.nodes[node_id].slot_ids:
                slot = self.slots.get(slot_id)
                if slot is not None:
                    stack.extend(slot.child_node_ids)
        return self

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TemplateGraph":
        """
        Parse a stored template document.

        Raises:
            RenderFailureException: If the document is not a valid graph
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise RenderFailureException(f"Invalid template graph: {e}") from e

    @property
    def theme_id(self) -> Optional[str]:
        if isinstance(self.theme_ref, ThemeRefOverride):
            return self.theme_ref.theme_id
        return None

    def get_node(self, node_id: str) -> Optional[Node]:
        return self.nodes.get(node_id)

    def node_slots(self, node: Node) -> List[Slot]:
        """Slots of a node in declared order, skipping dangling ids"""
        return [self.slots[slot_id] for slot_id in node.slot_ids if slot_id in self.slots]

    def slot_by_name(self, node: Node, name: str) -> Optional[Slot]:
        for slot in self.node_slots(node):
            if slot.name == name:
                return slot
        return None

    def children(self, slot: Slot) -> List[Node]:
        return [self.nodes[child_id] for child_id in slot.child_node_ids if child_id in self.nodes]
