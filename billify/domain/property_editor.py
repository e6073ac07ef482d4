# billify/domain/property_editor.py
import re
from typing import TYPE_CHECKING, Dict, Optional

from billify.delivery.schemas.layout import (
    MIN_COMPONENT_HEIGHT,
    MIN_COMPONENT_WIDTH,
    STYLE_KEYS,
    PlacedComponent,
)
from billify.domain import component_registry
from billify.domain.errors import InvalidInputError

if TYPE_CHECKING:
    from billify.domain.template_editor import TemplateEditor

DEFAULT_FONT_SIZE = 12
_PX = re.compile(r"^\s*(\d+(?:\.\d+)?)")


class PropertyEditor:
    """Edits the selected component through the editor's single update path."""

    def __init__(self, editor: "TemplateEditor"):
        self._editor = editor

    def _selected(self) -> PlacedComponent:
        component = self._editor.selected_component
        if component is None:
            raise InvalidInputError("No component selected")
        return component

    def _require(self, component: PlacedComponent, attribute: str) -> None:
        definition = component_registry.find_definition(component.type)
        if definition is None or not getattr(definition.configurable, attribute):
            raise InvalidInputError(f"{attribute} is not editable for {component.type}")

    def editable_fields(self) -> Optional[Dict[str, bool]]:
        component = self._editor.selected_component
        if component is None:
            return None
        definition = component_registry.find_definition(component.type)
        if definition is None:
            return {"content": False, "style": False, "size": False, "position": False}
        return definition.configurable.model_dump()

    def font_size(self) -> int:
        component = self._selected()
        match = _PX.match(component.style.get("fontSize", ""))
        return int(float(match.group(1))) if match else DEFAULT_FONT_SIZE

    # --- edits ---
    def set_content(self, content: str) -> PlacedComponent:
        component = self._selected()
        self._require(component, "content")
        return self._editor.update_component(component.id, {"content": content})

    def set_style(self, **style: str) -> PlacedComponent:
        component = self._selected()
        self._require(component, "style")
        unknown = set(style) - STYLE_KEYS
        if unknown:
            raise InvalidInputError(f"Unknown style attributes: {', '.join(sorted(unknown))}")
        return self._editor.update_component(component.id, {"style": style})

    def set_font_size(self, size: int) -> PlacedComponent:
        return self.set_style(fontSize=f"{max(1, int(size))}px")

    def set_position(self, x: Optional[float] = None, y: Optional[float] = None) -> PlacedComponent:
        component = self._selected()
        self._require(component, "position")
        position = {}
        if x is not None:
            position["x"] = max(0, x)
        if y is not None:
            position["y"] = max(0, y)
        return self._editor.update_component(component.id, {"position": position})

    def set_size(self, width: Optional[float] = None, height: Optional[float] = None) -> PlacedComponent:
        component = self._selected()
        self._require(component, "size")
        size = {}
        if width is not None:
            size["width"] = max(MIN_COMPONENT_WIDTH, width)
        if height is not None:
            size["height"] = max(MIN_COMPONENT_HEIGHT, height)
        return self._editor.update_component(component.id, {"size": size})

    def toggle_lock(self) -> PlacedComponent:
        component = self._selected()
        return self._editor.update_component(component.id, {"locked": not component.locked})

    def toggle_visibility(self) -> PlacedComponent:
        component = self._selected()
        return self._editor.update_component(component.id, {"visible": not component.visible})

    def delete(self) -> None:
        component = self._selected()
        self._editor.delete_component(component.id)

    def apply(self, changes: dict) -> PlacedComponent:
        """Apply a partial property-panel payload (content, style, position, size, label, flags)."""
        component = self._selected()
        updates = {}

        if changes.get("content") is not None:
            self._require(component, "content")
            updates["content"] = changes["content"]
        if changes.get("style"):
            self._require(component, "style")
            unknown = set(changes["style"]) - STYLE_KEYS
            if unknown:
                raise InvalidInputError(f"Unknown style attributes: {', '.join(sorted(unknown))}")
            updates["style"] = dict(changes["style"])
        if changes.get("position"):
            self._require(component, "position")
            updates["position"] = {k: max(0, v) for k, v in changes["position"].items() if v is not None}
        if changes.get("size"):
            self._require(component, "size")
            size = {}
            if changes["size"].get("width") is not None:
                size["width"] = max(MIN_COMPONENT_WIDTH, changes["size"]["width"])
            if changes["size"].get("height") is not None:
                size["height"] = max(MIN_COMPONENT_HEIGHT, changes["size"]["height"])
            updates["size"] = size
        for flag in ("label", "locked", "visible"):
            if changes.get(flag) is not None:
                updates[flag] = changes[flag]

        if not updates:
            return component
        # One payload, one history entry
        return self._editor.update_component(component.id, updates)
