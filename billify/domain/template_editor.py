# billify/domain/template_editor.py
import logging
from typing import Optional

from pydantic import ValidationError

from billify.delivery.schemas.layout import PlacedComponent, Position, TemplateLayout
from billify.domain import component_registry
from billify.domain.canvas import CanvasController
from billify.domain.errors import InvalidInputError, NotFoundError
from billify.domain.geometry import DEFAULT_GRID_SIZE
from billify.domain.history import HistoryStack
from billify.domain.property_editor import PropertyEditor

logger = logging.getLogger(__name__)

# Nested objects merged key-wise on update
_MERGED_FIELDS = ("style", "position", "size")
_UPDATABLE_FIELDS = frozenset({"label", "content", "locked", "visible", *_MERGED_FIELDS})


class TemplateEditor:
    """Document controller for one template-builder session.

    The history stack holds the current layout; every mutation goes through
    ``add_component``, ``update_component``, ``delete_component`` or
    ``replace_layout`` and is recorded exactly once. Consecutive updates that
    share a gesture id (one drag or one resize) fold into a single entry.
    """

    def __init__(self, history_limit: Optional[int] = None, grid_size: float = DEFAULT_GRID_SIZE):
        self.history = HistoryStack(max_entries=history_limit)
        self.selected_id: Optional[str] = None
        self._last_gesture: Optional[int] = None

        self.canvas = CanvasController(
            get_layout=lambda: self.layout,
            get_selected_id=lambda: self.selected_id,
            on_select=self.select,
            on_update=self.update_component,
            on_drop=self.add_component_at,
            grid_size=grid_size,
        )
        self.properties = PropertyEditor(self)

    # --- state ---
    @property
    def layout(self) -> Optional[TemplateLayout]:
        return self.history.current

    @property
    def selected_component(self) -> Optional[PlacedComponent]:
        if self.layout is None or self.selected_id is None:
            return None
        return self.layout.find(self.selected_id)

    def _require_layout(self) -> TemplateLayout:
        if self.layout is None:
            raise InvalidInputError("No template is open")
        return self.layout

    def _commit(self, layout: TemplateLayout, gesture: Optional[int] = None) -> TemplateLayout:
        if gesture is not None and gesture == self._last_gesture:
            self.history.amend(layout)
        else:
            self.history.record(layout)
        self._last_gesture = gesture
        return self.history.current

    # --- template lifecycle ---
    def new_template(self, name: str, description: str = "") -> TemplateLayout:
        layout = component_registry.create_blank_template(name, description)
        return self.replace_layout(layout)

    def replace_layout(self, layout: TemplateLayout) -> TemplateLayout:
        self.selected_id = None
        self.canvas.pointer_up()
        logger.info(f"Loaded template '{layout.name}' ({layout.id}) with {len(layout.components)} components")
        return self._commit(layout)

    # --- component mutations ---
    def add_component(self, component: PlacedComponent) -> PlacedComponent:
        layout = self._require_layout().model_copy(deep=True)
        if layout.find(component.id) is not None:
            raise InvalidInputError(f"Component id '{component.id}' already in use")
        layout.components.append(component.model_copy(deep=True))
        self._commit(layout)
        return self.layout.find(component.id)

    def add_component_at(self, component_type: str, position: Position) -> PlacedComponent:
        self._require_layout()
        component = component_registry.create_component(component_type, position)
        return self.add_component(component)

    def update_component(self, component_id: str, updates: dict, gesture: Optional[int] = None) -> PlacedComponent:
        layout = self._require_layout().model_copy(deep=True)

        unknown = set(updates) - _UPDATABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        for index, component in enumerate(layout.components):
            if component.id != component_id:
                continue
            merged = component.model_dump()
            for key, value in updates.items():
                if key in _MERGED_FIELDS and value is not None:
                    merged[key] = {**merged[key], **value}
                else:
                    merged[key] = value
            try:
                layout.components[index] = PlacedComponent.model_validate(merged)
            except ValidationError as e:
                raise InvalidInputError(f"Invalid update for component {component_id}: {e}") from e
            break
        else:
            raise NotFoundError(f"Component {component_id} not found")

        self._commit(layout, gesture)
        return self.layout.find(component_id)

    def delete_component(self, component_id: str) -> None:
        layout = self._require_layout().model_copy(deep=True)
        remaining = [c for c in layout.components if c.id != component_id]
        if len(remaining) == len(layout.components):
            raise NotFoundError(f"Component {component_id} not found")
        layout.components = remaining
        if self.selected_id == component_id:
            self.selected_id = None
        self._commit(layout)

    # --- selection ---
    def select(self, component_id: Optional[str]) -> Optional[PlacedComponent]:
        if component_id is None:
            self.selected_id = None
            return None
        layout = self._require_layout()
        if layout.find(component_id) is None:
            raise NotFoundError(f"Component {component_id} not found")
        self.selected_id = component_id
        return self.selected_component

    # --- history ---
    def _after_travel(self) -> Optional[TemplateLayout]:
        self._last_gesture = None
        self.canvas.pointer_up()
        if self.selected_id and self.layout.find(self.selected_id) is None:
            self.selected_id = None
        return self.layout

    def undo(self) -> Optional[TemplateLayout]:
        if self.history.undo() is None:
            return None
        return self._after_travel()

    def redo(self) -> Optional[TemplateLayout]:
        if self.history.redo() is None:
            return None
        return self._after_travel()

    def snapshot(self) -> dict:
        return {
            "layout": self.layout.to_blob() if self.layout else None,
            "selected_id": self.selected_id,
            "gesture": self.canvas.state.value,
            "zoom": self.canvas.zoom,
            "grid_snap": self.canvas.grid_snap,
            "show_grid": self.canvas.show_grid,
            "can_undo": self.history.can_undo(),
            "can_redo": self.history.can_redo(),
            "history_length": len(self.history),
            "history_index": self.history.index,
        }
