# billify/domain/canvas.py
from enum import Enum
from typing import Callable, Optional, Tuple

from billify.delivery.schemas.layout import (
    MIN_COMPONENT_HEIGHT,
    MIN_COMPONENT_WIDTH,
    PlacedComponent,
    Position,
    TemplateLayout,
)
from billify.domain.geometry import DEFAULT_GRID_SIZE, screen_to_layout, snap

# Square handle at the bottom-right corner of the selected component
RESIZE_HANDLE_SIZE = 12


class Gesture(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    RESIZING = "resizing"


class CanvasController:
    """Turns pointer input into selection, move and resize requests.

    The controller never touches the layout itself: it reads it through
    ``get_layout`` and reports intent through the ``on_select``,
    ``on_update`` and ``on_drop`` callbacks owned by the document controller.
    """

    def __init__(
        self,
        get_layout: Callable[[], Optional[TemplateLayout]],
        get_selected_id: Callable[[], Optional[str]],
        on_select: Callable[[Optional[str]], None],
        on_update: Callable[..., object],
        on_drop: Callable[[str, Position], object],
        grid_size: float = DEFAULT_GRID_SIZE,
    ):
        self._get_layout = get_layout
        self._get_selected_id = get_selected_id
        self._on_select = on_select
        self._on_update = on_update
        self._on_drop = on_drop

        self.grid_size = grid_size
        self.grid_snap = True
        self.show_grid = True
        self.zoom = 100.0

        self.state = Gesture.IDLE
        self.active_id: Optional[str] = None
        self.gesture_id = 0
        self._drag_offset = (0.0, 0.0)
        self._resize_origin = (0.0, 0.0)
        self._resize_start_size = (0.0, 0.0)

    # --- coordinate helpers ---
    def set_zoom(self, zoom: float) -> None:
        if zoom <= 0:
            raise ValueError("zoom must be positive")
        self.zoom = float(zoom)

    def to_layout(self, screen_x: float, screen_y: float) -> Tuple[float, float]:
        return screen_to_layout(screen_x, self.zoom), screen_to_layout(screen_y, self.zoom)

    def snap(self, value: float) -> float:
        return snap(value, self.grid_size, self.grid_snap)

    # --- hit testing ---
    def _on_handle(self, component: PlacedComponent, x: float, y: float) -> bool:
        right = component.position.x + component.size.width
        bottom = component.position.y + component.size.height
        return right - RESIZE_HANDLE_SIZE <= x <= right and bottom - RESIZE_HANDLE_SIZE <= y <= bottom

    def hit_test(self, x: float, y: float) -> Tuple[Optional[PlacedComponent], bool]:
        layout = self._get_layout()
        if layout is None:
            return None, False

        selected_id = self._get_selected_id()
        if selected_id:
            selected = layout.find(selected_id)
            if selected and selected.visible and not selected.locked and self._on_handle(selected, x, y):
                return selected, True

        # Topmost first: later components paint over earlier ones
        for component in reversed(layout.components):
            if component.visible and component.contains(x, y):
                return component, False
        return None, False

    # --- gestures ---
    def pointer_down(self, screen_x: float, screen_y: float) -> Gesture:
        if self.state is not Gesture.IDLE:
            self.pointer_up()

        x, y = self.to_layout(screen_x, screen_y)
        component, on_handle = self.hit_test(x, y)

        if component is None:
            self._on_select(None)
            return self.state

        self.gesture_id += 1
        if on_handle:
            self.state = Gesture.RESIZING
            self.active_id = component.id
            self._resize_origin = (x, y)
            self._resize_start_size = (component.size.width, component.size.height)
            return self.state

        self._on_select(component.id)
        if component.locked:
            return self.state

        self.state = Gesture.DRAGGING
        self.active_id = component.id
        # Keep the grab point under the cursor
        self._drag_offset = (x - component.position.x, y - component.position.y)
        return self.state

    def pointer_move(self, screen_x: float, screen_y: float) -> Optional[dict]:
        if self.state is Gesture.IDLE:
            return None

        layout = self._get_layout()
        if layout is None or layout.find(self.active_id) is None:
            self.pointer_up()
            return None

        x, y = self.to_layout(screen_x, screen_y)

        if self.state is Gesture.DRAGGING:
            new_x = self.snap(x - self._drag_offset[0])
            new_y = self.snap(y - self._drag_offset[1])
            update = {"position": {"x": max(0, new_x), "y": max(0, new_y)}}
        else:
            delta_x = x - self._resize_origin[0]
            delta_y = y - self._resize_origin[1]
            start_width, start_height = self._resize_start_size
            width = self.snap(max(MIN_COMPONENT_WIDTH, start_width + delta_x))
            height = self.snap(max(MIN_COMPONENT_HEIGHT, start_height + delta_y))
            # Snapping to a coarse grid can land below the minimum
            update = {"size": {
                "width": max(MIN_COMPONENT_WIDTH, width),
                "height": max(MIN_COMPONENT_HEIGHT, height),
            }}

        self._on_update(self.active_id, update, gesture=self.gesture_id)
        return update

    def pointer_up(self) -> Gesture:
        self.state = Gesture.IDLE
        self.active_id = None
        return self.state

    pointer_leave = pointer_up

    def drop(self, component_type: str, screen_x: float, screen_y: float):
        x, y = self.to_layout(screen_x, screen_y)
        position = Position(x=max(0, self.snap(x)), y=max(0, self.snap(y)))
        return self._on_drop(component_type, position)
