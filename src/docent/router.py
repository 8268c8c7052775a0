"""Pane focus and mouse routing."""

from dataclasses import dataclass
from enum import Enum

from .actions import (
    Action,
    BeginResize,
    Direction,
    EndResize,
    JumpToStep,
    ResizeLayout,
    Scroll,
    SetFocus,
)
from .layout import Divider, LayoutEngine, Pane

WHEEL_LINES = 3

_CYCLE = (Pane.MINIMAP, Pane.CHAT, Pane.DIFF)

# Ctrl+h/j/k/l neighbours. The left column stacks minimap over chat; the diff
# viewer takes the right column.
_NEIGHBORS: dict[Pane, dict[Direction, Pane]] = {
    Pane.MINIMAP: {Direction.DOWN: Pane.CHAT, Direction.RIGHT: Pane.DIFF},
    Pane.CHAT: {Direction.UP: Pane.MINIMAP, Direction.RIGHT: Pane.DIFF},
    Pane.DIFF: {Direction.LEFT: Pane.CHAT},
}


class MouseKind(Enum):
    DOWN = "down"
    MOVE = "move"
    UP = "up"
    SCROLL_UP = "scroll_up"
    SCROLL_DOWN = "scroll_down"


@dataclass(frozen=True)
class MouseEvent:
    """A mouse event in terminal cell coordinates."""

    kind: MouseKind
    x: int
    y: int


class PaneRouter:
    """Tracks the focused pane and turns mouse events into actions.

    Click resolution always uses the rectangles of the current frame from
    the layout engine.
    """

    def __init__(self, layout: LayoutEngine, active: Pane = Pane.MINIMAP) -> None:
        self.layout = layout
        self.active_pane = active
        # Pointer offset from the grabbed divider, kept for the whole drag
        self._grab_offset: tuple[int, int] | None = None

    def cycle_forward(self) -> Pane:
        i = _CYCLE.index(self.active_pane)
        self.active_pane = _CYCLE[(i + 1) % len(_CYCLE)]
        return self.active_pane

    def cycle_backward(self) -> Pane:
        i = _CYCLE.index(self.active_pane)
        self.active_pane = _CYCLE[(i - 1) % len(_CYCLE)]
        return self.active_pane

    def set_active(self, pane: Pane) -> None:
        self.active_pane = pane

    def neighbor(self, direction: Direction) -> Pane:
        """Pane adjacent to the active one, or the active pane at an edge."""
        return _NEIGHBORS[self.active_pane].get(direction, self.active_pane)

    def accepts_chat_input(self) -> bool:
        return self.active_pane is Pane.CHAT

    def resolve_click(self, x: int, y: int) -> Pane | None:
        frame = self.layout.frame
        for pane in _CYCLE:
            if frame.pane_rect(pane).contains(x, y):
                return pane
        return None

    @property
    def dragging(self) -> bool:
        return self._grab_offset is not None

    def route_mouse(
        self, event: MouseEvent, minimap_scroll_y: int = 0, step_count: int | None = None
    ) -> list[Action]:
        """Translate one mouse event into actions. Never consults the input mode.

        A minimap click below the last step only moves focus.
        """
        if event.kind is MouseKind.SCROLL_UP or event.kind is MouseKind.SCROLL_DOWN:
            pane = self.resolve_click(event.x, event.y)
            if pane is None:
                return []
            delta = -WHEEL_LINES if event.kind is MouseKind.SCROLL_UP else WHEEL_LINES
            return [Scroll(delta=delta, pane=pane)]

        if event.kind is MouseKind.DOWN:
            divider = self.layout.divider_at(event.x, event.y)
            if divider is not None:
                frame = self.layout.frame
                self._grab_offset = (event.x - frame.minimap.width, event.y - frame.minimap.height)
                return [BeginResize(divider)]
            pane = self.resolve_click(event.x, event.y)
            if pane is None:
                return []
            actions: list[Action] = [SetFocus(pane)]
            if pane is Pane.MINIMAP:
                index = self._minimap_row(event.y, minimap_scroll_y)
                if index is not None and (step_count is None or index < step_count):
                    actions.append(JumpToStep(index))
            return actions

        if event.kind is MouseKind.MOVE:
            if self._grab_offset is None or self.layout.dragging is None:
                return []
            # Measured from where the divider is now, so a clamped divider
            # picks the pointer up again once it comes back in range
            offset_x, offset_y = self._grab_offset
            frame = self.layout.frame
            if self.layout.dragging is Divider.VERTICAL:
                delta = event.x - offset_x - frame.minimap.width
            else:
                delta = event.y - offset_y - frame.minimap.height
            if delta == 0:
                return []
            return [ResizeLayout(delta)]

        # MouseKind.UP
        if self._grab_offset is not None:
            self._grab_offset = None
            return [EndResize()]
        return []

    def _minimap_row(self, y: int, scroll_y: int) -> int | None:
        """Content row under ``y`` inside the minimap border, if any."""
        inner = self.layout.frame.minimap.inner()
        if not inner.y <= y < inner.bottom:
            return None
        return y - inner.y + scroll_y
