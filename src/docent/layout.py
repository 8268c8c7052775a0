"""Pane geometry: rectangles from terminal size and two split ratios."""

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

HELP_BAR_HEIGHT = 1
DIVIDER_HIT_ZONE = 1  # Cells on each side of a divider that start a drag
MIN_TERMINAL_WIDTH = 2
MIN_TERMINAL_HEIGHT = HELP_BAR_HEIGHT + 2

DEFAULT_VERTICAL_SPLIT = 0.5
DEFAULT_HORIZONTAL_SPLIT = 0.4
DEFAULT_MIN_FRACTION = 0.15
DEFAULT_MAX_FRACTION = 0.85


class Pane(Enum):
    """A focusable region of the screen."""
    MINIMAP = "minimap"
    CHAT = "chat"
    DIFF = "diff"


class Divider(Enum):
    VERTICAL = "vertical"  # Between the left column and the diff viewer
    HORIZONTAL = "horizontal"  # Between the minimap and the chat


@dataclass(frozen=True)
class Rect:
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def contains(self, x: int, y: int) -> bool:
        return self.x <= x < self.right and self.y <= y < self.bottom

    def inner(self, border: int = 1) -> "Rect":
        """Area inside a border, never negative."""
        return Rect(
            x=self.x + border,
            y=self.y + border,
            width=max(0, self.width - 2 * border),
            height=max(0, self.height - 2 * border),
        )


@dataclass(frozen=True)
class Frame:
    """Rectangles for one terminal frame."""

    minimap: Rect
    chat: Rect
    diff: Rect
    help_bar: Rect
    vertical_divider: Rect  # Hit region
    horizontal_divider: Rect  # Hit region
    zoomed: Pane | None = None

    def pane_rect(self, pane: Pane) -> Rect:
        if pane is Pane.MINIMAP:
            return self.minimap
        if pane is Pane.CHAT:
            return self.chat
        return self.diff


class LayoutEngine:
    """Computes pane rectangles and owns the two adjustable split ratios.

    Ratios are resolution independent: a terminal resize recomputes the
    rectangles from unchanged ratios. Every pane is at least one cell in each
    dimension.
    """

    def __init__(
        self,
        width: int = 80,
        height: int = 24,
        vertical_split: float = DEFAULT_VERTICAL_SPLIT,
        horizontal_split: float = DEFAULT_HORIZONTAL_SPLIT,
        min_fraction: float = DEFAULT_MIN_FRACTION,
        max_fraction: float = DEFAULT_MAX_FRACTION,
    ) -> None:
        if not 0.0 < min_fraction <= max_fraction < 1.0:
            raise ValueError(
                f"fraction bounds must satisfy 0 < min <= max < 1, got [{min_fraction}, {max_fraction}]"
            )
        self.min_fraction = min_fraction
        self.max_fraction = max_fraction
        self._width = max(width, MIN_TERMINAL_WIDTH)
        self._height = max(height, MIN_TERMINAL_HEIGHT)
        self._vertical_split = self._clamp(vertical_split)
        self._horizontal_split = self._clamp(horizontal_split)
        self._dragging: Divider | None = None
        self._zoomed: Pane | None = None
        self._frame = self._compute()

    @property
    def vertical_split(self) -> float:
        return self._vertical_split

    @property
    def horizontal_split(self) -> float:
        return self._horizontal_split

    @property
    def size(self) -> tuple[int, int]:
        return self._width, self._height

    @property
    def frame(self) -> Frame:
        return self._frame

    @property
    def dragging(self) -> Divider | None:
        return self._dragging

    @property
    def zoomed(self) -> Pane | None:
        return self._zoomed

    def _clamp(self, value: float) -> float:
        return min(max(value, self.min_fraction), self.max_fraction)

    def resize(self, width: int, height: int) -> Frame:
        """Recompute rectangles for a new terminal size."""
        self._width = max(width, MIN_TERMINAL_WIDTH)
        self._height = max(height, MIN_TERMINAL_HEIGHT)
        self._frame = self._compute()
        return self._frame

    def set_vertical_split(self, value: float) -> None:
        self._vertical_split = self._clamp(value)
        self._frame = self._compute()

    def set_horizontal_split(self, value: float) -> None:
        self._horizontal_split = self._clamp(value)
        self._frame = self._compute()

    def begin_drag(self, divider: Divider) -> None:
        self._dragging = divider

    def update_drag(self, delta: int) -> None:
        """Move the dragged divider by ``delta`` cells, stopping at the bounds."""
        if self._dragging is None or self._zoomed is not None:
            return
        content_height = self._height - HELP_BAR_HEIGHT
        # Measured from the divider's cell so rounding never drifts
        if self._dragging is Divider.VERTICAL:
            self.set_vertical_split((self._frame.minimap.width + delta) / self._width)
        else:
            self.set_horizontal_split((self._frame.minimap.height + delta) / content_height)
        logger.debug(
            f"Drag {self._dragging.value}: vertical={self._vertical_split:.3f} "
            f"horizontal={self._horizontal_split:.3f}"
        )

    def end_drag(self) -> None:
        self._dragging = None

    def toggle_zoom(self, pane: Pane) -> None:
        """Show ``pane`` full screen, or return to the split layout."""
        self._zoomed = None if self._zoomed is not None else pane
        self._frame = self._compute()

    def divider_at(self, x: int, y: int) -> Divider | None:
        """Divider whose hit region contains (x, y); vertical wins ties."""
        if self._zoomed is not None:
            return None
        if self._frame.vertical_divider.contains(x, y):
            return Divider.VERTICAL
        if self._frame.horizontal_divider.contains(x, y):
            return Divider.HORIZONTAL
        return None

    def _compute(self) -> Frame:
        width, height = self._width, self._height
        content_height = height - HELP_BAR_HEIGHT
        help_bar = Rect(0, content_height, width, HELP_BAR_HEIGHT)

        if self._zoomed is not None:
            full = Rect(0, 0, width, content_height)
            empty = Rect(0, 0, 0, 0)
            rects = {pane: (full if pane is self._zoomed else empty) for pane in Pane}
            return Frame(
                minimap=rects[Pane.MINIMAP],
                chat=rects[Pane.CHAT],
                diff=rects[Pane.DIFF],
                help_bar=help_bar,
                vertical_divider=empty,
                horizontal_divider=empty,
                zoomed=self._zoomed,
            )

        left_width = min(max(round(width * self._vertical_split), 1), width - 1)
        minimap_height = min(max(round(content_height * self._horizontal_split), 1), content_height - 1)

        minimap = Rect(0, 0, left_width, minimap_height)
        chat = Rect(0, minimap_height, left_width, content_height - minimap_height)
        diff = Rect(left_width, 0, width - left_width, content_height)

        hit_left = max(0, left_width - DIVIDER_HIT_ZONE)
        vertical_divider = Rect(
            hit_left, 0, min(width, left_width + DIVIDER_HIT_ZONE) - hit_left, content_height
        )
        hit_top = max(0, minimap_height - DIVIDER_HIT_ZONE)
        horizontal_divider = Rect(
            0, hit_top, left_width, min(content_height, minimap_height + DIVIDER_HIT_ZONE) - hit_top
        )
        return Frame(
            minimap=minimap,
            chat=chat,
            diff=diff,
            help_bar=help_bar,
            vertical_divider=vertical_divider,
            horizontal_divider=horizontal_divider,
        )
