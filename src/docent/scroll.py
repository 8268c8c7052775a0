"""Per-pane scroll offsets clamped against known content extents."""

from dataclasses import dataclass, replace

from .layout import Pane


@dataclass
class PaneExtent:
    """Content and viewport size of one pane plus its scroll offsets."""

    content_height: int = 0
    content_width: int = 0
    viewport_height: int = 0
    viewport_width: int = 0
    scroll_x: int = 0
    scroll_y: int = 0

    @property
    def max_scroll_y(self) -> int:
        return max(0, self.content_height - self.viewport_height)

    @property
    def max_scroll_x(self) -> int:
        return max(0, self.content_width - self.viewport_width)

    @property
    def at_bottom(self) -> bool:
        return self.scroll_y >= self.max_scroll_y

    def clamp(self) -> None:
        self.scroll_y = min(max(self.scroll_y, 0), self.max_scroll_y)
        self.scroll_x = min(max(self.scroll_x, 0), self.max_scroll_x)


class ScrollEngine:
    """Scroll arithmetic for every pane.

    Offsets are re-clamped whenever content or viewport sizes change, so they
    never point past the content.
    """

    def __init__(self) -> None:
        self._extents: dict[Pane, PaneExtent] = {pane: PaneExtent() for pane in Pane}

    def extent(self, pane: Pane) -> PaneExtent:
        return self._extents[pane]

    def set_content(self, pane: Pane, height: int, width: int = 0, follow_tail: bool = False) -> None:
        """Update content size; with ``follow_tail`` a pane at its bottom stays there."""
        ext = self._extents[pane]
        was_at_bottom = ext.at_bottom
        ext.content_height = max(0, height)
        ext.content_width = max(0, width)
        if follow_tail and was_at_bottom:
            ext.scroll_y = ext.max_scroll_y
        ext.clamp()

    def set_viewport(self, pane: Pane, height: int, width: int) -> None:
        ext = self._extents[pane]
        ext.viewport_height = max(0, height)
        ext.viewport_width = max(0, width)
        ext.clamp()

    def scroll_by(self, pane: Pane, delta_lines: int) -> None:
        ext = self._extents[pane]
        ext.scroll_y += delta_lines
        ext.clamp()

    def scroll_x_by(self, pane: Pane, delta_cols: int) -> None:
        ext = self._extents[pane]
        ext.scroll_x += delta_cols
        ext.clamp()

    def scroll_half_page(self, pane: Pane, direction: int) -> None:
        """Scroll half a viewport (at least one line) up (-1) or down (+1)."""
        step = max(1, self._extents[pane].viewport_height // 2)
        self.scroll_by(pane, step if direction > 0 else -step)

    def scroll_to_top(self, pane: Pane) -> None:
        self._extents[pane].scroll_y = 0

    def scroll_to_bottom(self, pane: Pane) -> None:
        ext = self._extents[pane]
        ext.scroll_y = ext.max_scroll_y

    def reset(self, pane: Pane) -> None:
        ext = self._extents[pane]
        ext.scroll_x = 0
        ext.scroll_y = 0

    def ensure_visible(self, pane: Pane, line: int) -> None:
        """Scroll the minimum amount needed to bring ``line`` into view."""
        ext = self._extents[pane]
        if line < ext.scroll_y:
            ext.scroll_y = line
        elif ext.viewport_height and line >= ext.scroll_y + ext.viewport_height:
            ext.scroll_y = line - ext.viewport_height + 1
        ext.clamp()

    def snapshot(self) -> dict[Pane, PaneExtent]:
        return {pane: replace(ext) for pane, ext in self._extents.items()}

    def restore(self, snapshot: dict[Pane, PaneExtent]) -> None:
        """Restore offsets from a snapshot, re-clamped to current extents."""
        for pane, saved in snapshot.items():
            ext = self._extents[pane]
            ext.scroll_x = saved.scroll_x
            ext.scroll_y = saved.scroll_y
            ext.clamp()
