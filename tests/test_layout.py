"""Tests for pane geometry, divider dragging and mouse routing."""

import pytest

from docent.actions import (
    BeginResize,
    Direction,
    EndResize,
    JumpToStep,
    ResizeLayout,
    Scroll,
    SetFocus,
)
from docent.layout import Divider, LayoutEngine, Pane, Rect
from docent.router import WHEEL_LINES, MouseEvent, MouseKind, PaneRouter


def _make_router(width: int = 80, height: int = 24) -> PaneRouter:
    return PaneRouter(LayoutEngine(width, height))


def _down(x: int, y: int) -> MouseEvent:
    return MouseEvent(MouseKind.DOWN, x, y)


def _drag_to(router: PaneRouter, x: int, y: int) -> list:
    """Route a pointer move and apply any resize, as the session does."""
    actions = router.route_mouse(MouseEvent(MouseKind.MOVE, x, y))
    for action in actions:
        router.layout.update_drag(action.delta)
    return actions


class TestRect:
    def test_contains_is_half_open(self):
        rect = Rect(2, 3, 4, 5)
        assert rect.contains(2, 3)
        assert not rect.contains(6, 3)
        assert not rect.contains(2, 8)

    def test_inner_never_negative(self):
        assert Rect(0, 0, 1, 1).inner() == Rect(1, 1, 0, 0)


class TestFrame:
    def test_default_split(self):
        frame = LayoutEngine(80, 24).frame
        assert frame.minimap == Rect(0, 0, 40, 9)
        assert frame.chat == Rect(0, 9, 40, 14)
        assert frame.diff == Rect(40, 0, 40, 23)
        assert frame.help_bar == Rect(0, 23, 80, 1)

    def test_panes_tile_the_content_area(self):
        frame = LayoutEngine(123, 41, vertical_split=0.3, horizontal_split=0.7).frame
        area = sum(r.width * r.height for r in (frame.minimap, frame.chat, frame.diff))
        assert area == 123 * 40

    @pytest.mark.parametrize("width, height", [(0, 0), (1, 1), (2, 3), (5, 4)])
    def test_tiny_terminals_keep_every_pane(self, width, height):
        frame = LayoutEngine(width, height).frame
        for rect in (frame.minimap, frame.chat, frame.diff):
            assert rect.width >= 1
            assert rect.height >= 1

    def test_resize_keeps_ratios(self):
        layout = LayoutEngine(80, 24, vertical_split=0.25)
        layout.resize(200, 50)
        assert layout.vertical_split == 0.25
        assert layout.frame.minimap.width == 50

    def test_split_clamped_at_construction(self):
        layout = LayoutEngine(vertical_split=0.99, horizontal_split=0.01)
        assert layout.vertical_split == 0.85
        assert layout.horizontal_split == 0.15

    def test_invalid_bounds_rejected(self):
        with pytest.raises(ValueError):
            LayoutEngine(min_fraction=0.9, max_fraction=0.1)


class TestDrag:
    def test_drag_moves_vertical_split(self):
        layout = LayoutEngine(80, 24)
        layout.begin_drag(Divider.VERTICAL)
        layout.update_drag(8)
        assert layout.vertical_split == pytest.approx(0.6)

    def test_drag_stops_at_bounds(self):
        layout = LayoutEngine(80, 24)
        layout.begin_drag(Divider.HORIZONTAL)
        layout.update_drag(-1000)
        assert layout.horizontal_split == 0.15
        layout.update_drag(1000)
        assert layout.horizontal_split == 0.85

    def test_drag_past_bound_and_back(self):
        layout = LayoutEngine(80, 24)
        layout.begin_drag(Divider.VERTICAL)
        layout.update_drag(100)
        assert layout.frame.minimap.width == 68
        layout.update_drag(-18)
        assert layout.frame.minimap.width == 50

    def test_drag_ignored_while_zoomed(self):
        layout = LayoutEngine(80, 24)
        layout.begin_drag(Divider.VERTICAL)
        layout.toggle_zoom(Pane.DIFF)
        layout.update_drag(8)
        assert layout.vertical_split == 0.5

    def test_update_without_drag_is_noop(self):
        layout = LayoutEngine(80, 24)
        layout.update_drag(10)
        assert layout.vertical_split == 0.5

    def test_divider_hit_regions(self):
        layout = LayoutEngine(80, 24)
        assert layout.divider_at(39, 15) is Divider.VERTICAL
        assert layout.divider_at(10, 8) is Divider.HORIZONTAL
        assert layout.divider_at(10, 3) is None


class TestZoom:
    def test_zoomed_pane_fills_content_area(self):
        layout = LayoutEngine(80, 24)
        layout.toggle_zoom(Pane.DIFF)
        frame = layout.frame
        assert frame.diff == Rect(0, 0, 80, 23)
        assert frame.minimap.width == 0
        assert layout.divider_at(39, 15) is None

    def test_toggle_restores_split(self):
        layout = LayoutEngine(80, 24)
        before = layout.frame
        layout.toggle_zoom(Pane.CHAT)
        layout.toggle_zoom(Pane.CHAT)
        assert layout.frame == before


class TestFocus:
    def test_cycle_forward_and_back(self):
        router = _make_router()
        assert router.active_pane is Pane.MINIMAP
        assert [router.cycle_forward() for _ in range(3)] == [Pane.CHAT, Pane.DIFF, Pane.MINIMAP]
        assert router.cycle_backward() is Pane.DIFF

    def test_neighbors(self):
        router = _make_router()
        assert router.neighbor(Direction.DOWN) is Pane.CHAT
        assert router.neighbor(Direction.LEFT) is Pane.MINIMAP  # edge
        router.set_active(Pane.DIFF)
        assert router.neighbor(Direction.LEFT) is Pane.CHAT

    def test_accepts_chat_input_only_in_chat(self):
        router = _make_router()
        assert not router.accepts_chat_input()
        router.set_active(Pane.CHAT)
        assert router.accepts_chat_input()


class TestMouseRouting:
    def test_click_focuses_pane(self):
        router = _make_router()
        assert router.route_mouse(_down(60, 5)) == [SetFocus(Pane.DIFF)]
        assert router.route_mouse(_down(5, 15)) == [SetFocus(Pane.CHAT)]

    def test_click_minimap_row_jumps(self):
        router = _make_router()
        assert router.route_mouse(_down(5, 3), step_count=5) == [SetFocus(Pane.MINIMAP), JumpToStep(2)]

    def test_minimap_row_accounts_for_scroll(self):
        router = _make_router()
        assert router.route_mouse(_down(5, 1), minimap_scroll_y=4) == [SetFocus(Pane.MINIMAP), JumpToStep(4)]

    def test_click_below_last_step_only_focuses(self):
        router = _make_router()
        assert router.route_mouse(_down(5, 7), step_count=5) == [SetFocus(Pane.MINIMAP)]

    def test_click_on_border_only_focuses(self):
        router = _make_router()
        assert router.route_mouse(_down(5, 0), step_count=5) == [SetFocus(Pane.MINIMAP)]

    def test_click_outside_panes(self):
        router = _make_router()
        assert router.route_mouse(_down(5, 23)) == []

    def test_wheel_scrolls_pane_under_pointer(self):
        router = _make_router()
        assert router.route_mouse(MouseEvent(MouseKind.SCROLL_DOWN, 60, 5)) == [Scroll(WHEEL_LINES, Pane.DIFF)]
        assert router.route_mouse(MouseEvent(MouseKind.SCROLL_UP, 5, 15)) == [Scroll(-WHEEL_LINES, Pane.CHAT)]

    def test_drag_divider(self):
        router = _make_router()
        assert router.route_mouse(_down(39, 15)) == [BeginResize(Divider.VERTICAL)]
        router.layout.begin_drag(Divider.VERTICAL)
        assert router.dragging
        assert _drag_to(router, 49, 15) == [ResizeLayout(10)]
        assert _drag_to(router, 49, 3) == []
        assert _drag_to(router, 45, 3) == [ResizeLayout(-4)]
        assert router.route_mouse(MouseEvent(MouseKind.UP, 45, 3)) == [EndResize()]
        assert not router.dragging

    def test_horizontal_drag_uses_y(self):
        router = _make_router()
        assert router.route_mouse(_down(10, 8)) == [BeginResize(Divider.HORIZONTAL)]
        router.layout.begin_drag(Divider.HORIZONTAL)
        assert router.route_mouse(MouseEvent(MouseKind.MOVE, 30, 11)) == [ResizeLayout(3)]

    def test_divider_follows_pointer_back_from_bound(self):
        router = _make_router()
        router.route_mouse(_down(40, 15))
        router.layout.begin_drag(Divider.VERTICAL)
        _drag_to(router, 79, 15)
        assert router.layout.frame.minimap.width == 68
        assert _drag_to(router, 68, 15) == []
        assert router.layout.frame.minimap.width == 68
        _drag_to(router, 50, 15)
        assert router.layout.frame.minimap.width == 50

    def test_horizontal_divider_follows_pointer_back_from_bound(self):
        router = _make_router()
        router.route_mouse(_down(10, 8))
        router.layout.begin_drag(Divider.HORIZONTAL)
        _drag_to(router, 10, 0)
        assert router.layout.frame.minimap.height == 3
        _drag_to(router, 10, 11)
        assert router.layout.frame.minimap.height == 12

    def test_move_without_drag_ignored(self):
        router = _make_router()
        assert router.route_mouse(MouseEvent(MouseKind.MOVE, 10, 10)) == []
        assert router.route_mouse(MouseEvent(MouseKind.UP, 10, 10)) == []
