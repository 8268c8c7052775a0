"""Tests for per-pane scroll arithmetic."""

import random

from docent.layout import Pane
from docent.scroll import PaneExtent, ScrollEngine


def _make_engine(content: int = 100, viewport: int = 10, width: int = 50, view_width: int = 20) -> ScrollEngine:
    engine = ScrollEngine()
    engine.set_viewport(Pane.DIFF, viewport, view_width)
    engine.set_content(Pane.DIFF, content, width)
    return engine


class TestPaneExtent:
    def test_max_scroll(self):
        ext = PaneExtent(content_height=30, viewport_height=10, content_width=5, viewport_width=20)
        assert ext.max_scroll_y == 20
        assert ext.max_scroll_x == 0

    def test_short_content_never_scrolls(self):
        ext = PaneExtent(content_height=3, viewport_height=10, scroll_y=5)
        ext.clamp()
        assert ext.scroll_y == 0
        assert ext.at_bottom


class TestScrollBounds:
    def test_scroll_by_clamps(self):
        engine = _make_engine()
        engine.scroll_by(Pane.DIFF, 1000)
        assert engine.extent(Pane.DIFF).scroll_y == 90
        engine.scroll_by(Pane.DIFF, -1000)
        assert engine.extent(Pane.DIFF).scroll_y == 0

    def test_horizontal_clamps(self):
        engine = _make_engine()
        engine.scroll_x_by(Pane.DIFF, 100)
        assert engine.extent(Pane.DIFF).scroll_x == 30
        engine.scroll_x_by(Pane.DIFF, -100)
        assert engine.extent(Pane.DIFF).scroll_x == 0

    def test_random_sequences_stay_in_bounds(self):
        rng = random.Random(7)
        engine = _make_engine()
        for _ in range(500):
            op = rng.randrange(4)
            if op == 0:
                engine.scroll_by(Pane.DIFF, rng.randint(-50, 50))
            elif op == 1:
                engine.scroll_half_page(Pane.DIFF, rng.choice([-1, 1]))
            elif op == 2:
                engine.set_content(Pane.DIFF, rng.randint(0, 200), rng.randint(0, 80))
            else:
                engine.set_viewport(Pane.DIFF, rng.randint(0, 40), rng.randint(0, 40))
            ext = engine.extent(Pane.DIFF)
            assert 0 <= ext.scroll_y <= ext.max_scroll_y
            assert 0 <= ext.scroll_x <= ext.max_scroll_x

    def test_panes_are_independent(self):
        engine = _make_engine()
        engine.set_viewport(Pane.CHAT, 5, 20)
        engine.set_content(Pane.CHAT, 50)
        engine.scroll_by(Pane.DIFF, 10)
        assert engine.extent(Pane.CHAT).scroll_y == 0


class TestHalfPage:
    def test_half_viewport(self):
        engine = _make_engine(viewport=10)
        engine.scroll_half_page(Pane.DIFF, 1)
        assert engine.extent(Pane.DIFF).scroll_y == 5

    def test_minimum_one_line(self):
        engine = _make_engine(viewport=1)
        engine.scroll_half_page(Pane.DIFF, 1)
        assert engine.extent(Pane.DIFF).scroll_y == 1


class TestResize:
    def test_viewport_growth_reclamps(self):
        engine = _make_engine(content=100, viewport=10)
        engine.scroll_to_bottom(Pane.DIFF)
        engine.set_viewport(Pane.DIFF, 60, 20)
        assert engine.extent(Pane.DIFF).scroll_y == 40

    def test_content_shrink_reclamps(self):
        engine = _make_engine(content=100, viewport=10)
        engine.scroll_by(Pane.DIFF, 80)
        engine.set_content(Pane.DIFF, 20)
        assert engine.extent(Pane.DIFF).scroll_y == 10


class TestTailFollow:
    def test_follows_when_at_bottom(self):
        engine = _make_engine(content=20, viewport=10)
        engine.scroll_to_bottom(Pane.DIFF)
        engine.set_content(Pane.DIFF, 25, follow_tail=True)
        assert engine.extent(Pane.DIFF).scroll_y == 15

    def test_does_not_follow_when_scrolled_up(self):
        engine = _make_engine(content=20, viewport=10)
        engine.scroll_by(Pane.DIFF, 3)
        engine.set_content(Pane.DIFF, 25, follow_tail=True)
        assert engine.extent(Pane.DIFF).scroll_y == 3


class TestVisibilityAndSnapshots:
    def test_ensure_visible_scrolls_minimally(self):
        engine = _make_engine(content=100, viewport=10)
        engine.ensure_visible(Pane.DIFF, 15)
        assert engine.extent(Pane.DIFF).scroll_y == 6
        engine.ensure_visible(Pane.DIFF, 8)
        assert engine.extent(Pane.DIFF).scroll_y == 6
        engine.ensure_visible(Pane.DIFF, 2)
        assert engine.extent(Pane.DIFF).scroll_y == 2

    def test_snapshot_restore(self):
        engine = _make_engine()
        engine.scroll_by(Pane.DIFF, 12)
        engine.scroll_x_by(Pane.DIFF, 4)
        saved = engine.snapshot()
        engine.reset(Pane.DIFF)
        engine.restore(saved)
        assert (engine.extent(Pane.DIFF).scroll_y, engine.extent(Pane.DIFF).scroll_x) == (12, 4)

    def test_snapshot_is_a_copy(self):
        engine = _make_engine()
        saved = engine.snapshot()
        engine.scroll_by(Pane.DIFF, 5)
        assert saved[Pane.DIFF].scroll_y == 0

    def test_restore_reclamps(self):
        engine = _make_engine(content=100, viewport=10)
        engine.scroll_by(Pane.DIFF, 80)
        saved = engine.snapshot()
        engine.set_content(Pane.DIFF, 30)
        engine.restore(saved)
        assert engine.extent(Pane.DIFF).scroll_y == 20
