"""Textual TUI for Docent.

The app is a thin shell over SessionState: it converts Textual key and mouse
events into core events, sizes the panes from the layout engine's rectangles
and paints whatever the session's line builders produce.
"""

from __future__ import annotations

import logging
import time

from rich.text import Text as RichText
from textual import events, on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.message import Message
from textual.widgets import Static

from . import views
from .actions import InputTarget
from .input import InputMode, KeyEvent
from .layout import Pane
from .llm import ModelClient, ModelEvent
from .router import MouseEvent, MouseKind
from .scroll import PaneExtent
from .session import SessionState

logger = logging.getLogger(__name__)

TICK_SECONDS = 0.05

CSS = """
Screen {
    layout: vertical;
}

#body {
    height: 1fr;
    layout: horizontal;
}

#left-column {
    layout: vertical;
}
"""

MODE_LABELS = {
    InputMode.NORMAL: "NORMAL",
    InputMode.INSERT_CHAT: "INSERT",
    InputMode.INSERT_COMMENT: "COMMENT",
    InputMode.PENDING_SEQUENCE: "NORMAL",
}


def render_lines(lines: list[views.ViewLine], extent: PaneExtent) -> RichText:
    """Crop lines to the visible window of a pane."""
    text = RichText(no_wrap=True, overflow="crop")
    top = extent.scroll_y
    visible = lines[top:top + extent.viewport_height]
    for i, line in enumerate(visible):
        if i:
            text.append("\n")
        left = extent.scroll_x
        text.append(line.text[left:left + extent.viewport_width], style=line.style or None)
    return text


def to_key_event(event: events.Key) -> KeyEvent:
    """Textual key event to a core key event. Printable keys use their character."""
    key = event.key
    if event.is_printable and not key.startswith(("ctrl+", "alt+")):
        key = event.character
    return KeyEvent(key=key, character=event.character)


class PanePanel(Static):
    """Bordered pane; highlighted while it owns keyboard focus."""

    DEFAULT_CSS = """
    PanePanel {
        border: round $primary-darken-2;
        padding: 0;
    }

    PanePanel.active {
        border: heavy $accent;
    }
    """

    def set_active(self, active: bool) -> None:
        self.set_class(active, "active")


class MinimapPanel(PanePanel):
    def update_from(self, session: SessionState) -> None:
        walkthrough = session.walkthrough
        self.border_title = f"Steps {walkthrough.current_step_index + 1}/{len(walkthrough)}"
        self.update(render_lines(session.minimap_lines(), session.scroll.extent(Pane.MINIMAP)))


class ChatPanel(PanePanel):
    """Conversation of the current step (or its open branch) plus the input line."""

    def update_from(self, session: SessionState) -> None:
        self.border_title = "Branch" if session.branch_open else "Chat"
        extent = session.scroll.extent(Pane.CHAT)
        text = render_lines(session.chat_lines(), extent)
        shown = max(0, min(len(session.chat_lines()) - extent.scroll_y, extent.viewport_height))
        # Pad so the input starts on the row below the viewport
        text.append("\n" * (extent.viewport_height - shown + (1 if shown else 0)))
        text.append(self._input_text(session))
        self.update(text)

    def _input_text(self, session: SessionState) -> RichText:
        buffer = session.input
        inserting = session.resolver.inserting
        prompt = "✎ " if session.input_target is InputTarget.COMMENT and inserting else "> "
        rows = buffer.text.split("\n")[-views.MAX_INPUT_ROWS:]
        text = RichText(no_wrap=True, overflow="crop")
        if not inserting and not buffer.text:
            hint = "i to type" if session.resolver.vim_enabled else "Tab here to type"
            text.append(f"> {hint}", style="dim")
            return text
        # Cursor position relative to the visible rows
        before = buffer.text[:buffer.cursor]
        hidden = buffer.text.count("\n") + 1 - len(rows)
        cursor_row = before.count("\n") - hidden
        cursor_col = len(before) - (before.rfind("\n") + 1)
        for i, row in enumerate(rows):
            if i:
                text.append("\n")
            text.append(prompt if i == 0 else "  ", style="bold")
            if inserting and i == cursor_row:
                text.append(row[:cursor_col])
                text.append(row[cursor_col:cursor_col + 1] or " ", style="reverse")
                text.append(row[cursor_col + 1:])
            else:
                text.append(row)
        return text


class DiffPanel(PanePanel):
    def update_from(self, session: SessionState) -> None:
        self.border_title = views.step_heading(session.current_step)
        self.update(render_lines(session.diff_lines(), session.scroll.extent(Pane.DIFF)))


class HelpBar(Static):
    """Mode, pending keys, progress and the transient notice."""

    DEFAULT_CSS = """
    HelpBar {
        height: 1;
        background: $boost;
        padding: 0 1;
    }
    """

    def update_from(self, session: SessionState) -> None:
        mode = MODE_LABELS[session.mode]
        text = RichText(no_wrap=True, overflow="ellipsis")
        text.append(f" {mode} ", style="bold reverse" if session.mode is InputMode.NORMAL else "bold reverse green")
        if session.resolver.pending_buffer:
            text.append(f" {session.resolver.pending_buffer}", style="bold yellow")
        text.append(f"  {views.progress_text(session.walkthrough)}", style="dim")
        if session.pending_count:
            text.append("  waiting for model…", style="italic")
        if session.notice is not None:
            text.append(f"  {session.notice.text}", style="bold")
        else:
            text.append(
                "  n/p step  enter done  tab pane  b branch  e explain  z zoom  q quit", style="dim"
            )
        self.update(text)


class WalkthroughView(Container):
    """Pane container; routes mouse events to the session."""

    DEFAULT_CSS = """
    WalkthroughView {
        height: 1fr;
    }
    """

    def compose(self) -> ComposeResult:
        with Horizontal(id="body"):
            with Vertical(id="left-column"):
                yield MinimapPanel(id="minimap")
                yield ChatPanel(id="chat")
            yield DiffPanel(id="diff")

    def _forward(self, kind: MouseKind, event: events.MouseEvent) -> None:
        self.app.handle_mouse(MouseEvent(kind, int(event.screen_x), int(event.screen_y)))
        event.stop()

    def on_mouse_down(self, event: events.MouseDown) -> None:
        self._forward(MouseKind.DOWN, event)
        if self.app.session.layout.dragging is not None:
            self.capture_mouse()

    def on_mouse_move(self, event: events.MouseMove) -> None:
        if self.app.session.layout.dragging is not None:
            self._forward(MouseKind.MOVE, event)

    def on_mouse_up(self, event: events.MouseUp) -> None:
        self._forward(MouseKind.UP, event)
        self.release_mouse()

    def on_mouse_scroll_down(self, event: events.MouseScrollDown) -> None:
        self._forward(MouseKind.SCROLL_DOWN, event)

    def on_mouse_scroll_up(self, event: events.MouseScrollUp) -> None:
        self._forward(MouseKind.SCROLL_UP, event)


class DocentApp(App):
    """Textual TUI for Docent."""

    CSS = CSS

    # Keys Textual would otherwise consume for its own focus handling and quit
    BINDINGS = [
        Binding("tab", "forward_key('tab')", "Next pane", show=False, priority=True),
        Binding("shift+tab", "forward_key('shift+tab')", "Previous pane", show=False, priority=True),
        Binding("ctrl+c", "forward_key('ctrl+c')", "Quit", show=False, priority=True),
    ]

    # Custom message for thread-safe updates
    class ModelEventArrived(Message):
        """Message posted when the model client delivers a chunk, completion or failure."""
        def __init__(self, event: ModelEvent) -> None:
            super().__init__()
            self.event = event

    def __init__(self, session: SessionState, client: ModelClient | None = None) -> None:
        super().__init__()
        self.session = session
        self.client = client

    def compose(self) -> ComposeResult:
        yield WalkthroughView(id="walkthrough")
        yield HelpBar(id="help-bar")

    def on_mount(self) -> None:
        if self.client is not None:
            self.client.on_event = self._on_model_event
        self.session.resize(self.size.width, self.size.height)
        self._refresh_all()
        self.set_interval(TICK_SECONDS, self._tick)

    def on_resize(self, event: events.Resize) -> None:
        self.session.resize(event.size.width, event.size.height)
        self._refresh_all()

    def _on_model_event(self, event: ModelEvent) -> None:
        """Called from a worker thread - post message for thread safety."""
        self.post_message(self.ModelEventArrived(event))

    @on(ModelEventArrived)
    def handle_model_event(self, message: ModelEventArrived) -> None:
        if self.session.handle_model_event(message.event):
            self._refresh_all()

    def _tick(self) -> None:
        if self.session.tick(time.monotonic()):
            self._refresh_all()

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        self._handle_key(to_key_event(event))

    def action_forward_key(self, key: str) -> None:
        self._handle_key(KeyEvent(key=key))

    def _handle_key(self, key_event: KeyEvent) -> None:
        self.session.handle_key(key_event, time.monotonic())
        self._after_event()

    def handle_mouse(self, mouse_event: MouseEvent) -> None:
        self.session.handle_mouse(mouse_event)
        self._after_event()

    def _after_event(self) -> None:
        if self.session.quit_requested:
            self.exit()
            return
        self._refresh_all()

    def _apply_layout(self) -> None:
        frame = self.session.layout.frame
        panels = {
            Pane.MINIMAP: self.query_one("#minimap", MinimapPanel),
            Pane.CHAT: self.query_one("#chat", ChatPanel),
            Pane.DIFF: self.query_one("#diff", DiffPanel),
        }
        for pane, panel in panels.items():
            rect = frame.pane_rect(pane)
            panel.display = rect.width > 0 and rect.height > 0
            panel.styles.width = rect.width
            panel.styles.height = rect.height
            panel.set_active(pane is self.session.active_pane)
        left = self.query_one("#left-column", Vertical)
        left.display = panels[Pane.MINIMAP].display or panels[Pane.CHAT].display
        left.styles.width = max(frame.minimap.width, frame.chat.width)

    def _refresh_all(self) -> None:
        """Refresh all UI components."""
        self._apply_layout()
        self.query_one("#minimap", MinimapPanel).update_from(self.session)
        self.query_one("#chat", ChatPanel).update_from(self.session)
        self.query_one("#diff", DiffPanel).update_from(self.session)
        self.query_one("#help-bar", HelpBar).update_from(self.session)
