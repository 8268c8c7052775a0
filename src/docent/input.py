"""Modal key resolution: Normal, Insert and pending multi-key sequences.

Vim-style bindings are prefix codes (``g`` is a prefix of ``gg``), so the
resolver holds a partial buffer between key deliveries and bounds how long it
waits with a wall-clock deadline. The caller supplies ``now`` on every feed and
polls the deadline from its tick.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from .actions import (
    Action,
    CompleteStep,
    CursorMove,
    CycleFocus,
    DeleteChar,
    Direction,
    EnterInsert,
    ExitInsert,
    FocusDirection,
    InputTarget,
    InsertChar,
    InsertNewline,
    JumpToBottom,
    JumpToTop,
    MoveCursor,
    MoveInputCursor,
    NextStep,
    OpenBranch,
    PrevStep,
    Quit,
    RequestExplanation,
    ScrollHalfPage,
    ScrollHorizontal,
    SubmitComment,
    SubmitMessage,
    ToggleZoom,
    UndoComplete,
)
from .layout import Pane

logger = logging.getLogger(__name__)

DEFAULT_SEQUENCE_TIMEOUT = 0.5  # seconds
HORIZONTAL_STEP = 4

SEQUENCES: dict[str, Action] = {
    "gg": JumpToTop(),
    "[[": PrevStep(),
    "]]": NextStep(),
}
_PREFIXES = {seq[:i] for seq in SEQUENCES for i in range(1, len(seq))}

NORMAL_KEYS: dict[str, Action] = {
    "j": MoveCursor(1),
    "down": MoveCursor(1),
    "k": MoveCursor(-1),
    "up": MoveCursor(-1),
    "h": ScrollHorizontal(-HORIZONTAL_STEP),
    "left": ScrollHorizontal(-HORIZONTAL_STEP),
    "l": ScrollHorizontal(HORIZONTAL_STEP),
    "right": ScrollHorizontal(HORIZONTAL_STEP),
    "ctrl+d": ScrollHalfPage(1),
    "ctrl+u": ScrollHalfPage(-1),
    "G": JumpToBottom(),
    "n": NextStep(),
    "p": PrevStep(),
    "enter": CompleteStep(),
    "u": UndoComplete(),
    "tab": CycleFocus(forward=True),
    "shift+tab": CycleFocus(forward=False),
    "ctrl+h": FocusDirection(Direction.LEFT),
    "ctrl+j": FocusDirection(Direction.DOWN),
    "ctrl+k": FocusDirection(Direction.UP),
    "ctrl+l": FocusDirection(Direction.RIGHT),
    "b": OpenBranch(),
    "e": RequestExplanation(),
    "z": ToggleZoom(),
    "q": Quit(),
}

INPUT_CURSOR_KEYS = {
    "left": CursorMove.LEFT,
    "right": CursorMove.RIGHT,
    "home": CursorMove.HOME,
    "end": CursorMove.END,
}
NEWLINE_KEYS = frozenset({"shift+enter", "alt+enter"})


class InputMode(Enum):
    NORMAL = "normal"
    INSERT_CHAT = "insert_chat"
    INSERT_COMMENT = "insert_comment"
    PENDING_SEQUENCE = "pending"


@dataclass(frozen=True)
class KeyEvent:
    """A key press: Textual-style key name plus the typed character, if any."""

    key: str
    character: str | None = None

    @classmethod
    def char(cls, character: str) -> "KeyEvent":
        return cls(key=character, character=character)

    @property
    def is_printable(self) -> bool:
        return (
            self.character is not None
            and len(self.character) == 1
            and self.character.isprintable()
        )


@dataclass(frozen=True)
class ResolverContext:
    """Session facts a key binding depends on."""

    active_pane: Pane = Pane.MINIMAP
    branch_open: bool = False
    zoomed: bool = False


class InputResolver:
    """Finite-state machine turning key events into actions."""

    def __init__(self, vim_enabled: bool = True, sequence_timeout: float = DEFAULT_SEQUENCE_TIMEOUT) -> None:
        self.vim_enabled = vim_enabled
        self.sequence_timeout = sequence_timeout
        self._mode = InputMode.NORMAL
        self._buffer = ""
        self._deadline: float | None = None

    @property
    def mode(self) -> InputMode:
        return self._mode

    @property
    def pending_buffer(self) -> str:
        return self._buffer

    @property
    def deadline(self) -> float | None:
        return self._deadline

    @property
    def inserting(self) -> bool:
        return self._mode in (InputMode.INSERT_CHAT, InputMode.INSERT_COMMENT)

    def enter_insert(self, target: InputTarget) -> None:
        self._clear_pending()
        self._mode = InputMode.INSERT_COMMENT if target is InputTarget.COMMENT else InputMode.INSERT_CHAT

    def exit_insert(self) -> None:
        if self.inserting:
            self._mode = InputMode.NORMAL

    def poll(self, now: float) -> bool:
        """Expire a pending sequence whose deadline has passed. Returns True if one expired."""
        if self._mode is InputMode.PENDING_SEQUENCE and self._deadline is not None and now >= self._deadline:
            logger.debug(f"Key sequence {self._buffer!r} timed out")
            self._clear_pending()
            self._mode = InputMode.NORMAL
            return True
        return False

    def feed(self, event: KeyEvent, now: float, context: ResolverContext | None = None) -> list[Action]:
        """Resolve one key event into zero or more actions."""
        context = context or ResolverContext()
        if event.key == "ctrl+c":
            self._clear_pending()
            return [Quit()]

        # A key arriving after the deadline sees an already-expired buffer
        self.poll(now)

        if self._mode is InputMode.PENDING_SEQUENCE:
            return self._feed_pending(event, now, context)
        if self.inserting:
            return self._feed_insert(event)
        return self._feed_normal(event, now, context)

    def _clear_pending(self) -> None:
        self._buffer = ""
        self._deadline = None

    def _feed_pending(self, event: KeyEvent, now: float, context: ResolverContext) -> list[Action]:
        candidate = self._buffer + event.key
        if candidate in SEQUENCES:
            self._clear_pending()
            self._mode = InputMode.NORMAL
            return [SEQUENCES[candidate]]
        if candidate in _PREFIXES:
            self._buffer = candidate
            return []
        # Not a continuation: drop the buffer and treat the key as fresh
        logger.debug(f"Discarding key sequence {self._buffer!r} on {event.key!r}")
        self._clear_pending()
        self._mode = InputMode.NORMAL
        return self._feed_normal(event, now, context)

    def _feed_normal(self, event: KeyEvent, now: float, context: ResolverContext) -> list[Action]:
        key = event.key
        if key in _PREFIXES:
            self._mode = InputMode.PENDING_SEQUENCE
            self._buffer = key
            self._deadline = now + self.sequence_timeout
            return []
        if key == "i":
            if context.active_pane is not Pane.CHAT:
                return []
            self._mode = InputMode.INSERT_CHAT
            return [EnterInsert(InputTarget.CHAT)]
        if key == "c":
            if context.branch_open:
                self._mode = InputMode.INSERT_COMMENT
            return [EnterInsert(InputTarget.COMMENT)]
        if key == "escape":
            return [ToggleZoom()] if context.zoomed else []
        action = NORMAL_KEYS.get(key)
        return [action] if action is not None else []

    def _feed_insert(self, event: KeyEvent) -> list[Action]:
        key = event.key
        if key == "escape":
            self._mode = InputMode.NORMAL
            return [ExitInsert()]
        if key == "enter":
            if self._mode is InputMode.INSERT_COMMENT:
                self._mode = InputMode.NORMAL
                return [SubmitComment()]
            return [SubmitMessage()]
        if key in NEWLINE_KEYS:
            return [InsertNewline()]
        if key in ("tab", "shift+tab"):
            self._mode = InputMode.NORMAL
            return [ExitInsert(), CycleFocus(forward=key == "tab")]
        if key == "backspace":
            return [DeleteChar()]
        if key in INPUT_CURSOR_KEYS:
            return [MoveInputCursor(INPUT_CURSOR_KEYS[key])]
        if event.is_printable:
            return [InsertChar(event.character)]
        return []
