"""Abstract actions produced from keyboard and mouse input.

The input resolver and pane router translate raw events into these; the
session applies them one at a time.
"""

from dataclasses import dataclass
from enum import Enum

from .layout import Divider, Pane


class Direction(Enum):
    LEFT = "left"
    DOWN = "down"
    UP = "up"
    RIGHT = "right"


class InputTarget(Enum):
    """What the insert-mode buffer is being typed for."""
    CHAT = "chat"
    COMMENT = "comment"


class CursorMove(Enum):
    LEFT = "left"
    RIGHT = "right"
    HOME = "home"
    END = "end"


@dataclass(frozen=True)
class NextStep:
    pass


@dataclass(frozen=True)
class PrevStep:
    pass


@dataclass(frozen=True)
class JumpToStep:
    index: int


@dataclass(frozen=True)
class CompleteStep:
    """Mark the current step complete and advance."""


@dataclass(frozen=True)
class UndoComplete:
    pass


@dataclass(frozen=True)
class MoveCursor:
    """j/k: step selection in the minimap, line scrolling elsewhere."""
    delta: int


@dataclass(frozen=True)
class Scroll:
    """Scroll a pane; ``pane=None`` means the focused pane."""
    delta: int
    pane: Pane | None = None


@dataclass(frozen=True)
class ScrollHorizontal:
    delta: int
    pane: Pane | None = None


@dataclass(frozen=True)
class ScrollHalfPage:
    direction: int  # +1 down, -1 up


@dataclass(frozen=True)
class JumpToTop:
    pass


@dataclass(frozen=True)
class JumpToBottom:
    pass


@dataclass(frozen=True)
class CycleFocus:
    forward: bool = True


@dataclass(frozen=True)
class SetFocus:
    pane: Pane


@dataclass(frozen=True)
class FocusDirection:
    direction: Direction


@dataclass(frozen=True)
class BeginResize:
    divider: Divider


@dataclass(frozen=True)
class ResizeLayout:
    delta: int  # Cells along the dragged divider's axis


@dataclass(frozen=True)
class EndResize:
    pass


@dataclass(frozen=True)
class ToggleZoom:
    pass


@dataclass(frozen=True)
class EnterInsert:
    target: InputTarget


@dataclass(frozen=True)
class ExitInsert:
    pass


@dataclass(frozen=True)
class InsertChar:
    char: str


@dataclass(frozen=True)
class DeleteChar:
    pass


@dataclass(frozen=True)
class MoveInputCursor:
    move: CursorMove


@dataclass(frozen=True)
class InsertNewline:
    pass


@dataclass(frozen=True)
class SubmitMessage:
    pass


@dataclass(frozen=True)
class SubmitComment:
    """Close the open branch, recording the typed comment (if any)."""


@dataclass(frozen=True)
class OpenBranch:
    pass


@dataclass(frozen=True)
class RequestExplanation:
    pass


@dataclass(frozen=True)
class Quit:
    pass


Action = (
    NextStep | PrevStep | JumpToStep | CompleteStep | UndoComplete
    | MoveCursor | Scroll | ScrollHorizontal | ScrollHalfPage | JumpToTop | JumpToBottom
    | CycleFocus | SetFocus | FocusDirection
    | BeginResize | ResizeLayout | EndResize | ToggleZoom
    | EnterInsert | ExitInsert | InsertChar | DeleteChar | MoveInputCursor
    | InsertNewline | SubmitMessage | SubmitComment
    | OpenBranch | RequestExplanation | Quit
)
