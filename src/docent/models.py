"""Data models for Docent walkthroughs."""

from dataclasses import dataclass, field
from enum import Enum


class Priority(Enum):
    """How much reviewer attention a step deserves."""
    CRITICAL = "critical"
    NORMAL = "normal"
    MINOR = "minor"

    @classmethod
    def from_label(cls, label: str | None) -> "Priority":
        """Parse a priority label leniently (unknown labels are NORMAL)."""
        if not label:
            return cls.NORMAL
        try:
            return cls(label.strip().lower())
        except ValueError:
            return cls.NORMAL


class Role(Enum):
    """Author of a message in a thread."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"  # Local notices (errors); never sent to the model


class WalkthroughStatus(Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class OutOfRange(IndexError):
    """Raised when a step index falls outside the walkthrough."""


class InvalidWalkthrough(ValueError):
    """Raised when a walkthrough cannot be constructed from its steps."""


@dataclass(frozen=True)
class Hunk:
    """A contiguous diff excerpt tied to a file and a line range."""

    file_path: str
    start_line: int  # 1-based, in the new file
    end_line: int
    content: str  # Raw hunk text including the @@ header

    def __post_init__(self) -> None:
        if self.start_line < 1:
            raise ValueError(f"start_line must be >= 1, got {self.start_line}")
        if self.end_line < self.start_line:
            raise ValueError(
                f"end_line ({self.end_line}) precedes start_line ({self.start_line})"
            )

    @property
    def lines(self) -> list[str]:
        return self.content.splitlines()

    @property
    def line_count(self) -> int:
        return len(self.lines)


@dataclass
class Message:
    """A message in a thread."""

    role: Role
    text: str
    seq: int  # Monotonic within the owning thread


@dataclass
class Thread:
    """An ordered conversation, either a step's main chat or a branch."""

    messages: list[Message] = field(default_factory=list)
    recorded_comment: str | None = None
    active: bool = True
    _next_seq: int = field(default=1, repr=False)

    def append(self, role: Role, text: str) -> Message:
        """Append a message with the next sequence number."""
        message = Message(role=role, text=text, seq=self._next_seq)
        self._next_seq += 1
        self.messages.append(message)
        return message

    @property
    def last_message(self) -> Message | None:
        return self.messages[-1] if self.messages else None


@dataclass
class Step:
    """One logical unit of change in a walkthrough."""

    id: str
    title: str
    summary: str
    priority: Priority = Priority.NORMAL
    hunks: tuple[Hunk, ...] = ()
    completed: bool = False
    conversation: Thread = field(default_factory=Thread)
    branches: list[Thread] = field(default_factory=list)
    recorded_comment: str | None = None

    def __post_init__(self) -> None:
        self.hunks = tuple(self.hunks)
        # Seed the main conversation with the explanation
        if not self.conversation.messages and self.summary:
            self.conversation.append(Role.ASSISTANT, self.summary)

    @property
    def thread(self) -> Thread | None:
        """The currently open branch on this step, if any."""
        if self.branches and self.branches[-1].active:
            return self.branches[-1]
        return None

    @property
    def diff_line_count(self) -> int:
        return sum(h.line_count for h in self.hunks)

    @property
    def file_paths(self) -> list[str]:
        """Distinct file paths touched by this step, in hunk order."""
        return list(dict.fromkeys(h.file_path for h in self.hunks))


class Walkthrough:
    """Ordered narrative over a diff with a cursor on the current step.

    Step order is narrative order, not file order. The shape (steps and
    hunks) is fixed at construction; only completion, threads and comments
    change afterwards.
    """

    def __init__(self, steps: list[Step]) -> None:
        if not steps:
            raise InvalidWalkthrough("walkthrough has no steps")
        seen: set[str] = set()
        for step in steps:
            if step.id in seen:
                raise InvalidWalkthrough(f"duplicate step id: {step.id!r}")
            seen.add(step.id)
        self._steps = list(steps)
        self._current = 0

    @property
    def steps(self) -> list[Step]:
        return list(self._steps)

    @property
    def current_step_index(self) -> int:
        return self._current

    @property
    def status(self) -> WalkthroughStatus:
        if all(step.completed for step in self._steps):
            return WalkthroughStatus.COMPLETED
        return WalkthroughStatus.IN_PROGRESS

    def __len__(self) -> int:
        return len(self._steps)

    def current_step(self) -> Step:
        return self._steps[self._current]

    def step_by_id(self, step_id: str) -> Step:
        """Return the step with the given id (KeyError if unknown)."""
        for step in self._steps:
            if step.id == step_id:
                return step
        raise KeyError(step_id)

    def index_of(self, step_id: str) -> int:
        for i, step in enumerate(self._steps):
            if step.id == step_id:
                return i
        raise KeyError(step_id)

    def advance(self) -> None:
        """Move to the next step; no-op on the last step."""
        if self._current < len(self._steps) - 1:
            self._current += 1

    def retreat(self) -> None:
        """Move to the previous step; no-op on the first step."""
        if self._current > 0:
            self._current -= 1

    def jump_to(self, index: int) -> None:
        """Jump to a step by index.

        Raises:
            OutOfRange: If index is outside the walkthrough. State is unchanged.
        """
        if not 0 <= index < len(self._steps):
            raise OutOfRange(f"step index {index} outside [0, {len(self._steps) - 1}]")
        self._current = index

    def mark_current_complete(self) -> None:
        self._steps[self._current].completed = True

    def undo_current_complete(self) -> None:
        self._steps[self._current].completed = False

    @property
    def completed_count(self) -> int:
        return sum(1 for step in self._steps if step.completed)

    def total_diff_lines(self) -> int:
        return sum(step.diff_line_count for step in self._steps)

    def reviewed_diff_lines(self) -> int:
        return sum(step.diff_line_count for step in self._steps if step.completed)
