"""Branch conversations rooted at a step, and their closing comments."""

import logging
from dataclasses import dataclass
from typing import Any

from .models import Message, Role, Step, Thread, Walkthrough

logger = logging.getLogger(__name__)


class ThreadAlreadyOpen(Exception):
    """Raised when a branch is opened while another is still open."""


class NoActiveThread(Exception):
    """Raised when closing a branch while none is open."""


@dataclass
class OpenBranch:
    step_id: str
    thread: Thread
    restore_point: Any


class ThreadManager:
    """Owns the single open branch across a walkthrough.

    The restore point is opaque here: the session captures its scroll and
    focus state when opening and gets it back unchanged on close.
    """

    def __init__(self, walkthrough: Walkthrough) -> None:
        self.walkthrough = walkthrough
        self._open: OpenBranch | None = None

    @property
    def active(self) -> OpenBranch | None:
        return self._open

    @property
    def active_thread(self) -> Thread | None:
        return self._open.thread if self._open else None

    def open_branch(self, step_id: str, restore_point: Any = None) -> Thread:
        """Open a new branch on a step.

        Raises:
            ThreadAlreadyOpen: If any branch is open. The open one is untouched.
            KeyError: If the step id is unknown.
        """
        if self._open is not None:
            raise ThreadAlreadyOpen(f"a branch is already open on step {self._open.step_id}")
        step = self.walkthrough.step_by_id(step_id)
        thread = Thread()
        step.branches.append(thread)
        self._open = OpenBranch(step_id=step_id, thread=thread, restore_point=restore_point)
        logger.debug(f"Opened branch {len(step.branches)} on step {step_id}")
        return thread

    def thread_for(self, step_id: str) -> Thread:
        """Thread that new chat messages on a step go to."""
        if self._open is not None and self._open.step_id == step_id:
            return self._open.thread
        return self.walkthrough.step_by_id(step_id).conversation

    def post_message(self, role: Role, text: str, step_id: str) -> Message:
        return self.thread_for(step_id).append(role, text)

    def close_branch(self, comment: str | None = None) -> Any:
        """Close the open branch and return its restore point.

        A non-blank comment is recorded on the thread and on its step.

        Raises:
            NoActiveThread: If no branch is open.
        """
        if self._open is None:
            raise NoActiveThread("no branch is open")
        branch = self._open
        step: Step = self.walkthrough.step_by_id(branch.step_id)
        if comment is not None and comment.strip():
            branch.thread.recorded_comment = comment.strip()
            step.recorded_comment = comment.strip()
        branch.thread.active = False
        self._open = None
        logger.debug(f"Closed branch on step {branch.step_id} (comment={step.recorded_comment is not None})")
        return branch.restore_point
