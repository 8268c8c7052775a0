"""SessionState: the single mutable aggregate a renderer reads.

Owns the walkthrough, scroll engine, layout engine, pane router, input
resolver and thread manager. Events are applied one at a time to completion:
key and mouse events become actions, and model events append to the thread
their request was made for.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Protocol

from . import views
from .actions import (
    Action,
    BeginResize,
    CompleteStep,
    CursorMove,
    CycleFocus,
    DeleteChar,
    EndResize,
    EnterInsert,
    ExitInsert,
    FocusDirection,
    InputTarget,
    InsertChar,
    InsertNewline,
    JumpToBottom,
    JumpToStep,
    JumpToTop,
    MoveCursor,
    MoveInputCursor,
    NextStep,
    OpenBranch,
    PrevStep,
    Quit,
    RequestExplanation,
    ResizeLayout,
    Scroll,
    ScrollHalfPage,
    ScrollHorizontal,
    SetFocus,
    SubmitComment,
    SubmitMessage,
    ToggleZoom,
    UndoComplete,
)
from .input import DEFAULT_SEQUENCE_TIMEOUT, InputMode, InputResolver, KeyEvent, ResolverContext
from .layout import LayoutEngine, Pane
from .llm import (
    ChatContext,
    ModelEvent,
    RequestHandle,
    ResponseChunk,
    ResponseComplete,
    ResponseFailed,
    chat_context,
)
from .models import Message, OutOfRange, Role, Step, Thread, Walkthrough, WalkthroughStatus
from .router import MouseEvent, PaneRouter
from .scroll import PaneExtent, ScrollEngine
from .threads import NoActiveThread, ThreadAlreadyOpen, ThreadManager

logger = logging.getLogger(__name__)

NOTICE_SECONDS = 3.0


class ModelGateway(Protocol):
    def request_explanation(self, walkthrough: Walkthrough, step_index: int, thread: Thread | None = None) -> RequestHandle: ...

    def request_chat_reply(self, context: ChatContext, user_text: str) -> RequestHandle: ...

    def cancel(self, handle: RequestHandle) -> None: ...


@dataclass
class RestorePoint:
    """Scroll offsets, focus and zoom captured when a branch opens."""

    scroll: dict[Pane, PaneExtent]
    active_pane: Pane
    zoomed: Pane | None = None


@dataclass
class PendingRequest:
    handle: RequestHandle
    step_id: str
    thread: Thread
    next_index: int = 0
    message: Message | None = None  # Assistant message being streamed into


@dataclass(frozen=True)
class CommentRecord:
    """Read-only export record for one recorded comment."""

    step_id: str
    title: str
    comment: str
    hunks: tuple[tuple[str, int, int], ...]  # (path, start_line, end_line)


@dataclass
class Notice:
    text: str
    expires_at: float


class InputBuffer:
    """Single-buffer line editor for the chat and comment input."""

    def __init__(self) -> None:
        self.text = ""
        self.cursor = 0

    def insert(self, text: str) -> None:
        self.text = self.text[:self.cursor] + text + self.text[self.cursor:]
        self.cursor += len(text)

    def delete_back(self) -> None:
        if self.cursor == 0:
            return
        self.text = self.text[:self.cursor - 1] + self.text[self.cursor:]
        self.cursor -= 1

    def move(self, move: CursorMove) -> None:
        if move is CursorMove.LEFT:
            self.cursor = max(0, self.cursor - 1)
        elif move is CursorMove.RIGHT:
            self.cursor = min(len(self.text), self.cursor + 1)
        elif move is CursorMove.HOME:
            self.cursor = 0
        else:
            self.cursor = len(self.text)

    def clear(self) -> None:
        self.text = ""
        self.cursor = 0


class SessionState:
    """Interactive state of one review session."""

    def __init__(
        self,
        walkthrough: Walkthrough,
        gateway: ModelGateway | None = None,
        *,
        vim_enabled: bool = True,
        sequence_timeout: float = DEFAULT_SEQUENCE_TIMEOUT,
        layout: LayoutEngine | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.walkthrough = walkthrough
        self.gateway = gateway
        self.layout = layout or LayoutEngine()
        self.scroll = ScrollEngine()
        self.router = PaneRouter(self.layout)
        self.resolver = InputResolver(vim_enabled=vim_enabled, sequence_timeout=sequence_timeout)
        self.threads = ThreadManager(walkthrough)
        self.input = InputBuffer()
        self.input_target = InputTarget.CHAT
        self.notice: Notice | None = None
        self.quit_requested = False
        self._clock = clock
        self._now = clock()
        self._pending: dict[int, PendingRequest] = {}
        self._handlers: dict[type, Callable] = {
            NextStep: self._next_step,
            PrevStep: self._prev_step,
            JumpToStep: self._jump_to_step,
            CompleteStep: self._complete_step,
            UndoComplete: self._undo_complete,
            MoveCursor: self._move_cursor,
            Scroll: self._scroll,
            ScrollHorizontal: self._scroll_horizontal,
            ScrollHalfPage: self._scroll_half_page,
            JumpToTop: self._jump_to_top,
            JumpToBottom: self._jump_to_bottom,
            CycleFocus: self._cycle_focus,
            SetFocus: self._set_focus,
            FocusDirection: self._focus_direction,
            BeginResize: self._begin_resize,
            ResizeLayout: self._resize_layout,
            EndResize: self._end_resize,
            ToggleZoom: self._toggle_zoom,
            EnterInsert: self._enter_insert,
            ExitInsert: self._exit_insert,
            InsertChar: self._insert_char,
            DeleteChar: self._delete_char,
            MoveInputCursor: self._move_input_cursor,
            InsertNewline: self._insert_newline,
            SubmitMessage: self._submit_message,
            SubmitComment: self._submit_comment,
            OpenBranch: self._open_branch,
            RequestExplanation: self._request_explanation,
            Quit: self._quit,
        }
        self._sync_viewports()
        self._refresh_content(reset=True)

    # Read-side helpers

    @property
    def mode(self) -> InputMode:
        return self.resolver.mode

    @property
    def active_pane(self) -> Pane:
        return self.router.active_pane

    @property
    def current_step(self) -> Step:
        return self.walkthrough.current_step()

    @property
    def branch_open(self) -> bool:
        return self.threads.active is not None

    @property
    def chat_thread(self) -> Thread:
        """Thread shown in the chat pane."""
        return self.threads.thread_for(self.current_step.id)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, thread: Thread) -> bool:
        return any(req.thread is thread for req in self._pending.values())

    def awaiting_first_chunk(self, thread: Thread) -> bool:
        return any(req.thread is thread and req.message is None for req in self._pending.values())

    def chat_lines(self) -> list[views.ViewLine]:
        width = self.scroll.extent(Pane.CHAT).viewport_width
        thread = self.chat_thread
        return views.chat_lines(thread, width, self.awaiting_first_chunk(thread), branch=self.branch_open)

    def diff_lines(self) -> list[views.ViewLine]:
        return views.diff_lines(self.current_step)

    def minimap_lines(self) -> list[views.ViewLine]:
        return views.minimap_lines(self.walkthrough)

    # Event entry points

    def handle_key(self, event: KeyEvent, now: float | None = None) -> list[Action]:
        """Resolve a key event and apply the resulting actions in order."""
        self._now = self._clock() if now is None else now
        context = ResolverContext(
            active_pane=self.router.active_pane,
            branch_open=self.branch_open,
            zoomed=self.layout.zoomed is not None,
        )
        actions = self.resolver.feed(event, self._now, context)
        for action in actions:
            self.apply(action)
        return actions

    def handle_mouse(self, event: MouseEvent) -> list[Action]:
        """Route a mouse event; the input mode is never consulted."""
        self._now = self._clock()
        actions = self.router.route_mouse(
            event,
            minimap_scroll_y=self.scroll.extent(Pane.MINIMAP).scroll_y,
            step_count=len(self.walkthrough),
        )
        for action in actions:
            self.apply(action)
        return actions

    def tick(self, now: float | None = None) -> bool:
        """Expire pending key sequences and notices. Returns True if anything changed."""
        self._now = self._clock() if now is None else now
        changed = self.resolver.poll(self._now)
        if self.notice is not None and self._now >= self.notice.expires_at:
            self.notice = None
            changed = True
        return changed

    def resize(self, width: int, height: int) -> None:
        self.layout.resize(width, height)
        self._sync_viewports()
        self._refresh_content()

    def apply(self, action: Action) -> None:
        handler = self._handlers.get(type(action))
        if handler is None:
            logger.warning(f"No handler for action {action!r}")
            return
        handler(action)

    def handle_model_event(self, event: ModelEvent) -> bool:
        """Apply a model event. Returns False if it was discarded."""
        req = self._pending.get(event.handle_id)
        if req is None:
            logger.debug(f"Discarding event for unknown or cancelled request {event.handle_id}")
            return False

        if isinstance(event, ResponseChunk):
            if event.index < req.next_index:
                logger.debug(f"Dropping duplicate chunk {event.index} of request {event.handle_id}")
                return False
            req.next_index = event.index + 1
            if req.message is None:
                req.message = req.thread.append(Role.ASSISTANT, event.text)
            else:
                req.message.text += event.text
        elif isinstance(event, ResponseComplete):
            del self._pending[event.handle_id]
        elif isinstance(event, ResponseFailed):
            del self._pending[event.handle_id]
            req.thread.append(Role.SYSTEM, f"Error: {event.message}")
            logger.info(f"Request {event.handle_id} failed: {event.kind.value}: {event.message}")
        self._refresh_chat()
        return True

    def comments_snapshot(self) -> list[CommentRecord]:
        """One record per recorded comment, in step order."""
        records = []
        for step in self.walkthrough.steps:
            hunks = tuple((h.file_path, h.start_line, h.end_line) for h in step.hunks)
            for thread in step.branches:
                if thread.recorded_comment:
                    records.append(CommentRecord(step.id, step.title, thread.recorded_comment, hunks))
        return records

    def cancel_all(self) -> None:
        for req in list(self._pending.values()):
            self._cancel(req)

    # Internals

    def _notify(self, text: str) -> None:
        self.notice = Notice(text, self._now + NOTICE_SECONDS)

    def _cancel(self, req: PendingRequest) -> None:
        self._pending.pop(req.handle.id, None)
        if self.gateway is not None:
            self.gateway.cancel(req.handle)
        logger.debug(f"Cancelled request {req.handle.id}")

    def _sync_viewports(self) -> None:
        frame = self.layout.frame
        for pane in (Pane.MINIMAP, Pane.DIFF):
            inner = frame.pane_rect(pane).inner()
            self.scroll.set_viewport(pane, inner.height, inner.width)
        chat = frame.chat.inner()
        self.scroll.set_viewport(
            Pane.CHAT, max(0, chat.height - views.input_rows(self.input.text)), chat.width
        )

    def _refresh_chat(self) -> None:
        lines = self.chat_lines()
        self.scroll.set_content(Pane.CHAT, len(lines), views.content_width(lines), follow_tail=True)

    def _refresh_content(self, reset: bool = False) -> None:
        minimap = self.minimap_lines()
        self.scroll.set_content(Pane.MINIMAP, len(minimap), views.content_width(minimap))
        diff = self.diff_lines()
        self.scroll.set_content(Pane.DIFF, len(diff), views.content_width(diff))
        if reset:
            self.scroll.reset(Pane.DIFF)
            self.scroll.reset(Pane.CHAT)
            lines = self.chat_lines()
            self.scroll.set_content(Pane.CHAT, len(lines), views.content_width(lines))
        else:
            self._refresh_chat()
        self.scroll.ensure_visible(Pane.MINIMAP, self.walkthrough.current_step_index)

    def _navigation_locked(self) -> bool:
        if self.branch_open:
            self._notify("Close the open branch first (c)")
            return True
        return False

    def _step_changed(self, before: int) -> None:
        if self.walkthrough.current_step_index != before:
            self._refresh_content(reset=True)
        else:
            self._refresh_content()

    def _next_step(self, action: NextStep) -> None:
        if self._navigation_locked():
            return
        before = self.walkthrough.current_step_index
        self.walkthrough.advance()
        self._step_changed(before)

    def _prev_step(self, action: PrevStep) -> None:
        if self._navigation_locked():
            return
        before = self.walkthrough.current_step_index
        self.walkthrough.retreat()
        self._step_changed(before)

    def _jump_to_step(self, action: JumpToStep) -> None:
        if self._navigation_locked():
            return
        before = self.walkthrough.current_step_index
        try:
            self.walkthrough.jump_to(action.index)
        except OutOfRange as e:
            self._notify(str(e))
            return
        self._step_changed(before)

    def _complete_step(self, action: CompleteStep) -> None:
        if self._navigation_locked():
            return
        was_complete = self.walkthrough.status is WalkthroughStatus.COMPLETED
        before = self.walkthrough.current_step_index
        self.walkthrough.mark_current_complete()
        self.walkthrough.advance()
        self._step_changed(before)
        if not was_complete and self.walkthrough.status is WalkthroughStatus.COMPLETED:
            self._notify("Walkthrough complete")

    def _undo_complete(self, action: UndoComplete) -> None:
        self.walkthrough.undo_current_complete()
        self._refresh_content()

    def _move_cursor(self, action: MoveCursor) -> None:
        if self.router.active_pane is Pane.MINIMAP:
            self.apply(NextStep() if action.delta > 0 else PrevStep())
        else:
            self.scroll.scroll_by(self.router.active_pane, action.delta)

    def _scroll(self, action: Scroll) -> None:
        self.scroll.scroll_by(action.pane or self.router.active_pane, action.delta)

    def _scroll_horizontal(self, action: ScrollHorizontal) -> None:
        self.scroll.scroll_x_by(action.pane or self.router.active_pane, action.delta)

    def _scroll_half_page(self, action: ScrollHalfPage) -> None:
        self.scroll.scroll_half_page(self.router.active_pane, action.direction)

    def _jump_to_top(self, action: JumpToTop) -> None:
        if self.router.active_pane is Pane.MINIMAP:
            self.apply(JumpToStep(0))
        else:
            self.scroll.scroll_to_top(self.router.active_pane)

    def _jump_to_bottom(self, action: JumpToBottom) -> None:
        if self.router.active_pane is Pane.MINIMAP:
            self.apply(JumpToStep(len(self.walkthrough) - 1))
        else:
            self.scroll.scroll_to_bottom(self.router.active_pane)

    def _focus(self, pane: Pane) -> None:
        self.router.set_active(pane)
        if self.layout.zoomed is not None and self.layout.zoomed is not pane:
            self.layout.toggle_zoom(pane)
            self._sync_viewports()
            self._refresh_content()
        if pane is not Pane.CHAT and self.resolver.inserting:
            self._leave_insert()
        elif pane is Pane.CHAT and not self.resolver.vim_enabled and not self.resolver.inserting:
            self.input_target = InputTarget.CHAT
            self.resolver.enter_insert(InputTarget.CHAT)

    def _cycle_focus(self, action: CycleFocus) -> None:
        pane = self.router.cycle_forward() if action.forward else self.router.cycle_backward()
        self._focus(pane)

    def _set_focus(self, action: SetFocus) -> None:
        self._focus(action.pane)

    def _focus_direction(self, action: FocusDirection) -> None:
        self._focus(self.router.neighbor(action.direction))

    def _begin_resize(self, action: BeginResize) -> None:
        self.layout.begin_drag(action.divider)

    def _resize_layout(self, action: ResizeLayout) -> None:
        self.layout.update_drag(action.delta)
        self._sync_viewports()
        self._refresh_content()

    def _end_resize(self, action: EndResize) -> None:
        self.layout.end_drag()

    def _toggle_zoom(self, action: ToggleZoom) -> None:
        self.layout.toggle_zoom(self.router.active_pane)
        self._sync_viewports()
        self._refresh_content()

    def _enter_insert(self, action: EnterInsert) -> None:
        if action.target is InputTarget.COMMENT:
            if not self.branch_open:
                self._notify("No open branch to close")
                return
            self._focus(Pane.CHAT)
            self.input.clear()
        elif not self.router.accepts_chat_input():
            return
        self.input_target = action.target
        if self.resolver.mode is not _MODE_FOR_TARGET[action.target]:
            self.resolver.enter_insert(action.target)
        self._sync_viewports()

    def _leave_insert(self) -> None:
        self.resolver.exit_insert()
        if self.input_target is InputTarget.COMMENT:
            # Abandoning a comment keeps the branch open
            self.input.clear()
            self.input_target = InputTarget.CHAT
        self._sync_viewports()

    def _exit_insert(self, action: ExitInsert) -> None:
        self._leave_insert()

    def _editing(self) -> bool:
        return self.resolver.inserting and self.router.accepts_chat_input()

    def _insert_char(self, action: InsertChar) -> None:
        if self._editing():
            self.input.insert(action.char)

    def _delete_char(self, action: DeleteChar) -> None:
        if self._editing():
            self.input.delete_back()
            self._sync_viewports()

    def _move_input_cursor(self, action: MoveInputCursor) -> None:
        if self._editing():
            self.input.move(action.move)

    def _insert_newline(self, action: InsertNewline) -> None:
        if self._editing():
            self.input.insert("\n")
            self._sync_viewports()

    def _submit_message(self, action: SubmitMessage) -> None:
        if not self.router.accepts_chat_input():
            return
        text = self.input.text.strip()
        if not text:
            return
        step = self.current_step
        thread = self.threads.thread_for(step.id)
        if self.is_pending(thread):
            self._notify("Waiting for the previous reply")
            return
        context = chat_context(self.walkthrough, self.walkthrough.current_step_index, thread)
        self.threads.post_message(Role.USER, text, step.id)
        self.input.clear()
        self._sync_viewports()
        if self.gateway is None:
            thread.append(Role.SYSTEM, "Error: no model configured")
        else:
            handle = self.gateway.request_chat_reply(context, text)
            self._pending[handle.id] = PendingRequest(handle, step.id, thread)
        # Jump to the tail so the reply stays in view as it streams
        self.scroll.scroll_to_bottom(Pane.CHAT)
        self._refresh_chat()

    def _submit_comment(self, action: SubmitComment) -> None:
        comment = self.input.text
        branch = self.threads.active
        try:
            restore: RestorePoint = self.threads.close_branch(comment)
        except NoActiveThread as e:
            self._notify(str(e))
            return
        for req in list(self._pending.values()):
            if req.thread is branch.thread:
                self._cancel(req)
        self.input.clear()
        self.input_target = InputTarget.CHAT
        if self.layout.zoomed is not restore.zoomed:
            if self.layout.zoomed is not None:
                self.layout.toggle_zoom(self.layout.zoomed)
            if restore.zoomed is not None:
                self.layout.toggle_zoom(restore.zoomed)
        self._focus(restore.active_pane)
        self._sync_viewports()
        self._refresh_content()
        self.scroll.restore(restore.scroll)
        self._notify("Comment recorded" if branch.thread.recorded_comment else "Branch closed")

    def _open_branch(self, action: OpenBranch) -> None:
        restore = RestorePoint(self.scroll.snapshot(), self.router.active_pane, self.layout.zoomed)
        try:
            self.threads.open_branch(self.current_step.id, restore)
        except ThreadAlreadyOpen as e:
            self._notify(str(e))
            return
        self._focus(Pane.CHAT)
        self.scroll.reset(Pane.CHAT)
        self._refresh_chat()
        self._notify("Branch opened: c closes it with a comment")

    def _request_explanation(self, action: RequestExplanation) -> None:
        step = self.current_step
        thread = self.threads.thread_for(step.id)
        if self.gateway is None:
            self._notify("No model configured")
            return
        if self.is_pending(thread):
            self._notify("Waiting for the previous reply")
            return
        handle = self.gateway.request_explanation(self.walkthrough, self.walkthrough.current_step_index, thread)
        self._pending[handle.id] = PendingRequest(handle, step.id, thread)
        self._refresh_chat()

    def _quit(self, action: Quit) -> None:
        self.cancel_all()
        self.quit_requested = True


_MODE_FOR_TARGET = {
    InputTarget.CHAT: InputMode.INSERT_CHAT,
    InputTarget.COMMENT: InputMode.INSERT_COMMENT,
}
