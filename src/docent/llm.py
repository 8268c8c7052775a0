"""Model gateway: streamed chat replies via litellm, openai SDK, or claude-code subprocess.

Requests run on a worker pool. Every result is delivered through the
``on_event`` callback as a ResponseChunk, ResponseComplete or ResponseFailed
carrying the request's handle id; nothing is raised into the caller's loop.
"""

import itertools
import json
import logging
import shutil
import subprocess
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator

import litellm
import openai

from .config import DEFAULT_MODEL
from .models import Role, Step, Thread, Walkthrough

logger = logging.getLogger(__name__)

# Suppress litellm's verbose debug/info logging
litellm.suppress_debug_info = True

CHAT_SYSTEM_PROMPT = (
    "You are a senior engineer walking a reviewer through a code change. "
    "Answer questions about the current step concisely, referring to the "
    "hunks shown. Use Markdown sparingly."
)

EXPLAIN_PROMPT = (
    "Explain this step in more depth: what changed, why it matters, and "
    "anything a reviewer should check carefully."
)

CLAUDE_CODE_TIMEOUT = 120


class ModelErrorKind(Enum):
    RATE_LIMIT = "rate_limit"
    AUTH = "auth"
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    OTHER = "other"


@dataclass(frozen=True)
class RequestHandle:
    id: int


@dataclass(frozen=True)
class ResponseChunk:
    handle_id: int
    index: int  # 0-based position in the stream
    text: str


@dataclass(frozen=True)
class ResponseComplete:
    handle_id: int


@dataclass(frozen=True)
class ResponseFailed:
    handle_id: int
    kind: ModelErrorKind
    message: str


ModelEvent = ResponseChunk | ResponseComplete | ResponseFailed


@dataclass(frozen=True)
class ChatContext:
    """Immutable snapshot of what the model sees for one request."""

    overview: str
    step_title: str
    step_summary: str
    hunks: tuple[tuple[str, int, int, str], ...]  # (path, start, end, content)
    history: tuple[tuple[Role, str], ...] = ()


def walkthrough_overview(walkthrough: Walkthrough, current_index: int) -> str:
    """Numbered step list with completion marks and a marker on the current step."""
    lines = [f"Walkthrough ({walkthrough.completed_count}/{len(walkthrough)} steps reviewed):"]
    for i, step in enumerate(walkthrough.steps):
        mark = "✓" if step.completed else " "
        marker = "  ← current" if i == current_index else ""
        lines.append(f"  {i + 1}. [{mark}] {step.title} ({step.priority.value}){marker}")
    return "\n".join(lines)


def chat_context(walkthrough: Walkthrough, step_index: int, thread: Thread | None = None) -> ChatContext:
    """Snapshot the context for a request about one step.

    SYSTEM messages are local notices and are left out of the history.
    """
    step: Step = walkthrough.steps[step_index]
    history: tuple[tuple[Role, str], ...] = ()
    if thread is not None:
        history = tuple(
            (m.role, m.text) for m in thread.messages if m.role is not Role.SYSTEM and m.text
        )
    return ChatContext(
        overview=walkthrough_overview(walkthrough, step_index),
        step_title=step.title,
        step_summary=step.summary,
        hunks=tuple((h.file_path, h.start_line, h.end_line, h.content) for h in step.hunks),
        history=history,
    )


def build_chat_messages(context: ChatContext, user_text: str) -> list[dict]:
    """Chat-completions message list for a context plus the new user text."""
    parts = [
        CHAT_SYSTEM_PROMPT,
        "",
        context.overview,
        "",
        f"Current step: {context.step_title}",
        context.step_summary,
    ]
    for path, start, end, content in context.hunks:
        parts.append("")
        parts.append(f"{path} (lines {start}-{end}):")
        parts.append(f"```diff\n{content}\n```")
    messages = [{"role": "system", "content": "\n".join(parts)}]
    for role, text in context.history:
        messages.append({"role": role.value, "content": text})
    messages.append({"role": "user", "content": user_text})
    return messages


def classify_error(error: BaseException) -> ModelErrorKind:
    """Map a provider exception onto a ModelErrorKind."""
    if isinstance(error, (litellm.exceptions.RateLimitError, openai.RateLimitError)):
        return ModelErrorKind.RATE_LIMIT
    if isinstance(error, (litellm.exceptions.AuthenticationError, openai.AuthenticationError)):
        return ModelErrorKind.AUTH
    # Timeouts subclass the connection errors, so check them first
    if isinstance(error, (litellm.exceptions.Timeout, openai.APITimeoutError, subprocess.TimeoutExpired)):
        return ModelErrorKind.TIMEOUT
    if isinstance(error, (litellm.exceptions.APIConnectionError, openai.APIConnectionError, ConnectionError)):
        return ModelErrorKind.CONNECTION
    return ModelErrorKind.OTHER


_ERROR_TEXT = {
    ModelErrorKind.RATE_LIMIT: "rate limited by the provider",
    ModelErrorKind.AUTH: "authentication failed (check your API key)",
    ModelErrorKind.TIMEOUT: "request timed out",
    ModelErrorKind.CONNECTION: "model server not available",
}


def describe_error(kind: ModelErrorKind, error: BaseException) -> str:
    return _ERROR_TEXT.get(kind, f"{type(error).__name__}: {error}")


class ModelClient:
    """Chat replies and tool calls using litellm (any provider) or claude-code subprocess."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_base: str | None = None,
        api_key: str | None = None,
        on_event: Callable[[ModelEvent], None] | None = None,
        max_workers: int = 2,
    ):
        self.model = model
        self.api_base = api_base.rstrip("/") if api_base else None
        self.api_key = api_key
        self.on_event = on_event
        self._executor = ThreadPoolExecutor(max_workers=max_workers)
        self._ids = itertools.count(1)
        self._cancelled: set[int] = set()
        self._lock = threading.Lock()

        # Preflight check for claude-code provider
        if self.model.startswith("claude-code/") and not shutil.which("claude"):
            logger.warning(
                "claude-code provider selected but 'claude' CLI not found on PATH. "
                "Model requests will fail. Install Claude Code or set llm.model."
            )

    # Gateway protocol

    def request_explanation(self, walkthrough: Walkthrough, step_index: int, thread: Thread | None = None) -> RequestHandle:
        """Ask for a deeper explanation of one step."""
        context = chat_context(walkthrough, step_index, thread)
        return self.request_chat_reply(context, EXPLAIN_PROMPT)

    def request_chat_reply(self, context: ChatContext, user_text: str) -> RequestHandle:
        handle = RequestHandle(next(self._ids))
        messages = build_chat_messages(context, user_text)
        self._executor.submit(self._run, handle, messages)
        return handle

    def cancel(self, handle: RequestHandle | int) -> None:
        """Stop delivering events for a request. Safe to call more than once."""
        handle_id = handle.id if isinstance(handle, RequestHandle) else handle
        with self._lock:
            self._cancelled.add(handle_id)

    def is_cancelled(self, handle_id: int) -> bool:
        with self._lock:
            return handle_id in self._cancelled

    def shutdown(self) -> None:
        """Shutdown the executor, cancelling pending tasks."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    # Worker side

    def _emit(self, event: ModelEvent) -> None:
        if self.is_cancelled(event.handle_id):
            return
        if self.on_event is not None:
            self.on_event(event)

    def _run(self, handle: RequestHandle, messages: list[dict]) -> None:
        try:
            for index, text in enumerate(self._stream(messages)):
                if self.is_cancelled(handle.id):
                    logger.debug(f"Request {handle.id} cancelled after {index} chunks")
                    return
                self._emit(ResponseChunk(handle.id, index, text))
            self._emit(ResponseComplete(handle.id))
        except Exception as e:
            kind = classify_error(e)
            logger.debug(f"Model error ({self.model}, request {handle.id}): {kind.value}: {e}")
            self._emit(ResponseFailed(handle.id, kind, describe_error(kind, e)))

    def _stream(self, messages: list[dict]) -> Iterator[str]:
        """Yield non-empty text deltas.

        Routing:
        - claude-code/* → subprocess (one chunk)
        - api_base set  → openai SDK direct (local/custom servers)
        - otherwise     → litellm (cloud providers with auto-routing)
        """
        if self.model.startswith("claude-code/"):
            yield self._call_claude_code(messages)
            return

        if self.api_base:
            client = openai.OpenAI(
                base_url=self.api_base,
                api_key=self.api_key or "no-key-required",
            )
            response = client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=0.3,
                stream=True,
            )
        else:
            kwargs: dict = {
                "model": self.model,
                "messages": messages,
                "temperature": 0.3,
                "stream": True,
            }
            if self.api_key:
                kwargs["api_key"] = self.api_key
            response = litellm.completion(**kwargs)

        for chunk in response:
            if not chunk.choices:
                continue
            text = chunk.choices[0].delta.content
            if text:
                yield text

    def call_tool(self, system_prompt: str, prompt: str, tool: dict) -> dict:
        """Force a single function call and return its parsed arguments.

        Blocking. The claude-code provider has no tool calling, so it is asked
        for the arguments as a bare JSON object instead.
        """
        if self.model.startswith("claude-code/"):
            schema = json.dumps(tool["function"]["parameters"])
            text = self._call_claude_code([
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": (
                    f"{prompt}\n\nRespond with only a JSON object matching this schema:\n{schema}"
                )},
            ])
            return _parse_json_object(text)

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ]
        tool_choice = {"type": "function", "function": {"name": tool["function"]["name"]}}
        if self.api_base:
            client = openai.OpenAI(
                base_url=self.api_base,
                api_key=self.api_key or "no-key-required",
            )
            response = client.chat.completions.create(
                model=self.model,
                messages=messages,
                tools=[tool],
                tool_choice=tool_choice,
                temperature=0.2,
            )
        else:
            kwargs: dict = {
                "model": self.model,
                "messages": messages,
                "tools": [tool],
                "tool_choice": tool_choice,
                "temperature": 0.2,
            }
            if self.api_key:
                kwargs["api_key"] = self.api_key
            response = litellm.completion(**kwargs)

        message = response.choices[0].message
        if not message.tool_calls:
            # Some providers answer with the JSON as plain content
            return _parse_json_object(message.content or "")
        return json.loads(message.tool_calls[0].function.arguments)

    def _call_claude_code(self, messages: list[dict]) -> str:
        """Call claude CLI in single-prompt mode.

        The conversation is flattened into one prompt piped via stdin to avoid
        OS ARG_MAX limits on long diffs.
        """
        claude_model = self.model.split("/", 1)[1] if "/" in self.model else self.model
        system_prompt = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        prompt = "\n\n".join(
            f"{m['role'].upper()}: {m['content']}" for m in messages if m["role"] != "system"
        )

        result = subprocess.run(
            ["claude", "-p", "--no-session-persistence", "--model", claude_model,
             "--disable-slash-commands", "--tools", "", "--setting-sources", "",
             "--system-prompt", system_prompt],
            input=prompt,
            capture_output=True,
            text=True,
            timeout=CLAUDE_CODE_TIMEOUT,
        )
        if result.returncode != 0:
            raise RuntimeError(result.stderr.strip() or f"claude exited with code {result.returncode}")
        return result.stdout.strip()


def _parse_json_object(text: str) -> dict:
    """Parse the outermost JSON object in text, tolerating code fences."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise ValueError("response contains no JSON object")
    value = json.loads(text[start:end + 1])
    if not isinstance(value, dict):
        raise ValueError("response JSON is not an object")
    return value
