"""Line builders for the three panes and the help bar.

Each builder returns plain ``ViewLine`` records so the session can measure
content extents and the Textual shell can style and slice them.
"""

import textwrap
from dataclasses import dataclass

from .models import Priority, Role, Step, Thread, Walkthrough

PRIORITY_STYLES = {
    Priority.CRITICAL: "bold red",
    Priority.NORMAL: "yellow",
    Priority.MINOR: "dim",
}

PRIORITY_LABELS = {
    Priority.CRITICAL: "Critical",
    Priority.NORMAL: "Normal",
    Priority.MINOR: "Minor",
}

ROLE_LABELS = {
    Role.USER: "You",
    Role.ASSISTANT: "Docent",
    Role.SYSTEM: "!",
}

ROLE_STYLES = {
    Role.USER: "bold cyan",
    Role.ASSISTANT: "bold green",
    Role.SYSTEM: "bold red",
}

MAX_INPUT_ROWS = 3
THINKING = "…"


@dataclass(frozen=True)
class ViewLine:
    text: str
    style: str = ""


def content_width(lines: list[ViewLine]) -> int:
    return max((len(line.text) for line in lines), default=0)


def minimap_lines(walkthrough: Walkthrough) -> list[ViewLine]:
    """One row per step, so a minimap row maps directly to a step index."""
    current = walkthrough.current_step_index
    lines = []
    for i, step in enumerate(walkthrough.steps):
        mark = "✓" if step.completed else ("▸" if i == current else " ")
        comment = " ✎" if step.recorded_comment else ""
        style = PRIORITY_STYLES[step.priority]
        if i == current:
            style = f"{style} reverse"
        lines.append(ViewLine(f"{mark} {i + 1}. {step.title}{comment}", style))
    return lines


def diff_lines(step: Step) -> list[ViewLine]:
    """Header plus hunk lines for every hunk of a step, +/- coloured."""
    lines: list[ViewLine] = []
    for n, hunk in enumerate(step.hunks):
        if n:
            lines.append(ViewLine(""))
        lines.append(ViewLine(
            f"── {hunk.file_path} (lines {hunk.start_line}-{hunk.end_line}) ──", "bold"
        ))
        for raw in hunk.lines:
            if raw.startswith("@@"):
                style = "cyan"
            elif raw.startswith("+"):
                style = "green"
            elif raw.startswith("-"):
                style = "red"
            else:
                style = ""
            lines.append(ViewLine(raw.expandtabs(4), style))
    return lines


def chat_lines(thread: Thread, width: int, pending: bool = False, branch: bool = False) -> list[ViewLine]:
    """Wrapped message lines for a thread.

    ``pending`` adds a placeholder for a reply whose first chunk has not
    arrived yet.
    """
    width = max(width, 10)
    lines: list[ViewLine] = []
    if branch:
        lines.append(ViewLine("── branch (c to close with a comment) ──", "italic dim"))
    for message in thread.messages:
        if lines:
            lines.append(ViewLine(""))
        label = ROLE_LABELS[message.role]
        lines.append(ViewLine(f"{label}:", ROLE_STYLES[message.role]))
        style = "red" if message.role is Role.SYSTEM else ""
        for paragraph in message.text.splitlines() or [""]:
            wrapped = textwrap.wrap(paragraph, width=width) or [""]
            lines.extend(ViewLine(part, style) for part in wrapped)
    if pending:
        if lines:
            lines.append(ViewLine(""))
        lines.append(ViewLine(THINKING, "dim"))
    return lines


def input_rows(buffer_text: str) -> int:
    return min(MAX_INPUT_ROWS, buffer_text.count("\n") + 1)


def progress_text(walkthrough: Walkthrough) -> str:
    total = walkthrough.total_diff_lines()
    percent = (walkthrough.reviewed_diff_lines() * 100 // total) if total else 0
    return f"{walkthrough.completed_count}/{len(walkthrough)} steps · {percent}% of lines"


def step_heading(step: Step) -> str:
    files = ", ".join(step.file_paths)
    return f"{step.title} [{PRIORITY_LABELS[step.priority]}] {files}"
