"""Walkthrough generation: ask the model to group diff hunks into narrative steps."""

import logging
from typing import Protocol

from .diff import ParsedDiff, ParsedHunk
from .llm import classify_error, describe_error
from .models import Hunk, InvalidWalkthrough, Priority, Step, Walkthrough

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert code reviewer creating a narrative walkthrough of a code change.\n\n"
    "Organize the diff hunks into a logical sequence that tells a story: not necessarily "
    "in file order, but in the order that best helps a reviewer understand the changes.\n\n"
    "Guidelines:\n"
    "- Group related hunks together into steps (e.g., all hunks for a new feature)\n"
    "- Order steps from foundational changes to dependent changes\n"
    '- Mark security-critical or architecturally significant changes as "critical"\n'
    "- Write summaries in markdown, highlighting key points with **bold**\n"
    "- Each hunk should appear in exactly one step\n"
    "- Aim for 3-8 steps for typical changes; fewer for small ones\n\n"
    "Call the create_walkthrough tool with your structured analysis."
)

CREATE_WALKTHROUGH_TOOL = {
    "type": "function",
    "function": {
        "name": "create_walkthrough",
        "description": (
            "Create a structured code review walkthrough organizing diff hunks "
            "into a narrative sequence of steps"
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "steps": {
                    "type": "array",
                    "description": "Ordered list of walkthrough steps",
                    "items": {
                        "type": "object",
                        "properties": {
                            "title": {
                                "type": "string",
                                "description": "Short title for this step (e.g., 'Add UserSession model')",
                            },
                            "summary": {
                                "type": "string",
                                "description": "Markdown explanation of what this step does and why it matters",
                            },
                            "priority": {
                                "type": "string",
                                "enum": ["critical", "normal", "minor"],
                                "description": (
                                    "critical for security/architecture, normal for features, "
                                    "minor for tests/docs"
                                ),
                            },
                            "hunk_indices": {
                                "type": "array",
                                "items": {"type": "integer"},
                                "description": "1-based indices of the hunks that belong to this step",
                            },
                        },
                        "required": ["title", "summary", "priority", "hunk_indices"],
                    },
                },
            },
            "required": ["steps"],
        },
    },
}

REMAINING_TITLE = "Remaining changes"
REMAINING_SUMMARY = "Hunks the walkthrough did not place in any step."


class GenerationError(Exception):
    """Raised when the model's walkthrough cannot be used."""


class ToolCaller(Protocol):
    def call_tool(self, system_prompt: str, prompt: str, tool: dict) -> dict: ...


def build_prompt(parsed: ParsedDiff) -> str:
    return (
        "Please analyze this diff and create a code review walkthrough.\n\n"
        f"The diff contains {len(parsed.hunks)} hunks, numbered below:\n\n"
        f"{parsed.format_for_prompt()}"
    )


class WalkthroughGenerator:
    """Builds a Walkthrough from a parsed diff with one blocking model call."""

    def __init__(self, parsed_diff: ParsedDiff, client: ToolCaller) -> None:
        self.parsed_diff = parsed_diff
        self.client = client

    def generate(self) -> Walkthrough:
        prompt = build_prompt(self.parsed_diff)
        logger.info(f"Generating walkthrough for {len(self.parsed_diff.hunks)} hunks")
        try:
            response = self.client.call_tool(SYSTEM_PROMPT, prompt, CREATE_WALKTHROUGH_TOOL)
        except ValueError as e:
            raise GenerationError(f"could not parse model response: {e}") from e
        except Exception as e:
            kind = classify_error(e)
            raise GenerationError(f"model request failed: {describe_error(kind, e)}") from e
        return self.correlate(response)

    def correlate(self, response: dict) -> Walkthrough:
        """Turn the tool arguments into steps, resolving hunk indices.

        Raises:
            GenerationError: On a malformed response or an out-of-range hunk index.
        """
        raw_steps = response.get("steps") if isinstance(response, dict) else None
        if not isinstance(raw_steps, list):
            raise GenerationError("response has no 'steps' list")

        max_index = len(self.parsed_diff.hunks)
        claimed: set[int] = set()
        steps: list[Step] = []
        for raw in raw_steps:
            if not isinstance(raw, dict):
                raise GenerationError(f"step {len(steps) + 1} is not an object")
            indices = raw.get("hunk_indices") or []
            hunks = []
            for idx in indices:
                if not isinstance(idx, int) or not 1 <= idx <= max_index:
                    raise GenerationError(f"hunk index {idx} out of bounds (max: {max_index})")
                if any(h.index == idx for h in hunks):
                    continue
                claimed.add(idx)
                hunks.append(self.parsed_diff.get_hunk(idx))
            steps.append(Step(
                id=str(len(steps) + 1),
                title=str(raw.get("title") or f"Step {len(steps) + 1}"),
                summary=str(raw.get("summary") or ""),
                priority=Priority.from_label(raw.get("priority")),
                hunks=tuple(_to_hunk(h) for h in hunks),
            ))

        leftover = [h for h in self.parsed_diff.hunks if h.index not in claimed]
        if leftover:
            logger.info(f"{len(leftover)} hunks unclaimed; adding '{REMAINING_TITLE}' step")
            steps.append(Step(
                id=str(len(steps) + 1),
                title=REMAINING_TITLE,
                summary=REMAINING_SUMMARY,
                priority=Priority.MINOR,
                hunks=tuple(_to_hunk(h) for h in leftover),
            ))

        try:
            return Walkthrough(steps)
        except InvalidWalkthrough as e:
            raise GenerationError(str(e)) from e


def _to_hunk(parsed: ParsedHunk) -> Hunk:
    return Hunk(
        file_path=parsed.file_path,
        start_line=parsed.start_line,
        end_line=parsed.end_line,
        content=parsed.content,
    )
