"""Unified diff parsing into indexed hunks, and include/exclude file filtering."""

import fnmatch
import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

_HUNK_RE = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
_DEV_NULL = "/dev/null"


class DiffParseError(ValueError):
    """Raised when a diff contains no usable hunks."""


class EmptyDiff(DiffParseError):
    """Raised for blank diff input."""


class FilterError(ValueError):
    """Raised for unusable filter patterns or when a filter leaves nothing."""


@dataclass(frozen=True)
class ParsedHunk:
    index: int  # 1-based, referenced by the model
    file_path: str
    start_line: int  # In the new file
    end_line: int
    content: str  # Raw hunk text including the @@ header


@dataclass
class ParsedDiff:
    hunks: list[ParsedHunk] = field(default_factory=list)

    def get_hunk(self, index: int) -> ParsedHunk | None:
        for hunk in self.hunks:
            if hunk.index == index:
                return hunk
        return None

    @property
    def file_paths(self) -> list[str]:
        return list(dict.fromkeys(h.file_path for h in self.hunks))

    def format_for_prompt(self) -> str:
        """Render every hunk under a numbered header for the model."""
        return "\n\n".join(
            f"=== Hunk {h.index} ({h.file_path}, lines {h.start_line}-{h.end_line}) ===\n{h.content}"
            for h in self.hunks
        )


def _strip_prefix(path: str) -> str:
    path = path.split("\t", 1)[0].strip()
    if path.startswith(("a/", "b/")):
        return path[2:]
    return path


def parse_unified_diff(diff_text: str) -> ParsedDiff:
    """Parse unified diff text into 1-based indexed hunks.

    The file path comes from the ``+++`` header, or from ``---`` for deleted
    files. Hunk bodies are delimited by the line counts in their ``@@``
    header, so removed lines that look like file headers stay in the hunk.

    Raises:
        EmptyDiff: If the text is blank.
        DiffParseError: If no hunks are found.
    """
    if not diff_text.strip():
        raise EmptyDiff("empty diff")

    hunks: list[ParsedHunk] = []
    old_path: str | None = None
    new_path: str | None = None
    lines = diff_text.splitlines()
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("--- "):
            old_path = _strip_prefix(line[4:])
            i += 1
            continue
        if line.startswith("+++ "):
            new_path = _strip_prefix(line[4:])
            i += 1
            continue
        match = _HUNK_RE.match(line)
        if not match:
            i += 1
            continue

        file_path = new_path if new_path and new_path != _DEV_NULL else old_path
        if not file_path or file_path == _DEV_NULL:
            raise DiffParseError(f"hunk without a file header at line {i + 1}")
        old_remaining = int(match.group(2) or "1")
        new_remaining = int(match.group(4) or "1")
        new_start = int(match.group(3))
        new_count = new_remaining

        body = [line]
        i += 1
        while i < len(lines) and (old_remaining > 0 or new_remaining > 0):
            body_line = lines[i]
            if body_line.startswith("+"):
                new_remaining -= 1
            elif body_line.startswith("-"):
                old_remaining -= 1
            elif body_line.startswith(" ") or body_line == "":
                old_remaining -= 1
                new_remaining -= 1
            elif not body_line.startswith("\\"):
                break
            body.append(body_line)
            i += 1
        # "\ No newline at end of file" trails the counted lines
        while i < len(lines) and lines[i].startswith("\\"):
            body.append(lines[i])
            i += 1

        start_line = max(new_start, 1)
        end_line = start_line + new_count - 1 if new_count > 0 else start_line
        hunks.append(ParsedHunk(
            index=len(hunks) + 1,
            file_path=file_path,
            start_line=start_line,
            end_line=end_line,
            content="\n".join(body),
        ))

    if not hunks:
        raise DiffParseError("no hunks found")
    logger.debug(f"Parsed {len(hunks)} hunks across {len({h.file_path for h in hunks})} files")
    return ParsedDiff(hunks)


class FileFilter:
    """Include/exclude glob patterns over file paths.

    With include patterns a path must match at least one; with exclude
    patterns it must match none. ``*`` also matches across ``/``.
    """

    def __init__(self, include: list[str] | tuple[str, ...] = (), exclude: list[str] | tuple[str, ...] = ()) -> None:
        for pattern in (*include, *exclude):
            if not pattern.strip():
                raise FilterError("empty glob pattern")
        self.include = tuple(include)
        self.exclude = tuple(exclude)
        self._include_res = [re.compile(fnmatch.translate(p)) for p in self.include]
        self._exclude_res = [re.compile(fnmatch.translate(p)) for p in self.exclude]

    def is_empty(self) -> bool:
        return not self.include and not self.exclude

    def matches(self, path: str) -> bool:
        if self._include_res and not any(r.match(path) for r in self._include_res):
            return False
        if any(r.match(path) for r in self._exclude_res):
            return False
        return True

    def apply(self, parsed: ParsedDiff) -> ParsedDiff:
        """Keep matching hunks, re-indexed from 1.

        Raises:
            FilterError: If no hunk passes the filter.
        """
        if self.is_empty():
            return parsed
        kept = [h for h in parsed.hunks if self.matches(h.file_path)]
        if not kept:
            raise FilterError("no files match the specified filters")
        logger.debug(f"Filter kept {len(kept)} of {len(parsed.hunks)} hunks")
        return ParsedDiff([
            ParsedHunk(
                index=n,
                file_path=h.file_path,
                start_line=h.start_line,
                end_line=h.end_line,
                content=h.content,
            )
            for n, h in enumerate(kept, 1)
        ])
