"""Export recorded review comments."""

import json
from pathlib import Path

from .session import CommentRecord


def export_comments_markdown(records: list[CommentRecord], output_path: Path | None = None, title: str = "Review comments") -> str:
    """Export recorded comments to Markdown format."""
    lines = [f"# {title}", ""]
    if not records:
        lines.append("_No comments recorded._")
        lines.append("")

    for record in records:
        lines.append(f"## Step {record.step_id}: {record.title}")
        lines.append("")
        for path, start, end in record.hunks:
            lines.append(f"- `{path}` lines {start}-{end}")
        if record.hunks:
            lines.append("")
        lines.append(record.comment)
        lines.append("")

    content = "\n".join(lines)

    if output_path:
        output_path.write_text(content)

    return content


def export_comments_json(records: list[CommentRecord], output_path: Path | None = None) -> str:
    """Export recorded comments to JSON format."""
    data = [
        {
            "step_id": record.step_id,
            "title": record.title,
            "comment": record.comment,
            "hunks": [
                {"file_path": path, "start_line": start, "end_line": end}
                for path, start, end in record.hunks
            ],
        }
        for record in records
    ]

    content = json.dumps(data, indent=2)

    if output_path:
        output_path.write_text(content)

    return content


def write_export(records: list[CommentRecord], output_path: Path) -> str:
    """Write records in the format implied by the file extension."""
    if output_path.suffix.lower() == ".json":
        return export_comments_json(records, output_path)
    return export_comments_markdown(records, output_path)
