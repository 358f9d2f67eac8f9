"""Markdown export of a snapshot, one fenced code block per file."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import PurePosixPath

from snapwatch.scanner.models import ScannedFile, Snapshot


def format_file(relative_path: str, content: str) -> str:
    """Render one file as a Markdown heading plus fenced block.

    The fence is tagged with the bare file extension ("py", "ts", ...).
    """
    extension = PurePosixPath(relative_path).suffix.lstrip(".")
    return f"### File: `{relative_path}`\n```{extension}\n{content}\n```"


def format_files(files: Iterable[ScannedFile]) -> str:
    """Render files sorted by path, separated by blank lines."""
    ordered = sorted(files, key=lambda f: f.relative_path)
    return "\n\n".join(format_file(f.relative_path, f.content) for f in ordered)


def export_markdown(snapshot: Snapshot) -> str:
    """Render a whole snapshot; empty string for an empty snapshot."""
    if not snapshot.files:
        return ""
    return format_files(snapshot.files) + "\n"
