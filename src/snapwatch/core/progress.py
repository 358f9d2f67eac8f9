"""User-facing console feedback for CLI operations.

Usage::

    from snapwatch.core.progress import status, spinner

    status("Watching /srv/app", style="success")  # ✓ Watching /srv/app

    with spinner("Scanning /srv/app"):
        files = walk(root, config)
"""

from __future__ import annotations

import math
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from rich.console import Console
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

    from snapwatch.scanner.models import ScannedFile

_console = Console(stderr=True)

_STYLES = {
    "success": "[green]✓[/green] ",
    "error": "[red]✗[/red] ",
    "warning": "[yellow]![/yellow] ",
    "info": "  ",
    "none": "",
}


def _get_logger() -> BoundLogger:
    """Get logger lazily to respect runtime config."""
    from snapwatch.core.logging import get_logger

    return get_logger("progress")


def _is_tty() -> bool:
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


def get_console() -> Console:
    """Get the shared Rich console instance."""
    return _console


def status(message: str, *, style: str = "info", indent: int = 0) -> None:
    """Print a styled status message to stderr."""
    prefix = _STYLES.get(style, "")
    padding = " " * indent
    _console.print(f"{padding}{prefix}{message}", highlight=False)
    _get_logger().debug("status", message=message, style=style)


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """Return "1 file" or "3 files"."""
    if plural is None:
        plural = singular + "s"
    word = singular if count == 1 else plural
    return f"{count} {word}"


@contextmanager
def spinner(message: str, *, indent: int = 0) -> Iterator[None]:
    """Show a spinner while the block runs; plain message when not a TTY."""
    padding = " " * indent
    if _is_tty():
        with _console.status(f"{padding}[cyan]{message}[/cyan]", spinner="dots"):
            yield
    else:
        _console.print(f"{padding}{message}...", highlight=False)
        yield


def make_files_table(files: list[ScannedFile] | tuple[ScannedFile, ...]) -> Table:
    """Create a Rich Table listing scanned files sorted by path."""
    table = Table(box=None, padding=(0, 1), pad_edge=False)
    table.add_column("path", style="cyan")
    table.add_column("lines", justify="right")
    table.add_column("chars", justify="right")

    for f in sorted(files, key=lambda f: f.relative_path):
        table.add_row(f.relative_path, str(f.content.count("\n") + 1), str(len(f.content)))
    return table


def make_extension_table(extensions: dict[str, int], *, max_bar_width: int = 20) -> Table:
    """Create a Rich Table for a file extension breakdown.

    Args:
        extensions: Dict mapping extension (e.g. ".py") to file count
        max_bar_width: Maximum width of the bar column
    """
    table = Table(show_header=False, box=None, padding=(0, 1), pad_edge=False)
    table.add_column("ext", style="cyan", width=8)
    table.add_column("count", justify="right", width=5)
    table.add_column("bar", width=max_bar_width)

    sorted_exts = sorted(extensions.items(), key=lambda x: -x[1])
    if not sorted_exts:
        return table

    max_sqrt = math.sqrt(sorted_exts[0][1])
    for ext, count in sorted_exts:
        bar_len = int(max_bar_width * math.sqrt(count) / max_sqrt) if max_sqrt > 0 else 0
        table.add_row(ext or "(none)", str(count), Text("█" * bar_len, style="blue"))

    return table
