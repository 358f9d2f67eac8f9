"""snapwatch scan / export commands - one-shot scans without the service."""

from __future__ import annotations

import json
from collections import Counter
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
from rich.console import Console

from snapwatch.config.models import FilterConfig
from snapwatch.core.errors import ScanError
from snapwatch.core.progress import make_extension_table, make_files_table, pluralize, spinner, status
from snapwatch.scanner.export import format_files
from snapwatch.scanner.models import ScannedFile
from snapwatch.scanner.walker import WalkStats, walk


def _filter_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by scan and export that build the FilterConfig."""
    options = [
        click.option(
            "--ext",
            "extensions",
            multiple=True,
            help="Allowed extension (repeatable). Replaces the default list.",
        ),
        click.option(
            "--all-types",
            is_flag=True,
            help="Allow every extension.",
        ),
        click.option(
            "--ignore-dir",
            "ignore_dirs",
            multiple=True,
            help="Extra directory name to skip (repeatable).",
        ),
        click.option(
            "--ignore-file",
            "ignore_files",
            multiple=True,
            help="Extra file name to skip (repeatable).",
        ),
        click.option(
            "--max-size",
            type=click.IntRange(min=0),
            default=None,
            help="Skip files larger than this many bytes.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def build_filter(
    extensions: tuple[str, ...],
    all_types: bool,
    ignore_dirs: tuple[str, ...],
    ignore_files: tuple[str, ...],
    max_size: int | None,
) -> FilterConfig:
    """Start from the application defaults and apply command line overrides."""
    base = FilterConfig.defaults()
    allowed: frozenset[str] | tuple[str, ...] = base.allowed_extensions
    if all_types:
        allowed = ()
    elif extensions:
        allowed = extensions
    return FilterConfig(
        allowed_extensions=allowed,
        ignored_dir_names=base.ignored_dir_names | set(ignore_dirs),
        ignored_file_names=base.ignored_file_names | set(ignore_files),
        max_file_size_bytes=base.max_file_size_bytes if max_size is None else max_size,
    )


def _run_walk(directory: Path, config: FilterConfig, stats: WalkStats) -> list[ScannedFile]:
    # The spinner stays out of the error path
    with spinner(f"Scanning {directory}"):
        try:
            return walk(directory, config, stats=stats)
        except ScanError as e:
            message = e.message
    raise click.ClickException(message)


@click.command()
@click.argument("directory", type=click.Path(path_type=Path))
@_filter_options
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def scan_command(
    directory: Path,
    extensions: tuple[str, ...],
    all_types: bool,
    ignore_dirs: tuple[str, ...],
    ignore_files: tuple[str, ...],
    max_size: int | None,
    as_json: bool,
) -> None:
    """Scan DIRECTORY once and list the files that pass the filter."""
    config = build_filter(extensions, all_types, ignore_dirs, ignore_files, max_size)
    stats = WalkStats()
    files = _run_walk(directory, config, stats)

    if as_json:
        click.echo(
            json.dumps(
                {
                    "root_directory": str(directory.resolve()),
                    "files": [f.to_dict() for f in files],
                    "skipped": stats.skipped_summary(),
                }
            )
        )
        return

    console = Console()
    if files:
        console.print(make_files_table(files))
        console.print()
        extensions_seen = Counter(Path(f.relative_path).suffix.lower() for f in files)
        console.print(make_extension_table(dict(extensions_seen)))
    skipped = sum(stats.skipped.values())
    status(
        f"{pluralize(len(files), 'file')} in {directory} ({skipped} skipped, "
        f"{stats.duration_seconds:.2f}s)",
        style="success",
    )


@click.command()
@click.argument("directory", type=click.Path(path_type=Path))
@_filter_options
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    default=None,
    help="Write Markdown to this file instead of stdout.",
)
def export_command(
    directory: Path,
    extensions: tuple[str, ...],
    all_types: bool,
    ignore_dirs: tuple[str, ...],
    ignore_files: tuple[str, ...],
    max_size: int | None,
    output: Path | None,
) -> None:
    """Scan DIRECTORY once and render the files as Markdown code blocks."""
    config = build_filter(extensions, all_types, ignore_dirs, ignore_files, max_size)
    files = _run_walk(directory, config, WalkStats())
    markdown = format_files(files) + "\n" if files else ""

    if output is None:
        click.echo(markdown, nl=False)
        return

    output.write_text(markdown, encoding="utf-8")
    status(f"Wrote {pluralize(len(files), 'file')} to {output}", style="success")
