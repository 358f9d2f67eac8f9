"""snapwatch up command - run the local service in the foreground."""

import asyncio
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

import click

from snapwatch.config.loader import load_config
from snapwatch.core.progress import get_console


def _version() -> str:
    try:
        return version("snapwatch")
    except PackageNotFoundError:
        return "dev"


def _print_banner(
    host: str, port: int, directory: Path | None, watch: bool, log_file: Path | None
) -> None:
    """Print startup banner with endpoint info using Rich."""
    console = get_console()
    banner_width = 64
    rule_line = "─" * banner_width
    base_url = f"http://{host}:{port}"

    console.print()
    console.print(rule_line, style="dim cyan", highlight=False)
    console.print(
        f"SnapWatch v{_version()} · Ready".center(banner_width), style="bold cyan", highlight=False
    )
    console.print(rule_line, style="dim cyan", highlight=False)
    console.print()

    console.print(f"  Events:          {base_url}/events", style="green", highlight=False)
    console.print(f"  Health Check:    {base_url}/health", highlight=False)
    console.print(f"  Status:          {base_url}/status", highlight=False)
    if directory:
        mode = "watching" if watch else "one-shot"
        console.print(f"  Directory:       {directory} ({mode})", style="dim", highlight=False)
    if log_file:
        console.print(f"  Logs:            {log_file}", style="dim", highlight=False)

    console.print()


@click.command()
@click.argument(
    "directory",
    default=None,
    required=False,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option("--watch", "-w", is_flag=True, help="Watch DIRECTORY and rescan on changes")
@click.option("--port", "-p", type=int, help="Override server port")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Extra YAML config layered over the global one",
)
def up_command(directory: Path | None, watch: bool, port: int | None, config_path: Path | None) -> None:
    """Start the SnapWatch service. Runs in foreground.

    DIRECTORY is scanned right away. Without it, the last used directory is
    reloaded (without watching).
    """
    from datetime import datetime
    from uuid import uuid4

    from snapwatch.config.models import LoggingConfig, LogOutputConfig
    from snapwatch.core.errors import ConfigError
    from snapwatch.core.logging import configure_logging
    from snapwatch.daemon.lifecycle import is_server_running, read_server_info, run_server

    if watch and directory is None:
        raise click.UsageError("--watch needs a DIRECTORY")

    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(e.message) from e
    if port is not None:
        config.server.port = port

    state_dir = config.state.state_path
    if is_server_running(state_dir):
        info = read_server_info(state_dir)
        if info:
            pid, server_port = info
            click.echo(f"Already running (PID {pid}, port {server_port})")
            return

    # Format: <state_dir>/logs/YYYY-MM-DD/HHMMSS-<6-digit-hash>.log
    now = datetime.now()
    run_id = uuid4().hex[:6]
    log_file = state_dir / "logs" / now.strftime("%Y-%m-%d") / f"{now.strftime('%H%M%S')}-{run_id}.log"

    # Configure logging: Console INFO, File DEBUG
    log_path = configure_logging(
        config=LoggingConfig(
            level="DEBUG",
            outputs=[
                LogOutputConfig(destination="stderr", format="console", level="INFO"),
                LogOutputConfig(destination=str(log_file), format="json", level="DEBUG"),
            ],
        ),
    )

    _print_banner(config.server.host, config.server.port, directory, watch, log_path)

    try:
        asyncio.run(run_server(config, directory=directory, watch=watch))
    except KeyboardInterrupt:
        click.echo("\nStopped")
