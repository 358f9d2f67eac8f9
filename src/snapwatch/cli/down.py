"""snapwatch down command - stop the running service."""

from __future__ import annotations

import time

import click

from snapwatch.config.loader import load_config
from snapwatch.daemon.lifecycle import is_server_running, read_server_info, stop_daemon


@click.command()
def down_command() -> None:
    """Stop the SnapWatch service."""
    state_dir = load_config().state.state_path

    info = read_server_info(state_dir)
    if info is None or not is_server_running(state_dir):
        click.echo("Service is not running.")
        return

    pid, port = info
    click.echo(f"Stopping service (PID {pid}, port {port})...")

    if not stop_daemon(state_dir):
        click.echo("Failed to send stop signal.", err=True)
        raise SystemExit(1)

    # Wait for process to exit (up to 5 seconds)
    for _ in range(50):
        if not is_server_running(state_dir):
            click.echo("Service stopped.")
            return
        time.sleep(0.1)

    click.echo("Service did not stop within 5 seconds.", err=True)
    raise SystemExit(1)
