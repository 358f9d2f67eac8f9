"""snapwatch status command - show service status."""

import json

import click
import httpx

from snapwatch.config.loader import load_config
from snapwatch.daemon.lifecycle import is_server_running, read_server_info


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def status_command(as_json: bool) -> None:
    """Show SnapWatch service status."""
    config = load_config()
    state_dir = config.state.state_path

    info = read_server_info(state_dir)
    if info is None or not is_server_running(state_dir):
        if as_json:
            click.echo(json.dumps({"running": False}))
        else:
            click.echo("Service: not running")
        return

    pid, port = info

    try:
        response = httpx.get(f"http://{config.server.host}:{port}/status", timeout=5.0)
        status_data = response.json()
    except (httpx.RequestError, json.JSONDecodeError) as e:
        if as_json:
            click.echo(json.dumps({"running": True, "pid": pid, "port": port, "error": str(e)}))
        else:
            click.echo(f"Service: running (PID {pid}, port {port})")
            click.echo(f"Status: unavailable ({e})")
        return

    if as_json:
        click.echo(json.dumps({"running": True, "pid": pid, "port": port, **status_data}))
        return

    click.echo(f"Service: running (PID {pid}, port {port})")
    click.echo(f"Directory: {status_data.get('current_directory') or '(none)'}")

    watch = status_data.get("watch", {})
    if watch.get("active"):
        click.echo(f"Watching: {watch.get('watched_directory')}")
    else:
        click.echo("Watching: off")

    refresh = status_data.get("refresh", {})
    click.echo(f"Refresh: {refresh.get('state', 'unknown')}")
    if refresh.get("last_error"):
        click.echo(f"  Last error: {refresh['last_error']}")

    snapshot = status_data.get("snapshot", {})
    click.echo(f"Snapshot: {snapshot.get('file_count', 0)} files")
