"""SnapWatch CLI - snapwatch command."""

import click

from snapwatch.cli.down import down_command
from snapwatch.cli.scan import export_command, scan_command
from snapwatch.cli.status import status_command
from snapwatch.cli.up import up_command
from snapwatch.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="snapwatch")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """SnapWatch - live, filtered snapshots of a directory's text files."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "WARNING")


cli.add_command(scan_command, name="scan")
cli.add_command(export_command, name="export")
cli.add_command(up_command, name="up")
cli.add_command(down_command, name="down")
cli.add_command(status_command, name="status")


if __name__ == "__main__":
    cli()
