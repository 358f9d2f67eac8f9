"""Service lifecycle management: pid/port discovery files and the server loop."""

from __future__ import annotations

import asyncio
import contextlib
import os
import signal
from pathlib import Path

import structlog
import uvicorn

from snapwatch.config.models import SnapWatchConfig
from snapwatch.core.errors import ScanError
from snapwatch.daemon.service import SnapshotService

logger = structlog.get_logger()

# Discovery files, relative to the state directory
PID_FILE = "daemon.pid"
PORT_FILE = "daemon.port"


def write_pid_file(state_dir: Path, port: int) -> None:
    """Write PID and port files for service discovery."""
    state_dir.mkdir(parents=True, exist_ok=True)
    pid_path = state_dir / PID_FILE
    port_path = state_dir / PORT_FILE

    pid_path.write_text(str(os.getpid()))
    port_path.write_text(str(port))

    logger.debug("pid_file_written", pid_path=str(pid_path), port=port)


def remove_pid_file(state_dir: Path) -> None:
    """Remove PID and port files on shutdown."""
    for path in (state_dir / PID_FILE, state_dir / PORT_FILE):
        with contextlib.suppress(FileNotFoundError):
            path.unlink()


def read_server_info(state_dir: Path) -> tuple[int, int] | None:
    """Read service PID and port from files. Returns (pid, port) or None."""
    try:
        pid = int((state_dir / PID_FILE).read_text().strip())
        port = int((state_dir / PORT_FILE).read_text().strip())
        return (pid, port)
    except (FileNotFoundError, ValueError):
        return None


def is_server_running(state_dir: Path) -> bool:
    """Check if the service is running by verifying PID file and process."""
    info = read_server_info(state_dir)
    if info is None:
        return False

    pid, _ = info

    try:
        os.kill(pid, 0)
        return True
    except (OSError, ProcessLookupError):
        # Process doesn't exist - clean up stale files
        remove_pid_file(state_dir)
        return False


def stop_daemon(state_dir: Path) -> bool:
    """Stop a running service by sending SIGTERM. Returns True if signalled."""
    info = read_server_info(state_dir)
    if info is None:
        return False

    pid, _ = info

    try:
        os.kill(pid, signal.SIGTERM)
        logger.info("daemon_stop_signal_sent", pid=pid)
        return True
    except (OSError, ProcessLookupError):
        remove_pid_file(state_dir)
        return False


async def run_server(
    config: SnapWatchConfig,
    *,
    directory: Path | None = None,
    watch: bool = False,
) -> None:
    """Run the service until a shutdown signal.

    With a directory, it is scanned (and optionally watched) right away;
    without one, the last used directory is reloaded without watching.
    """
    from snapwatch.daemon.app import create_app

    service = SnapshotService(config)
    app = create_app(service)

    uvicorn_config = uvicorn.Config(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level="warning",  # Use structlog instead
        ws="none",
    )
    server = uvicorn.Server(uvicorn_config)

    state_dir = config.state.state_path
    write_pid_file(state_dir, config.server.port)

    # Setup signal handlers with force exit on second signal
    loop = asyncio.get_running_loop()
    shutdown_count = 0
    force_exit_task: asyncio.Task[None] | None = None

    async def force_exit_after_timeout() -> None:
        """Force exit if graceful shutdown takes too long."""
        await asyncio.sleep(config.server.shutdown_timeout_sec)
        logger.info("forcing_exit_after_timeout")
        server.force_exit = True

    def signal_handler() -> None:
        nonlocal shutdown_count, force_exit_task
        shutdown_count += 1
        logger.info("shutdown_signal_received", count=shutdown_count)
        server.should_exit = True
        if shutdown_count == 1:
            force_exit_task = loop.create_task(force_exit_after_timeout())
        else:
            # Second signal - force immediate exit
            server.force_exit = True
            if force_exit_task:
                force_exit_task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await service.start(resume=directory is None)
        if directory is not None:
            try:
                await service.scan(directory, watch=watch)
            except ScanError as e:
                logger.error("initial_scan_failed", directory=str(directory), error=e.message)
        base_url = f"http://{config.server.host}:{config.server.port}"
        logger.info("server_started", url=base_url, directory=str(service.current_directory))
        await server.serve()
    finally:
        try:
            async with asyncio.timeout(config.server.shutdown_timeout_sec):
                await service.stop()
        except TimeoutError:
            logger.warning(
                "server_stop_timeout",
                message=f"Shutdown timed out after {config.server.shutdown_timeout_sec}s",
            )
        remove_pid_file(state_dir)
