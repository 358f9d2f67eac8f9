"""Tests for snapwatch status command."""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
from click.testing import CliRunner

from snapwatch.cli.main import cli
from snapwatch.daemon.lifecycle import write_pid_file

runner = CliRunner()

STATUS = {
    "current_directory": "/srv/app",
    "watch": {"status": "active", "active": True, "watched_directory": "/srv/app"},
    "refresh": {"state": "idle", "last_error": None},
    "snapshot": {"file_count": 12},
}


def _response(data: dict) -> MagicMock:
    response = MagicMock()
    response.json.return_value = data
    return response


class TestStatusCommand:
    """snapwatch status tests."""

    def test_not_running(self) -> None:
        """A stopped service is reported plainly."""
        result = runner.invoke(cli, ["status"])
        assert result.exit_code == 0
        assert "Service: not running" in result.output

    def test_not_running_json(self) -> None:
        """JSON output for a stopped service."""
        result = runner.invoke(cli, ["status", "--json"])
        assert json.loads(result.output) == {"running": False}

    def test_running(self, state_dir: Path) -> None:
        """A running service shows directory, watch and snapshot lines."""
        write_pid_file(state_dir, 7700)
        with patch("snapwatch.cli.status.httpx.get", return_value=_response(STATUS)) as get:
            result = runner.invoke(cli, ["status"])

        assert result.exit_code == 0, result.output
        assert get.call_args.args[0] == "http://127.0.0.1:7700/status"
        assert f"Service: running (PID {os.getpid()}, port 7700)" in result.output
        assert "Watching: /srv/app" in result.output
        assert "Snapshot: 12 files" in result.output

    def test_running_json(self, state_dir: Path) -> None:
        """JSON output merges discovery info with the status payload."""
        write_pid_file(state_dir, 7700)
        with patch("snapwatch.cli.status.httpx.get", return_value=_response(STATUS)):
            result = runner.invoke(cli, ["status", "--json"])
        data = json.loads(result.output)
        assert data["running"] is True
        assert data["port"] == 7700
        assert data["snapshot"]["file_count"] == 12

    def test_watch_off_and_last_error(self, state_dir: Path) -> None:
        """An inactive watch and a refresh error are both shown."""
        write_pid_file(state_dir, 7700)
        payload = {
            **STATUS,
            "watch": {"active": False},
            "refresh": {"state": "idle", "last_error": "Cannot read scan root"},
        }
        with patch("snapwatch.cli.status.httpx.get", return_value=_response(payload)):
            result = runner.invoke(cli, ["status"])
        assert "Watching: off" in result.output
        assert "Last error: Cannot read scan root" in result.output

    def test_unreachable(self, state_dir: Path) -> None:
        """A running pid whose port does not answer reports the error."""
        write_pid_file(state_dir, 7700)
        with patch(
            "snapwatch.cli.status.httpx.get",
            side_effect=httpx.ConnectError("connection refused"),
        ):
            result = runner.invoke(cli, ["status"])
        assert result.exit_code == 0
        assert "Status: unavailable (connection refused)" in result.output
