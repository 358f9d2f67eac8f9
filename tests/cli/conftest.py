"""Shared fixtures for CLI tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest


@pytest.fixture(autouse=True)
def state_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Isolate commands from the user's global config and state directory."""
    state = tmp_path / "state"
    monkeypatch.setenv("SNAPWATCH__STATE__STATE_DIR", str(state))
    with patch("snapwatch.config.loader.GLOBAL_CONFIG_PATH", tmp_path / "no-config.yaml"):
        yield state
