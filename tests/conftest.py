"""Shared fixtures: a throwaway ``~/.claude`` tree and a config pointing at it."""

from __future__ import annotations

from pathlib import Path
from typing import Dict

import pytest

from team_lens.config import MonitorConfig
from tests.helpers import build_sample_team


@pytest.fixture()
def claude_dir(tmp_path: Path) -> Path:
    """Return an empty ``.claude`` directory with its three roots created."""
    root = tmp_path / ".claude"
    for sub in ("teams", "tasks", "projects"):
        (root / sub).mkdir(parents=True)
    return root


@pytest.fixture()
def config(claude_dir: Path) -> MonitorConfig:
    """Return a config with short timings suitable for threaded tests."""
    return MonitorConfig(
        claude_dir=claude_dir,
        poll_interval=0.2,
        debounce_delay=0.01,
        stream_interval=0.05,
    )


@pytest.fixture()
def sample_team(claude_dir: Path) -> Dict[str, Path]:
    """Populate ``claude_dir`` with the ``alpha`` team from ``tests.helpers``."""
    return build_sample_team(claude_dir)
