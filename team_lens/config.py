"""Runtime configuration for TeamLens.

``MonitorConfig`` holds the directory layout and timing knobs shared by the
collector, the filesystem watcher and the web API.  Values come from explicit
arguments (CLI flags) or from ``TEAM_LENS_*`` environment variables.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class InitializationError(RuntimeError):
    """Raised when the monitor cannot be set up (no home dir, no watch)."""


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r; using %s", name, value, default)
        return default


def default_claude_dir() -> Path:
    """Return ``~/.claude`` for the current user.

    Raises:
        InitializationError: If the home directory cannot be determined.
    """
    try:
        return Path.home() / ".claude"
    except (RuntimeError, KeyError) as exc:
        raise InitializationError(f"Cannot resolve home directory: {exc}") from exc


class MonitorConfig(BaseModel):
    """Directory layout and timing for one monitor instance.

    Attributes:
        claude_dir: Root of the Claude data directory (``~/.claude``).
        poll_interval: Seconds between periodic recomputation passes.
        debounce_delay: Seconds to wait after a filesystem change before
            recomputing, so a burst of writes produces one pass.
        stream_interval: Seconds between snapshots pushed on the SSE stream.
    """

    claude_dir: Path = Field(default_factory=default_claude_dir)
    poll_interval: float = Field(default=5.0, gt=0)
    debounce_delay: float = Field(default=0.1, ge=0)
    stream_interval: float = Field(default=1.0, gt=0)

    @property
    def teams_dir(self) -> Path:
        return self.claude_dir / "teams"

    @property
    def tasks_dir(self) -> Path:
        return self.claude_dir / "tasks"

    @property
    def projects_dir(self) -> Path:
        return self.claude_dir / "projects"

    @classmethod
    def from_env(cls, claude_dir: Optional[str | Path] = None) -> "MonitorConfig":
        """Build a config from ``TEAM_LENS_*`` environment variables.

        An explicit ``claude_dir`` argument wins over the environment.
        """
        values: dict = {
            "poll_interval": _env_float("TEAM_LENS_POLL_INTERVAL", 5.0),
            "debounce_delay": _env_float("TEAM_LENS_DEBOUNCE_MS", 100.0) / 1000.0,
        }
        root = claude_dir or os.getenv("TEAM_LENS_CLAUDE_DIR")
        if root:
            values["claude_dir"] = Path(root).expanduser()
        return cls(**values)
