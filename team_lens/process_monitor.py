"""Psutil-based scan of running Claude processes.

This module provides ``ProcessScanner``, which lists the live Claude CLI
processes on the machine.  Unlike the collector it holds no state between
calls: every recomputation pass takes a fresh look at the process table.

A process counts as Claude when its lower-cased command line mentions the
npm package (``@anthropic-ai/claude-code``) or ``claude-code``, or when its
executable is literally named ``claude``.

Example usage::

    scanner = ProcessScanner()
    for proc in scanner.scan():
        print(proc.pid, proc.command)
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import List, NamedTuple, Optional, Sequence

import psutil

from team_lens.models import ProcessInfo

logger = logging.getLogger(__name__)

COMMAND_MARKERS: tuple[str, ...] = ("@anthropic-ai/claude-code", "claude-code")
EXECUTABLE_NAME = "claude"

# ---------------------------------------------------------------------------
# Internal data structures
# ---------------------------------------------------------------------------


class _ProcessSnapshot(NamedTuple):
    """Lightweight immutable snapshot of a single running process."""

    pid: int
    name: str
    argv: tuple[str, ...]
    create_time: float  # epoch seconds

    @property
    def cmdline(self) -> str:
        return " ".join(self.argv) if self.argv else self.name


# ---------------------------------------------------------------------------
# Predicate
# ---------------------------------------------------------------------------


def is_claude_command(argv: Sequence[str] | str, name: str = "") -> bool:
    """Return ``True`` if a command line belongs to a Claude process.

    Args:
        argv: The process arguments, or an already joined command line.
        name: The process name reported by the OS, used when ``argv`` is
            empty (kernel threads, denied access).

    Returns:
        ``True`` if the process should be listed.
    """
    if isinstance(argv, str):
        parts = argv.split()
        joined = argv
    else:
        parts = list(argv)
        joined = " ".join(parts)

    lowered = joined.lower()
    if any(marker in lowered for marker in COMMAND_MARKERS):
        return True

    executable = parts[0] if parts else name
    return os.path.basename(executable).lower() == EXECUTABLE_NAME


# ---------------------------------------------------------------------------
# ProcessScanner
# ---------------------------------------------------------------------------


class ProcessScanner:
    """Lists running Claude processes via ``psutil.process_iter``.

    Args:
        predicate: Optional replacement for ``is_claude_command``, called
            with ``(argv, name)``.
    """

    _ATTRS = ["pid", "name", "cmdline", "create_time"]

    def __init__(self, predicate=None) -> None:
        self._predicate = predicate or is_claude_command

    def scan(self) -> List[ProcessInfo]:
        """Return matching processes sorted by pid.

        Processes that vanish or deny access mid-scan are skipped.  A
        failure of the scan as a whole is logged and yields an empty list.
        """
        found: List[ProcessInfo] = []
        try:
            for proc in psutil.process_iter(self._ATTRS):
                snapshot = _safe_process_snapshot(proc)
                if snapshot is None:
                    continue
                if not self._predicate(snapshot.argv, snapshot.name):
                    continue
                found.append(
                    ProcessInfo(
                        pid=snapshot.pid,
                        command=snapshot.cmdline,
                        started_at=_started_at(snapshot.create_time),
                    )
                )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Process scan failed: %s", exc)
            return []

        found.sort(key=lambda p: p.pid)
        logger.debug("Found %d Claude processes", len(found))
        return found


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


def _started_at(create_time: float) -> Optional[datetime]:
    if not create_time or create_time <= 0:
        return None
    return datetime.fromtimestamp(create_time, tz=timezone.utc)


def _safe_process_snapshot(proc: psutil.Process) -> Optional[_ProcessSnapshot]:
    """Attempt to build a ``_ProcessSnapshot`` from a psutil process.

    Args:
        proc: A ``psutil.Process`` yielded by ``process_iter`` with ``info``
            pre-populated.

    Returns:
        A ``_ProcessSnapshot``, or ``None`` if the process has disappeared
        or access is denied.
    """
    try:
        info = proc.info  # type: ignore[attr-defined]
        pid: int = info.get("pid") or proc.pid
        name: str = info.get("name") or ""
        create_time: float = info.get("create_time") or 0.0
        argv = tuple(info.get("cmdline") or ())
        return _ProcessSnapshot(pid=pid, name=name, argv=argv, create_time=create_time)
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        return None
    except Exception as exc:  # noqa: BLE001
        logger.debug("Unexpected error reading process info: %s", exc)
        return None
