"""Watchdog-based filesystem notifier for TeamLens.

This module provides ``FileSystemWatcher``, a wrapper around the ``watchdog``
library that monitors the ``teams`` and ``tasks`` trees and forwards every
relevant change as a signal into a ``ChangeQueue``.  The watcher knows
nothing about what the collector does with the signal.

Each directory gets its own **non-recursive** watch.  The set of watches is
owned by the watcher and updated from the event handler: a newly created (or
moved-in) directory is scheduled immediately together with any
subdirectories it already contains, and a deleted (or moved-away) directory
is unscheduled along with its descendants.

A file written into a brand-new directory before its watch is attached is
not reported by the OS.  The creation of the directory itself is, so the
collector still rescans, and the periodic pass picks up anything later.

Example usage::

    changes = ChangeQueue()
    watcher = FileSystemWatcher(
        paths=[config.teams_dir, config.tasks_dir],
        changes=changes,
    )
    watcher.start()
    # ... later ...
    watcher.stop()
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Dict, List, Optional

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from team_lens.config import InitializationError
from team_lens.signals import ChangeQueue

logger = logging.getLogger(__name__)


class TeamLensEventHandler(FileSystemEventHandler):
    """Watchdog event handler that turns filesystem events into change signals.

    Args:
        changes: The queue to signal.
        watcher: The owning watcher, told about directories appearing and
            disappearing so it can keep its watch set current.
        ignored_patterns: Extra path fragments to ignore.  Editor swap
            files, VCS metadata and ``__pycache__`` are always ignored.
    """

    # Path components that are always ignored.
    _IGNORED_PARTS: tuple[str, ...] = ("__pycache__", ".git")
    # File-name suffixes that are always ignored.
    _IGNORED_SUFFIXES: tuple[str, ...] = (".swp", ".swo", "~", ".lock", ".DS_Store")

    def __init__(
        self,
        changes: ChangeQueue,
        watcher: Optional["FileSystemWatcher"] = None,
        ignored_patterns: Optional[List[str]] = None,
    ) -> None:
        super().__init__()
        self._changes = changes
        self._watcher = watcher
        self._extra_ignored: tuple[str, ...] = tuple(ignored_patterns or [])

    # ------------------------------------------------------------------
    # Watchdog callbacks
    # ------------------------------------------------------------------

    def on_created(self, event: FileSystemEvent) -> None:  # type: ignore[override]
        path = os.fsdecode(event.src_path)
        if isinstance(event, DirCreatedEvent) and self._watcher is not None:
            self._watcher.add_tree(path)
        self._handle(path)

    def on_modified(self, event: FileSystemEvent) -> None:  # type: ignore[override]
        # A directory mtime bump always accompanies a child event we already see.
        if isinstance(event, DirModifiedEvent):
            return
        self._handle(os.fsdecode(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:  # type: ignore[override]
        path = os.fsdecode(event.src_path)
        if isinstance(event, DirDeletedEvent) and self._watcher is not None:
            self._watcher.remove_tree(path)
        self._handle(path)

    def on_moved(self, event: FileSystemEvent) -> None:  # type: ignore[override]
        """Handle renames.

        Atomic writers save to a temporary name and rename it over the real
        file, so the destination is what matters.
        """
        src = os.fsdecode(event.src_path)
        dest = os.fsdecode(getattr(event, "dest_path", "") or "")
        if isinstance(event, DirMovedEvent) and self._watcher is not None:
            self._watcher.remove_tree(src)
            if dest:
                self._watcher.add_tree(dest)
        self._handle(dest or src)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def should_ignore(self, path: str) -> bool:
        """Return ``True`` if ``path`` is editor or VCS noise."""
        p = Path(path)
        if any(part in self._IGNORED_PARTS for part in p.parts):
            return True
        if p.name.endswith(self._IGNORED_SUFFIXES):
            return True
        return any(pattern in path for pattern in self._extra_ignored)

    def _handle(self, path: str) -> None:
        if not path or self.should_ignore(path):
            logger.debug("Ignoring path %s", path)
            return
        if self._changes.notify(path):
            logger.debug("Change signalled for %s", path)


class FileSystemWatcher:
    """Watches directory trees and signals a ``ChangeQueue`` on change.

    Args:
        paths: Root directories to watch.  Missing roots are created.
        changes: The queue to signal.
        ignored_patterns: Optional extra path fragments to ignore.
    """

    def __init__(
        self,
        paths: List[str | Path],
        changes: ChangeQueue,
        ignored_patterns: Optional[List[str]] = None,
    ) -> None:
        self._paths = [Path(p).expanduser().resolve() for p in paths]
        self._changes = changes
        self._handler = TeamLensEventHandler(
            changes=changes, watcher=self, ignored_patterns=ignored_patterns
        )
        self._observer: Optional[Observer] = None
        self._watches: Dict[str, ObservedWatch] = {}
        self._lock = threading.Lock()
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start the observer and watch every root and its subdirectories.

        ``self._lock`` only guards the watch set; it is never held while
        calling into the observer, whose dispatch thread calls back into
        this object with its own lock held.

        Raises:
            RuntimeError: If the watcher has already been started.
            InitializationError: If a root cannot be created or watched.
        """
        with self._lock:
            if self._started:
                raise RuntimeError("FileSystemWatcher is already running")

        for path in self._paths:
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise InitializationError(f"cannot create {path}: {exc}") from exc

        observer = Observer()
        roots: Dict[str, ObservedWatch] = {}
        current: Optional[Path] = None
        try:
            observer.start()
            for current in self._paths:
                roots[str(current)] = observer.schedule(
                    self._handler, str(current), recursive=False
                )
                logger.info("Watching %s", current)
        except OSError as exc:
            observer.stop()
            observer.join(timeout=10)
            raise InitializationError(f"cannot watch {current or self._paths}: {exc}") from exc

        with self._lock:
            self._observer = observer
            self._watches = roots
            self._started = True
        for path in self._paths:
            self._add_subdirectories(str(path))
        logger.info(
            "FileSystemWatcher started (%d directories)", len(self.watched_directories)
        )

    def stop(self) -> None:
        """Stop the observer and wait for its thread to exit.  Idempotent."""
        with self._lock:
            if not self._started or self._observer is None:
                return
            logger.info("Stopping FileSystemWatcher")
            observer = self._observer
            self._observer = None
            self._started = False
            self._watches = {}
        observer.stop()
        observer.join(timeout=10)
        logger.info("FileSystemWatcher stopped")

    # ------------------------------------------------------------------
    # Watch set
    # ------------------------------------------------------------------

    def add_tree(self, path: str) -> None:
        """Watch ``path`` and every directory below it.

        Failures are logged and otherwise ignored; the periodic pass covers
        any directory that could not be watched.
        """
        if self._add_watch(path):
            self._add_subdirectories(path)

    def remove_tree(self, path: str) -> None:
        """Drop the watches of ``path`` and every directory below it.

        Root watches are kept.
        """
        prefix = path.rstrip(os.sep) + os.sep
        roots = {str(p) for p in self._paths}
        with self._lock:
            observer = self._observer
            if observer is None:
                return
            doomed = [
                (p, self._watches.pop(p)) for p in list(self._watches)
                if (p == path or p.startswith(prefix)) and p not in roots
            ]
        for p, watch in doomed:
            try:
                observer.unschedule(watch)
            except (KeyError, OSError) as exc:
                logger.debug("Watch for %s already gone: %s", p, exc)
        if doomed:
            logger.debug("Stopped watching %d directories under %s", len(doomed), path)

    def _add_watch(self, path: str) -> bool:
        with self._lock:
            observer = self._observer
            if observer is None:
                return False
            if path in self._watches:
                return True
        if self._handler.should_ignore(path):
            return False
        try:
            watch = observer.schedule(self._handler, path, recursive=False)
        except OSError as exc:
            logger.warning("Cannot watch new directory %s: %s", path, exc)
            return False
        with self._lock:
            if self._observer is not observer:
                return False
            self._watches[path] = watch
        logger.debug("Watching %s", path)
        return True

    def _add_subdirectories(self, root: str) -> None:
        for dirpath, dirnames, _ in os.walk(root, onerror=self._walk_error):
            dirnames[:] = [
                d for d in dirnames
                if not self._handler.should_ignore(os.path.join(dirpath, d))
            ]
            for d in dirnames:
                self._add_watch(os.path.join(dirpath, d))

    @staticmethod
    def _walk_error(exc: OSError) -> None:
        logger.warning("Cannot list %s: %s", exc.filename, exc)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        """Return ``True`` if the observer is currently active."""
        with self._lock:
            return self._started and self._observer is not None

    @property
    def watched_paths(self) -> List[Path]:
        """Return the resolved root directories."""
        return list(self._paths)

    @property
    def watched_directories(self) -> List[str]:
        """Return every directory currently holding a watch, sorted."""
        with self._lock:
            return sorted(self._watches)

    # ------------------------------------------------------------------
    # Context manager support
    # ------------------------------------------------------------------

    def __enter__(self) -> "FileSystemWatcher":
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()
