"""State collector: owns the published ``MonitorState`` snapshot.

Two background threads decide *when* to recompute:

- the periodic thread fires every ``poll_interval`` seconds;
- the debounce thread waits on the ``ChangeQueue`` fed by the filesystem
  watcher, sleeps ``debounce_delay`` so a burst of writes collapses into one
  signal, then recomputes.

Both call ``refresh``, which is guarded by a non-blocking try-enter lock so
at most one pass runs at a time.  A pass builds the next snapshot entirely
off to the side and only takes the write lock to swap the reference, so
``get_state`` is never blocked by a scan.

Example usage::

    collector = Collector(MonitorConfig(claude_dir="/home/me/.claude"))
    collector.start()
    state = collector.get_state()
    collector.stop()
"""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from team_lens.activity import parse_agent_activity
from team_lens.config import MonitorConfig
from team_lens.locks import ReadWriteLock
from team_lens.models import AgentInfo, MonitorState, TaskInfo, TeamInfo
from team_lens.process_monitor import ProcessScanner
from team_lens.resolver import resolve_member_log
from team_lens.signals import ChangeQueue
from team_lens.status import infer_member_status
from team_lens.tasks import scan_tasks
from team_lens.teams import load_latest_message, scan_teams
from team_lens.watcher import FileSystemWatcher

logger = logging.getLogger(__name__)

# Back-off before re-arming a change signal that found a pass in progress.
_RETRY_DELAY = 0.05


class Collector:
    """Aggregates teams, tasks, inboxes, activity logs and processes.

    Args:
        config: Directory layout and timing.  Defaults to
            ``MonitorConfig.from_env()``.
        process_scanner: Source of the process list.  Defaults to a
            ``ProcessScanner``.
    """

    def __init__(
        self,
        config: Optional[MonitorConfig] = None,
        process_scanner: Optional[ProcessScanner] = None,
    ) -> None:
        self._config = config or MonitorConfig.from_env()
        self._scanner = process_scanner or ProcessScanner()

        # Published snapshot
        self._state = MonitorState()
        self._state_lock = ReadWriteLock()
        self._pass_count = 0

        # Recompute guard
        self._refresh_guard = threading.Lock()

        # Background machinery
        self._changes = ChangeQueue()
        self._watcher: Optional[FileSystemWatcher] = None
        self._threads: List[threading.Thread] = []
        self._stop_event = threading.Event()
        self._lock = threading.Lock()
        self._started = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start watching and recomputing in the background.

        Returns once the first snapshot has been published.

        Raises:
            RuntimeError: If the collector is already running.
            InitializationError: If the filesystem watch cannot be set up.
        """
        with self._lock:
            if self._started:
                raise RuntimeError("Collector is already running")

            self._changes = ChangeQueue()
            self._stop_event.clear()
            watcher = FileSystemWatcher(
                paths=[self._config.teams_dir, self._config.tasks_dir],
                changes=self._changes,
            )
            watcher.start()
            self._watcher = watcher

            self._run_pass("initial")

            self._threads = [
                threading.Thread(
                    target=self._periodic_loop, name="team_lens_periodic", daemon=True
                ),
                threading.Thread(
                    target=self._debounce_loop, name="team_lens_debounce", daemon=True
                ),
            ]
            for thread in self._threads:
                thread.start()
            self._started = True
            logger.info(
                "Collector started (claude_dir=%s, interval=%.1fs, debounce=%.0fms)",
                self._config.claude_dir,
                self._config.poll_interval,
                self._config.debounce_delay * 1000,
            )

    def stop(self) -> None:
        """Stop background threads and release the filesystem watch.

        Idempotent.  The last published snapshot stays readable.
        """
        with self._lock:
            if not self._started:
                return
            logger.info("Stopping Collector")
            self._started = False
            watcher, self._watcher = self._watcher, None
            threads, self._threads = self._threads, []

        self._stop_event.set()
        self._changes.close()
        if watcher is not None:
            watcher.stop()

        for thread in threads:
            thread.join(timeout=self._config.poll_interval + 5.0)
            if thread.is_alive():
                logger.warning("Collector thread %s did not exit within timeout", thread.name)
        logger.info("Collector stopped")

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def get_state(self) -> MonitorState:
        """Return a private copy of the last published snapshot."""
        with self._state_lock.read_locked():
            state = self._state
        # Published snapshots are never mutated, so copying outside the
        # lock cannot observe a torn value.
        return state.model_copy(deep=True)

    def refresh(self) -> bool:
        """Run one recomputation pass and publish its snapshot.

        Returns:
            ``True`` if a pass ran, ``False`` if another pass was already in
            progress and this call did nothing.
        """
        if not self._refresh_guard.acquire(blocking=False):
            logger.debug("Refresh already in progress; skipping")
            return False
        try:
            state = self._build_state()
            with self._state_lock.write_locked():
                self._state = state
                self._pass_count += 1
        finally:
            self._refresh_guard.release()
        logger.debug(
            "Published snapshot: %d teams, %d processes",
            len(state.teams), len(state.processes),
        )
        return True

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> MonitorConfig:
        return self._config

    @property
    def is_running(self) -> bool:
        """Return ``True`` between a successful ``start`` and ``stop``."""
        with self._lock:
            return self._started

    @property
    def pass_count(self) -> int:
        """Number of snapshots published so far."""
        with self._state_lock.read_locked():
            return self._pass_count

    # ------------------------------------------------------------------
    # Context manager support
    # ------------------------------------------------------------------

    def __enter__(self) -> "Collector":
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Internal: trigger loops
    # ------------------------------------------------------------------

    def _run_pass(self, reason: str) -> bool:
        try:
            return self.refresh()
        except Exception as exc:  # noqa: BLE001
            logger.error("Unexpected error during %s refresh: %s", reason, exc)
            return True

    def _periodic_loop(self) -> None:
        logger.debug("Periodic loop started")
        while not self._stop_event.wait(timeout=self._config.poll_interval):
            self._run_pass("periodic")
        logger.debug("Periodic loop exited")

    def _debounce_loop(self) -> None:
        logger.debug("Debounce loop started")
        changes = self._changes
        while True:
            path = changes.get()
            if path is None:
                break
            if self._stop_event.wait(timeout=self._config.debounce_delay):
                break
            # Whatever arrived during the debounce window is covered by this pass.
            changes.drain()
            if not self._run_pass("change"):
                changes.notify(path)
                self._stop_event.wait(timeout=_RETRY_DELAY)
        logger.debug("Debounce loop exited")

    # ------------------------------------------------------------------
    # Internal: one pass
    # ------------------------------------------------------------------

    def _build_state(self) -> MonitorState:
        processes = self._scanner.scan()
        teams = self._collect_teams()
        return MonitorState(teams=teams, processes=processes)

    def _collect_teams(self) -> List[TeamInfo]:
        try:
            teams = scan_teams(self._config.teams_dir)
        except OSError as exc:
            logger.warning("Cannot scan teams in %s: %s", self._config.teams_dir, exc)
            return []
        for team in teams:
            try:
                self._fill_team(team)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Cannot collect team %s: %s", team.name, exc)
        return teams

    def _fill_team(self, team: TeamInfo) -> None:
        tasks_dir = self._config.tasks_dir
        try:
            team.tasks = scan_tasks(tasks_dir, team.name)
        except OSError as exc:
            logger.warning("Cannot scan tasks of team %s: %s", team.name, exc)
            team.tasks = []

        all_tasks: List[TaskInfo]
        try:
            all_tasks = scan_tasks(tasks_dir, team.name, include_internal=True)
        except OSError as exc:
            logger.warning("Cannot scan internal tasks of team %s: %s", team.name, exc)
            all_tasks = list(team.tasks)

        for member in team.members:
            if not member.name:
                continue
            try:
                self._load_inbox(team, member)
                self._load_activity(team, member)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Cannot collect member %s/%s: %s", team.name, member.name, exc)

        infer_member_status(team.members, all_tasks)

    def _load_inbox(self, team: TeamInfo, member: AgentInfo) -> None:
        try:
            message = load_latest_message(self._config.teams_dir, team.name, member.name)
        except (OSError, ValueError) as exc:
            logger.warning("Cannot read inbox of %s/%s: %s", team.name, member.name, exc)
            return
        if message is None:
            return
        member.latest_message = message.text or None
        member.message_summary = message.summary or None
        member.last_message_time = message.timestamp

    def _load_activity(self, team: TeamInfo, member: AgentInfo) -> None:
        try:
            candidate = resolve_member_log(
                self._config.projects_dir,
                team.lead_session_id,
                member.name,
                cwd=member.cwd,
                joined_at=member.joined_at,
            )
        except OSError as exc:
            logger.warning("Cannot resolve log of %s/%s: %s", team.name, member.name, exc)
            return
        if candidate is None:
            return

        member.log_path = candidate.path
        if not member.agent_id and candidate.agent_id:
            member.agent_id = candidate.agent_id

        try:
            activity = parse_agent_activity(candidate.path)
        except OSError as exc:
            logger.warning("Cannot read activity of %s/%s: %s", team.name, member.name, exc)
            return
        if activity is None:
            return
        member.last_thinking = activity.last_thinking
        member.last_tool_use = activity.last_tool_use
        member.last_tool_detail = activity.last_tool_detail
        member.last_active_time = activity.last_active_time
