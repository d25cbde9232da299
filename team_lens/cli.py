"""Click-based CLI entry point for TeamLens.

This module provides the ``main`` Click group and three subcommands:

- ``serve``: start the collector and the web API under uvicorn.
- ``status``: run a single recomputation pass and print a summary.
- ``resolve``: show which activity log a team member maps to.

Usage examples::

    # Serve the dashboard on the default port
    team-lens serve

    # Serve a non-default Claude directory with a faster timer
    team-lens serve --claude-dir /tmp/claude --poll-interval 2

    # One-shot summary, human-readable or JSON
    team-lens status
    team-lens status --json

    # Debug the log resolution heuristic
    team-lens resolve my-team writer-2
"""

from __future__ import annotations

import json
import logging
import signal
import sys
import threading
from typing import Optional

import click
import uvicorn

from team_lens import __version__
from team_lens.collector import Collector
from team_lens.config import InitializationError, MonitorConfig
from team_lens.main import create_app
from team_lens.models import AgentStatus, MonitorState
from team_lens.resolver import find_lead_session_log, resolve_member_log
from team_lens.teams import scan_teams, team_config_summary

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Logging setup helper
# ---------------------------------------------------------------------------


def _configure_logging(verbose: bool) -> None:
    """Configure root logging level and format.

    Args:
        verbose: If ``True``, set level to DEBUG; otherwise INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO
    fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    datefmt = "%H:%M:%S"
    logging.basicConfig(
        level=level,
        format=fmt,
        datefmt=datefmt,
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    # Quieten noisy third-party loggers unless in verbose mode
    if not verbose:
        logging.getLogger("watchdog").setLevel(logging.WARNING)
        logging.getLogger("uvicorn").setLevel(logging.WARNING)
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
        logging.getLogger("uvicorn.error").setLevel(logging.INFO)
        logging.getLogger("fastapi").setLevel(logging.WARNING)


def _load_config(claude_dir: Optional[str], poll_interval: Optional[float] = None) -> MonitorConfig:
    """Build a ``MonitorConfig`` or exit with a red error line."""
    try:
        config = MonitorConfig.from_env(claude_dir=claude_dir)
        if poll_interval is not None:
            config = config.model_copy(update={"poll_interval": poll_interval})
    except InitializationError as exc:
        click.echo(click.style(f"  Error: {exc}", fg="red"), err=True)
        sys.exit(1)
    return config


_claude_dir_option = click.option(
    "--claude-dir",
    default=None,
    type=click.Path(file_okay=False, dir_okay=True),
    envvar="TEAM_LENS_CLAUDE_DIR",
    help="Claude data directory.  [default: ~/.claude]",
)

_STATUS_COLORS = {
    AgentStatus.WORKING.value: "green",
    AgentStatus.IDLE.value: "yellow",
    AgentStatus.COMPLETED.value: "blue",
    AgentStatus.UNKNOWN.value: "bright_black",
}


# ---------------------------------------------------------------------------
# Click CLI definition
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="team-lens")
def main() -> None:
    """TeamLens: live view of local Claude agent teams.

    Reads team configs, task files, inboxes and subagent logs under
    ``~/.claude`` and serves an always-current snapshot over HTTP.
    """


@main.command()
@click.option(
    "--port",
    default=8080,
    show_default=True,
    type=click.IntRange(1, 65535),
    help="Port to serve the API on.",
)
@click.option(
    "--host",
    default="127.0.0.1",
    show_default=True,
    help="Host to bind the server to.",
)
@_claude_dir_option
@click.option(
    "--poll-interval",
    default=None,
    type=click.FloatRange(min=0.1),
    help="Seconds between periodic recomputation passes.  [default: 5.0]",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose/debug logging.",
)
def serve(
    port: int,
    host: str,
    claude_dir: Optional[str],
    poll_interval: Optional[float],
    verbose: bool,
) -> None:
    """Start the collector and serve the snapshot API.

    \b
    Examples:
        team-lens serve
        team-lens serve --port 9000 --claude-dir /tmp/claude
    """
    _configure_logging(verbose)
    config = _load_config(claude_dir, poll_interval)

    # ---------------------------------------------------------------------------
    # Print startup banner
    # ---------------------------------------------------------------------------
    click.echo()
    click.echo(click.style("  TeamLens", fg="cyan", bold=True) + " live agent team monitor")
    click.echo()
    click.echo(f"  {'Claude dir:':<22}" + click.style(str(config.claude_dir), fg="white"))
    click.echo(f"  {'Poll interval:':<22}" + click.style(f"{config.poll_interval}s", fg="white"))
    click.echo(
        f"  {'Debounce:':<22}"
        + click.style(f"{config.debounce_delay * 1000:.0f}ms", fg="white")
    )
    api_url = f"http://{host}:{port}"
    click.echo()
    click.echo("  API: " + click.style(f"{api_url}/api/state", fg="cyan", underline=True))
    click.echo()
    click.echo(click.style("  Press Ctrl+C to stop.", fg="bright_black"))
    click.echo()

    # ---------------------------------------------------------------------------
    # Component assembly
    # ---------------------------------------------------------------------------
    collector = Collector(config=config)
    try:
        collector.start()
    except InitializationError as exc:
        click.echo(click.style(f"  Error: Failed to start collector: {exc}", fg="red"), err=True)
        sys.exit(1)

    app = create_app(collector, manage_collector=False)

    uv_config = uvicorn.Config(
        app=app,
        host=host,
        port=port,
        log_level="debug" if verbose else "warning",
        access_log=verbose,
        lifespan="on",
    )
    server = uvicorn.Server(config=uv_config)

    # ---------------------------------------------------------------------------
    # Graceful shutdown handling
    # ---------------------------------------------------------------------------

    def _handle_shutdown_signal(signum: int, frame: object) -> None:
        """Handle SIGINT/SIGTERM by asking uvicorn to exit."""
        click.echo(click.style("\n  Shutting down TeamLens...", fg="yellow"), err=True)
        server.should_exit = True

    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGINT, _handle_shutdown_signal)
        signal.signal(signal.SIGTERM, _handle_shutdown_signal)

    try:
        server.run()
    except KeyboardInterrupt:
        click.echo(click.style("\n  Interrupted.", fg="yellow"), err=True)
    except Exception as exc:
        click.echo(click.style(f"  Fatal error: {exc}", fg="red", bold=True), err=True)
        logger.exception("Unexpected error during server run")
        sys.exit(1)
    finally:
        collector.stop()
        click.echo(click.style("  TeamLens stopped.", fg="bright_black"), err=True)


# ---------------------------------------------------------------------------
# Additional convenience subcommands
# ---------------------------------------------------------------------------


def _print_state(state: MonitorState) -> None:
    if not state.teams:
        click.echo(click.style("No teams found.", fg="yellow"))
    for team in state.teams:
        summary = team_config_summary(team)
        click.echo()
        click.echo(
            click.style(f"  {team.name}", fg="cyan", bold=True)
            + click.style(
                f"  {summary['members']} members, {summary['working']} working,"
                f" {summary['tasks']} tasks",
                fg="bright_black",
            )
        )
        for member in team.members:
            status = member.status.value
            badge = click.style(f"[{status:<9}]", fg=_STATUS_COLORS.get(status, "white"))
            line = f"    {badge} {member.name}"
            if member.current_task:
                line += click.style(f"  {member.current_task}", fg="white")
            click.echo(line)
            if member.last_tool_use:
                detail = f" {member.last_tool_detail}" if member.last_tool_detail else ""
                click.echo(click.style(f"                {member.last_tool_use}{detail}", fg="bright_black"))

    click.echo()
    click.echo(click.style(f"  {len(state.processes)} Claude process(es) running", fg="bright_black"))
    click.echo()


@main.command()
@_claude_dir_option
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    default=False,
    help="Print the snapshot as JSON.",
)
def status(claude_dir: Optional[str], as_json: bool) -> None:
    """Run one recomputation pass and print the result.

    No filesystem watch is set up.

    \b
    Examples:
        team-lens status
        team-lens status --json
    """
    config = _load_config(claude_dir)
    collector = Collector(config=config)
    collector.refresh()
    state = collector.get_state()

    if as_json:
        click.echo(json.dumps(state.to_api_dict(), indent=2, ensure_ascii=False))
        return
    _print_state(state)


@main.command()
@click.argument("team")
@click.argument("member")
@_claude_dir_option
def resolve(team: str, member: str, claude_dir: Optional[str]) -> None:
    """Show which activity log MEMBER of TEAM resolves to.

    \b
    Examples:
        team-lens resolve my-team writer
        team-lens resolve my-team writer-2 --claude-dir /tmp/claude
    """
    config = _load_config(claude_dir)
    try:
        teams = {t.name: t for t in scan_teams(config.teams_dir)}
    except OSError as exc:
        click.echo(click.style(f"Cannot read teams: {exc}", fg="red"), err=True)
        sys.exit(1)

    info = teams.get(team)
    if info is None:
        click.echo(click.style(f"Team not found: {team}", fg="red"), err=True)
        sys.exit(1)
    agent = next((m for m in info.members if m.name == member), None)
    if agent is None:
        click.echo(click.style(f"Member not found in {team}: {member}", fg="red"), err=True)
        sys.exit(1)

    lead_log = find_lead_session_log(config.projects_dir, info.lead_session_id)
    if lead_log:
        click.echo(f"  {'Lead session log:':<20}" + click.style(lead_log, fg="bright_black"))

    candidate = resolve_member_log(
        config.projects_dir,
        info.lead_session_id,
        agent.name,
        cwd=agent.cwd,
        joined_at=agent.joined_at,
    )
    if candidate is None:
        click.echo(click.style(f"  No activity log matches {member}.", fg="yellow"))
        return

    click.echo(f"  {'Activity log:':<20}" + click.style(candidate.path, fg="white"))
    click.echo(f"  {'Agent id:':<20}{candidate.agent_id}")
    if candidate.last_active_at is not None:
        click.echo(f"  {'Last active:':<20}{candidate.last_active_at.isoformat()}")


# ---------------------------------------------------------------------------
# Entry point guard
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
