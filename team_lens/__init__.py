"""TeamLens: live observability for cooperating Claude agent teams.

This package derives a point-in-time picture of every agent team on the local
machine (members, tasks, inbox messages and recent activity) from the JSON and
JSONL files Claude writes under ``~/.claude``, plus the live process table.
The picture is recomputed on a timer and on filesystem changes and published
as an immutable snapshot for terminal and web presentation layers.

Example usage::

    # Via CLI
    team-lens serve --port 8080
    team-lens status

    # Programmatic usage
    from team_lens.collector import Collector

    with Collector() as collector:
        state = collector.get_state()
"""

__version__ = "0.1.0"
__author__ = "TeamLens Contributors"
__license__ = "MIT"

__all__ = ["__version__", "__author__", "__license__"]
