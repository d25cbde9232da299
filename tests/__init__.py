"""Test suite for TeamLens.

This package contains unit and integration tests for all TeamLens components:

- ``test_config``: configuration defaults and environment variables.
- ``test_models``: Pydantic models, timestamp decoding and serialization.
- ``test_text_match``: working-directory and identity phrase heuristics.
- ``test_teams`` / ``test_tasks``: entity parsers and directory scanners.
- ``test_activity``: the bounded-memory tail activity parser.
- ``test_resolver``: member-to-log resolution heuristic.
- ``test_status``: status inference from task ownership.
- ``test_signals_locks``: coalescing change queue and reader/writer lock.
- ``test_watcher``: filesystem watcher using temporary directories.
- ``test_process_monitor``: process scanning with a mocked ``psutil``.
- ``test_collector``: recomputation passes, isolation and lifecycle.
- ``test_api`` / ``test_cli``: FastAPI endpoints and the click CLI.
"""
