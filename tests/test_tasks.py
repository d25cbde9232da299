"""Tests for the task file parser and scanner."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from team_lens.tasks import parse_task_file, scan_tasks
from tests.helpers import write_json

TEN_AM = datetime(2026, 2, 10, 10, 0, 0, tzinfo=timezone.utc)
TEN_AM_MS = 1770717600000


@pytest.fixture()
def tasks_dir(claude_dir: Path) -> Path:
    return claude_dir / "tasks"


class TestParseTaskFile:
    def test_full_task(self, tmp_path: Path) -> None:
        path = write_json(
            tmp_path / "3.json",
            {
                "id": "3",
                "subject": "Write API docs",
                "description": "All endpoints",
                "status": "in_progress",
                "owner": "writer",
                "created_at": "2026-02-10T09:00:00Z",
                "updated_at": "2026-02-10T10:00:00Z",
                "blocks": ["4"],
                "blockedBy": [1, "2"],
            },
        )
        task = parse_task_file(path)
        assert task.id == "3"
        assert task.subject == "Write API docs"
        assert task.status == "in_progress"
        assert task.owner == "writer"
        assert task.updated_at == TEN_AM
        assert task.blocks == ["4"]
        assert task.blocked_by == ["1", "2"]
        assert task.internal is False

    def test_millis_win_over_strings(self, tmp_path: Path) -> None:
        path = write_json(
            tmp_path / "1.json",
            {"id": 1, "createdAt": TEN_AM_MS, "created_at": "2020-01-01T00:00:00Z"},
        )
        task = parse_task_file(path)
        assert task.id == "1"
        assert task.created_at == TEN_AM

    def test_updated_falls_back_to_created(self, tmp_path: Path) -> None:
        path = write_json(tmp_path / "1.json", {"id": "1", "createdAt": TEN_AM_MS})
        assert parse_task_file(path).updated_at == TEN_AM

    def test_id_falls_back_to_stem(self, tmp_path: Path) -> None:
        path = write_json(tmp_path / "17.json", {"subject": "x"})
        task = parse_task_file(path)
        assert task.id == "17"
        assert task.owner is None
        assert task.created_at is None

    def test_internal_marker(self, tmp_path: Path) -> None:
        path = write_json(tmp_path / "9.json", {"subject": "writer", "metadata": {"_internal": True}})
        assert parse_task_file(path).internal is True

    def test_truthy_non_boolean_marker_is_not_internal(self, tmp_path: Path) -> None:
        path = write_json(tmp_path / "9.json", {"metadata": {"_internal": "yes"}})
        assert parse_task_file(path).internal is False


class TestScanTasks:
    def test_missing_team_directory(self, tasks_dir: Path) -> None:
        assert scan_tasks(tasks_dir, "ghost") == []

    def test_natural_order(self, tasks_dir: Path) -> None:
        for task_id in ("10", "2", "1"):
            write_json(tasks_dir / "alpha" / f"{task_id}.json", {"id": task_id})
        assert [t.id for t in scan_tasks(tasks_dir, "alpha")] == ["1", "2", "10"]

    def test_internal_tasks_are_filtered_by_default(self, tasks_dir: Path) -> None:
        write_json(tasks_dir / "alpha" / "1.json", {"id": "1", "subject": "visible"})
        write_json(
            tasks_dir / "alpha" / "2.json",
            {"id": "2", "subject": "writer", "metadata": {"_internal": True}},
        )
        assert [t.id for t in scan_tasks(tasks_dir, "alpha")] == ["1"]
        assert [t.id for t in scan_tasks(tasks_dir, "alpha", include_internal=True)] == ["1", "2"]

    def test_malformed_and_non_json_files_are_skipped(self, tasks_dir: Path) -> None:
        team_dir = tasks_dir / "alpha"
        write_json(team_dir / "1.json", {"id": "1"})
        (team_dir / "2.json").write_text("{broken", encoding="utf-8")
        (team_dir / "notes.txt").write_text("ignore me", encoding="utf-8")
        (team_dir / "sub.json").mkdir()
        assert [t.id for t in scan_tasks(tasks_dir, "alpha")] == ["1"]
