"""Task file parser.

Each team has a directory ``tasks/<team>/`` holding one JSON document per
task.  A task whose ``metadata._internal`` is ``true`` is hidden from the
member-facing task list but still counts for status inference, so the scanner
can produce either view.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, Field

from team_lens.models import TaskInfo
from team_lens.timestamps import pick_timestamp

logger = logging.getLogger(__name__)


class _TaskFile(BaseModel):
    id: Optional[str | int] = None
    subject: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    owner: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    created_at_ms: Optional[int] = Field(default=None, alias="createdAt")
    updated_at_ms: Optional[int] = Field(default=None, alias="updatedAt")
    blocks: Optional[List[str | int]] = None
    blocked_by: Optional[List[str | int]] = Field(
        default=None, validation_alias=AliasChoices("blockedBy", "blocked_by")
    )
    metadata: Optional[Dict[str, Any]] = None


def parse_task_file(task_path: str | Path) -> TaskInfo:
    """Parse a single task JSON file.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the file is not valid JSON or has the wrong shape.
    """
    path = Path(task_path)
    raw = _TaskFile.model_validate_json(path.read_bytes())

    created_at = pick_timestamp(raw.created_at_ms, raw.created_at)
    updated_at = pick_timestamp(raw.updated_at_ms, raw.updated_at) or created_at
    metadata = raw.metadata or {}

    return TaskInfo(
        id=str(raw.id) if raw.id not in (None, "") else path.stem,
        subject=raw.subject or "",
        description=raw.description or "",
        status=raw.status or "",
        owner=raw.owner or None,
        created_at=created_at,
        updated_at=updated_at,
        blocks=[str(b) for b in raw.blocks or []],
        blocked_by=[str(b) for b in raw.blocked_by or []],
        internal=metadata.get("_internal") is True,
    )


def _natural_key(name: str) -> Tuple[int, Any]:
    stem = name[: -len(".json")]
    if stem.isdigit():
        return (0, int(stem))
    return (1, name)


def scan_tasks(
    tasks_dir: str | Path, team_name: str, include_internal: bool = False
) -> List[TaskInfo]:
    """Parse every ``*.json`` task of one team.

    Args:
        tasks_dir: The ``tasks`` root directory.
        team_name: Team whose subdirectory is scanned.
        include_internal: Keep tasks flagged ``metadata._internal``.  The
            collector asks for both views: without them for the team's task
            list, with them for status inference.

    Returns:
        Tasks in natural file-name order (``2.json`` before ``10.json``).
        A missing team directory yields an empty list.

    Raises:
        OSError: If the team directory exists but cannot be listed.
    """
    team_dir = Path(tasks_dir) / team_name
    try:
        with os.scandir(team_dir) as it:
            names = [
                e.name for e in it
                if e.name.endswith(".json") and not e.is_dir()
            ]
    except FileNotFoundError:
        return []

    tasks: List[TaskInfo] = []
    for name in sorted(names, key=_natural_key):
        task_path = team_dir / name
        try:
            task = parse_task_file(task_path)
        except (OSError, ValueError) as exc:
            logger.warning("Skipping task file %s: %s", task_path, exc)
            continue
        if task.internal and not include_internal:
            continue
        tasks.append(task)
    return tasks
