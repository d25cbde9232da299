"""Derive member status from a team's task set."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Optional, Sequence

from team_lens.models import AgentInfo, AgentStatus, TaskInfo, TaskStatus

logger = logging.getLogger(__name__)


def _in_progress_by_member(
    members: Sequence[AgentInfo], all_tasks: Sequence[TaskInfo]
) -> Dict[str, TaskInfo]:
    """Map member name to the task it is working on.

    The ``owner`` field wins.  Self-assigned internal tasks leave it blank
    and carry the member name as their subject instead.  Later task files
    win when a member holds several.
    """
    member_names = {m.name for m in members if m.name}
    working: Dict[str, TaskInfo] = {}
    for task in all_tasks:
        if task.status != TaskStatus.IN_PROGRESS.value:
            continue
        if task.owner:
            working[task.owner] = task
        elif task.subject in member_names:
            working[task.subject] = task
    return working


def _latest_completion(member_name: str, all_tasks: Sequence[TaskInfo]) -> Optional[datetime]:
    latest: Optional[datetime] = None
    for task in all_tasks:
        if task.status != TaskStatus.COMPLETED.value or task.updated_at is None:
            continue
        if task.owner != member_name and task.subject != member_name:
            continue
        if latest is None or task.updated_at > latest:
            latest = task.updated_at
    return latest


def infer_member_status(members: Sequence[AgentInfo], all_tasks: Sequence[TaskInfo]) -> None:
    """Set ``status``, ``current_task`` and ``last_activity`` on each member.

    Members are updated in place.  ``all_tasks`` must include internal
    tasks; filtering them out would leave self-assigned workers idle.

    Args:
        members: The team's members, freshly parsed for this pass.
        all_tasks: Every task of the team, internal ones included.
    """
    working = _in_progress_by_member(members, all_tasks)

    for member in members:
        task = working.get(member.name)
        if task is not None:
            member.status = AgentStatus.WORKING
            member.current_task = task.subject or None
            member.last_activity = task.updated_at
            continue

        member.status = AgentStatus.IDLE
        member.current_task = None
        latest = _latest_completion(member.name, all_tasks)
        if latest is not None and (member.last_activity is None or latest > member.last_activity):
            member.last_activity = latest

    logger.debug(
        "Inferred status for %d members (%d working)", len(members), len(working)
    )
