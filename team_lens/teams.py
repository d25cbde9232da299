"""Team configuration and inbox parsers.

Layout consumed::

    teams/
      <team>/
        config.json            # team + ordered member list
        inboxes/<member>.json  # JSON array of messages, last one is newest

Parsers raise ``OSError`` / ``ValueError`` for a single bad file; scanners
log and skip that file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from team_lens.models import AgentInfo, AgentStatus, InboxMessage, TeamInfo
from team_lens.text_match import extract_cwd_from_prompt
from team_lens.timestamps import from_epoch_ms, pick_timestamp

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"
INBOX_DIRNAME = "inboxes"


class _MemberFile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    agent_id: Optional[str] = Field(default=None, alias="agentId")
    agent_type: Optional[str] = Field(default=None, alias="agentType")
    cwd: Optional[str] = None
    prompt: Optional[str] = None
    joined_at: Optional[int] = Field(default=None, alias="joinedAt")


class _TeamFile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[str] = None
    created_at_ms: Optional[int] = Field(default=None, alias="createdAt")
    lead_session_id: Optional[str] = Field(default=None, alias="leadSessionId")
    members: Optional[List[_MemberFile]] = None


_INBOX_ADAPTER: TypeAdapter[List[InboxMessage]] = TypeAdapter(List[InboxMessage])


def parse_team_config(config_path: str | Path) -> TeamInfo:
    """Parse one ``config.json`` into a ``TeamInfo``.

    The team name falls back to the directory name when the file omits it.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the file is not valid JSON or has the wrong shape.
    """
    path = Path(config_path)
    raw = _TeamFile.model_validate_json(path.read_bytes())

    members = [_member_from_file(m) for m in raw.members or []]
    return TeamInfo(
        name=raw.name or path.parent.name,
        description=raw.description or None,
        created_at=pick_timestamp(raw.created_at_ms, raw.created_at),
        lead_session_id=raw.lead_session_id or None,
        members=members,
        tasks=[],
        config_path=str(path),
    )


def _member_from_file(member: _MemberFile) -> AgentInfo:
    cwd = extract_cwd_from_prompt(member.prompt or "") or member.cwd
    return AgentInfo(
        name=member.name or "",
        agent_id=member.agent_id or None,
        agent_type=member.agent_type or None,
        status=AgentStatus.UNKNOWN,
        joined_at=from_epoch_ms(member.joined_at),
        cwd=cwd or None,
    )


def scan_teams(teams_dir: str | Path) -> List[TeamInfo]:
    """Parse every ``<team>/config.json`` under ``teams_dir``.

    Returns:
        Teams ordered by directory name.  A missing ``teams_dir`` yields an
        empty list.

    Raises:
        OSError: If ``teams_dir`` exists but cannot be listed.
    """
    root = Path(teams_dir)
    try:
        with os.scandir(root) as it:
            entries = sorted(it, key=lambda e: e.name)
    except FileNotFoundError:
        return []

    teams: List[TeamInfo] = []
    for entry in entries:
        if not entry.is_dir():
            continue
        config_path = Path(entry.path) / CONFIG_FILENAME
        if not config_path.is_file():
            continue
        try:
            teams.append(parse_team_config(config_path))
        except (OSError, ValueError) as exc:
            logger.warning("Skipping team config %s: %s", config_path, exc)
    return teams


def inbox_path(teams_dir: str | Path, team_name: str, member_name: str) -> Path:
    return Path(teams_dir) / team_name / INBOX_DIRNAME / f"{member_name}.json"


def load_latest_message(
    teams_dir: str | Path, team_name: str, member_name: str
) -> Optional[InboxMessage]:
    """Return the newest message of a member's inbox.

    Returns:
        The last array element, or ``None`` when the inbox file is missing
        or empty.

    Raises:
        OSError: If the inbox exists but cannot be read.
        ValueError: If the inbox is not a JSON array of messages.
    """
    path = inbox_path(teams_dir, team_name, member_name)
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        return None
    messages = _INBOX_ADAPTER.validate_json(data)
    if not messages:
        return None
    return messages[-1]


def team_config_summary(team: TeamInfo) -> Dict[str, Any]:
    """Compact per-team counters used by the ``status`` CLI command."""
    return {
        "members": len(team.members),
        "tasks": len(team.tasks),
        "working": sum(1 for m in team.members if m.status == AgentStatus.WORKING),
    }
