"""Pydantic models for the TeamLens snapshot and its parsed inputs.

This module defines the core data structures used throughout TeamLens:

- ``AgentStatus`` / ``TaskStatus``: status vocabularies.
- ``TeamInfo``, ``AgentInfo``, ``TaskInfo``: the team picture rebuilt on every
  recomputation pass.
- ``InboxMessage``, ``AgentActivity``, ``AgentLogCandidate``: intermediate
  records produced by the parsers.
- ``ProcessInfo`` and ``MonitorState``: the published snapshot.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from team_lens.timestamps import ensure_utc


class AgentStatus(str, Enum):
    """Derived runtime status of a team member.

    ``COMPLETED`` is part of the presentation vocabulary but inference only
    ever assigns ``IDLE`` or ``WORKING``.
    """

    UNKNOWN = "unknown"
    IDLE = "idle"
    WORKING = "working"
    COMPLETED = "completed"


class TaskStatus(str, Enum):
    """Well-known task lifecycle values; task files may carry others."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class _UTCModel(BaseModel):
    """Base model that coerces every datetime field to aware UTC."""

    @field_validator("*", mode="after")
    @classmethod
    def _coerce_datetimes(cls, v: Any) -> Any:
        if isinstance(v, datetime):
            return ensure_utc(v)
        return v


class TaskInfo(_UTCModel):
    """A unit of work from ``tasks/<team>/<id>.json``.

    Attributes:
        id: Task identifier (falls back to the file stem).
        subject: Short title; for self-assigned internal tasks this is the
            member name.
        status: Free-form lifecycle status (see ``TaskStatus``).
        owner: Member name owning the task, if any.
        internal: ``True`` when ``metadata._internal`` is set.  Never
            serialized; internal tasks only feed status inference.
    """

    id: str = ""
    subject: str = ""
    description: str = ""
    status: str = ""
    owner: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    blocks: List[str] = Field(default_factory=list)
    blocked_by: List[str] = Field(default_factory=list)
    internal: bool = Field(default=False, exclude=True)


class AgentInfo(_UTCModel):
    """One member of a team with its derived runtime picture."""

    name: str
    agent_id: Optional[str] = None
    agent_type: Optional[str] = None
    status: AgentStatus = AgentStatus.UNKNOWN
    current_task: Optional[str] = None
    joined_at: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    cwd: Optional[str] = None
    latest_message: Optional[str] = None
    message_summary: Optional[str] = None
    last_message_time: Optional[datetime] = None
    last_thinking: Optional[str] = None
    last_tool_use: Optional[str] = None
    last_tool_detail: Optional[str] = None
    last_active_time: Optional[datetime] = None
    log_path: Optional[str] = None


class TeamInfo(_UTCModel):
    """A team read from ``teams/<name>/config.json``.

    ``members`` keeps the order of the config file.
    """

    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    lead_session_id: Optional[str] = None
    members: List[AgentInfo] = Field(default_factory=list)
    tasks: List[TaskInfo] = Field(default_factory=list)
    config_path: str = ""


class InboxMessage(_UTCModel):
    """A single entry of ``teams/<team>/inboxes/<member>.json``."""

    model_config = ConfigDict(populate_by_name=True)

    sender: Optional[str] = Field(default=None, alias="from")
    text: Optional[str] = None
    summary: Optional[str] = None
    timestamp: Optional[datetime] = None
    read: bool = False

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            # Inboxes written by older clients use epoch milliseconds.
            return datetime.fromtimestamp(v / 1000.0, tz=timezone.utc) if v > 0 else None
        return ensure_utc(v)


class AgentActivity(_UTCModel):
    """Recent activity extracted from the tail of an agent's JSONL log."""

    last_thinking: Optional[str] = None
    last_tool_use: Optional[str] = None
    last_tool_detail: Optional[str] = None
    last_active_time: Optional[datetime] = None


class AgentLogCandidate(_UTCModel):
    """A subagent log file under evaluation for a team member."""

    path: str
    agent_id: str = ""
    session_id: str = ""
    cwd: str = ""
    first_active_at: Optional[datetime] = None
    last_active_at: Optional[datetime] = None


class ProcessInfo(_UTCModel):
    """A running Claude process."""

    pid: int = Field(..., ge=0)
    command: str = ""
    started_at: Optional[datetime] = None


class MonitorState(_UTCModel):
    """The published snapshot: every team plus the live Claude processes.

    Instances are never mutated after the collector publishes them.
    """

    teams: List[TeamInfo] = Field(default_factory=list)
    processes: List[ProcessInfo] = Field(default_factory=list)
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    def to_api_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-ready dict, omitting unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)
