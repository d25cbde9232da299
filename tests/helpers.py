"""Builders for the on-disk records Claude writes under ``~/.claude``."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional


def write_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return path


def write_jsonl(path: Path, records: Iterable[Any]) -> Path:
    """Write one record per line; ``str`` records are written verbatim."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        for record in records:
            fh.write(record if isinstance(record, str) else json.dumps(record, ensure_ascii=False))
            fh.write("\n")
    return path


def log_entry(
    record_type: str,
    timestamp: str,
    agent_id: str,
    session_id: str,
    cwd: str,
    message: Any,
) -> Dict[str, Any]:
    return {
        "type": record_type,
        "timestamp": timestamp,
        "agentId": agent_id,
        "sessionId": session_id,
        "cwd": cwd,
        "message": message,
    }


def user_message(content: str) -> Dict[str, Any]:
    return {"role": "user", "content": content}


def assistant_message(*items: Dict[str, Any]) -> Dict[str, Any]:
    return {"role": "assistant", "content": list(items)}


def text_item(text: str) -> Dict[str, Any]:
    return {"type": "text", "text": text}


def tool_item(name: str, **tool_input: Any) -> Dict[str, Any]:
    return {"type": "tool_use", "name": name, "input": tool_input}


def team_config(
    name: str,
    members: List[Dict[str, Any]],
    lead_session_id: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    data: Dict[str, Any] = {"name": name, "members": members}
    if lead_session_id:
        data["leadSessionId"] = lead_session_id
    data.update(extra)
    return data


# ---------------------------------------------------------------------------
# Sample team
# ---------------------------------------------------------------------------

SAMPLE_TEAM = "alpha"
SAMPLE_LEAD_SESSION = "lead-0001"
SAMPLE_CWD = "/workspace/alpha"
# 2026-02-10T09:59:00Z
SAMPLE_WRITER_JOINED_MS = 1770717540000


def build_sample_team(claude_dir: Path) -> Dict[str, Path]:
    """Lay out one team with three members under ``claude_dir``.

    - ``writer`` works on task 1 and has an inbox and a subagent log.
    - ``tester`` works on an internal task whose subject is its name.
    - ``reviewer`` is idle with one completed task.

    Returns:
        The paths written, keyed by role.
    """
    teams_dir = claude_dir / "teams"
    tasks_dir = claude_dir / "tasks" / SAMPLE_TEAM
    projects_dir = claude_dir / "projects"

    config = write_json(
        teams_dir / SAMPLE_TEAM / "config.json",
        team_config(
            SAMPLE_TEAM,
            [
                {
                    "name": "writer",
                    "agentType": "general-purpose",
                    "cwd": SAMPLE_CWD,
                    "joinedAt": SAMPLE_WRITER_JOINED_MS,
                },
                {"name": "tester", "agentId": "t-config"},
                {"name": "reviewer"},
            ],
            lead_session_id=SAMPLE_LEAD_SESSION,
            description="Docs sprint",
        ),
    )
    inbox = write_json(
        teams_dir / SAMPLE_TEAM / "inboxes" / "writer.json",
        [
            {"from": "team-lead", "text": "hello", "summary": "greeting",
             "timestamp": "2026-02-10T10:01:00Z", "read": True},
            {"from": "team-lead", "text": "please start on the README", "summary": "kickoff",
             "timestamp": "2026-02-10T10:02:00Z", "read": False},
        ],
    )
    write_json(
        tasks_dir / "1.json",
        {"id": "1", "subject": "Write docs", "status": "in_progress", "owner": "writer",
         "updated_at": "2026-02-10T10:10:00Z"},
    )
    write_json(
        tasks_dir / "2.json",
        {"id": "2", "subject": "Review API", "status": "completed", "owner": "reviewer",
         "updated_at": "2026-02-10T10:30:00Z", "blockedBy": ["1"]},
    )
    write_json(
        tasks_dir / "3.json",
        {"id": "3", "subject": "tester", "status": "in_progress",
         "updated_at": "2026-02-10T10:20:00Z", "metadata": {"_internal": True}},
    )
    lead_log = write_jsonl(
        projects_dir / "-workspace-alpha" / f"{SAMPLE_LEAD_SESSION}.jsonl",
        [log_entry("user", "2026-02-10T09:58:00Z", "", SAMPLE_LEAD_SESSION, SAMPLE_CWD,
                   user_message("Create a team"))],
    )
    writer_log = write_jsonl(
        projects_dir / "-workspace-alpha" / SAMPLE_LEAD_SESSION / "subagents" / "agent-w1.jsonl",
        [
            log_entry("user", "2026-02-10T10:00:00Z", "w1", SAMPLE_LEAD_SESSION, SAMPLE_CWD,
                      user_message("You are writer. Draft the docs.")),
            log_entry("assistant", "2026-02-10T10:05:00Z", "w1", SAMPLE_LEAD_SESSION, SAMPLE_CWD,
                      assistant_message(text_item("Drafting the README"),
                                        tool_item("Edit", file_path="/workspace/alpha/README.md"))),
        ],
    )
    return {
        "config": config,
        "inbox": inbox,
        "tasks": tasks_dir,
        "lead_log": lead_log,
        "writer_log": writer_log,
    }
