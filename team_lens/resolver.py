"""Match a team member to its subagent activity log.

Claude stores one JSONL log per subagent under
``projects/<project>/<session>/subagents/agent-<id>.jsonl``.  Team configs do
not record which log belongs to which member, and members are routinely
respawned ("writer", then "writer-2") inside the same session, so the
mapping is reconstructed heuristically:

1. Candidates whose last activity is more than ``STALE_GRACE`` before the
   member joined belong to an earlier incarnation and are dropped.
2. Candidates whose opening user prompt says "you are <member>" beat
   candidates that merely share the member's working directory.  Once any
   identity match exists, non-matching candidates are never chosen.
3. With a known join time, the candidate whose first activity is closest to
   it wins.
4. Remaining ties go to the most recently active candidate, then to the
   lexically smallest path.

"No match" is a normal outcome and is returned as ``None``.
"""

from __future__ import annotations

import glob
import json
import logging
import math
import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from team_lens.models import AgentLogCandidate
from team_lens.text_match import asserts_identity, member_aliases
from team_lens.timestamps import parse_rfc3339

logger = logging.getLogger(__name__)

STALE_GRACE = timedelta(minutes=2)
IDENTITY_SCAN_LINES = 30
LOG_PREFIX = "agent-"
LOG_SUFFIX = ".jsonl"


def find_log_files(projects_dir: str | Path, lead_session_id: Optional[str] = None) -> List[str]:
    """List candidate subagent logs, the lead session's own area first.

    Args:
        projects_dir: The ``projects`` root directory.
        lead_session_id: Session id of the team lead, if known.

    Returns:
        De-duplicated file paths.  Globs that fail are skipped.
    """
    root = str(projects_dir)
    log_glob = f"{LOG_PREFIX}*{LOG_SUFFIX}"
    patterns: List[str] = []
    if lead_session_id:
        patterns.append(os.path.join(glob.escape(root), "*", glob.escape(lead_session_id), "subagents", log_glob))
    patterns.append(os.path.join(glob.escape(root), "*", "*", "subagents", log_glob))
    # Older clients wrote subagent logs flat into the project directory.
    patterns.append(os.path.join(glob.escape(root), "*", log_glob))

    seen: set[str] = set()
    paths: List[str] = []
    for pattern in patterns:
        try:
            matches = sorted(glob.glob(pattern))
        except OSError as exc:
            logger.debug("Glob %s failed: %s", pattern, exc)
            continue
        for match in matches:
            if match not in seen and os.path.isfile(match):
                seen.add(match)
                paths.append(match)
    return paths


def _message_text_items(message: Any) -> List[str]:
    """Return the text fragments of a message's ``content``."""
    if not isinstance(message, dict):
        return []
    content = message.get("content")
    if isinstance(content, str):
        return [content]
    if isinstance(content, list):
        return [
            item["text"]
            for item in content
            if isinstance(item, dict)
            and item.get("type") == "text"
            and isinstance(item.get("text"), str)
        ]
    return []


def _is_user_record(record: dict) -> bool:
    message = record.get("message")
    role = message.get("role") if isinstance(message, dict) else None
    return record.get("type") == "user" or role == "user"


def inspect_log_candidate(
    log_path: str | Path, aliases: Sequence[str], cwd: Optional[str]
) -> Tuple[AgentLogCandidate, bool, bool]:
    """Read one log file once and summarise it.

    The agent id, session id and cwd come from the first record carrying
    each field.  The activity window spans every line; the identity check
    only looks at user-role records among the first ``IDENTITY_SCAN_LINES``
    lines, which is where the spawning prompt lives.

    Returns:
        ``(candidate, identity_matched, cwd_matched)``.

    Raises:
        OSError: If the file cannot be read.
    """
    candidate = AgentLogCandidate(path=str(log_path))
    identity_matched = False
    line_no = 0

    with open(log_path, "r", encoding="utf-8", errors="replace") as fh:
        for line in fh:
            line_no += 1
            try:
                record = json.loads(line)
            except (ValueError, RecursionError):
                continue
            if not isinstance(record, dict):
                continue

            if not candidate.agent_id and isinstance(record.get("agentId"), str):
                candidate.agent_id = record["agentId"]
            if not candidate.session_id and isinstance(record.get("sessionId"), str):
                candidate.session_id = record["sessionId"]
            if not candidate.cwd and isinstance(record.get("cwd"), str):
                candidate.cwd = record["cwd"]

            ts = parse_rfc3339(record.get("timestamp"))
            if ts is not None:
                if candidate.first_active_at is None or ts < candidate.first_active_at:
                    candidate.first_active_at = ts
                if candidate.last_active_at is None or ts > candidate.last_active_at:
                    candidate.last_active_at = ts

            if (
                not identity_matched
                and line_no <= IDENTITY_SCAN_LINES
                and _is_user_record(record)
                and any(asserts_identity(t, aliases) for t in _message_text_items(record.get("message")))
            ):
                identity_matched = True

    if not candidate.agent_id:
        name = os.path.basename(str(log_path))
        candidate.agent_id = name[len(LOG_PREFIX):-len(LOG_SUFFIX)] if name.startswith(LOG_PREFIX) else name

    cwd_matched = bool(cwd) and candidate.cwd == cwd
    return candidate, identity_matched, cwd_matched


def _distance_from_join(candidate: AgentLogCandidate, joined_at: datetime) -> float:
    base = candidate.first_active_at or candidate.last_active_at
    if base is None:
        return math.inf
    return abs((base - joined_at).total_seconds())


def _ranking_key(candidate: AgentLogCandidate, joined_at: Optional[datetime]) -> Tuple[float, float, str]:
    distance = _distance_from_join(candidate, joined_at) if joined_at else 0.0
    last = candidate.last_active_at.timestamp() if candidate.last_active_at else -math.inf
    return (distance, -last, candidate.path)


def _is_stale(candidate: AgentLogCandidate, joined_at: Optional[datetime]) -> bool:
    if joined_at is None or candidate.last_active_at is None:
        return False
    return candidate.last_active_at < joined_at - STALE_GRACE


def resolve_member_log(
    projects_dir: str | Path,
    lead_session_id: Optional[str],
    member_name: str,
    cwd: Optional[str] = None,
    joined_at: Optional[datetime] = None,
) -> Optional[AgentLogCandidate]:
    """Pick the activity log that belongs to ``member_name``.

    Args:
        projects_dir: The ``projects`` root directory.
        lead_session_id: Session id of the team lead, if known.
        member_name: Member name as written in the team config.
        cwd: The member's declared working directory, used only when no
            log asserts the member's identity.
        joined_at: When the member joined the team, if known.

    Returns:
        The winning candidate, or ``None`` when nothing qualifies.
    """
    aliases = member_aliases(member_name)
    if not projects_dir or not aliases:
        return None

    by_identity: List[AgentLogCandidate] = []
    by_cwd: List[AgentLogCandidate] = []
    for path in find_log_files(projects_dir, lead_session_id):
        try:
            candidate, identity_matched, cwd_matched = inspect_log_candidate(path, aliases, cwd)
        except OSError as exc:
            logger.debug("Skipping unreadable log %s: %s", path, exc)
            continue

        if _is_stale(candidate, joined_at):
            continue
        if identity_matched:
            by_identity.append(candidate)
        elif cwd_matched:
            by_cwd.append(candidate)

    pool = by_identity or by_cwd
    if not pool:
        return None
    best = min(pool, key=lambda c: _ranking_key(c, joined_at))
    logger.debug(
        "Resolved %s to %s (%d identity, %d cwd candidates)",
        member_name, best.path, len(by_identity), len(by_cwd),
    )
    return best


def find_lead_session_log(projects_dir: str | Path, lead_session_id: Optional[str]) -> Optional[str]:
    """Return the lead's own session log (``<project>/<session>.jsonl``).

    When several projects hold a log for the same session the most recently
    modified one wins.
    """
    if not projects_dir or not lead_session_id:
        return None
    pattern = os.path.join(glob.escape(str(projects_dir)), "*", glob.escape(lead_session_id) + LOG_SUFFIX)
    matches = sorted(glob.glob(pattern))
    best: Optional[str] = None
    best_mtime = -math.inf
    for match in matches:
        try:
            mtime = os.stat(match).st_mtime
        except OSError:
            continue
        if mtime > best_mtime:
            best, best_mtime = match, mtime
    return best
