"""Tail parser for agent activity logs.

Subagent logs (``agent-<id>.jsonl``) are append-only and can grow without
bound, with single lines of hundreds of kilobytes when a prompt or tool
result is embedded.  ``parse_agent_activity`` streams the file once, keeps
only the newest ``tail_lines`` raw lines in a ``deque`` ring, and then walks
that ring newest-first until it has seen both an assistant text and a tool
invocation.

A log line looks like::

    {"type": "assistant", "timestamp": "2026-02-11T09:10:00Z",
     "agentId": "a1b2c3", "sessionId": "...", "cwd": "/workspace",
     "message": {"role": "assistant", "content": [
        {"type": "text", "text": "Checking the parser..."},
        {"type": "tool_use", "name": "Read", "input": {"file_path": "/x/y.go"}}]}}
"""

from __future__ import annotations

import json
import logging
import os
from collections import deque
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from team_lens.models import AgentActivity
from team_lens.timestamps import parse_rfc3339

logger = logging.getLogger(__name__)

TAIL_LINES = 50
THINKING_LIMIT = 150
COMMAND_LIMIT = 50
ELLIPSIS = "..."


def _truncate(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit] + ELLIPSIS
    return text


def _file_name(key: str) -> Callable[[Dict[str, Any]], str]:
    def extract(tool_input: Dict[str, Any]) -> str:
        value = tool_input.get(key)
        return os.path.basename(value) if isinstance(value, str) and value else ""
    return extract


def _labelled(key: str, label: str) -> Callable[[Dict[str, Any]], str]:
    def extract(tool_input: Dict[str, Any]) -> str:
        value = tool_input.get(key)
        return f"{label}: {value}" if isinstance(value, str) and value else ""
    return extract


def _plain(key: str, limit: Optional[int] = None) -> Callable[[Dict[str, Any]], str]:
    def extract(tool_input: Dict[str, Any]) -> str:
        value = tool_input.get(key)
        if not isinstance(value, str):
            return ""
        return _truncate(value, limit) if limit else value
    return extract


# Tool name -> how to summarise its input for display.
TOOL_DETAIL_EXTRACTORS: Dict[str, Callable[[Dict[str, Any]], str]] = {
    "Read": _file_name("file_path"),
    "Edit": _file_name("file_path"),
    "MultiEdit": _file_name("file_path"),
    "Write": _file_name("file_path"),
    "NotebookEdit": _file_name("notebook_path"),
    "Bash": _plain("command", COMMAND_LIMIT),
    "Grep": _labelled("pattern", "search"),
    "Glob": _labelled("pattern", "find"),
    "WebFetch": _plain("url"),
    "WebSearch": _plain("query"),
    "Task": _plain("description"),
}


def extract_tool_detail(tool_name: str, tool_input: Any) -> str:
    """Return a short human-readable detail for a tool invocation."""
    extractor = TOOL_DETAIL_EXTRACTORS.get(tool_name)
    if extractor is None or not isinstance(tool_input, dict):
        return ""
    return extractor(tool_input)


def _content_items(message: Any) -> List[Dict[str, Any]]:
    """Normalise ``message.content`` to a list of content-item dicts."""
    if not isinstance(message, dict):
        return []
    content = message.get("content")
    if isinstance(content, list):
        return [item for item in content if isinstance(item, dict)]
    if isinstance(content, dict):
        return [content]
    if isinstance(content, str):
        return [{"type": "text", "text": content}]
    return []


def read_tail(lines: Iterable[str], size: int = TAIL_LINES) -> deque:
    """Return the newest ``size`` lines of ``lines`` in a fixed-size ring."""
    return deque(lines, maxlen=size)


def parse_agent_activity(
    log_path: str | Path, tail_lines: int = TAIL_LINES
) -> Optional[AgentActivity]:
    """Extract the latest thinking text and tool use from an agent log.

    Only the last ``tail_lines`` lines influence the result.  Lines that are
    not JSON or carry no parseable ``timestamp`` are ignored.

    Args:
        log_path: Path to an ``agent-*.jsonl`` file.
        tail_lines: Size of the ring buffer.

    Returns:
        The extracted activity (possibly with every field unset), or ``None``
        if the file does not exist.

    Raises:
        OSError: If the file exists but cannot be read.
    """
    try:
        with open(log_path, "r", encoding="utf-8", errors="replace") as fh:
            ring = read_tail(fh, tail_lines)
    except FileNotFoundError:
        return None

    activity = AgentActivity()
    while ring:
        line = ring.pop()
        try:
            entry = json.loads(line)
        except (ValueError, RecursionError):
            continue
        if not isinstance(entry, dict):
            continue

        timestamp = parse_rfc3339(entry.get("timestamp"))
        if timestamp is None:
            continue
        # Only lines visited before the early stop count; older lines with
        # later timestamps are intentionally ignored.
        if activity.last_active_time is None or timestamp > activity.last_active_time:
            activity.last_active_time = timestamp

        if entry.get("type") != "assistant":
            continue

        for item in _content_items(entry.get("message")):
            item_type = item.get("type")
            if item_type in ("text", "thinking") and activity.last_thinking is None:
                text = item.get("text") if item_type == "text" else item.get("thinking")
                if isinstance(text, str) and text.strip():
                    activity.last_thinking = _truncate(text.strip(), THINKING_LIMIT)
            elif item_type == "tool_use" and activity.last_tool_use is None:
                name = item.get("name")
                if isinstance(name, str) and name:
                    activity.last_tool_use = name
                    activity.last_tool_detail = (
                        extract_tool_detail(name, item.get("input")) or None
                    )

        if activity.last_thinking is not None and activity.last_tool_use is not None:
            break

    return activity
