"""Free-text heuristics used to tie team members to their files.

Team leads describe members in natural language, either in Chinese or in
English, so the working directory and the identity of a member only exist as
phrases inside prompts.  Everything here is a pure function over strings so
it can be exercised directly against literal prompts.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Pattern, Tuple

# Tried in order; the first pattern with a match wins.
CWD_PATTERNS: Tuple[Tuple[str, Pattern[str]], ...] = (
    ("zh", re.compile(r"你的工作目录是[:：]?\s*[\[【「]?(/[^\s\]】」]+)")),
    ("en", re.compile(r"working\s+directory\s+is\s+(/\S+)", re.IGNORECASE)),
)

# "{alias}" is substituted with each lower-cased member alias.
IDENTITY_PHRASES: Tuple[str, ...] = (
    "you are {alias}",
    "你是 {alias}",
)

_GENERATION_SUFFIX = re.compile(r"-[0-9]+$")


def extract_cwd_from_prompt(prompt: str) -> str:
    """Return the absolute working directory named in ``prompt``, or ``""``.

    Callers fall back to the member's explicit ``cwd`` field on ``""``.
    """
    if not prompt:
        return ""
    for _name, pattern in CWD_PATTERNS:
        match = pattern.search(prompt)
        if match:
            return match.group(1)
    return ""


def member_aliases(member_name: str) -> List[str]:
    """Return the lower-cased name plus its generation-less base name.

    ``"Writer-2"`` yields ``["writer-2", "writer"]``; a name without a
    ``-<digits>`` suffix yields a single alias.
    """
    name = (member_name or "").strip().lower()
    if not name:
        return []
    aliases = [name]
    base = _GENERATION_SUFFIX.sub("", name)
    if base and base != name:
        aliases.append(base)
    return aliases


def asserts_identity(text: str, aliases: Iterable[str]) -> bool:
    """Return ``True`` if ``text`` tells the reader it *is* one of ``aliases``."""
    if not text:
        return False
    lowered = text.lower()
    for alias in aliases:
        if not alias:
            continue
        for phrase in IDENTITY_PHRASES:
            if phrase.format(alias=alias) in lowered:
                return True
    return False
