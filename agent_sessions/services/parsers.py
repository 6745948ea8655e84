"""
Line parsers for both session sources.

Pure functions: every parser takes one NDJSON line (or an already-decoded
value) and returns a normalized object, or None when the line is malformed
or irrelevant. No filesystem access happens here.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timedelta, timezone
from typing import Any

import pydantic
from pydantic import Field

from agent_sessions.base_model import LenientModel
from agent_sessions.schemas.message import Message

__all__ = [
    'ClaudeLine',
    'HistoryEntry',
    'entry_session_id',
    'effort_candidate',
    'iso_to_ms',
    'model_candidate',
    'normalize_timestamp',
    'parse_claude_message',
    'parse_codex_message',
    'parse_history_line',
]

# Anything below this is a seconds-resolution timestamp (ms would be before 2001-09-09)
MILLISECONDS_THRESHOLD = 1_000_000_000_000

MODEL_PATTERN = re.compile(r'[A-Za-z0-9\-_.:/]+')
EFFORT_PATTERN = re.compile(r'[a-z0-9\-_]+')

# Placeholder model Claude Code writes for locally generated messages
SYNTHETIC_MODEL = '<synthetic>'

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# ==============================================================================
# Scalar normalization
# ==============================================================================


def normalize_timestamp(raw: int | None) -> int:
    """
    Normalize a history timestamp to epoch milliseconds.

    Examples:
        >>> normalize_timestamp(None)
        0
        >>> normalize_timestamp(1700000000)
        1700000000000
        >>> normalize_timestamp(1700000000000)
        1700000000000
    """
    if raw is None:
        return 0
    if 0 < raw < MILLISECONDS_THRESHOLD:
        return raw * 1000
    return raw


def iso_to_ms(text: str) -> int | None:
    """Parse an RFC 3339 timestamp to epoch milliseconds.

    Naive timestamps (no offset) are rejected rather than guessed.
    """
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.strip().replace('Z', '+00:00'))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return (parsed - EPOCH) // timedelta(milliseconds=1)


def model_candidate(text: str) -> str | None:
    """First token of a model string, if it looks like a model name.

    Codex writes values like 'gpt-5.3-codex high'; the trailing effort is dropped.

    Examples:
        >>> model_candidate('gpt-5.3-codex high')
        'gpt-5.3-codex'
        >>> model_candidate('<synthetic>') is None
        True
    """
    tokens = text.split()
    if not tokens:
        return None
    first = tokens[0]
    if first == SYNTHETIC_MODEL:
        return None
    if not MODEL_PATTERN.fullmatch(first):
        return None
    return first


def effort_candidate(text: str) -> str | None:
    """Lowercased reasoning effort, or None if it isn't a single simple word."""
    normalized = text.strip().lower()
    if not normalized:
        return None
    if not EFFORT_PATTERN.fullmatch(normalized):
        return None
    return normalized


def entry_session_id(value: Any) -> str | None:
    """Session id carried by a transcript line, at top level or in its payload."""
    if not isinstance(value, dict):
        return None
    for key in ('sessionId', 'session_id'):
        candidate = value.get(key)
        if isinstance(candidate, str):
            return candidate
    payload = value.get('payload')
    if isinstance(payload, dict):
        for key in ('sessionId', 'session_id'):
            candidate = payload.get(key)
            if isinstance(candidate, str):
                return candidate
    return None


# ==============================================================================
# Shared history log
# ==============================================================================


class HistoryEntry(LenientModel):
    """One line of a shared history log (both sources use this shape)."""

    session_id: str | None = Field(default=None, validation_alias=pydantic.AliasChoices('sessionId', 'session_id'))
    session_id_legacy: str | None = None
    timestamp: int | None = None
    ts: int | None = None
    display: str = ''
    text: str = ''
    project: str = ''

    @property
    def resolved_session_id(self) -> str | None:
        session_id = self.session_id if self.session_id is not None else self.session_id_legacy
        return session_id or None

    @property
    def resolved_display(self) -> str:
        return self.display or self.text

    @property
    def resolved_timestamp(self) -> int:
        return normalize_timestamp(self.timestamp if self.timestamp is not None else self.ts)


def parse_history_line(line: str) -> HistoryEntry | None:
    """Parse a history line; None for malformed lines or lines without a session id."""
    try:
        entry = HistoryEntry.model_validate_json(line)
    except pydantic.ValidationError:
        return None
    if entry.resolved_session_id is None:
        return None
    return entry


# ==============================================================================
# Transcript messages
# ==============================================================================


class ClaudeLine(LenientModel):
    """Raw Claude Code transcript line."""

    msg_type: str | None = Field(default=None, alias='type')
    uuid: str = ''
    timestamp: str = ''
    is_api_error: bool = Field(default=False, alias='isApiErrorMessage')
    session_id: str = Field(default='', alias='sessionId')
    message: Any = None


def parse_claude_message(line: str) -> Message | None:
    """Claude Code transcript lines map directly onto Message."""
    try:
        raw = ClaudeLine.model_validate_json(line)
    except pydantic.ValidationError:
        return None
    return Message(
        msg_type=raw.msg_type or '',
        uuid=raw.uuid,
        timestamp=raw.timestamp,
        is_api_error=raw.is_api_error,
        session_id=raw.session_id,
        message=raw.message if isinstance(raw.message, dict) else {},
    )


def parse_codex_message(line: str) -> Message | None:
    """Codex transcript line to Message.

    Only `response_item` lines with a `message` payload are conversation
    turns. Developer messages are shown as assistant turns.
    """
    try:
        value = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(value, dict) or value.get('type') != 'response_item':
        return None
    payload = value.get('payload')
    if not isinstance(payload, dict) or payload.get('type') != 'message':
        return None

    role = 'user' if payload.get('role') == 'user' else 'assistant'
    timestamp = value.get('timestamp')

    session_id = ''
    candidates = ((payload, 'sessionId'), (value, 'sessionId'), (payload, 'session_id'), (value, 'session_id'))
    for container, key in candidates:
        candidate = container.get(key)
        if isinstance(candidate, str):
            session_id = candidate
            break

    return Message(
        msg_type=role,
        timestamp=timestamp if isinstance(timestamp, str) else '',
        session_id=session_id,
        message={
            'role': role,
            'content': payload.get('content'),
            'model': payload.get('model'),
        },
    )
