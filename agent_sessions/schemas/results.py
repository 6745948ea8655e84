"""
Result schemas returned to store consumers (CLI, UI).
"""

from __future__ import annotations

from agent_sessions.base_model import StrictModel
from agent_sessions.schemas.message import Message
from agent_sessions.schemas.session import SessionRecord
from agent_sessions.schemas.source import SessionSource

__all__ = ['SearchHit', 'SourceStats', 'StatsReport']


class SearchHit(StrictModel):
    """A search match: the session, the matching message and its matching line."""

    session: SessionRecord
    message: Message
    line: str


class SourceStats(StrictModel):
    """Per-source usage statistics."""

    source: SessionSource
    sessions: int
    history_entries: int
    first_session_date: str  # local YYYY-MM-DD, or '—' when unknown
    top_models: list[tuple[str, int]]
    daily_sessions: list[tuple[str, int]]  # oldest first


class StatsReport(StrictModel):
    """Usage statistics across all sources."""

    total_sessions: int
    total_history_entries: int
    last_computed_date: str
    sources: list[SourceStats]
