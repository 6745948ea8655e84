"""
Persisted cache document schemas.

The whole cache is one JSON document with an explicit integer version.
Any version mismatch triggers a rebuild rather than a migration.
"""

from __future__ import annotations

from pydantic import Field

from agent_sessions.base_model import MutableModel, StrictModel
from agent_sessions.schemas.session import SessionRecord

__all__ = [
    'CACHE_VERSION',
    'CachedHistory',
    'CachedTranscript',
    'SessionCache',
]

CACHE_VERSION = 1


class CachedHistory(StrictModel):
    """Parsed state of one source's shared history log."""

    file_size: int
    file_modified_ms: int
    line_count: int = 0  # non-empty lines parsed, accumulates across appends
    sessions: list[SessionRecord] = Field(default_factory=list)

    def looks_consistent(self) -> bool:
        """Sessions are deduplicated, lines are not - fewer lines than sessions means a bad entry."""
        return self.file_size == 0 or self.line_count >= len(self.sessions)


class CachedTranscript(StrictModel):
    """Metadata mined from one Codex transcript, keyed by session id."""

    file_path: str = ''
    file_size: int = 0
    file_modified_ms: int = 0
    cwd: str | None = None
    timestamp_ms: int | None = None
    model: str | None = None
    reasoning_effort: str | None = None


class SessionCache(MutableModel):
    """The session-cache-v1.json file structure.

    This model is NOT frozen so entries can be replaced in place.
    """

    version: int = CACHE_VERSION
    histories: dict[str, CachedHistory] = Field(default_factory=dict)
    codex_sessions: dict[str, CachedTranscript] = Field(default_factory=dict)
