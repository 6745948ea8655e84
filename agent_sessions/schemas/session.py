"""
Session record schema.

One merged session as seen by the store, identity = (source, session_id).
Records are created when a history line first references a session id and
merged in place as newer lines or transcript scans supply better values.
"""

from __future__ import annotations

from pathlib import Path

from agent_sessions.base_model import MutableModel
from agent_sessions.schemas.source import SessionSource
from agent_sessions.types import JsonSource

__all__ = ['SessionKey', 'SessionRecord', 'session_id_hex_tail']

SessionKey = tuple[SessionSource, str]


class SessionRecord(MutableModel):
    """A session merged from history logs, cache and transcript scans."""

    # Identity
    source: JsonSource
    session_id: str

    # Summary (from the shared history log)
    display: str = ''
    project: str = ''
    timestamp: int = 0  # epoch milliseconds of most recent activity

    # Assistant configuration (filled lazily from transcripts)
    model: str = ''
    reasoning_effort: str = ''

    # Backing transcript, None until discovery succeeds
    file_path: str | None = None

    @property
    def key(self) -> SessionKey:
        return (self.source, self.session_id)

    @property
    def short_id(self) -> str:
        return self.session_id[:8]

    def id_tail(self, count: int = 5) -> str:
        return session_id_hex_tail(self.session_id, count)

    def is_resumable(self) -> bool:
        """A session can be resumed only with a project and an existing transcript."""
        if not self.project.strip():
            return False
        if not self.file_path:
            return False
        return Path(self.file_path).is_file()


def session_id_hex_tail(session_id: str, count: int) -> str:
    """Last `count` hex digits of a session id (falls back to the raw tail).

    Examples:
        >>> session_id_hex_tail('019c24fb-6f78-7a20-99d0-88871c381f5d', 5)
        '81f5d'
    """
    hex_chars = [ch for ch in session_id if ch in '0123456789abcdefABCDEF']
    if len(hex_chars) >= count:
        return ''.join(hex_chars[-count:])
    return session_id[-count:]
