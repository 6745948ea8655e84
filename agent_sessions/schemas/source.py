"""
Session sources - the coding-assistant tools whose logs we read.
"""

from __future__ import annotations

from enum import Enum

__all__ = ['SessionSource']


class SessionSource(str, Enum):
    """Originating tool of a session.

    The enum value doubles as the history cache key, so renaming a value
    invalidates previously written caches.
    """

    CLAUDE_CODE = 'claudecode'
    CODEX = 'codex'

    @property
    def label(self) -> str:
        """Human-readable name ('claude code', 'codex')."""
        return _LABELS[self]

    @property
    def list_label(self) -> str:
        """Short name used in list output and filters ('cc', 'codex')."""
        return _LIST_LABELS[self]

    @property
    def cache_key(self) -> str:
        return self.value

    @property
    def assistant_label(self) -> str:
        return 'Codex' if self is SessionSource.CODEX else 'Claude'


_LABELS = {
    SessionSource.CLAUDE_CODE: 'claude code',
    SessionSource.CODEX: 'codex',
}

_LIST_LABELS = {
    SessionSource.CLAUDE_CODE: 'cc',
    SessionSource.CODEX: 'codex',
}
