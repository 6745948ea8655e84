"""
Enrichment schemas.

TranscriptInfo is what a single transcript scan recovered. SessionEnrichment
is the outcome of MetadataEnricher.resolve(): the field changes to apply to a
session plus the cache bookkeeping that goes with them.
"""

from __future__ import annotations

from typing import Any

from agent_sessions.base_model import StrictModel

__all__ = ['SessionEnrichment', 'TranscriptInfo']


class TranscriptInfo(StrictModel):
    """Metadata recovered from a Codex transcript scan."""

    cwd: str | None = None
    timestamp_ms: int | None = None
    model: str | None = None
    reasoning_effort: str | None = None

    def is_empty(self) -> bool:
        return self.cwd is None and self.timestamp_ms is None and self.model is None and self.reasoning_effort is None


class SessionEnrichment(StrictModel):
    """Changes resolved for one session (None = leave unchanged)."""

    # Session field updates
    file_path: str | None = None
    clear_file_path: bool = False
    project: str | None = None
    timestamp: int | None = None
    model: str | None = None
    reasoning_effort: str | None = None
    display: str | None = None

    # Cache bookkeeping (Codex only)
    drop_cached_path: bool = False  # cached transcript path no longer exists
    transcript_path: str | None = None  # transcript whose cache entry must be refreshed
    transcript: TranscriptInfo | None = None

    def changes(self) -> dict[str, Any]:
        """Field updates suitable for SessionRecord.model_copy(update=...)."""
        updates: dict[str, Any] = {}
        if self.clear_file_path:
            updates['file_path'] = None
        if self.file_path is not None:
            updates['file_path'] = self.file_path
        for name in ('project', 'timestamp', 'model', 'reasoning_effort', 'display'):
            value = getattr(self, name)
            if value is not None:
                updates[name] = value
        return updates
