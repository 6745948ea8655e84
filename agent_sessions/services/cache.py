"""
Fingerprint cache service.

Persists parsed history logs and Codex transcript metadata in one versioned
JSON document (session-cache-v1.json). Entries are trusted only while the
backing file's fingerprint (size, mtime) matches what was recorded.

The cache is an optimization: a missing, corrupt or outdated document means a
cold start, and a failed write loses at most this command's updates.
All mutations are buffered in memory and written by save_if_dirty().
"""

from __future__ import annotations

import enum
import logging
import os
from pathlib import Path

import attrs
import pydantic

from agent_sessions.schemas.cache import CACHE_VERSION, CachedHistory, CachedTranscript, SessionCache
from agent_sessions.schemas.enrichment import TranscriptInfo
from agent_sessions.schemas.session import SessionRecord
from agent_sessions.schemas.source import SessionSource

__all__ = ['Fingerprint', 'FingerprintCache', 'HistoryPlan', 'plan_history']

logger = logging.getLogger(__name__)


@attrs.define(frozen=True)
class Fingerprint:
    """Change detector for an append-only file: byte size and mtime in epoch ms."""

    file_size: int
    file_modified_ms: int

    @classmethod
    def of(cls, path: Path | str) -> Fingerprint | None:
        """Fingerprint of a file on disk, or None if it can't be stat'ed."""
        try:
            stat = os.stat(path)
        except OSError:
            return None
        return cls(file_size=stat.st_size, file_modified_ms=stat.st_mtime_ns // 1_000_000)


class HistoryPlan(enum.Enum):
    """How much of a history log has to be parsed."""

    REUSE = 'reuse'  # unchanged: cached sessions as-is
    APPEND = 'append'  # grew: parse from the cached byte offset
    FULL = 'full'  # anything else: parse from the start
    MISSING = 'missing'  # log absent or unreadable: cached sessions as-is


def plan_history(cached: CachedHistory | None, current: Fingerprint) -> HistoryPlan:
    """
    Decide how to refresh a cached history log.

    Append detection relies on the log being append-only: if the file grew and
    its mtime didn't go backwards, everything up to the old size is unchanged.

    Args:
        cached: Entry recorded by a previous run, if any
        current: Fingerprint of the log on disk now

    Returns:
        REUSE, APPEND or FULL
    """
    if cached is None:
        return HistoryPlan.FULL
    if cached.file_size == current.file_size and cached.file_modified_ms == current.file_modified_ms:
        if cached.looks_consistent():
            return HistoryPlan.REUSE
    if current.file_size > cached.file_size and current.file_modified_ms >= cached.file_modified_ms:
        return HistoryPlan.APPEND
    return HistoryPlan.FULL


class FingerprintCache:
    """In-memory view of the cache document plus a dirty flag."""

    def __init__(self, path: Path, document: SessionCache | None = None) -> None:
        self.path = path
        self.document = document if document is not None else SessionCache()
        self._dirty = False

    @classmethod
    def load(cls, path: Path) -> FingerprintCache:
        """Read the cache document, falling back to an empty cache on any problem."""
        try:
            raw = path.read_text(encoding='utf-8')
        except FileNotFoundError:
            logger.debug('No session cache at %s', path)
            return cls(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.info('Cannot read session cache %s: %s', path, e)
            return cls(path)

        try:
            document = SessionCache.model_validate_json(raw)
        except pydantic.ValidationError as e:
            logger.info('Discarding unreadable session cache %s (%d errors)', path, e.error_count())
            return cls(path)

        if document.version != CACHE_VERSION:
            logger.info('Discarding session cache %s: version %d != %d', path, document.version, CACHE_VERSION)
            return cls(path)

        logger.debug(
            'Loaded session cache %s: %d histories, %d transcripts',
            path,
            len(document.histories),
            len(document.codex_sessions),
        )
        return cls(path, document)

    @property
    def dirty(self) -> bool:
        return self._dirty

    def mark_dirty(self) -> None:
        self._dirty = True

    # ==========================================================================
    # Persistence
    # ==========================================================================

    def save(self) -> bool:
        """Write the document atomically using temp file + rename.

        Returns:
            True if the document was written. Failures are logged, not raised.
        """
        tmp_file = self.path.with_name(f'{self.path.name}.tmp')
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_file.write_text(self.document.model_dump_json(indent=2), encoding='utf-8')
            tmp_file.replace(self.path)
        except OSError as e:
            logger.warning('Failed to write session cache %s: %s', self.path, e)
            return False
        logger.debug('Saved session cache %s', self.path)
        return True

    def save_if_dirty(self) -> bool:
        if not self._dirty:
            return False
        saved = self.save()
        self._dirty = False
        return saved

    # ==========================================================================
    # History logs
    # ==========================================================================

    def history(self, source: SessionSource) -> CachedHistory | None:
        return self.document.histories.get(source.cache_key)

    def cached_sessions(self, source: SessionSource) -> list[SessionRecord]:
        """Copies of the cached sessions for a source (empty if never parsed)."""
        cached = self.history(source)
        if cached is None:
            return []
        return [session.model_copy() for session in cached.sessions]

    def plan_history(self, source: SessionSource, current: Fingerprint) -> HistoryPlan:
        return plan_history(self.history(source), current)

    def store_history(
        self,
        source: SessionSource,
        fingerprint: Fingerprint,
        line_count: int,
        sessions: list[SessionRecord],
    ) -> None:
        self.document.histories[source.cache_key] = CachedHistory(
            file_size=fingerprint.file_size,
            file_modified_ms=fingerprint.file_modified_ms,
            line_count=line_count,
            sessions=[session.model_copy() for session in sessions],
        )
        self._dirty = True

    def update_history_session(self, session: SessionRecord) -> bool:
        """Write an enriched session back into its cached history entry.

        Returns:
            True if the cached copy changed
        """
        cached = self.history(session.source)
        if cached is None:
            return False
        for index, existing in enumerate(cached.sessions):
            if existing.session_id != session.session_id:
                continue
            if existing == session:
                return False
            cached.sessions[index] = session.model_copy()
            self._dirty = True
            return True
        return False

    # ==========================================================================
    # Codex transcripts
    # ==========================================================================

    def transcript(self, session_id: str) -> CachedTranscript | None:
        return self.document.codex_sessions.get(session_id)

    def transcript_changed(self, session_id: str, path: Path | str) -> bool:
        """Whether a transcript differs from its cache entry.

        No entry counts as changed; an unreadable file counts as unchanged.
        """
        cached = self.transcript(session_id)
        if cached is None:
            return True
        current = Fingerprint.of(path)
        if current is None:
            return False
        return current.file_size != cached.file_size or current.file_modified_ms != cached.file_modified_ms

    def clear_transcript_path(self, session_id: str) -> None:
        cached = self.transcript(session_id)
        if cached is None or not cached.file_path:
            return
        self.document.codex_sessions[session_id] = cached.model_copy(update={'file_path': ''})
        self._dirty = True

    def update_transcript(self, session_id: str, path: Path | str, info: TranscriptInfo | None = None) -> None:
        """Record a transcript's location and fingerprint, merging in scanned metadata.

        Only values the scan actually found overwrite the cached ones.
        """
        fingerprint = Fingerprint.of(path) or Fingerprint(file_size=0, file_modified_ms=0)
        entry = self.transcript(session_id) or CachedTranscript()
        updates: dict[str, object] = {
            'file_path': str(path),
            'file_size': fingerprint.file_size,
            'file_modified_ms': fingerprint.file_modified_ms,
        }
        if info is not None:
            if info.cwd:
                updates['cwd'] = info.cwd
            if info.timestamp_ms is not None:
                updates['timestamp_ms'] = info.timestamp_ms
            if info.model is not None:
                updates['model'] = info.model
            if info.reasoning_effort is not None:
                updates['reasoning_effort'] = info.reasoning_effort
        self.document.codex_sessions[session_id] = entry.model_copy(update=updates)
        self._dirty = True
