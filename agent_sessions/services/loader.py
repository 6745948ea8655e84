"""
History loading service.

Builds the deduplicated session map from both sources' shared history logs,
reusing or incrementally extending the cached parse, then resolves transcript
paths and drops sessions that can't be resumed.
"""

from __future__ import annotations

import logging
from pathlib import Path

import attrs

from agent_sessions.paths import SourceLayout
from agent_sessions.schemas.session import SessionKey, SessionRecord
from agent_sessions.schemas.source import SessionSource
from agent_sessions.services.cache import Fingerprint, FingerprintCache, HistoryPlan
from agent_sessions.services.discovery import TranscriptLocator
from agent_sessions.services.enricher import scan_codex_transcript
from agent_sessions.services.parsers import HistoryEntry, parse_history_line

__all__ = ['HistoryLoadResult', 'HistoryLoader', 'merge_history_entry']

logger = logging.getLogger(__name__)


@attrs.define(frozen=True)
class HistoryLoadResult:
    """What loading one source's history log did."""

    source: SessionSource
    plan: HistoryPlan
    parsed_lines: int
    session_count: int


def merge_history_entry(seen: dict[str, SessionRecord], source: SessionSource, entry: HistoryEntry) -> None:
    """
    Merge one history line into the per-source session map.

    A strictly newer line overwrites timestamp, display and project. An older
    (or equally old) line only fills a display or project that is still empty.
    """
    session_id = entry.resolved_session_id
    if session_id is None:
        return
    display = entry.resolved_display
    timestamp = entry.resolved_timestamp

    existing = seen.get(session_id)
    if existing is None:
        seen[session_id] = SessionRecord(
            source=source,
            session_id=session_id,
            display=display,
            project=entry.project,
            timestamp=timestamp,
        )
        return

    if timestamp > existing.timestamp:
        existing.timestamp = timestamp
        existing.display = display
        existing.project = entry.project
        return
    if not existing.display and display:
        existing.display = display
    if not existing.project and entry.project:
        existing.project = entry.project


class HistoryLoader:
    """Loads sessions from history logs through the fingerprint cache."""

    def __init__(self, cache: FingerprintCache, locator: TranscriptLocator) -> None:
        self.cache = cache
        self.locator = locator

    @property
    def layout(self) -> SourceLayout:
        return self.locator.layout

    def parse_history_lines(
        self,
        source: SessionSource,
        history_path: Path,
        start_offset: int,
        seen: dict[str, SessionRecord],
    ) -> int:
        """
        Parse a history log from a byte offset, merging into `seen`.

        Args:
            source: Source the log belongs to
            history_path: Shared history log
            start_offset: Byte offset to start at (0 = whole file)
            seen: Session map to merge into, keyed by session id

        Returns:
            Number of non-empty lines read, malformed ones included
        """
        try:
            f = history_path.open('rb')
        except OSError as e:
            logger.debug('Cannot open %s: %s', history_path, e)
            return 0

        parsed_lines = 0
        with f:
            if start_offset > 0:
                f.seek(start_offset)
            for raw in f:
                line = raw.decode('utf-8', errors='replace').strip()
                if not line:
                    continue
                parsed_lines += 1
                entry = parse_history_line(line)
                if entry is not None:
                    merge_history_entry(seen, source, entry)
        return parsed_lines

    def load_source(self, source: SessionSource) -> tuple[dict[str, SessionRecord], HistoryLoadResult]:
        """Sessions from one source's history log, keyed by session id."""
        history_path = self.layout.history_file(source)
        current = Fingerprint.of(history_path) if history_path.exists() else None

        if current is None:
            seen = {session.session_id: session for session in self.cache.cached_sessions(source)}
            result = HistoryLoadResult(source, HistoryPlan.MISSING, 0, len(seen))
            logger.debug('%s history missing, %d cached sessions', source.label, len(seen))
            return seen, result

        plan = self.cache.plan_history(source, current)
        if plan is HistoryPlan.REUSE:
            seen = {session.session_id: session for session in self.cache.cached_sessions(source)}
            result = HistoryLoadResult(source, plan, 0, len(seen))
            logger.debug('%s history unchanged, reusing %d sessions', source.label, len(seen))
            return seen, result

        cached = self.cache.history(source)
        if plan is HistoryPlan.APPEND and cached is None:
            plan = HistoryPlan.FULL

        if plan is HistoryPlan.APPEND and cached is not None:
            seen = {session.session_id: session for session in self.cache.cached_sessions(source)}
            parsed = self.parse_history_lines(source, history_path, cached.file_size, seen)
            line_count = cached.line_count + parsed
        else:
            seen = {}
            parsed = self.parse_history_lines(source, history_path, 0, seen)
            line_count = parsed

        self.cache.store_history(source, current, line_count, list(seen.values()))
        logger.debug('%s history %s parse: %d lines, %d sessions', source.label, plan.value, parsed, len(seen))
        return seen, HistoryLoadResult(source, plan, parsed, len(seen))

    def load(self) -> tuple[dict[SessionKey, SessionRecord], dict[SessionSource, HistoryLoadResult]]:
        """
        Load, resolve and filter sessions from every source.

        Returns:
            (session map keyed by (source, id), per-source load results)
        """
        sessions: dict[SessionKey, SessionRecord] = {}
        results: dict[SessionSource, HistoryLoadResult] = {}
        for source in SessionSource:
            seen, result = self.load_source(source)
            results[source] = result
            for session in seen.values():
                sessions[session.key] = session

        recent_index: dict[str, Path] | None = None
        for session in sessions.values():
            if session.source is SessionSource.CLAUDE_CODE:
                path = self.locator.deterministic_path(session.source, session.session_id, session.project)
                if path is not None:
                    session.file_path = str(path)
            else:
                self._apply_cached_transcript(session)
                if session.file_path is None or not session.project or session.timestamp == 0:
                    if recent_index is None:
                        recent_index = self.locator.build_recent_file_index()
                    self._fast_enrich(session, recent_index)

            if not session.display:
                session.display = session.project

        kept = {
            key: session
            for key, session in sessions.items()
            if not (not session.display and session.timestamp == 0) and session.is_resumable()
        }
        logger.debug('Loaded %d sessions (%d not resumable)', len(kept), len(sessions) - len(kept))
        return kept, results

    def _apply_cached_transcript(self, session: SessionRecord) -> None:
        """Fill a Codex session from its cached transcript entry; drop a vanished path."""
        cached = self.cache.transcript(session.session_id)
        if cached is not None:
            if cached.file_path:
                session.file_path = cached.file_path
            if not session.project and cached.cwd:
                session.project = cached.cwd
            if session.timestamp == 0 and cached.timestamp_ms:
                session.timestamp = cached.timestamp_ms
            if not session.model and cached.model:
                session.model = cached.model
            if not session.reasoning_effort and cached.reasoning_effort:
                session.reasoning_effort = cached.reasoning_effort

        if session.file_path is not None and not Path(session.file_path).is_file():
            session.file_path = None
            self.cache.clear_transcript_path(session.session_id)

    def _fast_enrich(self, session: SessionRecord, recent_index: dict[str, Path]) -> None:
        """Resolve a sparse Codex session through the recent-transcript index."""
        path = recent_index.get(session.session_id)
        if path is None:
            return
        if session.file_path is None:
            session.file_path = str(path)

        info = None
        if not session.project or session.timestamp == 0:
            info = scan_codex_transcript(path, session.session_id)
            if info is not None:
                if not session.project and info.cwd:
                    session.project = info.cwd
                if session.timestamp == 0 and info.timestamp_ms:
                    session.timestamp = info.timestamp_ms
                if not session.model and info.model:
                    session.model = info.model
                if not session.reasoning_effort and info.reasoning_effort:
                    session.reasoning_effort = info.reasoning_effort
        self.cache.update_transcript(session.session_id, path, info)
