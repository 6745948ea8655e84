"""
Session store - the facade consumers use.

Owns the live session map and wires loader, enricher, search and stats around
one FingerprintCache. Cache mutations are buffered and written once by
flush(), which also runs when leaving a `with SessionStore(...)` block.

Usage:
    with SessionStore.from_settings() as store:
        for session in store.all():
            ...
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path
from types import TracebackType

from agent_sessions.config.base import SessionStoreSettings
from agent_sessions.config.base import settings as default_settings
from agent_sessions.paths import SourceLayout
from agent_sessions.schemas.message import Message
from agent_sessions.schemas.results import SearchHit, StatsReport
from agent_sessions.schemas.session import SessionKey, SessionRecord
from agent_sessions.schemas.source import SessionSource
from agent_sessions.services.cache import FingerprintCache
from agent_sessions.services.discovery import TranscriptLocator
from agent_sessions.services.enricher import MetadataEnricher
from agent_sessions.services.loader import HistoryLoader, HistoryLoadResult
from agent_sessions.services.search import SearchEngine, read_messages
from agent_sessions.services.stats import backfill_claude_models, build_stats_report

__all__ = ['SessionStore']

logger = logging.getLogger(__name__)


class SessionStore:
    """
    Discovers, caches, enriches and searches sessions from both sources.

    Not thread-safe; one store serves one command.
    """

    def __init__(
        self,
        layout: SourceLayout,
        cache: FingerprintCache,
        recent_day_dirs: int = 21,
        search_depth: int = 4,
    ) -> None:
        self.layout = layout
        self.cache = cache
        self.locator = TranscriptLocator(layout, search_depth=search_depth, recent_day_dirs=recent_day_dirs)
        self.loader = HistoryLoader(cache, self.locator)
        self.enricher = MetadataEnricher(cache, self.locator)
        self.search_engine = SearchEngine()

        self.sessions: dict[SessionKey, SessionRecord] = {}
        self.last_load: dict[SessionSource, HistoryLoadResult] = {}
        self._loaded = False

    @classmethod
    def open(
        cls,
        layout: SourceLayout,
        cache_file: Path,
        recent_day_dirs: int = 21,
        search_depth: int = 4,
    ) -> SessionStore:
        """Create a store backed by the cache document at `cache_file`."""
        return cls(layout, FingerprintCache.load(cache_file), recent_day_dirs, search_depth)

    @classmethod
    def from_settings(cls, settings: SessionStoreSettings | None = None) -> SessionStore:
        """Create a store from SessionStoreSettings (default: the lazy module singleton)."""
        if settings is None:
            settings = default_settings
        return cls.open(
            settings.layout,
            settings.cache_file,
            recent_day_dirs=settings.RECENT_DAY_DIRS,
            search_depth=settings.TRANSCRIPT_SEARCH_DEPTH,
        )

    def __enter__(self) -> SessionStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.flush()

    def flush(self) -> bool:
        """Write buffered cache changes. Returns True if the cache file was written."""
        return self.cache.save_if_dirty()

    # ==========================================================================
    # Loading
    # ==========================================================================

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(self) -> None:
        """Load sessions from every source (once per store)."""
        if self._loaded:
            return
        self.sessions, self.last_load = self.loader.load()
        self._loaded = True
        for result in self.last_load.values():
            logger.info(
                '%s: %s history, %d lines parsed, %d sessions',
                result.source.label,
                result.plan.value,
                result.parsed_lines,
                result.session_count,
            )

    def all(self) -> list[SessionRecord]:
        """All resumable sessions, newest first."""
        self.load()
        return sorted(self.sessions.values(), key=lambda session: session.timestamp, reverse=True)

    # ==========================================================================
    # Lookup
    # ==========================================================================

    def get(self, partial_id: str) -> SessionRecord | None:
        """
        Resolve a full session id or an unambiguous prefix.

        Exact matches win. Several exact matches (same id in both sources) or
        several prefix matches resolve to None, never to an arbitrary pick.

        Args:
            partial_id: Session id or id prefix

        Returns:
            The enriched session (see get_exact), or None
        """
        self.load()
        if not partial_id:
            return None

        exact = [session for session in self.sessions.values() if session.session_id == partial_id]
        if exact:
            if len(exact) > 1:
                logger.debug('Ambiguous exact id %s (%d sources)', partial_id, len(exact))
                return None
            return self.get_exact(exact[0].source, exact[0].session_id)

        prefixed = [session for session in self.sessions.values() if session.session_id.startswith(partial_id)]
        if len(prefixed) != 1:
            logger.debug('Prefix %s matched %d sessions', partial_id, len(prefixed))
            return None
        return self.get_exact(prefixed[0].source, prefixed[0].session_id)

    def get_exact(self, source: SessionSource, session_id: str) -> SessionRecord | None:
        """
        Look up one session, enriching it from its transcript first.

        If its model is still unknown, the returned copy borrows the most
        recently active non-empty model of the same source. The borrowed
        model is not stored.
        """
        session = self.enrich(source, session_id)
        if session is None:
            return None
        if not session.model.strip():
            fallback = self.most_recent_model(source, exclude_session_id=session_id)
            if fallback is not None:
                return session.model_copy(update={'model': fallback})
        return session

    def enrich(self, source: SessionSource, session_id: str) -> SessionRecord | None:
        """Enrich a session on access and store the result in the live map.

        A session that is no longer resumable is removed from the map instead.
        """
        self.load()
        key: SessionKey = (source, session_id)
        session = self.sessions.get(key)
        if session is None:
            return None
        enriched = self.enricher.enrich(session)
        if not enriched.is_resumable():
            logger.debug('Dropping %s %s: transcript is gone', source.label, session_id)
            del self.sessions[key]
            return None
        self.sessions[key] = enriched
        return enriched

    def most_recent_model(self, source: SessionSource, exclude_session_id: str = '') -> str | None:
        candidates = [
            session
            for session in self.sessions.values()
            if session.source is source and session.session_id != exclude_session_id and session.model.strip()
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda session: session.timestamp).model

    # ==========================================================================
    # Search
    # ==========================================================================

    def read_messages(self, session: SessionRecord, skip_internal: bool = True) -> list[Message]:
        return read_messages(session, skip_internal=skip_internal)

    def _enriched_newest_first(self) -> Iterator[SessionRecord]:
        for session in self.all():
            enriched = self.enrich(session.source, session.session_id)
            if enriched is not None:
                yield enriched

    def search(self, query: str, project: str | None = None, max_results: int = 50) -> list[SearchHit]:
        """
        Regex search over transcripts, newest sessions first.

        Raises:
            InvalidSearchPatternError: If the query is empty or not a valid regex
        """
        self.load()
        return self.search_engine.search(self._enriched_newest_first(), query, project, max_results)

    def session_contains_full_text(self, session: SessionRecord, lowered_query: str) -> bool:
        return self.search_engine.session_contains_full_text(session, lowered_query)

    def filter_sessions(self, query: str, sessions: list[SessionRecord] | None = None) -> list[SessionRecord]:
        """Interactive filter over `sessions` (default: all sessions, newest first)."""
        if sessions is None:
            sessions = self.all()
        return self.search_engine.filter_sessions(sessions, query)

    # ==========================================================================
    # Stats
    # ==========================================================================

    def build_stats_report(self) -> StatsReport:
        self.load()
        backfill_claude_models(self.sessions, self.cache)
        return build_stats_report(self.sessions.values(), self.cache)
