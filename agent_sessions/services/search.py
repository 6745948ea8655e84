"""
Search service - regex search over transcripts and the interactive filter.

Transcript text used for filtering is memoized per session and keyed by the
transcript's fingerprint, so repeated keystrokes in a filter don't re-read
files that haven't changed.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator

import attrs

from agent_sessions.exceptions import InvalidSearchPatternError
from agent_sessions.schemas.message import INTERNAL_TYPES, Message
from agent_sessions.schemas.results import SearchHit
from agent_sessions.schemas.session import SessionKey, SessionRecord
from agent_sessions.schemas.source import SessionSource
from agent_sessions.services.cache import Fingerprint
from agent_sessions.services.parsers import parse_claude_message, parse_codex_message

__all__ = ['SearchEngine', 'SearchTextCacheEntry', 'compile_search_pattern', 'read_messages']

logger = logging.getLogger(__name__)

# Fingerprint recorded for sessions without a readable transcript
NO_FINGERPRINT = Fingerprint(file_size=0, file_modified_ms=0)


@attrs.define(frozen=True)
class SearchTextCacheEntry:
    """Lowercased transcript text and the fingerprint it was built from."""

    fingerprint: Fingerprint
    text: str


def read_messages(session: SessionRecord, skip_internal: bool = True) -> list[Message]:
    """
    Parse a session's transcript into messages.

    Args:
        session: Session whose transcript to read
        skip_internal: Drop Claude Code bookkeeping lines (snapshots, progress, queue)

    Returns:
        Messages in file order; empty if there is no readable transcript
    """
    if not session.file_path:
        return []
    try:
        with open(session.file_path, encoding='utf-8', errors='replace') as f:
            lines = f.read().splitlines()
    except OSError as e:
        logger.debug('Cannot read transcript %s: %s', session.file_path, e)
        return []

    parse = parse_codex_message if session.source is SessionSource.CODEX else parse_claude_message
    messages = []
    for line in lines:
        line = line.strip()
        if not line:
            continue
        message = parse(line)
        if message is None:
            continue
        if skip_internal and message.msg_type in INTERNAL_TYPES:
            continue
        messages.append(message)
    return messages


def compile_search_pattern(query: str) -> re.Pattern[str]:
    """Compile a case-insensitive search pattern.

    Raises:
        InvalidSearchPatternError: If the query is empty or not a valid regex
    """
    if not query:
        raise InvalidSearchPatternError(query, 'empty pattern')
    try:
        return re.compile(query, re.IGNORECASE)
    except re.error as e:
        raise InvalidSearchPatternError(query, str(e)) from e


class SearchEngine:
    """Full-text filtering and regex search with a per-session text cache."""

    def __init__(self) -> None:
        self.text_cache: dict[SessionKey, SearchTextCacheEntry] = {}

    def session_text(self, session: SessionRecord) -> str:
        """Lowercased text of all messages, rebuilt only when the transcript changed."""
        fingerprint = NO_FINGERPRINT
        if session.file_path:
            fingerprint = Fingerprint.of(session.file_path) or NO_FINGERPRINT

        cached = self.text_cache.get(session.key)
        if cached is not None and cached.fingerprint == fingerprint:
            return cached.text

        texts = [message.text for message in read_messages(session)]
        text = '\n'.join(text for text in texts if text).lower()
        self.text_cache[session.key] = SearchTextCacheEntry(fingerprint=fingerprint, text=text)
        return text

    def session_contains_full_text(self, session: SessionRecord, lowered_query: str) -> bool:
        """Substring test against the session's transcript text (query already lowercased)."""
        if not lowered_query:
            return True
        return lowered_query in self.session_text(session)

    def matches_filter(self, session: SessionRecord, lowered_query: str) -> bool:
        """Cheap metadata fields first, transcript text last."""
        return (
            lowered_query in session.display.lower()
            or lowered_query in session.project.lower()
            or lowered_query in session.session_id.lower()
            or lowered_query in session.source.label.lower()
            or lowered_query in session.source.list_label.lower()
            or self.session_contains_full_text(session, lowered_query)
        )

    def filter_sessions(self, sessions: Iterable[SessionRecord], query: str) -> list[SessionRecord]:
        """
        Interactive filter: case-insensitive match on metadata or transcript text.

        An empty query keeps everything.
        """
        lowered = query.lower()
        if not lowered:
            return list(sessions)
        return [session for session in sessions if self.matches_filter(session, lowered)]

    def search(
        self,
        sessions: Iterable[SessionRecord],
        query: str,
        project: str | None = None,
        max_results: int = 50,
    ) -> list[SearchHit]:
        """
        Regex search across transcripts.

        Each session contributes at most one hit: its first message with a
        matching non-empty line.

        Args:
            sessions: Sessions to search, newest first (may be a lazy iterator)
            query: Regular expression, matched case-insensitively per line
            project: Optional case-insensitive substring the project must contain
            max_results: Stop after this many hits

        Returns:
            Search hits in session order

        Raises:
            InvalidSearchPatternError: If the query is empty or not a valid regex
        """
        pattern = compile_search_pattern(query)
        project_filter = project.lower() if project else None

        hits: list[SearchHit] = []
        if max_results <= 0:
            return hits

        for session in sessions:
            if project_filter is not None and project_filter not in session.project.lower():
                continue
            hit = self._first_hit(session, pattern)
            if hit is None:
                continue
            hits.append(hit)
            if len(hits) >= max_results:
                break

        logger.debug('Search %r: %d hits', query, len(hits))
        return hits

    def _first_hit(self, session: SessionRecord, pattern: re.Pattern[str]) -> SearchHit | None:
        for message in read_messages(session):
            for line in _non_empty_lines(message.text):
                if pattern.search(line):
                    return SearchHit(session=session, message=message, line=line)
        return None


def _non_empty_lines(text: str) -> Iterator[str]:
    for line in text.splitlines():
        line = line.strip()
        if line:
            yield line
