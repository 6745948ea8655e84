"""
Usage statistics over the loaded sessions.

Dates are bucketed in local time, matching how sessions are listed.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, MutableMapping
from datetime import date, datetime

from agent_sessions.schemas.results import SourceStats, StatsReport
from agent_sessions.schemas.session import SessionKey, SessionRecord
from agent_sessions.schemas.source import SessionSource
from agent_sessions.services.cache import FingerprintCache
from agent_sessions.services.enricher import scan_claude_model

__all__ = ['DAILY_WINDOW', 'TOP_MODELS', 'backfill_claude_models', 'build_stats_report', 'local_date']

logger = logging.getLogger(__name__)

TOP_MODELS = 8
DAILY_WINDOW = 14
UNKNOWN_DATE = '—'


def local_date(timestamp_ms: int) -> str | None:
    """Local calendar date (YYYY-MM-DD) of an epoch-millisecond timestamp, None if out of range."""
    try:
        return datetime.fromtimestamp(timestamp_ms / 1000).strftime('%Y-%m-%d')
    except (OverflowError, OSError, ValueError):
        return None


def backfill_claude_models(sessions: MutableMapping[SessionKey, SessionRecord], cache: FingerprintCache) -> int:
    """
    Fill missing Claude Code models from transcripts.

    Listing never pays for this; stats is the one place the extra scans are
    worth it. Gains are written back into the history cache.

    Returns:
        Number of sessions updated
    """
    updated = 0
    for key, session in list(sessions.items()):
        if session.source is not SessionSource.CLAUDE_CODE or session.model.strip():
            continue
        if not session.file_path:
            continue
        model = scan_claude_model(session.file_path)
        if model is None or model == session.model:
            continue
        enriched = session.model_copy(update={'model': model})
        sessions[key] = enriched
        cache.update_history_session(enriched)
        updated += 1
    if updated:
        logger.debug('Backfilled %d Claude Code models for stats', updated)
    return updated


def _source_stats(source: SessionSource, sessions: list[SessionRecord], history_entries: int) -> SourceStats:
    first_ts: int | None = None
    model_counts: Counter[str] = Counter()
    daily: Counter[str] = Counter()

    for session in sessions:
        day = local_date(session.timestamp) if session.timestamp > 0 else None
        if day is not None:
            first_ts = session.timestamp if first_ts is None else min(first_ts, session.timestamp)
            daily[day] += 1
        if session.model.strip():
            model_counts[session.model] += 1

    top_models = sorted(model_counts.items(), key=lambda item: (-item[1], item[0]))[:TOP_MODELS]
    daily_sessions = sorted(daily.items())[-DAILY_WINDOW:]

    return SourceStats(
        source=source,
        sessions=len(sessions),
        history_entries=history_entries,
        first_session_date=(local_date(first_ts) if first_ts is not None else None) or UNKNOWN_DATE,
        top_models=top_models,
        daily_sessions=daily_sessions,
    )


def build_stats_report(
    sessions: Iterable[SessionRecord],
    cache: FingerprintCache,
    today: date | None = None,
) -> StatsReport:
    """
    Aggregate usage statistics.

    Args:
        sessions: Loaded (resumable) sessions
        cache: Fingerprint cache, for history line counts
        today: Date to report as computed (default: today, local time)

    Returns:
        StatsReport with totals and one row per source
    """
    by_source: dict[SessionSource, list[SessionRecord]] = {source: [] for source in SessionSource}
    for session in sessions:
        by_source[session.source].append(session)

    rows = []
    for source in SessionSource:
        history = cache.history(source)
        rows.append(_source_stats(source, by_source[source], history.line_count if history is not None else 0))

    return StatsReport(
        total_sessions=sum(row.sessions for row in rows),
        total_history_entries=sum(row.history_entries for row in rows),
        last_computed_date=(today or date.today()).isoformat(),
        sources=rows,
    )
