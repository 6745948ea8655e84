"""
Tests for the fingerprint cache: staleness decisions, persistence and transcript entries.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from agent_sessions.schemas.cache import CACHE_VERSION, CachedHistory
from agent_sessions.schemas.enrichment import TranscriptInfo
from agent_sessions.schemas.session import SessionRecord
from agent_sessions.schemas.source import SessionSource
from agent_sessions.services.cache import Fingerprint, FingerprintCache, HistoryPlan, plan_history


def _history(size: int, mtime: int, line_count: int = 5, sessions: int = 2) -> CachedHistory:
    return CachedHistory(
        file_size=size,
        file_modified_ms=mtime,
        line_count=line_count,
        sessions=[SessionRecord(source=SessionSource.CODEX, session_id=f's{i}') for i in range(sessions)],
    )


@pytest.mark.parametrize(
    ('cached', 'current', 'expected'),
    [
        (None, Fingerprint(100, 1000), HistoryPlan.FULL),
        (_history(100, 1000), Fingerprint(100, 1000), HistoryPlan.REUSE),
        (_history(100, 1000), Fingerprint(150, 1000), HistoryPlan.APPEND),
        (_history(100, 1000), Fingerprint(150, 2000), HistoryPlan.APPEND),
        (_history(100, 1000), Fingerprint(80, 2000), HistoryPlan.FULL),
        (_history(100, 1000), Fingerprint(150, 900), HistoryPlan.FULL),
        (_history(100, 1000), Fingerprint(100, 2000), HistoryPlan.FULL),
        # Fewer lines than sessions cannot happen for a real parse: distrust it
        (_history(100, 1000, line_count=1, sessions=2), Fingerprint(100, 1000), HistoryPlan.FULL),
        (_history(0, 1000, line_count=0, sessions=0), Fingerprint(0, 1000), HistoryPlan.REUSE),
    ],
)
def test_plan_history(cached: CachedHistory | None, current: Fingerprint, expected: HistoryPlan) -> None:
    assert plan_history(cached, current) is expected


def test_fingerprint_of_missing_file(tmp_path: Path) -> None:
    assert Fingerprint.of(tmp_path / 'nope.jsonl') is None


def test_fingerprint_of_uses_millisecond_mtime(tmp_path: Path) -> None:
    path = tmp_path / 'log.jsonl'
    path.write_text('abc\n')
    os.utime(path, ns=(1_771_002_000_500_000_000, 1_771_002_000_500_000_000))

    assert Fingerprint.of(path) == Fingerprint(file_size=4, file_modified_ms=1771002000500)


# ==============================================================================
# Persistence
# ==============================================================================


def test_load_missing_file_is_empty(tmp_path: Path) -> None:
    cache = FingerprintCache.load(tmp_path / 'cache.json')

    assert cache.document.histories == {}
    assert cache.document.codex_sessions == {}
    assert cache.dirty is False


@pytest.mark.parametrize(
    'content',
    [
        'not json at all',
        json.dumps({'version': CACHE_VERSION, 'histories': {'codex': {'file_size': 'big'}}}),
        json.dumps({'version': CACHE_VERSION, 'unexpected': True}),
        json.dumps({'version': 99, 'histories': {}, 'codex_sessions': {}}),
    ],
)
def test_load_bad_document_is_cold_start(tmp_path: Path, content: str) -> None:
    path = tmp_path / 'cache.json'
    path.write_text(content)

    cache = FingerprintCache.load(path)

    assert cache.document.histories == {}
    assert cache.document.version == CACHE_VERSION


def test_save_round_trip(tmp_path: Path) -> None:
    path = tmp_path / 'state' / 'cache.json'
    cache = FingerprintCache(path)
    session = SessionRecord(
        source=SessionSource.CLAUDE_CODE,
        session_id='s1',
        display='hello',
        project='/p',
        timestamp=5,
        model='claude-opus-4-6',
    )
    cache.store_history(SessionSource.CLAUDE_CODE, Fingerprint(10, 20), 3, [session])
    cache.update_transcript('c1', tmp_path / 'missing.jsonl', TranscriptInfo(cwd='/w', model='gpt-5'))

    assert cache.save_if_dirty() is True
    assert not (path.parent / 'cache.json.tmp').exists()

    reloaded = FingerprintCache.load(path)
    history = reloaded.history(SessionSource.CLAUDE_CODE)
    assert history is not None
    assert history.line_count == 3
    assert history.sessions == [session]
    assert reloaded.transcript('c1') is not None
    assert reloaded.transcript('c1').cwd == '/w'


def test_save_if_dirty_skips_clean_cache(tmp_path: Path) -> None:
    path = tmp_path / 'cache.json'
    cache = FingerprintCache(path)

    assert cache.save_if_dirty() is False
    assert not path.exists()


def test_save_failure_is_not_raised(tmp_path: Path) -> None:
    blocker = tmp_path / 'blocker'
    blocker.write_text('a file where a directory should be')
    cache = FingerprintCache(blocker / 'cache.json')
    cache.mark_dirty()

    assert cache.save_if_dirty() is False
    assert cache.dirty is False


# ==============================================================================
# History entries
# ==============================================================================


def test_cached_sessions_are_copies(tmp_path: Path) -> None:
    cache = FingerprintCache(tmp_path / 'cache.json')
    cache.store_history(
        SessionSource.CODEX, Fingerprint(1, 1), 1, [SessionRecord(source=SessionSource.CODEX, session_id='s')]
    )

    copy = cache.cached_sessions(SessionSource.CODEX)[0]
    copy.display = 'changed'

    assert cache.cached_sessions(SessionSource.CODEX)[0].display == ''


def test_update_history_session_replaces_only_on_change(tmp_path: Path) -> None:
    cache = FingerprintCache(tmp_path / 'cache.json')
    original = SessionRecord(source=SessionSource.CODEX, session_id='s', project='/p')
    cache.store_history(SessionSource.CODEX, Fingerprint(1, 1), 1, [original])
    cache.save_if_dirty()

    assert cache.update_history_session(original.model_copy()) is False
    assert cache.dirty is False

    assert cache.update_history_session(original.model_copy(update={'model': 'gpt-5'})) is True
    assert cache.dirty is True
    assert cache.cached_sessions(SessionSource.CODEX)[0].model == 'gpt-5'

    unknown = SessionRecord(source=SessionSource.CODEX, session_id='other')
    assert cache.update_history_session(unknown) is False


# ==============================================================================
# Transcript entries
# ==============================================================================


def test_transcript_changed(tmp_path: Path) -> None:
    path = tmp_path / 'rollout.jsonl'
    path.write_text('{}\n')
    cache = FingerprintCache(tmp_path / 'cache.json')

    assert cache.transcript_changed('s', path) is True  # no entry yet

    cache.update_transcript('s', path)
    assert cache.transcript_changed('s', path) is False

    path.write_text('{}\n{}\n')
    assert cache.transcript_changed('s', path) is True

    # An unreadable file is not treated as a change
    assert cache.transcript_changed('s', tmp_path / 'gone.jsonl') is False


def test_update_transcript_only_overwrites_found_values(tmp_path: Path) -> None:
    path = tmp_path / 'rollout.jsonl'
    path.write_text('{}\n')
    cache = FingerprintCache(tmp_path / 'cache.json')

    cache.update_transcript('s', path, TranscriptInfo(cwd='/w', timestamp_ms=7, model='gpt-5', reasoning_effort='high'))
    cache.update_transcript('s', path, TranscriptInfo(cwd='', model='gpt-5.1'))

    entry = cache.transcript('s')
    assert entry is not None
    assert entry.file_path == str(path)
    assert entry.file_size == 3
    assert entry.cwd == '/w'
    assert entry.timestamp_ms == 7
    assert entry.model == 'gpt-5.1'
    assert entry.reasoning_effort == 'high'


def test_clear_transcript_path(tmp_path: Path) -> None:
    path = tmp_path / 'rollout.jsonl'
    path.write_text('{}\n')
    cache = FingerprintCache(tmp_path / 'cache.json')
    cache.update_transcript('s', path, TranscriptInfo(cwd='/w'))
    cache.save_if_dirty()

    cache.clear_transcript_path('s')

    entry = cache.transcript('s')
    assert entry is not None
    assert entry.file_path == ''
    assert entry.cwd == '/w'
    assert cache.dirty is True
