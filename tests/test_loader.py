"""
Tests for history loading: merge rules, incremental parsing and path resolution.
"""

from __future__ import annotations

import json
import os

from agent_sessions.schemas.session import SessionRecord
from agent_sessions.schemas.source import SessionSource
from agent_sessions.services.cache import HistoryPlan
from agent_sessions.services.loader import merge_history_entry
from agent_sessions.services.parsers import parse_history_line

CODEX_ID = '019c24fb-6f78-7a20-99d0-88871c381f5d'
OTHER_CODEX_ID = '019c24fb-0000-7000-8000-000000000002'


def _merge(seen: dict[str, SessionRecord], record: dict) -> None:
    entry = parse_history_line(json.dumps(record))
    assert entry is not None
    merge_history_entry(seen, SessionSource.CLAUDE_CODE, entry)


# ==============================================================================
# Merge rules
# ==============================================================================


def test_newer_line_overwrites_display_and_project() -> None:
    seen: dict[str, SessionRecord] = {}
    _merge(seen, {'sessionId': 's', 'display': 'first', 'project': '/a', 'timestamp': 1000})
    _merge(seen, {'sessionId': 's', 'display': 'second', 'project': '/b', 'timestamp': 2000})

    assert seen['s'].display == 'second'
    assert seen['s'].project == '/b'
    assert seen['s'].timestamp == 2000


def test_older_line_only_fills_empty_fields() -> None:
    seen: dict[str, SessionRecord] = {}
    _merge(seen, {'sessionId': 's', 'display': '', 'project': '', 'timestamp': 2000})
    _merge(seen, {'sessionId': 's', 'display': 'early prompt', 'project': '/early', 'timestamp': 1000})
    _merge(seen, {'sessionId': 's', 'display': 'ignored', 'project': '/ignored', 'timestamp': 1500})

    assert seen['s'].display == 'early prompt'
    assert seen['s'].project == '/early'
    assert seen['s'].timestamp == 2000


def test_equal_timestamp_does_not_overwrite() -> None:
    seen: dict[str, SessionRecord] = {}
    _merge(seen, {'sessionId': 's', 'display': 'kept', 'project': '/kept', 'timestamp': 1000})
    _merge(seen, {'sessionId': 's', 'display': 'other', 'project': '/other', 'timestamp': 1000})

    assert seen['s'].display == 'kept'


# ==============================================================================
# Loading through the store
# ==============================================================================


def test_load_is_idempotent(tree, claude_session) -> None:
    store = tree.open_store()
    store.load()
    first = store.all()

    # Changes after the first load are not picked up by the same store
    tree.add_history(
        SessionSource.CLAUDE_CODE,
        [{'sessionId': claude_session, 'display': 'later', 'project': '/tmp/demo', 'timestamp': 1771009000000}],
        append=True,
    )
    store.load()

    assert store.loaded is True
    assert store.all() == first
    assert [s.session_id for s in first] == [claude_session]


def test_seconds_timestamps_are_scaled(tree) -> None:
    tree.add_history(
        SessionSource.CLAUDE_CODE, [{'sessionId': 's1', 'display': 'x', 'project': '/p', 'timestamp': 1700000000}]
    )
    tree.add_claude_transcript('/p', 's1', [{'type': 'user', 'message': {'role': 'user', 'content': 'x'}}])

    sessions = tree.open_store().all()

    assert sessions[0].timestamp == 1700000000000


def test_non_resumable_sessions_are_dropped(tree, claude_session) -> None:
    tree.add_history(
        SessionSource.CLAUDE_CODE,
        [
            # No transcript anywhere
            {'sessionId': 'no-transcript', 'display': 'x', 'project': '/tmp/demo', 'timestamp': 1771002000000},
            # Transcript exists but no project
            {'sessionId': 'no-project', 'display': 'y', 'timestamp': 1771002000000},
            'this line is not json',
        ],
        append=True,
    )
    tree.add_claude_transcript('/elsewhere', 'no-project', [{'type': 'user'}])

    store = tree.open_store()

    assert [s.session_id for s in store.all()] == [claude_session]


def test_empty_display_falls_back_to_project(tree) -> None:
    tree.add_history(SessionSource.CLAUDE_CODE, [{'sessionId': 's1', 'project': '/p', 'timestamp': 1}])
    tree.add_claude_transcript('/p', 's1', [{'type': 'user'}])

    assert tree.open_store().all()[0].display == '/p'


def test_slash_only_project_encoding_is_found(tree) -> None:
    tree.add_history(
        SessionSource.CLAUDE_CODE, [{'sessionId': 's1', 'display': 'x', 'project': '/tmp/my.app', 'timestamp': 1}]
    )
    path = tree.layout.projects_dir(SessionSource.CLAUDE_CODE) / '-tmp-my.app' / 's1.jsonl'
    tree.write_jsonl(path, [{'type': 'user'}])

    sessions = tree.open_store().all()

    assert sessions[0].file_path == str(path)


def test_second_run_reuses_cache_without_parsing(tree, claude_session) -> None:
    with tree.open_store() as store:
        first = store.all()
        assert store.last_load[SessionSource.CLAUDE_CODE].plan is HistoryPlan.FULL
        assert store.last_load[SessionSource.CLAUDE_CODE].parsed_lines == 1

    assert tree.cache_file.exists()

    with tree.open_store() as store:
        second = store.all()
        result = store.last_load[SessionSource.CLAUDE_CODE]

    assert result.plan is HistoryPlan.REUSE
    assert result.parsed_lines == 0
    assert second == first


def test_appended_lines_are_parsed_incrementally(tree, claude_session) -> None:
    with tree.open_store() as store:
        store.load()

    tree.add_history(
        SessionSource.CLAUDE_CODE,
        [
            {
                'sessionId': claude_session,
                'display': 'newest prompt',
                'project': '/tmp/demo',
                'timestamp': 1771009000000,
            },
            '',
            'garbage line',
        ],
        append=True,
    )

    with tree.open_store() as store:
        sessions = store.all()
        result = store.last_load[SessionSource.CLAUDE_CODE]

    assert result.plan is HistoryPlan.APPEND
    assert result.parsed_lines == 2  # blank lines don't count, malformed ones do
    assert sessions[0].display == 'newest prompt'
    history = store.cache.history(SessionSource.CLAUDE_CODE)
    assert history is not None
    assert history.line_count == 3


def test_append_plan_without_cached_history_parses_from_start(tree, claude_session, monkeypatch) -> None:
    store = tree.open_store()
    monkeypatch.setattr(store.cache, 'plan_history', lambda source, current: HistoryPlan.APPEND)

    sessions, result = store.loader.load_source(SessionSource.CLAUDE_CODE)

    assert result.plan is HistoryPlan.FULL
    assert result.parsed_lines == 1
    assert list(sessions) == [claude_session]


def test_rewritten_history_triggers_full_parse(tree, claude_session) -> None:
    with tree.open_store() as store:
        store.load()

    history_path = tree.layout.history_file(SessionSource.CLAUDE_CODE)
    tree.add_history(SessionSource.CLAUDE_CODE, [{'sessionId': claude_session, 'project': '/tmp/demo', 'timestamp': 5}])
    stat = history_path.stat()
    os.utime(history_path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))

    with tree.open_store() as store:
        store.load()
        result = store.last_load[SessionSource.CLAUDE_CODE]

    assert result.plan is HistoryPlan.FULL
    assert result.parsed_lines == 1


def test_missing_history_uses_cached_sessions(tree, claude_session) -> None:
    with tree.open_store() as store:
        store.load()

    tree.layout.history_file(SessionSource.CLAUDE_CODE).unlink()

    with tree.open_store() as store:
        sessions = store.all()
        result = store.last_load[SessionSource.CLAUDE_CODE]

    assert result.plan is HistoryPlan.MISSING
    assert [s.session_id for s in sessions] == [claude_session]


def test_corrupt_cache_is_rebuilt(tree, claude_session) -> None:
    tree.cache_file.parent.mkdir(parents=True)
    tree.cache_file.write_text('{"version": 1, "histories": [')

    with tree.open_store() as store:
        sessions = store.all()
        assert store.last_load[SessionSource.CLAUDE_CODE].plan is HistoryPlan.FULL

    assert [s.session_id for s in sessions] == [claude_session]
    assert json.loads(tree.cache_file.read_text())['version'] == 1


# ==============================================================================
# Codex resolution
# ==============================================================================


def test_codex_session_resolved_from_recent_index(tree, codex_records) -> None:
    """Codex history lines have no project; cwd and start time come from the transcript."""
    tree.add_history(SessionSource.CODEX, [{'session_id': CODEX_ID, 'ts': 1771002100, 'text': 'rename loader'}])
    path = tree.add_codex_transcript(CODEX_ID, codex_records())

    with tree.open_store() as store:
        sessions = store.all()

    assert len(sessions) == 1
    session = sessions[0]
    assert session.source is SessionSource.CODEX
    assert session.file_path == str(path)
    assert session.project == '/tmp/demo'
    assert session.timestamp == 1771002100000
    assert session.model == 'gpt-5.3-codex'
    assert session.reasoning_effort == 'high'

    entry = store.cache.transcript(CODEX_ID)
    assert entry is not None
    assert entry.file_path == str(path)
    assert entry.cwd == '/tmp/demo'


def test_codex_metadata_comes_from_cache_on_next_run(tree, codex_records, monkeypatch) -> None:
    tree.add_history(SessionSource.CODEX, [{'session_id': CODEX_ID, 'ts': 1771002100, 'text': 'rename loader'}])
    path = tree.add_codex_transcript(CODEX_ID, codex_records())
    with tree.open_store() as store:
        store.load()

    def no_index() -> dict:
        raise AssertionError('recent index should not be needed')

    with tree.open_store() as store:
        monkeypatch.setattr(store.locator, 'build_recent_file_index', no_index)
        sessions = store.all()

    assert sessions[0].file_path == str(path)
    assert sessions[0].project == '/tmp/demo'
    assert sessions[0].model == 'gpt-5.3-codex'


def test_codex_archived_transcript_is_indexed(tree, codex_records) -> None:
    tree.add_history(SessionSource.CODEX, [{'session_id': CODEX_ID, 'ts': 1771002100, 'text': 'x'}])
    path = tree.add_codex_transcript(CODEX_ID, codex_records(), archived=True)

    sessions = tree.open_store().all()

    assert sessions[0].file_path == str(path)


def test_codex_index_is_bounded_to_recent_days(tree, codex_records) -> None:
    tree.add_history(
        SessionSource.CODEX,
        [
            {'session_id': CODEX_ID, 'ts': 1771002100, 'text': 'recent'},
            {'session_id': OTHER_CODEX_ID, 'ts': 1771002200, 'text': 'old'},
        ],
    )
    tree.add_codex_transcript(CODEX_ID, codex_records(), day='2026/02/13')
    tree.add_codex_transcript(OTHER_CODEX_ID, codex_records(OTHER_CODEX_ID), day='2026/01/02')

    sessions = tree.open_store(recent_day_dirs=1).all()

    assert [s.session_id for s in sessions] == [CODEX_ID]


def test_vanished_codex_transcript_clears_cached_path(tree, codex_records) -> None:
    tree.add_history(SessionSource.CODEX, [{'session_id': CODEX_ID, 'ts': 1771002100, 'text': 'x'}])
    path = tree.add_codex_transcript(CODEX_ID, codex_records())
    with tree.open_store() as store:
        assert len(store.all()) == 1

    path.unlink()

    with tree.open_store() as store:
        assert store.all() == []
        entry = store.cache.transcript(CODEX_ID)

    assert entry is not None
    assert entry.file_path == ''
