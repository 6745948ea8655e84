"""
Shared fixtures: a throwaway ~/.claude + ~/.codex tree per test.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import pytest

from agent_sessions.paths import SourceLayout, encode_path
from agent_sessions.schemas.source import SessionSource
from agent_sessions.services.store import SessionStore

CODEX_SESSION_ID = '019c24fb-6f78-7a20-99d0-88871c381f5d'


class SessionTree:
    """Builds fake session logs for both sources under one root directory."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.layout = SourceLayout(claude_home=root / 'claude', codex_home=root / 'codex')
        self.cache_file = root / 'state' / 'session-cache-v1.json'

    def write_jsonl(self, path: Path, records: Iterable[Any], append: bool = False) -> Path:
        """Write records (dicts, or raw strings for malformed lines) as JSONL."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open('a' if append else 'w', encoding='utf-8') as f:
            for record in records:
                line = record if isinstance(record, str) else json.dumps(record)
                f.write(line + '\n')
        return path

    def add_history(self, source: SessionSource, records: Iterable[Any], append: bool = False) -> Path:
        return self.write_jsonl(self.layout.history_file(source), records, append=append)

    def add_claude_transcript(self, project: str, session_id: str, records: Iterable[Any]) -> Path:
        path = self.layout.projects_dir(SessionSource.CLAUDE_CODE) / encode_path(project) / f'{session_id}.jsonl'
        return self.write_jsonl(path, records)

    def add_codex_transcript(
        self,
        session_id: str,
        records: Iterable[Any],
        day: str = '2026/02/13',
        archived: bool = False,
    ) -> Path:
        name = f'rollout-2026-02-13T17-00-00-{session_id}.jsonl'
        if archived:
            path = self.layout.archived_sessions_dir(SessionSource.CODEX) / name
        else:
            path = self.layout.sessions_dir(SessionSource.CODEX) / day / name
        return self.write_jsonl(path, records)

    def open_store(self, recent_day_dirs: int = 21) -> SessionStore:
        return SessionStore.open(self.layout, self.cache_file, recent_day_dirs=recent_day_dirs)


@pytest.fixture
def tree(tmp_path: Path) -> SessionTree:
    return SessionTree(tmp_path)


@pytest.fixture
def claude_session(tree: SessionTree) -> str:
    """One resumable Claude Code session with a two-message transcript."""
    session_id = 'aaaa1111-0000-4000-8000-000000000001'
    tree.add_history(
        SessionSource.CLAUDE_CODE,
        [{'sessionId': session_id, 'display': 'fix the parser', 'project': '/tmp/demo', 'timestamp': 1771002000000}],
    )
    tree.add_claude_transcript(
        '/tmp/demo',
        session_id,
        [
            {
                'type': 'user',
                'uuid': 'u1',
                'sessionId': session_id,
                'message': {'role': 'user', 'content': 'Please fix the flaky parser test'},
            },
            {
                'type': 'assistant',
                'uuid': 'a1',
                'sessionId': session_id,
                'message': {
                    'role': 'assistant',
                    'model': 'claude-opus-4-6',
                    'content': [{'type': 'text', 'text': 'Looking at the parser now.'}],
                },
            },
        ],
    )
    return session_id


def _codex_transcript_records(session_id: str = CODEX_SESSION_ID, cwd: str = '/tmp/demo') -> list[dict[str, Any]]:
    """A realistic Codex transcript: meta, turn context and a user/assistant exchange."""
    return [
        {
            'type': 'session_meta',
            'payload': {'id': session_id, 'timestamp': '2026-02-13T17:00:00.000Z', 'cwd': cwd},
        },
        {
            'type': 'turn_context',
            'payload': {
                'model': 'gpt-5.3-codex high',
                'effort': 'HIGH',
                'collaboration_mode': {'settings': {'reasoning_effort': 'medium'}},
            },
        },
        {
            'type': 'response_item',
            'payload': {
                'type': 'message',
                'role': 'user',
                'content': [{'type': 'input_text', 'text': 'rename the config loader'}],
            },
        },
        {
            'type': 'response_item',
            'payload': {
                'type': 'message',
                'role': 'assistant',
                'content': [{'type': 'output_text', 'text': 'Renamed it to load_settings.'}],
            },
        },
    ]


@pytest.fixture
def codex_records():
    """Factory for Codex transcript records (see _codex_transcript_records)."""
    return _codex_transcript_records
