"""
Plain-text rendering for CLI output.

Every function returns a string (or list of lines); printing is left to the
commands in cli.main.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from agent_sessions.schemas.message import TEXT_BLOCK_TYPES, Message, block_text
from agent_sessions.schemas.results import SearchHit, StatsReport
from agent_sessions.schemas.session import SessionRecord
from agent_sessions.services.cache import Fingerprint
from agent_sessions.services.parsers import SYNTHETIC_MODEL

__all__ = [
    'format_with_commas',
    'list_time',
    'list_time_ms',
    'relative_time',
    'render_conversation',
    'render_search_results',
    'render_session_list',
    'render_stats',
    'short_project',
    'truncate',
]

NO_VALUE = '—'
FRAME_WIDTH = 82
BAR_WIDTH = 24

# Claude Code echoes slash commands into the transcript as user messages
COMMAND_ECHO_PREFIXES = ('<local-command', '<command-name')

FILE_TOOLS = frozenset({'Read', 'Edit', 'Write', 'Glob', 'Grep'})


# ==============================================================================
# Formatting helpers
# ==============================================================================


def truncate(text: str, width: int) -> str:
    """
    Collapse whitespace and cut to `width` characters with a trailing '...'.

    Examples:
        >>> truncate('fix   the\\nbug', 20)
        'fix the bug'
        >>> truncate('abcdefghij', 8)
        'abcde...'
    """
    collapsed = ' '.join(text.split())
    if len(collapsed) <= width:
        return collapsed
    return collapsed[: max(width - 3, 0)] + '...'


def short_project(project: str, home: Path | None = None) -> str:
    """Project path with the home directory shown as '~'."""
    home_str = str(home if home is not None else Path.home())
    if home_str and project.startswith(home_str):
        return '~' + project[len(home_str) :]
    return project


def format_with_commas(n: int) -> str:
    return f'{n:,}'


def _local(ts_ms: int) -> datetime | None:
    try:
        return datetime.fromtimestamp(ts_ms / 1000)
    except (OverflowError, OSError, ValueError):
        return None


def _elapsed(ts_ms: int, now: datetime | None, date_format: str) -> str:
    when = _local(ts_ms)
    if when is None:
        return NO_VALUE
    delta = (now or datetime.now()) - when
    minutes = int(delta.total_seconds() // 60)
    if minutes < 1:
        return 'just now'
    if minutes < 60:
        return f'{minutes}m ago'
    if minutes < 24 * 60:
        return f'{minutes // 60}h ago'
    return when.strftime(date_format)


def relative_time(ts_ms: int, now: datetime | None = None) -> str:
    """'just now', 'Nm ago', 'Nh ago', or the local date."""
    return _elapsed(ts_ms, now, '%Y-%m-%d')


def list_time(ts_ms: int, now: datetime | None = None) -> str:
    """Like relative_time, but older values include the clock time."""
    return _elapsed(ts_ms, now, '%Y-%m-%d %H:%M')


def list_time_ms(session: SessionRecord) -> int:
    """Transcript mtime for listing, falling back to the history timestamp."""
    if session.file_path:
        fingerprint = Fingerprint.of(session.file_path)
        if fingerprint is not None:
            return fingerprint.file_modified_ms
    return session.timestamp


# ==============================================================================
# list
# ==============================================================================


def render_session_list(sessions: Sequence[SessionRecord], json_output: bool = False) -> str:
    """Session table (or a JSON array), in the order given."""
    rows = [(session, list_time_ms(session)) for session in sessions]

    if json_output:
        data = [
            {
                'source': session.source.label,
                'session_id': session.session_id,
                'display': session.display,
                'project': session.project,
                'timestamp': session.timestamp,
                'model': session.model,
                'reasoning_effort': session.reasoning_effort,
                'file_path': session.file_path,
            }
            for session, _ in rows
        ]
        return json.dumps(data, indent=2, ensure_ascii=False)

    source_width = max([len(s.source.list_label) for s, _ in rows] + [len('source')])
    time_width = max([len(list_time(ts)) for _, ts in rows] + [len('time')])
    project_width = max([min(len(short_project(s.project)), 32) for s, _ in rows] + [len('project')])
    title_width = max([min(len(s.display), 48) for s, _ in rows] + [len('title')])

    lines = [
        f'{"source":<{source_width}}  {"id5":<5}  {"time":<{time_width}}  {"project":<{project_width}}  title',
        '-' * (source_width + 2 + 5 + 2 + time_width + 2 + project_width + 2 + title_width),
    ]
    for session, ts in rows:
        project = truncate(short_project(session.project), project_width)[:project_width]
        lines.append(
            f'{session.source.list_label:<{source_width}}  {session.id_tail():<5}  '
            f'{list_time(ts):<{time_width}}  {project:<{project_width}}  {truncate(session.display, title_width)}'
        )
    return '\n'.join(lines) + '\n'


# ==============================================================================
# view
# ==============================================================================


def _tool_summary(block: dict[str, Any]) -> str:
    name = block.get('name') if isinstance(block.get('name'), str) else '?'
    tool_input = block.get('input') if isinstance(block.get('input'), dict) else {}

    def field(key: str) -> str:
        value = tool_input.get(key)
        return value if isinstance(value, str) else ''

    if name == 'Bash':
        return f'$ {truncate(field("description") or field("command"), 80)}'
    if name in FILE_TOOLS:
        return f'{name} {field("file_path") or field("pattern")}'
    if name == 'Task':
        return f'Task {field("description")}'
    if name == 'WebSearch':
        return f'Search: {field("query")}'
    return f'{name}(...)'


def _assistant_parts(message: Message, thinking: bool) -> list[str]:
    parts = []
    for block in message.content_blocks():
        if not isinstance(block, dict):
            continue
        block_type = block.get('type')
        if block_type in TEXT_BLOCK_TYPES:
            text = block_text(block) or ''
            if text.strip():
                parts.append(text)
        elif block_type == 'tool_use':
            parts.append(f'[tool] {_tool_summary(block)}')
        elif block_type == 'thinking' and thinking:
            text = block.get('thinking')
            if isinstance(text, str) and text.strip():
                parts.append(f'[thinking] {truncate(text, 250)}')
    return parts


def render_conversation(
    session: SessionRecord,
    messages: Sequence[Message],
    thinking: bool = False,
    tail: int | None = None,
) -> list[str]:
    """
    Render a session's conversation as lines.

    Args:
        session: Session to render (header)
        messages: Transcript messages, internal lines already removed
        thinking: Include (truncated) thinking blocks
        tail: Only render the last N messages

    Returns:
        Output lines
    """
    assistant_label = session.source.assistant_label
    lines = [
        f'Session: {truncate(session.display, 120)}',
        f'Source: {session.source.list_label}',
        f'Session ID (full): {session.session_id}',
        f'{short_project(session.project)}  ·  {relative_time(session.timestamp)}',
        '',
    ]

    if tail is not None:
        messages = messages[max(len(messages) - tail, 0) :]

    for message in messages:
        if message.msg_type == 'user':
            text = message.text
            if not text or text.startswith(COMMAND_ECHO_PREFIXES):
                continue
            lines.extend([f'You: {text}', ''])
        elif message.msg_type == 'assistant':
            if message.is_api_error:
                lines.extend([f'Error: {truncate(message.text, 500)}', ''])
                continue
            parts = _assistant_parts(message, thinking)
            if not parts:
                continue
            model = message.model
            label = f'{assistant_label} ({model})' if model and model != SYNTHETIC_MODEL else assistant_label
            lines.extend([f'{label}: ' + '\n'.join(parts), ''])

    return lines


# ==============================================================================
# search
# ==============================================================================


def render_search_results(hits: Sequence[SearchHit]) -> str:
    if not hits:
        return 'No matches found.\n'

    out = [f'{len(hits)} match(es)', '']
    for hit in hits:
        session = hit.session
        role_label = 'You' if hit.message.role == 'user' else session.source.assistant_label
        out.append(f'{session.short_id}  {relative_time(session.timestamp)}  {short_project(session.project)}')
        out.append(f'  {truncate(session.display, 80)}')
        out.append(f'  {role_label}: {truncate(hit.line, 100)}')
        out.append('')
    return '\n'.join(out) + '\n'


# ==============================================================================
# stats
# ==============================================================================


def _bar(count: int, max_count: int, width: int = BAR_WIDTH) -> str:
    if max_count <= 0 or width <= 0:
        return ''
    return '█' * min(count * width // max_count, width)


def render_stats(report: StatsReport) -> str:
    title = 'Session Usage Stats (Claude Code + Codex)'
    inner = FRAME_WIDTH - 2
    out = [
        f'╭{"─" * inner}╮',
        f'│{title:^{inner}}│',
        f'╰{"─" * inner}╯',
        '',
        f'Total sessions: {format_with_commas(report.total_sessions)}',
        f'Total history entries: {format_with_commas(report.total_history_entries)}',
        f'Last computed: {report.last_computed_date}',
        '',
    ]

    for row in report.sources:
        out.append(f'{row.source.label.upper()}:')
        out.append(f'  Sessions: {format_with_commas(row.sessions)}')
        out.append(f'  History entries: {format_with_commas(row.history_entries)}')
        out.append(f'  First session: {row.first_session_date}')
        out.append('')

        if row.top_models:
            out.append('  Top models (session-level):')
            for model, count in row.top_models:
                out.append(f'    {truncate(model, 34):<34} {format_with_commas(count)}')
        else:
            out.append(f'  Top models (session-level): {NO_VALUE}')
        out.append('')

        if row.daily_sessions:
            max_sessions = max(count for _, count in row.daily_sessions)
            out.append('  Daily sessions (last 14 days):')
            for day, count in row.daily_sessions:
                out.append(f'    {day} {format_with_commas(count):>6} {_bar(count, max_sessions)}')
        else:
            out.append(f'  Daily sessions (last 14 days): {NO_VALUE}')
        out.append('')
        out.append('-' * FRAME_WIDTH)
        out.append('')

    return '\n'.join(out) + '\n'
