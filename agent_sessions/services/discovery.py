"""
Transcript discovery service - finds per-session transcript files.

Claude Code transcripts live at a deterministic path derived from the project.
Codex transcripts are date-partitioned (sessions/YYYY/MM/DD/) with the session
id embedded at the end of the file name, and may be moved to
archived_sessions/. Discovery is bounded: a depth-limited walk per lookup, or
an index over the most recent day directories built once per load.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path

from agent_sessions.paths import SourceLayout
from agent_sessions.schemas.source import SessionSource

__all__ = [
    'TranscriptLocator',
    'find_file_by_session_id',
    'looks_like_session_id',
    'session_id_from_file_name',
    'sorted_child_dirs_desc',
]

logger = logging.getLogger(__name__)

SESSION_ID_LENGTH = 36
SESSION_ID_HYPHENS = frozenset({8, 13, 18, 23})
HEX_DIGITS = frozenset('0123456789abcdefABCDEF')


def looks_like_session_id(value: str) -> bool:
    """
    Check for the canonical UUID shape (8-4-4-4-12 hex digits).

    Examples:
        >>> looks_like_session_id('019c24fb-6f78-7a20-99d0-88871c381f5d')
        True
        >>> looks_like_session_id('rollout-2026-02-13')
        False
    """
    if len(value) != SESSION_ID_LENGTH:
        return False
    for index, char in enumerate(value):
        if index in SESSION_ID_HYPHENS:
            if char != '-':
                return False
        elif char not in HEX_DIGITS:
            return False
    return True


def session_id_from_file_name(path: Path) -> str | None:
    """Session id from a Codex transcript name like `rollout-<timestamp>-<uuid>.jsonl`."""
    name = path.name
    if not name.endswith('.jsonl'):
        return None
    stem = name[: -len('.jsonl')]
    if len(stem) < SESSION_ID_LENGTH:
        return None
    candidate = stem[-SESSION_ID_LENGTH:]
    return candidate if looks_like_session_id(candidate) else None


def sorted_child_dirs_desc(directory: Path) -> list[Path]:
    """Child directories sorted by name, newest first for date-named directories."""
    try:
        children = [child for child in directory.iterdir() if child.is_dir()]
    except OSError:
        return []
    return sorted(children, key=lambda child: child.name, reverse=True)


def _sorted_entries(directory: Path) -> list[Path]:
    try:
        return sorted(directory.iterdir(), key=lambda entry: entry.name)
    except OSError:
        return []


def _jsonl_files(directory: Path) -> Iterator[Path]:
    for entry in _sorted_entries(directory):
        if entry.suffix == '.jsonl' and entry.is_file():
            yield entry


def find_file_by_session_id(directory: Path, session_id: str, depth_remaining: int) -> Path | None:
    """
    Depth-limited walk for a `.jsonl` file whose name contains the session id.

    Args:
        directory: Root of the walk
        session_id: Full session id to look for in file names
        depth_remaining: Directory levels still allowed (0 = stop)

    Returns:
        First matching file, or None
    """
    if depth_remaining <= 0 or not directory.is_dir():
        return None

    for entry in _sorted_entries(directory):
        if entry.is_file():
            if entry.suffix == '.jsonl' and session_id in entry.name:
                return entry
            continue
        if entry.is_dir():
            found = find_file_by_session_id(entry, session_id, depth_remaining - 1)
            if found is not None:
                return found
    return None


class TranscriptLocator:
    """
    Locates transcript files for both sources under a SourceLayout.

    Missing or unreadable directories are treated as empty; lookups never raise.
    """

    def __init__(self, layout: SourceLayout, search_depth: int = 4, recent_day_dirs: int = 21) -> None:
        self.layout = layout
        self.search_depth = search_depth
        self.recent_day_dirs = recent_day_dirs

    def deterministic_path(self, source: SessionSource, session_id: str, project: str) -> Path | None:
        """`projects/<encoded project>/<id>.jsonl`, if it exists."""
        for candidate in self.layout.project_transcript_candidates(source, project, session_id):
            if candidate.exists():
                return candidate
        return None

    def find_session_file(self, source: SessionSource, session_id: str, project: str) -> Path | None:
        """
        Find a session's transcript.

        Order: deterministic project path, then (Codex only) a bounded walk of
        sessions/ and archived_sessions/, then any `projects/*/<id>.jsonl`.

        Args:
            source: Session source
            session_id: Full session id
            project: Project path from the history log (may be empty)

        Returns:
            Path to the transcript, or None if not found
        """
        found = self.deterministic_path(source, session_id, project)
        if found is not None:
            return found

        if source is SessionSource.CODEX:
            for root in (self.layout.sessions_dir(source), self.layout.archived_sessions_dir(source)):
                found = find_file_by_session_id(root, session_id, self.search_depth)
                if found is not None:
                    logger.debug('Found %s transcript by walk: %s', session_id, found)
                    return found

        file_name = f'{session_id}.jsonl'
        for project_dir in _sorted_entries(self.layout.projects_dir(source)):
            if not project_dir.is_dir():
                continue
            candidate = project_dir / file_name
            if candidate.exists():
                return candidate
        return None

    def recent_day_dir_paths(self) -> list[Path]:
        """The most recent `sessions/YYYY/MM/DD` directories, newest first."""
        day_dirs: list[Path] = []
        for year in sorted_child_dirs_desc(self.layout.sessions_dir(SessionSource.CODEX)):
            for month in sorted_child_dirs_desc(year):
                for day in sorted_child_dirs_desc(month):
                    day_dirs.append(day)
                    if len(day_dirs) >= self.recent_day_dirs:
                        return day_dirs
        return day_dirs

    def build_recent_file_index(self) -> dict[str, Path]:
        """
        Map session id to transcript for recent day directories and the archive.

        The archive is scanned flat plus one nested level. The first file seen
        for an id wins, so newer day directories shadow older ones.
        """
        index: dict[str, Path] = {}

        def add(path: Path) -> None:
            session_id = session_id_from_file_name(path)
            if session_id is not None:
                index.setdefault(session_id, path)

        day_dirs = self.recent_day_dir_paths()
        for day_dir in day_dirs:
            for path in _jsonl_files(day_dir):
                add(path)

        for entry in _sorted_entries(self.layout.archived_sessions_dir(SessionSource.CODEX)):
            if entry.is_file():
                if entry.suffix == '.jsonl':
                    add(entry)
            elif entry.is_dir():
                for path in _jsonl_files(entry):
                    add(path)

        logger.debug('Indexed %d Codex transcripts from %d day directories', len(index), len(day_dirs))
        return index
