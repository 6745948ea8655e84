"""
Path layout and encoding utilities for both session sources.

Claude Code encodes project paths for directory names by replacing:
- `/` -> `-`
- `.` -> `-`
- ` ` -> `-`
- `~` -> `-`

WARNING: This encoding is LOSSY - decoding is impossible.
The real project path comes from the shared history log (or a transcript's
`cwd`), never from the directory name.
"""

from __future__ import annotations

from pathlib import Path

import attrs

from agent_sessions.schemas.source import SessionSource

__all__ = ['SourceLayout', 'encode_path', 'project_dir_names']


def encode_path(path: Path | str) -> str:
    """
    Encode path for Claude's directory naming.

    Examples:
        >>> encode_path("/Users/chris/project")
        '-Users-chris-project'

        >>> encode_path("/Users/chris/My Project.app")
        '-Users-chris-My-Project-app'
    """
    result = str(path) if isinstance(path, Path) else path
    for char in ['/', '.', ' ', '~']:
        result = result.replace(char, '-')
    return result


def project_dir_names(project: str) -> list[str]:
    """Candidate project directory names, most specific first.

    Older Claude Code releases only replaced `/`, so that variant is tried too.
    """
    names = [encode_path(project)]
    slash_only = project.replace('/', '-')
    if slash_only not in names:
        names.append(slash_only)
    return names


@attrs.define(frozen=True)
class SourceLayout:
    """Filesystem roots for both sources.

    Every path the store touches is derived from here, so tests can point the
    whole store at a temporary directory.
    """

    claude_home: Path
    codex_home: Path

    @classmethod
    def default(cls) -> SourceLayout:
        home = Path.home()
        return cls(claude_home=home / '.claude', codex_home=home / '.codex')

    def home(self, source: SessionSource) -> Path:
        if source is SessionSource.CODEX:
            return self.codex_home
        return self.claude_home

    def history_file(self, source: SessionSource) -> Path:
        return self.home(source) / 'history.jsonl'

    def projects_dir(self, source: SessionSource) -> Path:
        return self.home(source) / 'projects'

    def sessions_dir(self, source: SessionSource) -> Path:
        return self.home(source) / 'sessions'

    def archived_sessions_dir(self, source: SessionSource) -> Path:
        return self.home(source) / 'archived_sessions'

    def project_transcript_candidates(self, source: SessionSource, project: str, session_id: str) -> list[Path]:
        """Deterministic transcript locations under `projects/` for a project path."""
        if not project:
            return []
        root = self.projects_dir(source)
        return [root / name / f'{session_id}.jsonl' for name in project_dir_names(project)]
