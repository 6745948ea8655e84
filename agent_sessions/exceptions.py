"""
Shared exceptions for agent-sessions.

Domain-specific exceptions used across services and the CLI.

Exception Hierarchy:
    AgentSessionError (base)
    ├── SessionResolutionError (lookup/resolution failures)
    │   └── SessionNotFoundError (no session, or an ambiguous id)
    └── SearchError (search request failures)
        └── InvalidSearchPatternError (empty or uncompilable regex)

Malformed log lines, missing files and cache corruption are not errors:
they degrade to skipped lines, cached data or a cold re-scan.
"""

from __future__ import annotations


class AgentSessionError(Exception):
    """Base exception for all agent-sessions errors."""


class SessionResolutionError(AgentSessionError):
    """Base exception for session lookup and resolution failures."""


class SessionNotFoundError(SessionResolutionError):
    """Raised by callers when an id (or id prefix) resolves to no single session.

    Ambiguous prefixes land here too: resuming the wrong session is worse
    than reporting nothing.
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f'Session not found: {session_id}')


class SearchError(AgentSessionError):
    """Base exception for search failures."""


class InvalidSearchPatternError(SearchError):
    """Raised when a search query is empty or is not a valid regular expression."""

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        self.reason = reason
        super().__init__(f'invalid regex {pattern!r}: {reason}')
