"""
Session store configuration.

Settings come from environment variables (and an optional .env file named by
LOAD_ENV_FILE). The store itself never reads settings directly - callers build
it with SessionStore.from_settings() or inject paths explicitly.
"""

from __future__ import annotations

import os
import pathlib
from typing import TypeVar

import lazy_object_proxy
import pydantic
import pydantic_settings

from agent_sessions.paths import SourceLayout

T = TypeVar('T', bound='SessionStoreSettings')


class SessionStoreSettings(pydantic_settings.BaseSettings):
    """Configuration for the session store and CLI."""

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix='AGENT_SESSIONS_',
        env_file_encoding='utf-8',
        case_sensitive=True,  # Fail fast on misconfiguration
        extra='forbid',  # Reject unknown settings
    )

    # Application metadata
    APP_NAME: str = 'agent-sessions'
    VERSION: str = '0.1.0'

    # Source roots (default: ~/.claude and ~/.codex)
    CLAUDE_HOME: pathlib.Path | None = None
    CODEX_HOME: pathlib.Path | None = None

    # Persisted fingerprint cache (default: ~/.local/state/agent-sessions/session-cache-v1.json)
    CACHE_FILE: pathlib.Path | None = None

    # Codex discovery bounds
    RECENT_DAY_DIRS: int = 21  # date-partitioned directories indexed per load
    TRANSCRIPT_SEARCH_DEPTH: int = 4  # max directory depth for the fallback walk

    @pydantic.field_validator('RECENT_DAY_DIRS', 'TRANSCRIPT_SEARCH_DEPTH')
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Discovery bounds must allow at least one level/directory."""
        if v < 1:
            raise ValueError('must be at least 1')
        return v

    @property
    def layout(self) -> SourceLayout:
        home = pathlib.Path.home()
        return SourceLayout(
            claude_home=(self.CLAUDE_HOME or home / '.claude').expanduser(),
            codex_home=(self.CODEX_HOME or home / '.codex').expanduser(),
        )

    @property
    def cache_file(self) -> pathlib.Path:
        if self.CACHE_FILE is not None:
            return self.CACHE_FILE.expanduser()
        return pathlib.Path.home() / '.local' / 'state' / 'agent-sessions' / 'session-cache-v1.json'


def get_settings(settings_class: type[T] = SessionStoreSettings, env_file: str | None = None) -> T:
    """
    Factory for creating settings with dynamic .env file loading.

    LOAD_ENV_FILE environment variable specifies custom .env file path.
    When unset, loads from environment variables only.

    Raises:
        FileNotFoundError: If specified .env file doesn't exist
    """
    env_file_path = env_file or os.getenv('LOAD_ENV_FILE')

    if not env_file_path:
        return settings_class()

    resolved_path = pathlib.Path(env_file_path).resolve()
    if not resolved_path.exists():
        raise FileNotFoundError(f'Environment file not found: {resolved_path}')

    return settings_class(_env_file=resolved_path)


def lazy_settings(settings_class: type[T]) -> T:
    """Lazy settings - defers instantiation until first access."""
    return lazy_object_proxy.Proxy(lambda: get_settings(settings_class))


# Module-level singleton (lazy-loaded)
settings = lazy_settings(SessionStoreSettings)
