"""Configuration for agent-sessions."""

from agent_sessions.config.base import SessionStoreSettings, get_settings, lazy_settings, settings

__all__ = ['SessionStoreSettings', 'get_settings', 'lazy_settings', 'settings']
