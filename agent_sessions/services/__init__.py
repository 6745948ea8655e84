"""Services: loading, caching, enrichment, search and stats."""

from agent_sessions.services.store import SessionStore

__all__ = ['SessionStore']
