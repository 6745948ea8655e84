"""
Pydantic schemas for sessions, transcripts and the persisted cache.
"""

from __future__ import annotations

from agent_sessions.schemas.cache import CACHE_VERSION, CachedHistory, CachedTranscript, SessionCache
from agent_sessions.schemas.enrichment import SessionEnrichment, TranscriptInfo
from agent_sessions.schemas.message import INTERNAL_TYPES, Message, block_text
from agent_sessions.schemas.results import SearchHit, SourceStats, StatsReport
from agent_sessions.schemas.session import SessionKey, SessionRecord, session_id_hex_tail
from agent_sessions.schemas.source import SessionSource

__all__ = [
    # source
    'SessionSource',
    # session
    'SessionKey',
    'SessionRecord',
    'session_id_hex_tail',
    # message
    'INTERNAL_TYPES',
    'Message',
    'block_text',
    # cache
    'CACHE_VERSION',
    'CachedHistory',
    'CachedTranscript',
    'SessionCache',
    # enrichment
    'SessionEnrichment',
    'TranscriptInfo',
    # results
    'SearchHit',
    'SourceStats',
    'StatsReport',
]
