"""
Metadata enrichment service.

History logs only carry a prompt, a project and a timestamp. Everything else
(transcript location, Codex working directory, model, reasoning effort) is
mined from transcripts on demand.

Enrichment is two-phase:
    resolve(session)  - reads the filesystem, mutates nothing
    apply(session, e) - returns the updated record and writes the gains
                        into the fingerprint cache
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from agent_sessions.schemas.enrichment import SessionEnrichment, TranscriptInfo
from agent_sessions.schemas.session import SessionRecord
from agent_sessions.schemas.source import SessionSource
from agent_sessions.services.cache import FingerprintCache
from agent_sessions.services.discovery import TranscriptLocator
from agent_sessions.services.parsers import effort_candidate, entry_session_id, iso_to_ms, model_candidate

__all__ = ['MetadataEnricher', 'iter_json_lines', 'scan_claude_model', 'scan_codex_transcript']

logger = logging.getLogger(__name__)


def iter_json_lines(path: Path | str) -> Iterator[Any]:
    """Decoded values of a JSONL file; blank and malformed lines are skipped.

    An unreadable file yields nothing.
    """
    try:
        f = open(path, encoding='utf-8', errors='replace')
    except OSError:
        return
    with f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                continue


def _string_at(value: Any, *keys: str) -> str | None:
    for key in keys:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value if isinstance(value, str) else None


def scan_codex_transcript(path: Path | str, expected_session_id: str) -> TranscriptInfo | None:
    """
    Recover cwd, start time, model and reasoning effort from a Codex transcript.

    A transcript can contain more than one session (forks). Once a
    `session_meta` line names another session, following lines without their
    own session id belong to that session and are ignored. Lines that carry a
    session id are used only when it matches.

    Args:
        path: Transcript file
        expected_session_id: Session whose metadata we want

    Returns:
        TranscriptInfo, or None if nothing useful was found
    """
    cwd: str | None = None
    timestamp_ms: int | None = None
    model: str | None = None
    effort: str | None = None
    saw_session_meta = False
    current_session_matches = True

    for value in iter_json_lines(path):
        if not isinstance(value, dict):
            continue
        entry_type = value.get('type')
        payload = value.get('payload')

        if entry_type == 'session_meta':
            saw_session_meta = True
            if not isinstance(payload, dict):
                continue
            meta_id = _string_at(payload, 'id') or ''
            current_session_matches = not meta_id or meta_id == expected_session_id
            if not current_session_matches:
                continue
            meta_cwd = _string_at(payload, 'cwd')
            if meta_cwd:
                cwd = meta_cwd
            meta_ts = iso_to_ms(_string_at(payload, 'timestamp') or '')
            if meta_ts is not None:
                timestamp_ms = meta_ts
            continue

        line_session_id = entry_session_id(value)
        if line_session_id is not None:
            if line_session_id != expected_session_id:
                continue
        elif saw_session_meta and not current_session_matches:
            continue

        if not isinstance(payload, dict):
            continue

        if entry_type == 'turn_context':
            found_model = model_candidate(_string_at(payload, 'model') or '')
            if found_model is not None:
                model = found_model
            found_effort = effort_candidate(_string_at(payload, 'effort') or '')
            if found_effort is not None:
                effort = found_effort
            if effort is None:
                effort = effort_candidate(
                    _string_at(payload, 'collaboration_mode', 'settings', 'reasoning_effort') or ''
                )
        elif entry_type == 'response_item' and payload.get('type') == 'message':
            found_model = model_candidate(_string_at(payload, 'model') or '')
            if found_model is not None:
                model = found_model

    info = TranscriptInfo(cwd=cwd, timestamp_ms=timestamp_ms, model=model, reasoning_effort=effort)
    if info.is_empty():
        return None
    return info


def scan_claude_model(path: Path | str) -> str | None:
    """Model of the latest assistant message in a Claude Code transcript."""
    latest: str | None = None
    for value in iter_json_lines(path):
        if not isinstance(value, dict) or value.get('type') != 'assistant':
            continue
        candidate = model_candidate(_string_at(value, 'message', 'model') or '')
        if candidate is not None:
            latest = candidate
    return latest


class MetadataEnricher:
    """Fills gaps in session records from their transcripts."""

    def __init__(self, cache: FingerprintCache, locator: TranscriptLocator) -> None:
        self.cache = cache
        self.locator = locator

    def resolve(self, session: SessionRecord) -> SessionEnrichment:
        """
        Work out what a session gains from its transcript, without mutating anything.

        Args:
            session: Session as currently held by the store

        Returns:
            SessionEnrichment describing field updates and cache bookkeeping
        """
        changes: dict[str, Any] = {}
        is_codex = session.source is SessionSource.CODEX

        file_path = session.file_path
        if file_path is not None and not Path(file_path).is_file():
            logger.debug('Transcript for %s vanished: %s', session.session_id, file_path)
            file_path = None
            changes['clear_file_path'] = True
            changes['drop_cached_path'] = is_codex

        located = False
        if file_path is None:
            found = self.locator.find_session_file(session.source, session.session_id, session.project)
            if found is not None:
                file_path = str(found)
                located = True
                changes['file_path'] = file_path
                if is_codex:
                    changes['transcript_path'] = file_path

        project = session.project
        if is_codex and file_path is not None:
            # A freshly located transcript gets a current cache entry first, so it isn't "changed"
            file_changed = False if located else self.cache.transcript_changed(session.session_id, file_path)
            needs_scan = (
                file_changed
                or not session.project
                or session.timestamp == 0
                or not session.model
                or not session.reasoning_effort
            )
            if needs_scan:
                info = scan_codex_transcript(file_path, session.session_id)
                if info is not None:
                    if not session.project and info.cwd:
                        project = info.cwd
                        changes['project'] = project
                    if session.timestamp == 0 and info.timestamp_ms:
                        changes['timestamp'] = info.timestamp_ms
                    if info.model is not None and (file_changed or not session.model) and session.model != info.model:
                        changes['model'] = info.model
                    if (
                        info.reasoning_effort is not None
                        and (file_changed or not session.reasoning_effort)
                        and session.reasoning_effort != info.reasoning_effort
                    ):
                        changes['reasoning_effort'] = info.reasoning_effort
                    changes['transcript_path'] = file_path
                    changes['transcript'] = info

        if session.source is SessionSource.CLAUDE_CODE and file_path is not None:
            model = scan_claude_model(file_path)
            if model is not None and model != session.model:
                changes['model'] = model

        if not session.display and project:
            changes['display'] = project

        return SessionEnrichment(**changes)

    def apply(self, session: SessionRecord, enrichment: SessionEnrichment) -> SessionRecord:
        """
        Apply a resolved enrichment.

        Args:
            session: Session the enrichment was resolved for
            enrichment: Result of resolve()

        Returns:
            Updated copy of the session (the input is left untouched)
        """
        if enrichment.drop_cached_path:
            self.cache.clear_transcript_path(session.session_id)
        if enrichment.transcript_path is not None:
            self.cache.update_transcript(session.session_id, enrichment.transcript_path, enrichment.transcript)

        updates = enrichment.changes()
        if not updates:
            return session
        updated = session.model_copy(update=updates)
        if updated != session:
            logger.debug('Enriched %s %s: %s', session.source.label, session.session_id, sorted(updates))
            self.cache.update_history_session(updated)
        return updated

    def enrich(self, session: SessionRecord) -> SessionRecord:
        """resolve() then apply()."""
        return self.apply(session, self.resolve(session))
