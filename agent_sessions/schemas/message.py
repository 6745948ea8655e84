"""
Transcript message schema.

Both sources are normalized into the Claude Code shape: a line type plus a
`message` object carrying `role`, `content` and `model`.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from agent_sessions.base_model import StrictModel

__all__ = ['INTERNAL_TYPES', 'TEXT_BLOCK_TYPES', 'Message', 'block_text']

# Claude Code bookkeeping lines that never carry conversation text
INTERNAL_TYPES = frozenset({'file-history-snapshot', 'progress', 'queue-operation'})

# Claude Code uses 'text', Codex uses 'input_text' / 'output_text'
TEXT_BLOCK_TYPES = frozenset({'text', 'input_text', 'output_text'})


class Message(StrictModel):
    """One transcript line."""

    msg_type: str = ''
    uuid: str = ''
    timestamp: str = ''
    is_api_error: bool = False
    session_id: str = ''
    message: dict[str, Any] = Field(default_factory=dict)

    @property
    def role(self) -> str:
        role = self.message.get('role')
        if isinstance(role, str):
            return role
        return self.msg_type

    @property
    def model(self) -> str:
        model = self.message.get('model')
        return model if isinstance(model, str) else ''

    def content_blocks(self) -> list[Any]:
        """Content as a block list; a plain string becomes one text block."""
        content = self.message.get('content')
        if isinstance(content, str):
            return [{'type': 'text', 'text': content}]
        if isinstance(content, list):
            return list(content)
        return []

    @property
    def text(self) -> str:
        """Textual content only - tool calls, thinking and images are excluded."""
        parts = [text for block in self.content_blocks() if (text := block_text(block)) is not None]
        return '\n'.join(parts).strip()


def block_text(block: Any) -> str | None:
    """Text of a content block, or None for non-text blocks."""
    if not isinstance(block, dict):
        return None
    if block.get('type') not in TEXT_BLOCK_TYPES:
        return None
    text = block.get('text')
    return text if isinstance(text, str) else None
