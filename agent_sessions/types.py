"""
Shared type definitions for the agent-sessions package.

Centralizes common type annotations used across multiple modules.
"""

from typing import Annotated

import pydantic

from agent_sessions.schemas.source import SessionSource

# Source enum that still accepts the raw value when read back from the cache file
JsonSource = Annotated[SessionSource, pydantic.Field(strict=False)]
