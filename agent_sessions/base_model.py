"""
Shared Pydantic base models.

All Pydantic models in the application should inherit from one of these.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class StrictModel(BaseModel):
    """Base model with strict validation settings."""

    model_config = ConfigDict(
        extra='forbid',  # Raise error on unexpected fields
        strict=True,  # Strict type validation
        frozen=True,  # Immutable (cannot modify after creation)
    )


class MutableModel(BaseModel):
    """Strict model that allows in-place updates.

    Used for records that are merged line-by-line and for the cache document.
    """

    model_config = ConfigDict(extra='forbid', strict=True, frozen=False)


class LenientModel(BaseModel):
    """Strict model for third-party input lines.

    History logs carry fields we don't model (pasted contents, cwd, ...),
    so unknown keys are ignored instead of rejected.
    """

    model_config = ConfigDict(
        extra='ignore',
        strict=True,
        frozen=True,
        populate_by_name=True,
    )
