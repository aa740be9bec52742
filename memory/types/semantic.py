"""Derived truth models."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field


class AbstractTruth(BaseModel):
    """Generalized belief; identified by its emergent principle for dedup and merge."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    core_concept: str
    supporting_frames: set[str] = Field(default_factory=set)
    confidence: float
    emergent_principle: str
