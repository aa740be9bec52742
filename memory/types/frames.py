"""Phenomenological frame: one ingested observation."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, Field

from memory.types.emotions import Emotion
from memory.types.qualia import QualiaSignature


class PhenomenologicalFrame(BaseModel):
    """Timestamped observation with interpretation, resonance and fingerprint."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    raw_input: str
    subjective_interpretation: str
    emotional_resonance: dict[Emotion, float] = Field(default_factory=dict)
    qualia_signature: QualiaSignature = Field(default_factory=QualiaSignature)
    # Edges to frames that existed when this one was woven in.
    connections: set[str] = Field(default_factory=set)
    salience: float = 0.5
