"""Qualia signature value type."""

from __future__ import annotations

import math

from pydantic import BaseModel, Field


class QualiaSignature(BaseModel):
    """Numeric fingerprint of an observation used for similarity links."""

    vector: list[float] = Field(default_factory=list)

    def distance(self, other: QualiaSignature) -> float:
        """Euclidean distance; infinite when dimensionality differs."""
        if len(self.vector) != len(other.vector):
            return math.inf
        return math.sqrt(sum((a - b) * (a - b) for a, b in zip(self.vector, other.vector)))
