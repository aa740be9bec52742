"""Hypothesis models."""

from __future__ import annotations

import uuid

from pydantic import BaseModel, Field


class Hypothesis(BaseModel):
    """Falsifiable prediction attached to a truth."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    prediction: str
    supporting_truth_id: str
    confidence: float
    is_violated: bool = False

    def violate(self) -> float:
        """Mark violated, halve confidence and return the confidence it had before."""
        prior = self.confidence
        self.is_violated = True
        self.confidence *= 0.5
        return prior
