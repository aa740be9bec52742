"""Scoring helpers shared by cognition stages."""

from __future__ import annotations


def clamp_unit(value: float) -> float:
    """Clamp a score to the closed interval [0, 1]."""
    return max(0.0, min(1.0, value))


def reinforce(local: float, remote: float, trust_weight: float) -> float:
    """Combine a local confidence with a trust-weighted remote one, capped at 1.0."""
    return min(1.0, local + remote * trust_weight)
