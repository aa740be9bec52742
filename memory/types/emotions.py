"""Emotion enumeration and the bounded emotional matrix."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from memory.scoring import clamp_unit


class Emotion(str, Enum):
    """Fixed emotion set; declaration order is the canonical order."""

    JOY = "joy"
    SADNESS = "sadness"
    FEAR = "fear"
    ANGER = "anger"
    SURPRISE = "surprise"
    DISGUST = "disgust"
    CURIOSITY = "curiosity"
    AWE = "awe"


def _neutral_state() -> dict[Emotion, float]:
    return {emotion: 0.5 for emotion in Emotion}


class EmotionalMatrix(BaseModel):
    """Per-emotion intensity in [0, 1]."""

    current_state: dict[Emotion, float] = Field(default_factory=_neutral_state)

    def modulate(self, influence: dict[Emotion, float], weight: float) -> None:
        """Blend influence into the current state; absent emotions are untouched."""
        for emotion, value in influence.items():
            current = self.current_state.get(emotion, 0.5)
            self.current_state[emotion] = clamp_unit(current + value * weight)

    def restore(self, state: dict[Emotion, float]) -> None:
        self.current_state = dict(state)

    def describe_state(self) -> str:
        significant = sorted(
            ((emotion, value) for emotion, value in self.current_state.items() if value > 0.05),
            key=lambda item: item[1],
            reverse=True,
        )
        if not significant:
            return "neutral"
        return ", ".join(f"{emotion.value}: {value:.2f}" for emotion, value in significant)
