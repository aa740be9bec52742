"""Interpretation, resonance and qualia signature tests."""

from __future__ import annotations

import math

from cognition.perception import (
    FAILURE_INTERPRETATION,
    GREETING_INTERPRETATION,
    QUESTION_INTERPRETATION,
    generate_qualia_signature,
    infer_resonance,
    interpret,
    lcg_sequence,
    perceive,
)
from memory.types import Emotion, EmotionalMatrix, Goal, QualiaSignature


def test_interpretation_first_match_wins() -> None:
    assert interpret("Hello?") == GREETING_INTERPRETATION
    assert interpret("hello there, query?") == GREETING_INTERPRETATION
    assert interpret("what is this?") == QUESTION_INTERPRETATION
    assert interpret("run a query") == QUESTION_INTERPRETATION
    assert interpret("disk error, write failed") == FAILURE_INTERPRETATION
    assert interpret("42") == "A data token: '42'."


def test_resonance_later_cues_overwrite_earlier_ones() -> None:
    assert infer_resonance("Hello?") == {Emotion.CURIOSITY: 0.9, Emotion.AWE: 0.1}
    assert infer_resonance("hello") == {Emotion.CURIOSITY: 0.7, Emotion.AWE: 0.1}
    assert infer_resonance("error") == {Emotion.FEAR: 0.6, Emotion.SURPRISE: 0.4}
    assert infer_resonance("17 23") == {Emotion.CURIOSITY: 0.4}


def test_lcg_first_value_from_zero_seed() -> None:
    # 1442695040888963407 % 1000 == 407
    assert lcg_sequence(0, 1) == [0.407]
    values = lcg_sequence(12345, 8)
    assert len(values) == 8
    assert all(0.0 <= value < 1.0 for value in values)


def test_signature_is_deterministic_and_carries_resonance() -> None:
    emotions = infer_resonance("Hello?")
    first = generate_qualia_signature("Hello?", GREETING_INTERPRETATION, emotions)
    second = generate_qualia_signature("Hello?", GREETING_INTERPRETATION, emotions)

    assert first.vector == second.vector
    assert len(first.vector) == 8 + len(Emotion)
    assert first.vector[8:] == [0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.9, 0.1]


def test_distance_is_symmetric_and_zero_on_self() -> None:
    a = perceive("Hello?").qualia_signature
    b = perceive("42 and 43").qualia_signature

    assert a.distance(a) == 0.0
    assert a.distance(b) == b.distance(a)
    assert a.distance(b) > 0.0


def test_distance_between_different_lengths_is_infinite() -> None:
    short = QualiaSignature(vector=[0.1, 0.2])
    long = QualiaSignature(vector=[0.1, 0.2, 0.3])
    assert short.distance(long) == math.inf


def test_emotional_matrix_stays_in_unit_interval() -> None:
    matrix = EmotionalMatrix()
    assert set(matrix.current_state) == set(Emotion)

    matrix.modulate({Emotion.JOY: 5.0, Emotion.FEAR: -5.0}, 1.0)

    assert matrix.current_state[Emotion.JOY] == 1.0
    assert matrix.current_state[Emotion.FEAR] == 0.0
    assert matrix.current_state[Emotion.AWE] == 0.5


def test_describe_state_orders_by_intensity() -> None:
    matrix = EmotionalMatrix()
    matrix.modulate({Emotion.CURIOSITY: 0.4}, 1.0)
    matrix.modulate({Emotion.SADNESS: -1.0}, 1.0)

    described = matrix.describe_state()

    assert described.startswith("curiosity: 0.90")
    assert "sadness" not in described


def test_goal_priority_is_clamped() -> None:
    assert Goal(description="Reach out", priority=1.7).priority == 1.0
    assert Goal(description="Reach out", priority=-0.2).priority == 0.0
    assert Goal(description="").first_token == ""
