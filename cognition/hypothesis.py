"""Prediction templates derived from new truths."""

from __future__ import annotations

from memory.types import AbstractTruth, Hypothesis

ACKNOWLEDGEMENT_PREDICTION = (
    "After a 'Hello' signal, the external entity is expecting acknowledgement or response."
)
SEQUENCE_PREDICTION = "Numeric sequences will continue to appear and may increase in complexity."

# Marker checked during ingestion to decide whether a prediction awaits a reply.
EXPECTATION_MARKER = "expecting"
RESPONSE_MARKER = "response"
GREETING_MARKER = "Hello"


def _is_greeting_truth(truth: AbstractTruth) -> bool:
    return "greeting" in truth.emergent_principle.lower() or "greeting" in truth.core_concept.lower()


def generate_hypotheses(truths: list[AbstractTruth], threshold: float = 0.4) -> list[Hypothesis]:
    hypotheses: list[Hypothesis] = []
    for truth in truths:
        if truth.confidence <= threshold:
            continue
        if _is_greeting_truth(truth):
            hypotheses.append(
                Hypothesis(
                    prediction=ACKNOWLEDGEMENT_PREDICTION,
                    supporting_truth_id=truth.id,
                    confidence=truth.confidence,
                )
            )
        elif "numeric" in truth.emergent_principle.lower():
            hypotheses.append(
                Hypothesis(
                    prediction=SEQUENCE_PREDICTION,
                    supporting_truth_id=truth.id,
                    confidence=truth.confidence * 0.8,
                )
            )
    return hypotheses


def contradicts(hypothesis: Hypothesis, raw: str) -> bool:
    """True when an open expectation is met by input that is neither a response nor a greeting."""
    if hypothesis.is_violated or EXPECTATION_MARKER not in hypothesis.prediction:
        return False
    return RESPONSE_MARKER not in raw and GREETING_MARKER not in raw
