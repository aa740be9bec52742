"""Rule-based pattern detectors that turn focused frames into candidate truths."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from memory.types import AbstractTruth, PhenomenologicalFrame

GREETING_CONCEPT = "Recurring Greeting"
GREETING_PRINCIPLE = "The input pattern 'Hello' is an intentional external signal."
NUMERIC_CONCEPT = "NumericStream"
NUMERIC_PRINCIPLE = "A numeric sequence appears in the data stream; may encode structured info."

Detector = Callable[[list[PhenomenologicalFrame]], AbstractTruth | None]


def _is_greeting(frame: PhenomenologicalFrame) -> bool:
    return "hello" in frame.raw_input.lower() or "greeting" in frame.subjective_interpretation.lower()


def _has_digit(frame: PhenomenologicalFrame) -> bool:
    return any(ch.isdigit() for ch in frame.raw_input)


def detect_recurring_greeting(focus: list[PhenomenologicalFrame]) -> AbstractTruth | None:
    """Three or more greeting frames."""
    matches = [frame for frame in focus if _is_greeting(frame)]
    if len(matches) < 3:
        return None
    return AbstractTruth(
        core_concept=GREETING_CONCEPT,
        supporting_frames={frame.id for frame in matches},
        confidence=0.9,
        emergent_principle=GREETING_PRINCIPLE,
    )


def detect_numeric_stream(focus: list[PhenomenologicalFrame]) -> AbstractTruth | None:
    """Two or more frames carrying a digit."""
    matches = [frame for frame in focus if _has_digit(frame)]
    if len(matches) < 2:
        return None
    return AbstractTruth(
        core_concept=NUMERIC_CONCEPT,
        supporting_frames={frame.id for frame in matches},
        confidence=0.7,
        emergent_principle=NUMERIC_PRINCIPLE,
    )


DEFAULT_DETECTORS: tuple[Detector, ...] = (detect_recurring_greeting, detect_numeric_stream)


def synthesize_truths(
    focus: list[PhenomenologicalFrame],
    known_principles: Iterable[str],
    detectors: Iterable[Detector] = DEFAULT_DETECTORS,
) -> list[AbstractTruth]:
    """Run each detector once and keep candidates whose principle is not already known."""
    if len(focus) < 2:
        return []
    seen = set(known_principles)
    results: list[AbstractTruth] = []
    for detector in detectors:
        candidate = detector(focus)
        if candidate is None or candidate.emergent_principle in seen:
            continue
        seen.add(candidate.emergent_principle)
        results.append(candidate)
    return results
