"""Rule-based interpretation, resonance and qualia generation for raw text."""

from __future__ import annotations

from memory.types import Emotion, PhenomenologicalFrame, QualiaSignature

GREETING_INTERPRETATION = "A greeting directed at me."
QUESTION_INTERPRETATION = "An explicit question seeking information."
FAILURE_INTERPRETATION = "A reported malfunction or failure."

_LCG_MULTIPLIER = 6364136223846793005
_LCG_INCREMENT = 1442695040888963407
_MASK_64 = (1 << 64) - 1
_RANDOM_COMPONENTS = 8


def interpret(raw: str) -> str:
    """Classify raw text; the first matching cue wins."""
    lowered = raw.lower()
    if "hello" in lowered or "'Hello?'" in raw:
        return GREETING_INTERPRETATION
    if "query" in lowered or "?" in raw:
        return QUESTION_INTERPRETATION
    if "error" in lowered or "fail" in lowered:
        return FAILURE_INTERPRETATION
    return f"A data token: '{raw}'."


def infer_resonance(raw: str) -> dict[Emotion, float]:
    """Independent cue checks; later assignments overwrite earlier ones."""
    lowered = raw.lower()
    result: dict[Emotion, float] = {}
    if "hello" in lowered:
        result[Emotion.CURIOSITY] = 0.7
        result[Emotion.AWE] = 0.1
    if "?" in raw:
        result[Emotion.CURIOSITY] = 0.9
    if "error" in lowered:
        result[Emotion.FEAR] = 0.6
        result[Emotion.SURPRISE] = 0.4
    if not result:
        result[Emotion.CURIOSITY] = 0.4
    return result


def _byte_sum(text: str) -> int:
    return sum(text.encode("utf-8"))


def lcg_sequence(seed: int, count: int) -> list[float]:
    """64-bit linear-congruential stream mapped to [0, 1) in thousandths."""
    values: list[float] = []
    state = seed & _MASK_64
    for _ in range(count):
        state = (state * _LCG_MULTIPLIER + _LCG_INCREMENT) & _MASK_64
        values.append((state % 1000) / 1000.0)
    return values


def generate_qualia_signature(
    raw: str,
    interpretation: str,
    emotions: dict[Emotion, float],
) -> QualiaSignature:
    """Deterministic fingerprint: seeded LCG values followed by resonance in canonical order."""
    seed = _byte_sum(raw)
    seed ^= (_byte_sum(interpretation) << 1) & _MASK_64
    randoms = lcg_sequence(seed, _RANDOM_COMPONENTS)
    emotion_vector = [emotions.get(emotion, 0.0) for emotion in Emotion]
    return QualiaSignature(vector=randoms + emotion_vector)


def perceive(raw: str) -> PhenomenologicalFrame:
    """Build an unwoven frame for raw text."""
    interpretation = interpret(raw)
    emotions = infer_resonance(raw)
    return PhenomenologicalFrame(
        raw_input=raw,
        subjective_interpretation=interpretation,
        emotional_resonance=emotions,
        qualia_signature=generate_qualia_signature(raw, interpretation, emotions),
    )
