"""Belief store: frames, truths and hypotheses behind one lock."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable

from memory.scoring import clamp_unit, reinforce
from memory.types import AbstractTruth, Goal, Hypothesis, PhenomenologicalFrame

logger = logging.getLogger("mw.belief_store")

DEFAULT_SIMILARITY_THRESHOLD = 0.45


class BeliefStore:
    """Owns the three interlinked maps and the frame connection graph.

    Every public method takes ``lock``. Callers that need several steps to
    appear atomic (ingestion, a full cycle) hold ``lock`` around them; it is
    reentrant so nested calls are fine.
    """

    def __init__(self, similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD) -> None:
        self.similarity_threshold = similarity_threshold
        self.lock = threading.RLock()
        self._frames: dict[str, PhenomenologicalFrame] = {}
        self._truths: dict[str, AbstractTruth] = {}
        self._hypotheses: dict[str, Hypothesis] = {}

    # ── Frames ───────────────────────────────────────────────────────

    def weave(self, frame: PhenomenologicalFrame, goals: Iterable[Goal] = ()) -> PhenomenologicalFrame:
        """Boost salience for goal matches, link similar frames and insert."""
        with self.lock:
            for goal in goals:
                if goal.last_token in frame.raw_input:
                    frame.salience = clamp_unit(frame.salience + goal.priority)
            for frame_id, existing in self._frames.items():
                distance = frame.qualia_signature.distance(existing.qualia_signature)
                if distance < self.similarity_threshold:
                    frame.connections.add(frame_id)
            self._frames[frame.id] = frame
            return frame

    def focus(self, max_frames: int) -> list[PhenomenologicalFrame]:
        """Highest-salience frames first; ties keep insertion order."""
        with self.lock:
            ranked = sorted(self._frames.values(), key=lambda frame: frame.salience, reverse=True)
            return ranked[:max_frames]

    # ── Hypotheses ───────────────────────────────────────────────────

    def violate_hypotheses(self, predicate: Callable[[Hypothesis], bool]) -> list[tuple[Hypothesis, float]]:
        """Violate every open hypothesis matching ``predicate``.

        Returns ``(hypothesis, confidence_before)`` pairs.
        """
        violated: list[tuple[Hypothesis, float]] = []
        with self.lock:
            for hypothesis in self._hypotheses.values():
                if hypothesis.is_violated or not predicate(hypothesis):
                    continue
                prior = hypothesis.violate()
                violated.append((hypothesis, prior))
        return violated

    def add_hypotheses(self, hypotheses: Iterable[Hypothesis]) -> None:
        with self.lock:
            for hypothesis in hypotheses:
                self._hypotheses[hypothesis.id] = hypothesis

    # ── Truths ───────────────────────────────────────────────────────

    def known_principles(self) -> set[str]:
        with self.lock:
            return {truth.emergent_principle for truth in self._truths.values()}

    def find_by_principle(self, principle: str) -> AbstractTruth | None:
        with self.lock:
            for truth in self._truths.values():
                if truth.emergent_principle == principle:
                    return truth
            return None

    def add_truths(self, truths: Iterable[AbstractTruth]) -> list[AbstractTruth]:
        """Insert truths whose principle is new; return the ones added."""
        added: list[AbstractTruth] = []
        with self.lock:
            for truth in truths:
                if self.find_by_principle(truth.emergent_principle) is not None:
                    continue
                self._truths[truth.id] = truth
                added.append(truth)
        return added

    def merge_truths(self, truths: Iterable[AbstractTruth], trust_weight: float) -> int:
        """Merge remote truths by principle; return how many were new.

        A matching local truth keeps its id and concept, gains the union of
        supporting frames, and its confidence is reinforced up to 1.0.
        """
        added = 0
        with self.lock:
            for remote in truths:
                local = self.find_by_principle(remote.emergent_principle)
                if local is None:
                    self._truths[remote.id] = remote.model_copy(deep=True)
                    added += 1
                    continue
                self._truths[local.id] = AbstractTruth(
                    id=local.id,
                    core_concept=local.core_concept,
                    supporting_frames=local.supporting_frames | remote.supporting_frames,
                    confidence=reinforce(local.confidence, remote.confidence, trust_weight),
                    emergent_principle=local.emergent_principle,
                )
        logger.info("Integrated %d external truths (trust_weight=%.2f)", added, trust_weight)
        return added

    # ── Snapshot access ──────────────────────────────────────────────

    def list_frames(self) -> list[PhenomenologicalFrame]:
        with self.lock:
            return [frame.model_copy(deep=True) for frame in self._frames.values()]

    def list_truths(self) -> list[AbstractTruth]:
        with self.lock:
            return [truth.model_copy(deep=True) for truth in self._truths.values()]

    def list_hypotheses(self) -> list[Hypothesis]:
        with self.lock:
            return [hypothesis.model_copy(deep=True) for hypothesis in self._hypotheses.values()]

    def get(self, kind: str, record_id: str) -> PhenomenologicalFrame | AbstractTruth | Hypothesis | None:
        tables = {"frame": self._frames, "truth": self._truths, "hypothesis": self._hypotheses}
        table = tables.get(kind)
        if table is None:
            raise ValueError(f"Unknown record kind: {kind}")
        with self.lock:
            record = table.get(record_id)
            return record.model_copy(deep=True) if record is not None else None

    def counts(self) -> dict[str, int]:
        with self.lock:
            return {
                "frames": len(self._frames),
                "truths": len(self._truths),
                "hypotheses": len(self._hypotheses),
            }

    def load(
        self,
        frames: Iterable[PhenomenologicalFrame],
        truths: Iterable[AbstractTruth],
        hypotheses: Iterable[Hypothesis],
    ) -> None:
        """Add restored records under their own ids."""
        with self.lock:
            for frame in frames:
                self._frames[frame.id] = frame
            for truth in truths:
                self._truths[truth.id] = truth
            for hypothesis in hypotheses:
                self._hypotheses[hypothesis.id] = hypothesis
