"""Cognitive engine: perceive → attend → reflect → hypothesize → evaluate → deliberate → adapt → persist.

Ingestion and cycles may be driven from different threads. The belief
store's lock covers the three record maps, the self-concept, the emotional
matrix and the pending action buffer; the cycle counter has its own lock.
Ingestion is queued on a single worker so frames are woven in submission
order.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor

from cognition import perception
from cognition.deliberation import choose_action, evaluate_goals
from cognition.hypothesis import contradicts, generate_hypotheses
from cognition.reflection import synthesize_truths
from core.errors import PersistenceReadError, PersistenceWriteError
from core.event_bus import (
    ACTION_DECIDED,
    CYCLE_COMPLETED,
    FRAME_INGESTED,
    HYPOTHESIS_VIOLATED,
    TRUTH_DERIVED,
    EventBus,
)
from memory.belief_store import DEFAULT_SIMILARITY_THRESHOLD, BeliefStore
from memory.continuity import ContinuitySnapshot, ContinuityStore
from memory.scoring import clamp_unit
from memory.types import (
    AbstractTruth,
    Emotion,
    EmotionalMatrix,
    Hypothesis,
    PhenomenologicalFrame,
    SelfConcept,
    VolitionalAction,
)

logger = logging.getLogger("mw.mind")

SURPRISE_INFLUENCE = {Emotion.SURPRISE: 0.9, Emotion.FEAR: 0.2}
LEARNING_INFLUENCE = {Emotion.JOY: 0.05, Emotion.CURIOSITY: 0.02}
RECORD_KINDS = ("frame", "truth", "hypothesis")


class Mind:
    """Stateful agent owning a belief store, a self-concept and an emotional matrix."""

    def __init__(
        self,
        self_concept: SelfConcept,
        telos: str,
        ethical_framework: Iterable[str] = (),
        genesis_id: str | None = None,
        continuity: ContinuityStore | None = None,
        event_bus: EventBus | None = None,
        focus_size: int = 12,
        similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        hypothesis_threshold: float = 0.4,
    ) -> None:
        self.genesis_id = genesis_id or str(uuid.uuid4())
        self.telos = telos
        self.ethical_framework = list(ethical_framework)
        self.self_concept = self_concept
        self.emotional_matrix = EmotionalMatrix()
        self.store = BeliefStore(similarity_threshold=similarity_threshold)
        self.continuity = continuity
        self.event_bus = event_bus or EventBus()
        self.focus_size = focus_size
        self.hypothesis_threshold = hypothesis_threshold

        self._cycle_count = 0
        self._cycle_lock = threading.Lock()
        # Held from snapshot to write so snapshots reach the store in cycle order.
        self._persist_lock = threading.Lock()
        self._persisted_cycle = -1
        self._action_buffer: list[VolitionalAction] = []
        self._ingest_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="mw-ingest")

        self.restore()

    @property
    def cycle_count(self) -> int:
        with self._cycle_lock:
            return self._cycle_count

    # ── Perceive ─────────────────────────────────────────────────────

    def ingest(self, text: str) -> Future[PhenomenologicalFrame]:
        """Queue raw text for ingestion; the future resolves to the stored frame."""
        return self._ingest_executor.submit(self.perceive, text)

    def wait_idle(self) -> None:
        """Block until every previously queued ingestion has been woven."""
        self._ingest_executor.submit(lambda: None).result()

    def perceive(self, text: str) -> PhenomenologicalFrame:
        """Create a frame, check it against open hypotheses and weave it in."""
        frame = perception.perceive(text)
        with self.store.lock:
            violated = self.store.violate_hypotheses(lambda hypothesis: contradicts(hypothesis, text))
            surprise = 0.0
            for hypothesis, prior in violated:
                surprise += prior
                self.emotional_matrix.modulate(SURPRISE_INFLUENCE, 0.6)
                logger.info(
                    "Surprise: hypothesis violated: %s. Received %r instead",
                    hypothesis.prediction,
                    text,
                )
            frame.salience = clamp_unit(frame.salience + surprise)
            self.store.weave(frame, self.self_concept.goals_with_status())
            self.emotional_matrix.modulate(frame.emotional_resonance, 0.8)
            stored = frame.model_copy(deep=True)

        logger.info(
            "New phenomenon (salience %.2f): %s",
            stored.salience,
            stored.subjective_interpretation,
        )
        for hypothesis, _ in violated:
            self.event_bus.emit(HYPOTHESIS_VIOLATED, {"hypothesis_id": hypothesis.id, "frame_id": stored.id})
        self.event_bus.emit(
            FRAME_INGESTED,
            {"frame_id": stored.id, "salience": stored.salience, "connections": len(stored.connections)},
        )
        return stored

    # ── Cognize ──────────────────────────────────────────────────────

    def run_cycle(self) -> list[VolitionalAction]:
        """Run one full cognitive cycle and return the actions decided (zero or one)."""
        with self._cycle_lock:
            self._cycle_count += 1
            cycle = self._cycle_count
        logger.info("Beginning cognitive cycle %d", cycle)

        with self.store.lock:
            focus = self.store.focus(self.focus_size)
            logger.debug("Attentional focus on %d frames", len(focus))

            candidates = synthesize_truths(focus, self.store.known_principles())
            new_truths = self.store.add_truths(candidates)
            for truth in new_truths:
                logger.info("Derived new truth: %s", truth.emergent_principle)

            new_hypotheses = generate_hypotheses(new_truths, self.hypothesis_threshold)
            self.store.add_hypotheses(new_hypotheses)
            for hypothesis in new_hypotheses:
                logger.info("New hypothesis: %s", hypothesis.prediction)

            for goal in evaluate_goals(self.self_concept, new_truths):
                logger.info("Goal %r priority adjusted to %.2f", goal.description, goal.priority)

            action = choose_action(self.self_concept)
            if action is not None:
                self._action_buffer.append(action)

            self._metamorphose(new_truths, new_hypotheses)
            snapshot = self.snapshot()
            actions = list(self._action_buffer)
            self._action_buffer.clear()
            self._persist_lock.acquire()

        try:
            self._write(snapshot)
        finally:
            self._persist_lock.release()

        for truth in new_truths:
            self.event_bus.emit(TRUTH_DERIVED, {"truth_id": truth.id, "principle": truth.emergent_principle})
        for decided in actions:
            self.event_bus.emit(ACTION_DECIDED, decided.model_dump())
        self.event_bus.emit(
            CYCLE_COMPLETED,
            {"cycle": cycle, "new_truths": len(new_truths), "new_hypotheses": len(new_hypotheses)},
        )
        return actions

    def _metamorphose(self, insights: list[AbstractTruth], new_hypotheses: list[Hypothesis]) -> None:
        if not insights and not new_hypotheses:
            return
        logger.info("Metamorphosis: updating self-concept")
        if insights:
            self.self_concept.append_understanding(f"Learned: {insights[0].emergent_principle}")
        self.emotional_matrix.modulate(LEARNING_INFLUENCE, 0.7)

    # ── Continuity ───────────────────────────────────────────────────

    def snapshot(self) -> ContinuitySnapshot:
        """Deep copy of the full state."""
        with self.store.lock:
            return ContinuitySnapshot(
                frames=self.store.list_frames(),
                truths=self.store.list_truths(),
                hypotheses=self.store.list_hypotheses(),
                self_concept=self.self_concept.model_copy(deep=True),
                emotions=dict(self.emotional_matrix.current_state),
                cycle_count=self.cycle_count,
            )

    def persist(self, snapshot: ContinuitySnapshot | None = None) -> bool:
        """Write a snapshot; failures are logged and reported as ``False``.

        Without an argument the current state is captured and written under
        the same lock hand-off ``run_cycle`` uses. A snapshot older than the
        last one written is skipped.
        """
        if self.continuity is None:
            return False
        if snapshot is None:
            with self.store.lock:
                snapshot = self.snapshot()
                self._persist_lock.acquire()
        else:
            self._persist_lock.acquire()
        try:
            return self._write(snapshot)
        finally:
            self._persist_lock.release()

    def _write(self, snapshot: ContinuitySnapshot) -> bool:
        # Caller holds _persist_lock.
        if self.continuity is None:
            return False
        if snapshot.cycle_count < self._persisted_cycle:
            logger.info(
                "Skipping stale snapshot for cycle %d (cycle %d already written)",
                snapshot.cycle_count,
                self._persisted_cycle,
            )
            return False
        try:
            self.continuity.save(snapshot)
        except PersistenceWriteError as exc:
            logger.warning("Persistence failed: %s", exc)
            return False
        self._persisted_cycle = snapshot.cycle_count
        return True

    def restore(self) -> bool:
        """Load the last snapshot if one exists; unreadable state means a fresh start."""
        if self.continuity is None:
            return False
        try:
            snapshot = self.continuity.load()
        except PersistenceReadError as exc:
            logger.warning("Failed to load persisted state, starting fresh: %s", exc)
            return False
        if snapshot is None:
            return False
        with self.store.lock:
            self.store.load(snapshot.frames, snapshot.truths, snapshot.hypotheses)
            self.self_concept = snapshot.self_concept
            self.emotional_matrix.restore(snapshot.emotions)
        with self._cycle_lock:
            self._cycle_count = snapshot.cycle_count
        logger.info("Loaded persisted state (version %d)", snapshot.version)
        return True

    # ── Inspection ───────────────────────────────────────────────────

    def list_frames(self) -> list[PhenomenologicalFrame]:
        return self.store.list_frames()

    def list_truths(self) -> list[AbstractTruth]:
        return self.store.list_truths()

    def list_hypotheses(self) -> list[Hypothesis]:
        return self.store.list_hypotheses()

    def inspect(self, kind: str, record_id: str) -> PhenomenologicalFrame | AbstractTruth | Hypothesis | None:
        if kind not in RECORD_KINDS:
            return None
        return self.store.get(kind, record_id)

    def merge_external_truths(self, truths: Iterable[AbstractTruth], trust_weight: float) -> int:
        return self.store.merge_truths(truths, trust_weight)

    def describe_emotions(self) -> str:
        with self.store.lock:
            return self.emotional_matrix.describe_state()

    def summary(self) -> str:
        counts = self.store.counts()
        with self.store.lock:
            identity = self.self_concept.identity
            goal_count = len(self.self_concept.active_goals)
        lines = [
            "--- Mind Summary ---",
            f"ID: {self.genesis_id}",
            f"Identity: {identity}",
            f"Telos: {self.telos}",
            f"Cycle Count: {self.cycle_count}",
            f"Frames count: {counts['frames']}",
            f"Derived truths: {counts['truths']}",
            f"Active hypotheses: {counts['hypotheses']}",
            f"Active goals: {goal_count}",
            f"Emotional state: {self.describe_emotions()}",
            "--- End Summary ---",
        ]
        return "\n".join(lines)

    def close(self) -> None:
        """Finish queued ingestion and stop the worker."""
        self._ingest_executor.shutdown(wait=True)
