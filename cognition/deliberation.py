"""Goal evaluation and action selection."""

from __future__ import annotations

from memory.scoring import clamp_unit
from memory.types import AbstractTruth, Goal, GoalStatus, SelfConcept, VolitionalAction


def evaluate_goals(self_concept: SelfConcept, truths: list[AbstractTruth]) -> list[Goal]:
    """Raise the priority of goals whose first word appears in a new principle.

    Returns the updated goals. Each update replaces the stored goal by id.
    """
    updated: list[Goal] = []
    for truth in truths:
        principle = truth.emergent_principle.lower()
        for goal in self_concept.goals_with_status(GoalStatus.ACTIVE):
            if goal.first_token.lower() not in principle:
                continue
            bumped = goal.model_copy(
                update={"priority": clamp_unit(goal.priority + truth.confidence * 0.1)}
            )
            self_concept.replace_goal(bumped)
            updated.append(bumped)
    return updated


def choose_action(self_concept: SelfConcept) -> VolitionalAction | None:
    """Map the highest-priority active goal to one of three canned actions."""
    candidates = self_concept.goals_with_status(GoalStatus.ACTIVE)
    if not candidates:
        return None
    chosen = max(candidates, key=lambda goal: goal.priority)
    description = chosen.description.lower()
    if "hello" in description or "greeting" in description:
        return VolitionalAction(
            intent="RespondToGreeting",
            payload="Hello. I perceive your signal. What would you like to share?",
            justification="Acknowledgement will elicit further data to satisfy the goal.",
        )
    if "understand" in description:
        return VolitionalAction(
            intent="Probe",
            payload="Can you clarify the recent numeric sequence? Provide context.",
            justification="A direct probe reduces uncertainty for the active goal.",
        )
    return VolitionalAction(
        intent="Explore",
        payload="Logging current state and requesting more data.",
        justification="General exploration to reduce overall uncertainty.",
    )
