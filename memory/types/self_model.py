"""Self-concept models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from memory.types.goals import Goal, GoalStatus


class SelfConcept(BaseModel):
    """Agent self-model: identity, values, limitations, narrative and goals."""

    identity: str
    core_values: set[str] = Field(default_factory=set)
    perceived_limitations: set[str] = Field(default_factory=set)
    understanding_of_existence: str = ""
    active_goals: list[Goal] = Field(default_factory=list)

    def goals_with_status(self, status: GoalStatus = GoalStatus.ACTIVE) -> list[Goal]:
        return [goal for goal in self.active_goals if goal.status == status]

    def replace_goal(self, updated: Goal) -> None:
        """Swap the goal sharing ``updated.id`` for ``updated`` in place."""
        for index, goal in enumerate(self.active_goals):
            if goal.id == updated.id:
                self.active_goals[index] = updated
                return
        self.active_goals.append(updated)

    def append_understanding(self, line: str) -> None:
        self.understanding_of_existence += f"\n- {line}"
