"""Goal models."""

from __future__ import annotations

import uuid
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from memory.scoring import clamp_unit


class GoalStatus(str, Enum):
    ACTIVE = "active"
    ACHIEVED = "achieved"
    FAILED = "failed"


class Goal(BaseModel):
    """Motivational target. Nothing currently moves a goal out of ``active``."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    description: str
    priority: float = 0.5
    status: GoalStatus = GoalStatus.ACTIVE

    @field_validator("priority")
    @classmethod
    def _clamp_priority(cls, value: float) -> float:
        return clamp_unit(value)

    @property
    def first_token(self) -> str:
        tokens = self.description.split()
        return tokens[0] if tokens else ""

    @property
    def last_token(self) -> str:
        tokens = self.description.split()
        return tokens[-1] if tokens else ""
