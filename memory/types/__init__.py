"""Typed cognitive state models."""

from memory.types.actions import VolitionalAction
from memory.types.emotions import Emotion, EmotionalMatrix
from memory.types.frames import PhenomenologicalFrame
from memory.types.goals import Goal, GoalStatus
from memory.types.qualia import QualiaSignature
from memory.types.self_model import SelfConcept
from memory.types.semantic import AbstractTruth
from memory.types.uncertainty import Hypothesis

__all__ = [
    "AbstractTruth",
    "Emotion",
    "EmotionalMatrix",
    "Goal",
    "GoalStatus",
    "Hypothesis",
    "PhenomenologicalFrame",
    "QualiaSignature",
    "SelfConcept",
    "VolitionalAction",
]
