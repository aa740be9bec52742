"""Volitional action models."""

from __future__ import annotations

from pydantic import BaseModel


class VolitionalAction(BaseModel):
    """Action decided by a cognitive cycle."""

    intent: str
    payload: str
    justification: str
