"""Peer wire protocol: typed envelopes framed as one JSON document per line."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError

from core.errors import DecodeError
from memory.types import AbstractTruth

P = TypeVar("P", bound=BaseModel)

DEFAULT_TRUST_WEIGHT = 0.6


class MessageType(str, Enum):
    INTRODUCE = "introduce"
    SHARE_TRUTHS = "shareTruths"
    REQUEST_SYNC = "requestSync"
    ACCEPT_SYNC = "acceptSync"
    PEER_PING = "peerPing"


class IntroducePayload(BaseModel):
    id: str
    identity_label: str
    telos: str


class ShareTruthsPayload(BaseModel):
    truths: list[AbstractTruth] = Field(default_factory=list)
    trust_weight: float = DEFAULT_TRUST_WEIGHT


class RequestSyncPayload(BaseModel):
    since: datetime | None = None


class NetworkEnvelope(BaseModel):
    """One timestamped message; ``payload`` shape depends on ``type``."""

    from_agent_id: str
    type: MessageType
    payload: dict[str, Any] | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


def make_envelope(sender: str, message_type: MessageType, payload: BaseModel | None = None) -> NetworkEnvelope:
    body = json.loads(payload.model_dump_json()) if payload is not None else None
    return NetworkEnvelope(from_agent_id=sender, type=message_type, payload=body)


def encode_envelope(envelope: NetworkEnvelope) -> bytes:
    """Serialize to a single newline-terminated line."""
    return envelope.model_dump_json().encode("utf-8") + b"\n"


def decode_envelope(data: bytes) -> NetworkEnvelope:
    try:
        return NetworkEnvelope.model_validate_json(data.strip())
    except (ValidationError, ValueError) as exc:
        raise DecodeError(f"Malformed envelope: {exc}") from exc


def decode_payload(envelope: NetworkEnvelope, model: type[P]) -> P:
    if envelope.payload is None:
        raise DecodeError(f"{envelope.type.value} envelope has no payload")
    try:
        return model.model_validate(envelope.payload)
    except ValidationError as exc:
        raise DecodeError(f"Malformed {envelope.type.value} payload: {exc}") from exc
