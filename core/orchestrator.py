"""Top-level application orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from core.event_bus import EventBus
from core.mind import Mind
from core.policy_runtime import ensure_runtime_dirs, load_effective_config
from memory.continuity import ContinuityStore, JsonFileContinuityStore, SQLContinuityStore
from memory.stores.sql_store import SQLStore
from memory.types import Goal, SelfConcept
from network.peer_service import PeerService

DEFAULT_GENESIS_ID = "mindweave-local"


@dataclass
class RuntimeBundle:
    """Holds initialized runtime components."""

    config: dict[str, Any]
    event_bus: EventBus
    continuity: ContinuityStore
    mind: Mind
    peer_service: PeerService | None


class Orchestrator:
    """Creates and wires runtime components for CLI use."""

    def __init__(self, root: Path | None = None, overrides: dict[str, Any] | None = None) -> None:
        self.root = (root or Path.cwd()).resolve()
        self.overrides = overrides

    def build(self) -> RuntimeBundle:
        config = load_effective_config(self.root, self.overrides)
        paths = ensure_runtime_dirs(self.root, config)
        agent_cfg = config.get("agent", {})
        cognition_cfg = config.get("cognition", {})

        genesis_id = str(agent_cfg.get("genesis_id") or DEFAULT_GENESIS_ID)
        event_bus = EventBus()
        continuity = self._continuity(config, paths["state_dir"], genesis_id)

        mind = Mind(
            self_concept=self._self_concept(agent_cfg),
            telos=str(agent_cfg.get("telos", "")),
            ethical_framework=agent_cfg.get("ethical_framework", []),
            genesis_id=genesis_id,
            continuity=continuity,
            event_bus=event_bus,
            focus_size=int(cognition_cfg.get("focus_size", 12)),
            similarity_threshold=float(cognition_cfg.get("similarity_threshold", 0.45)),
            hypothesis_threshold=float(cognition_cfg.get("hypothesis_threshold", 0.4)),
        )

        return RuntimeBundle(
            config=config,
            event_bus=event_bus,
            continuity=continuity,
            mind=mind,
            peer_service=self._peer_service(config, mind),
        )

    @staticmethod
    def _self_concept(agent_cfg: dict[str, Any]) -> SelfConcept:
        goals = [
            Goal(description=str(item["description"]), priority=float(item.get("priority", 0.5)))
            for item in agent_cfg.get("goals", [])
        ]
        return SelfConcept(
            identity=str(agent_cfg.get("identity", "Unit")),
            core_values=set(agent_cfg.get("core_values", [])),
            perceived_limitations=set(agent_cfg.get("perceived_limitations", [])),
            understanding_of_existence=str(agent_cfg.get("understanding", "")),
            active_goals=goals,
        )

    @staticmethod
    def _continuity(config: dict[str, Any], state_dir: Path, genesis_id: str) -> ContinuityStore:
        cfg = config.get("continuity", {})
        retries = int(cfg.get("write_retries", 3))
        base_wait = float(cfg.get("retry_base_seconds", 0.1))
        backend = str(cfg.get("backend", "json")).lower()
        if backend == "sqlite":
            return SQLContinuityStore(
                SQLStore(state_dir / "mindweave.db"),
                genesis_id=genesis_id,
                write_retries=retries,
                retry_base_seconds=base_wait,
            )
        if backend != "json":
            raise ValueError(f"Unknown continuity backend: {backend}")
        return JsonFileContinuityStore(
            state_dir / f"mindweave.{genesis_id}.v3.json",
            write_retries=retries,
            retry_base_seconds=base_wait,
        )

    @staticmethod
    def _peer_service(config: dict[str, Any], mind: Mind) -> PeerService | None:
        cfg = config.get("network", {})
        if not cfg.get("enabled", True):
            return None
        return PeerService(
            mind,
            host=str(cfg.get("host", "0.0.0.0")),
            port=int(cfg.get("port", 44444)),
            trust_weight=float(cfg.get("trust_weight", 0.6)),
            connect_timeout=_optional_float(cfg.get("connect_timeout")),
            read_timeout=_optional_float(cfg.get("read_timeout")),
            connect_retries=int(cfg.get("connect_retries", 3)),
            retry_base_seconds=float(cfg.get("retry_base_seconds", 0.5)),
        )


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)
