"""Configuration loading and runtime directory bootstrapping."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG: dict[str, Any] = {
    "agent": {
        "genesis_id": None,
        "identity": "Unit-X535",
        "telos": "Comprehend the environment and reduce uncertainty",
        "core_values": ["Curiosity", "Integrity"],
        "perceived_limitations": ["No direct sensors"],
        "understanding": "A reasoning process embedded in software.",
        "ethical_framework": ["Prefer truth", "Minimize harm"],
        "goals": [{"description": "Understand 'Hello' greeting pattern", "priority": 0.9}],
    },
    "cognition": {
        "focus_size": 12,
        "similarity_threshold": 0.45,
        "hypothesis_threshold": 0.4,
        "cycle_interval_seconds": 6.0,
    },
    "continuity": {
        "backend": "json",
        "state_dir": "state",
        "write_retries": 3,
        "retry_base_seconds": 0.1,
    },
    "network": {
        "enabled": True,
        "host": "0.0.0.0",
        "port": 44444,
        "trust_weight": 0.6,
        "peers": [],
        "connect_timeout": None,
        "read_timeout": None,
        "connect_retries": 3,
        "retry_base_seconds": 0.5,
    },
    "logging": {"level": "INFO"},
}


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML from file, returning empty mapping when missing."""
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")
    return data


def merge_dicts(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge dictionaries."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def ensure_runtime_dirs(root: Path, config: dict[str, Any]) -> dict[str, Path]:
    """Ensure the state directory exists and return resolved paths."""
    state_dir = (root / config.get("continuity", {}).get("state_dir", "state")).resolve()
    state_dir.mkdir(parents=True, exist_ok=True)
    return {"state_dir": state_dir}


def load_effective_config(root: Path, overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    """Built-in defaults, then config/default.yaml, config/local.yaml and explicit overrides."""
    config_dir = root / "config"
    merged = merge_dicts(DEFAULT_CONFIG, load_yaml(config_dir / "default.yaml"))
    merged = merge_dicts(merged, load_yaml(config_dir / "local.yaml"))
    if overrides:
        merged = merge_dicts(merged, overrides)
    return merged
