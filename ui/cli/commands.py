"""Typer command handlers."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import typer

from core.orchestrator import Orchestrator, RuntimeBundle
from memory.continuity import SQLContinuityStore
from ui.cli.shell import run_interactive

_settings: dict[str, Any] = {"root": None, "log_level": None}


def configure(root: Path | None, log_level: str | None) -> None:
    """Remember global options for the command about to run."""
    _settings["root"] = root
    _settings["log_level"] = log_level


def _runtime(overrides: dict[str, Any] | None = None) -> RuntimeBundle:
    bundle = Orchestrator(root=_settings["root"], overrides=overrides).build()
    level = _settings["log_level"] or bundle.config.get("logging", {}).get("level", "INFO")
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="[%(asctime)s - %(name)s] %(message)s",
    )
    return bundle


def run(port: int | None, no_network: bool) -> None:
    """Run the interactive shell until exit."""
    network: dict[str, Any] = {}
    if port is not None:
        network["port"] = port
    if no_network:
        network["enabled"] = False
    bundle = _runtime({"network": network} if network else None)
    run_interactive(bundle)
    raise typer.Exit(code=0)


def ingest(text: str) -> None:
    """Ingest text, wait for weaving and persist without running a cycle."""
    bundle = _runtime()
    frame = bundle.mind.ingest(text).result()
    bundle.mind.persist()
    bundle.mind.close()
    typer.echo(f"Ingested frame {frame.id}: {frame.subjective_interpretation} (salience {frame.salience:.2f})")


def think() -> None:
    """Run one cognitive cycle."""
    bundle = _runtime()
    actions = bundle.mind.run_cycle()
    bundle.mind.close()
    if not actions:
        typer.echo("No actions decided this cycle.")
    for action in actions:
        typer.echo(f"ACTION: [{action.intent}] -> {action.payload}  (Reason: {action.justification})")


def summary() -> None:
    """Print the state summary."""
    bundle = _runtime()
    typer.echo(bundle.mind.summary())
    bundle.mind.close()


def truths() -> None:
    """Dump truths as JSON."""
    bundle = _runtime()
    rows = [truth.model_dump(mode="json") for truth in bundle.mind.list_truths()]
    bundle.mind.close()
    typer.echo(json.dumps(rows, indent=2))


def inspect(kind: str, record_id: str) -> None:
    """Print one record as JSON."""
    bundle = _runtime()
    record = bundle.mind.inspect(kind, record_id)
    bundle.mind.close()
    if record is None:
        typer.echo("Not found.")
        raise typer.Exit(code=1)
    typer.echo(record.model_dump_json(indent=2))


def config_show() -> None:
    """Show effective runtime config."""
    bundle = _runtime()
    bundle.mind.close()
    typer.echo(json.dumps(_json_safe(bundle.config), indent=2))


def state_history(limit: int) -> None:
    """List stored snapshots when the sqlite backend is active."""
    bundle = _runtime()
    bundle.mind.close()
    if not isinstance(bundle.continuity, SQLContinuityStore):
        typer.echo("Snapshot history requires continuity.backend: sqlite")
        raise typer.Exit(code=1)
    typer.echo(json.dumps(bundle.continuity.history(limit=limit), indent=2))


def _json_safe(payload: object) -> object:
    """Convert datetimes and paths to strings for JSON output."""
    if isinstance(payload, dict):
        return {k: _json_safe(v) for k, v in payload.items()}
    if isinstance(payload, list):
        return [_json_safe(v) for v in payload]
    if isinstance(payload, Path):
        return str(payload)
    if hasattr(payload, "isoformat"):
        return payload.isoformat()
    return payload
