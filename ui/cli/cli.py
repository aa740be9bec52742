"""CLI entrypoint for mindweave."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from ui.cli import commands

app = typer.Typer(help="Stateful cognitive agent with peer truth synchronization")
config_app = typer.Typer(help="Configuration commands")
state_app = typer.Typer(help="Persisted state commands")


@app.callback()
def main_callback(
    root: Optional[Path] = typer.Option(None, "--root", help="Directory holding config/ and state/"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override logging.level"),
) -> None:
    """Configure the runtime root and logging for every command."""
    commands.configure(root=root, log_level=log_level)


@app.command("run")
def run_cmd(
    port: Optional[int] = typer.Option(None, help="Listening port (default from config)"),
    no_network: bool = typer.Option(False, "--no-network", help="Disable peer networking"),
) -> None:
    """Interactive shell with background cognition and peer networking."""
    commands.run(port=port, no_network=no_network)


@app.command("ingest")
def ingest_cmd(text: str = typer.Argument(..., help="Raw observation text")) -> None:
    """Ingest one observation and persist."""
    commands.ingest(text=text)


@app.command("think")
def think_cmd() -> None:
    """Run one cognitive cycle."""
    commands.think()


@app.command("summary")
def summary_cmd() -> None:
    """Print the state summary."""
    commands.summary()


@app.command("truths")
def truths_cmd() -> None:
    """List derived truths as JSON."""
    commands.truths()


@app.command("inspect")
def inspect_cmd(
    kind: str = typer.Argument(..., help="frame, truth or hypothesis"),
    record_id: str = typer.Argument(..., help="Record id"),
) -> None:
    """Inspect one record."""
    commands.inspect(kind=kind, record_id=record_id)


@config_app.command("show")
def config_show_cmd() -> None:
    """Show effective configuration."""
    commands.config_show()


@state_app.command("history")
def state_history_cmd(limit: int = typer.Option(10, min=1, max=100)) -> None:
    """List stored snapshots (sqlite backend)."""
    commands.state_history(limit=limit)


app.add_typer(config_app, name="config")
app.add_typer(state_app, name="state")


def main() -> None:
    """Console script entrypoint."""
    app()


if __name__ == "__main__":
    main()
