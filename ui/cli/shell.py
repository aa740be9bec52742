"""Interactive text shell over a running mind."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Any

import typer

from core.event_bus import PEER_CONNECTED, TRUTHS_MERGED
from core.orchestrator import RuntimeBundle
from memory.types import VolitionalAction
from network.background import PeerServiceThread

logger = logging.getLogger("mw.cli")

HELP_TEXT = """\
Commands:
  help                 Show this text
  say <text>           Inject a phenomenon (like 'say Hello?')
  think                Force a cognitive cycle and show decisions
  summary              Print compact state summary
  truths               List derived truths
  frames               List stored phenomenological frames
  persist              Force persist state to disk
  inspect <type> <id>  Inspect a frame, truth or hypothesis by id
  connect <host:port>  Open a peer connection
  peers                List connected peers
  quit / exit          Save & Exit
Any unrecognized input is ingested as a phenomenon."""

FRAME_LISTING_LIMIT = 20
EXIT_GRACE_SECONDS = 0.5


class CognitionTimer:
    """Runs a cognitive cycle every ``interval`` seconds on a daemon thread."""

    def __init__(
        self,
        bundle: RuntimeBundle,
        interval: float,
        on_actions: Callable[[list[VolitionalAction]], Any] | None = None,
        initial_delay: float = 2.0,
    ) -> None:
        self.bundle = bundle
        self.interval = interval
        self.on_actions = on_actions
        self.initial_delay = initial_delay
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="mw-cognition", daemon=True)

    def _run(self) -> None:
        if self._stop.wait(self.initial_delay):
            return
        while not self._stop.is_set():
            actions = self.bundle.mind.run_cycle()
            if actions and self.on_actions is not None:
                self.on_actions(actions)
            if self._stop.wait(self.interval):
                return

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread.is_alive():
            self._thread.join()


class Shell:
    """Thin dispatcher from text commands to engine operations."""

    def __init__(
        self,
        bundle: RuntimeBundle,
        network: PeerServiceThread | None = None,
        echo: Callable[[str], Any] = typer.echo,
        timer: CognitionTimer | None = None,
    ) -> None:
        self.bundle = bundle
        self.mind = bundle.mind
        self.network = network
        self.echo = echo
        self.timer = timer

    def banner(self) -> str:
        return "\n".join(
            [
                "-" * 54,
                " mindweave shell",
                f" Identity: {self.mind.self_concept.identity}  |  Telos: {self.mind.telos}",
                " Type 'help' for commands.",
                "-" * 54,
            ]
        )

    def print_auto_actions(self, actions: list[VolitionalAction]) -> None:
        for action in actions:
            self.echo(f"AUTO-ACTION: [{action.intent}] -> {action.payload}  (Reason: {action.justification})")

    def notify_peer(self, payload: dict[str, Any]) -> None:
        if "added" in payload:
            self.echo(f"Merged {payload['received']} truths from {payload['from']} ({payload['added']} new).")
        else:
            self.echo(f"Peer connected: {payload['remote']}")

    def handle_line(self, line: str) -> bool:
        """Dispatch one line; return ``False`` when the shell should exit."""
        parts = line.strip().split(" ", 1)
        cmd = parts[0].lower()
        arg = parts[1].strip() if len(parts) > 1 else ""

        if not cmd:
            return True
        if cmd in {"quit", "exit"}:
            self.echo("Exiting, persisting state...")
            self.shutdown()
            return False
        if cmd == "help":
            self.echo(HELP_TEXT)
        elif cmd == "say":
            if not arg:
                self.echo("Usage: say <text>")
            else:
                self.mind.ingest(arg)
        elif cmd == "think":
            actions = self.mind.run_cycle()
            if not actions:
                self.echo("No actions decided this cycle.")
            for action in actions:
                self.echo(f"ACTION: [{action.intent}] -> {action.payload}  (Reason: {action.justification})")
        elif cmd == "summary":
            self.echo(self.mind.summary())
        elif cmd == "truths":
            self._list_truths()
        elif cmd == "frames":
            self._list_frames()
        elif cmd == "persist":
            self.mind.run_cycle()
            self.echo("Persist requested.")
        elif cmd == "inspect":
            self._inspect(arg)
        elif cmd == "connect":
            self._connect(arg)
        elif cmd == "peers":
            self._list_peers()
        else:
            self.mind.ingest(line)
        return True

    def _list_truths(self) -> None:
        truths = self.mind.list_truths()
        if not truths:
            self.echo("No derived truths yet.")
        for truth in truths:
            self.echo(f"- [{truth.id}]: {truth.emergent_principle} (confidence: {truth.confidence:.2f})")

    def _list_frames(self) -> None:
        frames = self.mind.list_frames()
        for frame in frames[:FRAME_LISTING_LIMIT]:
            self.echo(f"- [{frame.id}]: {frame.raw_input} (salience: {frame.salience:.2f})")
        if len(frames) > FRAME_LISTING_LIMIT:
            self.echo(f"... {len(frames) - FRAME_LISTING_LIMIT} more frames.")

    def _inspect(self, arg: str) -> None:
        pieces = arg.split(" ", 1)
        if len(pieces) < 2:
            self.echo("Usage: inspect <frame|truth|hypothesis> <id>")
            return
        kind, record_id = pieces[0].lower(), pieces[1].strip()
        record = self.mind.inspect(kind, record_id)
        if record is None:
            self.echo("Not found.")
        elif kind == "truth":
            self.echo(
                f"Truth: {record.emergent_principle}\nConfidence: {record.confidence:.2f}\n"
                f"Supporting frames: {len(record.supporting_frames)}"
            )
        elif kind == "frame":
            self.echo(
                f"Frame raw: {record.raw_input}\nInterpretation: {record.subjective_interpretation}\n"
                f"Salience: {record.salience:.2f}"
            )
        else:
            self.echo(
                f"Hypothesis: {record.prediction}\nConfidence: {record.confidence:.2f}\n"
                f"Violated: {record.is_violated}"
            )

    def _connect(self, arg: str) -> None:
        if self.network is None:
            self.echo("Networking is disabled.")
            return
        host, _, port = arg.rpartition(":")
        if not host or not port.isdigit():
            self.echo("Usage: connect <host:port>")
            return
        if self.network.connect(host, int(port)):
            self.echo(f"Connected to {host}:{port}.")
        else:
            self.echo(f"Could not connect to {host}:{port}.")

    def _list_peers(self) -> None:
        if self.network is None:
            self.echo("Networking is disabled.")
            return
        peers = self.network.describe_peers()
        if not peers:
            self.echo("No connected peers.")
        for peer in peers:
            direction = "out" if peer["outbound"] else "in"
            self.echo(f"- {peer['remote']} ({direction}) agent={peer['agent_id'] or '?'}")

    def shutdown(self) -> None:
        """Stop background cognition, run a final persisting cycle, then stop networking and ingestion."""
        logger.info("Shutdown requested")
        if self.timer is not None:
            self.timer.stop()
        self.mind.wait_idle()
        self.mind.run_cycle()
        if self.network is not None:
            self.network.stop()
        time.sleep(EXIT_GRACE_SECONDS)
        self.mind.close()


def run_interactive(bundle: RuntimeBundle, prompt: Callable[[], str] | None = None) -> None:
    """Start networking and background cognition, then read commands until exit."""
    network: PeerServiceThread | None = None
    if bundle.peer_service is not None:
        network = PeerServiceThread(bundle.peer_service)
        if not network.start():
            network.stop()
            network = None
        else:
            for peer in bundle.config.get("network", {}).get("peers", []):
                host, _, port = str(peer).rpartition(":")
                if host and port.isdigit():
                    network.connect(host, int(port))

    shell = Shell(bundle, network=network)
    bundle.event_bus.subscribe(PEER_CONNECTED, shell.notify_peer)
    bundle.event_bus.subscribe(TRUTHS_MERGED, shell.notify_peer)
    timer = CognitionTimer(
        bundle,
        interval=float(bundle.config.get("cognition", {}).get("cycle_interval_seconds", 6.0)),
        on_actions=shell.print_auto_actions,
    )
    shell.timer = timer
    read = prompt or (lambda: typer.prompt("", prompt_suffix="> ", default="", show_default=False))

    shell.echo(shell.banner())
    timer.start()
    try:
        while True:
            try:
                line = read()
            except (EOFError, typer.Abort):
                line = "exit"
            if not shell.handle_line(line):
                break
    finally:
        timer.stop()
