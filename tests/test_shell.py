"""Interactive shell and one-shot CLI tests."""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from core.orchestrator import Orchestrator, RuntimeBundle
from ui.cli.cli import app
from ui.cli.shell import HELP_TEXT, CognitionTimer, Shell, run_interactive

OFFLINE = {"network": {"enabled": False}}


def build_shell(tmp_path: Path) -> tuple[Shell, list[str]]:
    output: list[str] = []
    bundle = Orchestrator(root=tmp_path, overrides=OFFLINE).build()
    return Shell(bundle, echo=output.append), output


def test_say_think_and_listing_commands(tmp_path: Path) -> None:
    shell, output = build_shell(tmp_path)

    for _ in range(3):
        assert shell.handle_line("say Hello?")
    shell.mind.wait_idle()
    assert shell.handle_line("think")
    assert shell.handle_line("truths")
    assert shell.handle_line("frames")

    assert any(line.startswith("ACTION: [RespondToGreeting]") for line in output)
    assert any("The input pattern 'Hello' is an intentional external signal." in line for line in output)
    assert sum(line.startswith("- [") and "Hello?" in line for line in output) == 3
    shell.mind.close()


def test_unknown_input_is_ingested(tmp_path: Path) -> None:
    shell, _ = build_shell(tmp_path)

    shell.handle_line("the sensor reads 42")
    shell.mind.wait_idle()

    assert [frame.raw_input for frame in shell.mind.list_frames()] == ["the sensor reads 42"]
    shell.mind.close()


def test_help_inspect_and_network_commands(tmp_path: Path) -> None:
    shell, output = build_shell(tmp_path)
    frame = shell.mind.perceive("disk error")

    shell.handle_line("help")
    shell.handle_line(f"inspect frame {frame.id}")
    shell.handle_line("inspect truth nope")
    shell.handle_line("say")
    shell.handle_line("peers")

    assert output[0] == HELP_TEXT
    assert "Interpretation: A reported malfunction or failure." in output[1]
    assert output[2:] == ["Not found.", "Usage: say <text>", "Networking is disabled."]
    shell.mind.close()


def test_exit_persists_and_stops(tmp_path: Path) -> None:
    shell, output = build_shell(tmp_path)
    shell.handle_line("say Hello?")

    assert shell.handle_line("exit") is False
    assert output[-1] == "Exiting, persisting state..."

    reloaded = Orchestrator(root=tmp_path, overrides=OFFLINE).build()
    assert reloaded.mind.cycle_count == 1
    assert len(reloaded.mind.list_frames()) == 1
    reloaded.mind.close()


def test_exit_stops_background_cycles_before_final_persist(tmp_path: Path) -> None:
    shell, _ = build_shell(tmp_path)
    timer = CognitionTimer(shell.bundle, interval=0.01, initial_delay=0.0)
    shell.timer = timer
    timer.start()
    shell.handle_line("say Hello?")

    assert shell.handle_line("quit") is False

    assert not timer._thread.is_alive()
    reloaded = Orchestrator(root=tmp_path, overrides=OFFLINE).build()
    assert reloaded.mind.cycle_count == shell.mind.cycle_count
    assert len(reloaded.mind.list_frames()) == 1
    reloaded.mind.close()


def test_run_interactive_reads_until_exit(tmp_path: Path) -> None:
    bundle: RuntimeBundle = Orchestrator(
        root=tmp_path,
        overrides={**OFFLINE, "cognition": {"cycle_interval_seconds": 60.0}},
    ).build()
    lines = iter(["say 1 2 3", "say 4 5 6", "summary", "quit"])

    run_interactive(bundle, prompt=lambda: next(lines))

    reloaded = Orchestrator(root=tmp_path, overrides=OFFLINE).build()
    assert len(reloaded.mind.list_truths()) == 1
    reloaded.mind.close()


def test_one_shot_commands_share_state(tmp_path: Path) -> None:
    runner = CliRunner()
    root = ["--root", str(tmp_path)]
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "local.yaml").write_text("network:\n  enabled: false\n", encoding="utf-8")

    for _ in range(3):
        assert runner.invoke(app, [*root, "ingest", "Hello?"]).exit_code == 0
    think = runner.invoke(app, [*root, "think"])
    summary = runner.invoke(app, [*root, "summary"])

    assert think.exit_code == 0
    assert "RespondToGreeting" in think.output
    assert "Frames count: 3" in summary.output
    assert "Derived truths: 1" in summary.output
