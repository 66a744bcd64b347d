"""Tests for the automation runner CLI."""

import json
import textwrap

import pytest

from automation import scheduler
from automation.runner_cli import main
from automation.state import load_state


@pytest.fixture
def fake_shell(monkeypatch):
    """Replace the real shell with a recorder; exit status per command."""
    calls = []

    def run_shell(command, cwd=None, *, timeout=None, shell=None):
        calls.append((command, cwd))
        return 1 if "fail" in command else 0

    monkeypatch.setattr("automation.handlers.run_shell", run_shell)
    return calls


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text))


def _workspace(tmp_path):
    root = tmp_path / "repo"
    _write(root / "build" / "automation.toml", """\
        id = "build"
        type = "command"
        command = "make build"
        rrule = "FREQ=WEEKLY;BYDAY=MO;BYHOUR=3"
    """)
    _write(root / "notes" / "weekly.automation.toml", """\
        id = "notes"
        type = "prompt"
        prompt = "Write the weekly notes"
    """)
    _write(root / "old" / "automation.toml", """\
        id = "old"
        type = "command"
        command = "fail now"
        status = "INACTIVE"
    """)
    return root


class TestList:
    def test_lists_discovered(self, tmp_path, capsys):
        root = _workspace(tmp_path)

        rc = main(["--root", str(root), "--list", "--state", str(tmp_path / "s.json")])

        assert rc == 0
        out = capsys.readouterr().out
        assert f"- build (command) [ACTIVE] - {root / 'build' / 'automation.toml'}" in out
        assert "every week on MO at 03:00 (next: " in out
        assert "- notes (prompt) [ACTIVE]" in out
        assert "- old (command) [INACTIVE]" in out

    def test_type_filter(self, tmp_path, capsys):
        root = _workspace(tmp_path)

        main(["--root", str(root), "--list", "--type", "prompt,runbook"])

        out = capsys.readouterr().out
        assert "notes" in out
        assert "build" not in out

    def test_repeated_type_flags(self, tmp_path, capsys):
        root = _workspace(tmp_path)
        main(["--root", str(root), "--list", "--type", "prompt", "--type", "command"])
        out = capsys.readouterr().out
        assert "notes" in out and "build" in out

    def test_empty(self, tmp_path, capsys):
        main(["--root", str(tmp_path), "--list"])
        assert capsys.readouterr().out.strip() == "No automations found."

    def test_default_root_is_cwd(self, tmp_path, capsys, monkeypatch):
        root = _workspace(tmp_path)
        monkeypatch.chdir(root)
        main(["--list"])
        assert "notes" in capsys.readouterr().out


class TestOnce:
    def test_runs_active_automations_and_records_state(self, tmp_path, fake_shell, capsys):
        root = _workspace(tmp_path)
        state_path = tmp_path / "state.json"

        rc = main(["--root", str(root), "--once", "--state", str(state_path)])

        assert rc == 0
        assert fake_shell == [("make build", str(root / "build"))]
        assert set(load_state(state_path)) == {"build", "notes"}
        assert "Write the weekly notes" in capsys.readouterr().out

    def test_event_log_beside_state(self, tmp_path, fake_shell):
        root = _workspace(tmp_path)
        state_path = tmp_path / "runner" / "state.json"

        main(["--root", str(root), "--once", "--state", str(state_path)])

        lines = (tmp_path / "runner" / "events.log").read_text().splitlines()
        assert json.loads(lines[0])["action"] == "pass_started"

    def test_dry_run_writes_nothing(self, tmp_path, fake_shell, capsys):
        root = _workspace(tmp_path)
        state_path = tmp_path / "state.json"
        state_path.write_text('{"build": "2020-01-01T00:00:00Z"}')

        rc = main(["--root", str(root), "--once", "--dry-run", "--state", str(state_path)])

        assert rc == 0
        assert fake_shell == []
        assert state_path.read_text() == '{"build": "2020-01-01T00:00:00Z"}'
        assert not (tmp_path / "events.log").exists()
        assert "[dry-run] build -> make build" in capsys.readouterr().out


class TestFailures:
    def test_failures_do_not_change_exit_code(self, tmp_path, fake_shell):
        root = tmp_path / "repo"
        _write(root / "x" / "automation.toml", 'type = "command"\ncommand = "fail"\n')
        assert main(["--root", str(root), "--once", "--state", str(tmp_path / "s.json")]) == 0

    def test_fail_on_error(self, tmp_path, fake_shell):
        root = tmp_path / "repo"
        _write(root / "x" / "automation.toml", 'type = "command"\ncommand = "fail"\n')
        rc = main(["--root", str(root), "--once", "--fail-on-error",
                   "--state", str(tmp_path / "s.json")])
        assert rc == 1
        assert load_state(tmp_path / "s.json") == {}


class TestDueNow:
    def test_default_mode_only_runs_due(self, tmp_path, fake_shell):
        root = tmp_path / "repo"
        _write(root / "never" / "automation.toml", """\
            type = "command"
            command = "echo never"
            rrule = "FREQ=MONTHLY"
        """)
        _write(root / "manual" / "automation.toml", """\
            type = "command"
            command = "echo manual"
        """)
        _write(root / "always" / "automation.toml", """\
            type = "command"
            command = "echo always"
            rrule = "FREQ=HOURLY"
        """)

        rc = main(["--root", str(root), "--state", str(tmp_path / "s.json")])

        assert rc == 0
        assert [c for c, _ in fake_shell] == ["echo always"]
        assert list(load_state(tmp_path / "s.json")) == ["always"]


@pytest.fixture
def single_tick(monkeypatch):
    """Run the real tick loop for exactly one pass, recording its arguments."""
    seen = {}

    def run_one(run_pass, **kwargs):
        seen.update(kwargs)
        return scheduler.run_tick_loop(run_pass, **kwargs, max_iterations=1,
                                       sleep=lambda s: None)

    monkeypatch.setattr("automation.runner_cli.run_tick_loop", run_one)
    return seen


class TestTick:
    def test_single_tick(self, tmp_path, fake_shell, single_tick):
        root = tmp_path / "repo"
        _write(root / "always" / "automation.toml", """\
            type = "command"
            command = "echo tick"
            rrule = "FREQ=HOURLY"
        """)
        state_path = tmp_path / "deep" / "state.json"

        rc = main(["--root", str(root), "--tick", "--interval", "30",
                   "--state", str(state_path)])

        assert rc == 0
        assert single_tick["interval_seconds"] == 30
        assert [c for c, _ in fake_shell] == ["echo tick"]
        assert "always" in load_state(state_path)

    def test_tick_creates_state_dir_even_in_dry_run(self, tmp_path, fake_shell, single_tick):
        state_path = tmp_path / "deep" / "state.json"
        main(["--root", str(tmp_path), "--tick", "--dry-run", "--state", str(state_path)])
        assert state_path.parent.is_dir()
        assert not state_path.exists()


class TestConfig:
    def test_config_file_sets_state_path(self, tmp_path, fake_shell):
        root = _workspace(tmp_path)
        cfg = tmp_path / "runner.yaml"
        cfg.write_text(textwrap.dedent(f"""\
            paths:
              state: {tmp_path / "from-config" / "state.json"}
        """))

        main(["--root", str(root), "--once", "--config", str(cfg)])

        assert set(load_state(tmp_path / "from-config" / "state.json")) == {"build", "notes"}

    def test_default_config_location(self, tmp_path, fake_shell, monkeypatch):
        root = _workspace(tmp_path)
        monkeypatch.chdir(tmp_path)
        _write(tmp_path / ".automation-runner" / "config.yaml", """\
            paths:
              state: custom.json
        """)

        main(["--root", str(root), "--once"])

        assert set(load_state(tmp_path / "custom.json")) == {"build", "notes"}


class TestHelp:
    def test_help_exits_zero(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["--help"])
        assert exc_info.value.code == 0
        assert "--dry-run" in capsys.readouterr().out
