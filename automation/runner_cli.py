"""CLI entrypoint: discover and run scheduled automations.

Usage: python -m automation.runner_cli [options]

Modes: --list, --once (ignore schedule), --tick (loop), default due-now pass.
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

from automation.config import DEFAULT_CONFIG_PATH, RunnerConfig, default_config, load_config
from automation.diagnostics import Diagnostics
from automation.discovery import Automation, discover
from automation.engine import RunMode, RunReport, run_automations
from automation.handlers import build_context, build_handlers
from automation.rrule import describe_rule, next_occurrence, parse_rule
from automation.scheduler import run_tick_loop
from automation.state import ensure_state_dir, load_state
from core.logging import setup_structured_logging

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_cfg(args: argparse.Namespace) -> RunnerConfig:
    cfg_path = Path(args.config) if args.config else DEFAULT_CONFIG_PATH
    if cfg_path.exists():
        return load_config(cfg_path)
    if args.config:
        logger.warning("Config file not found: %s (using defaults)", cfg_path)
    return default_config()


def _apply_overrides(cfg: RunnerConfig, args: argparse.Namespace) -> RunnerConfig:
    if args.state:
        cfg.paths.state = args.state
        cfg.paths.event_log = None
    if args.interval is not None:
        cfg.scheduler.interval_seconds = args.interval
    if args.timeout is not None:
        cfg.execution.timeout_seconds = args.timeout
    return cfg


def _state_path(cfg: RunnerConfig) -> Path:
    return Path(cfg.paths.state).resolve()


def _event_log_path(cfg: RunnerConfig) -> Path:
    if cfg.paths.event_log:
        return Path(cfg.paths.event_log).resolve()
    return _state_path(cfg).with_name("events.log")


def _type_filter(values: list[str] | None) -> set[str]:
    return {t.strip() for value in (values or []) for t in value.split(",") if t.strip()}


def _discover(cfg: RunnerConfig, args: argparse.Namespace) -> list[Automation]:
    roots = args.root or [str(Path.cwd())]
    diagnostics = Diagnostics()
    automations = discover(
        roots,
        _type_filter(args.type),
        extensions=cfg.discovery.extensions,
        skip_prefix=cfg.discovery.skip_prefix,
        diagnostics=diagnostics,
    )
    for item in diagnostics.items:
        logger.debug("Discovery: %s", item)
    return automations


def _run_pass(cfg: RunnerConfig, automations: list[Automation], *,
              mode: RunMode, dry_run: bool) -> RunReport:
    return run_automations(
        automations,
        mode=mode,
        dry_run=dry_run,
        state_path=_state_path(cfg),
        handlers=build_handlers(),
        context=build_context(cfg.execution, dry_run=dry_run),
        event_log=_event_log_path(cfg),
    )


def _exit_code(report: RunReport, args: argparse.Namespace) -> int:
    if args.fail_on_error and not report.ok:
        return 1
    return 0


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------


def cmd_list(cfg: RunnerConfig, automations: list[Automation]) -> int:
    if not automations:
        print("No automations found.")
        return 0

    state = load_state(_state_path(cfg))
    now = datetime.now().astimezone()
    for a in automations:
        print(f"- {a.id} ({a.type}) [{a.status}] - {a.source_path}")
        if a.rrule:
            rule = parse_rule(a.rrule)
            upcoming = next_occurrence(rule, now, state.get(a.id))
            when = upcoming.strftime("%Y-%m-%d %H:%M") if upcoming else "never"
            print(f"    {describe_rule(rule)} (next: {when})")
    return 0


# ---------------------------------------------------------------------------
# run-once / due-now
# ---------------------------------------------------------------------------


def cmd_run(cfg: RunnerConfig, automations: list[Automation],
            args: argparse.Namespace, mode: RunMode) -> int:
    report = _run_pass(cfg, automations, mode=mode, dry_run=args.dry_run)
    logger.info("Pass complete: %d succeeded, %d failed",
                len(report.succeeded), len(report.failed))
    return _exit_code(report, args)


# ---------------------------------------------------------------------------
# tick
# ---------------------------------------------------------------------------


def cmd_tick(cfg: RunnerConfig, automations: list[Automation],
             args: argparse.Namespace) -> int:
    ensure_state_dir(_state_path(cfg))
    state = run_tick_loop(
        lambda: _run_pass(cfg, automations, mode=RunMode.DUE, dry_run=args.dry_run),
        interval_seconds=cfg.scheduler.interval_seconds,
        min_interval_seconds=cfg.scheduler.min_interval_seconds,
    )
    logger.info("Scheduler stopped: %d ticks, %d succeeded, %d failed",
                state.ticks, state.runs_succeeded, state.runs_failed)
    return 0


# ---------------------------------------------------------------------------
# Main / argparse
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="automation-runner",
        description="Discover automation.toml files and run them on their schedule",
        epilog=(
            "File discovery: automation.toml, *.automation.toml. "
            "Types: command (shell command), runbook (named block of a markdown "
            "runbook), prompt (print the prompt or pass it to a configured runner)."
        ),
    )
    parser.add_argument("--root", action="append", default=None,
                        help="Root directory to scan (repeatable, default: cwd)")
    parser.add_argument("--type", action="append", default=None,
                        help="Filter by type (comma-separated, repeatable)")
    parser.add_argument("--list", action="store_true", help="List discovered automations")
    parser.add_argument("--once", action="store_true",
                        help="Run all active automations once (ignore schedule)")
    parser.add_argument("--tick", action="store_true", help="Run scheduler loop")
    parser.add_argument("--interval", type=float, default=None,
                        help="Tick interval in seconds (default 60, minimum 10)")
    parser.add_argument("--dry-run", action="store_true",
                        help="Print actions without executing")
    parser.add_argument("--state", default=None,
                        help="State file for last-run tracking "
                             "(default ./.automation-runner/state.json)")
    parser.add_argument("--config", default=None,
                        help=f"Runner config YAML (default {DEFAULT_CONFIG_PATH} if present)")
    parser.add_argument("--timeout", type=float, default=None,
                        help="Kill commands running longer than this many seconds")
    parser.add_argument("--fail-on-error", action="store_true",
                        help="Exit 1 if any automation failed")
    parser.add_argument("--log-json", action="store_true", help="Emit JSON log lines")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    if args.log_json:
        setup_structured_logging(level=level)
    else:
        logging.basicConfig(
            level=level,
            format="%(asctime)s %(name)s %(levelname)s %(message)s",
        )

    cfg = _apply_overrides(_load_cfg(args), args)
    automations = _discover(cfg, args)

    if args.list:
        return cmd_list(cfg, automations)
    if args.once:
        return cmd_run(cfg, automations, args, RunMode.ALL)
    if args.tick:
        return cmd_tick(cfg, automations, args)
    return cmd_run(cfg, automations, args, RunMode.DUE)


if __name__ == "__main__":
    sys.exit(main())
