"""Execution engine — select automations for a pass and dispatch them.

A pass loads the run state, picks the automations to run for the mode,
runs each one in every working directory in order, and records a success
in the state file as soon as an automation finishes.  Automations are
processed one at a time; a failure never stops the rest of the batch.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable

from automation.discovery import Automation
from automation.handlers import Handler, HandlerContext
from automation.logging import log_event
from automation.rrule import is_due, parse_rule
from automation.state import load_state, record_run
from core.errors import AutomationError, UnknownHandlerError

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
FAILED = "failed"
SKIPPED = "skipped"


class RunMode(str, enum.Enum):
    ALL = "all"
    DUE = "due"


@dataclass
class AutomationOutcome:
    """What happened to one automation during a pass."""
    automation_id: str
    status: str
    detail: str = ""


@dataclass
class RunReport:
    """Summary of a single pass."""
    started_at: datetime
    outcomes: list[AutomationOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[str]:
        return [o.automation_id for o in self.outcomes if o.status == SUCCEEDED]

    @property
    def failed(self) -> list[str]:
        return [o.automation_id for o in self.outcomes if o.status == FAILED]

    @property
    def ok(self) -> bool:
        return not self.failed


def _local_now() -> datetime:
    return datetime.now().astimezone()


def select_reason(automation: Automation, mode: RunMode, state: Mapping[str, str],
                  now: datetime) -> str | None:
    """Return why *automation* is not selected, or None when it should run."""
    if not automation.is_active:
        return f"status {automation.status}"
    if mode is RunMode.ALL:
        return None
    if not automation.rrule:
        return "no rrule"
    if not is_due(parse_rule(automation.rrule), now, state.get(automation.id)):
        return "not due"
    return None


def execute_automation(
    automation: Automation,
    handlers: Mapping[str, Handler],
    context: HandlerContext,
) -> bool:
    """Run *automation* in each working directory; stop at the first failure.

    Raises:
        UnknownHandlerError: no handler is registered for the type.
        HandlerConfigError: a required handler field is missing.
    """
    handler = handlers.get(automation.type)
    if handler is None:
        raise UnknownHandlerError(automation.id, automation.type, automation.source_path)

    for cwd in automation.working_directories:
        if not handler(automation, cwd, context):
            logger.warning("Automation '%s' failed in %s", automation.id, cwd,
                           extra={"automation_id": automation.id, "cwd": cwd})
            return False
    return True


def run_automations(
    automations: Iterable[Automation],
    *,
    mode: RunMode,
    dry_run: bool,
    state_path: str | Path,
    handlers: Mapping[str, Handler],
    context: HandlerContext | None = None,
    clock: Callable[[], datetime] = _local_now,
    event_log: str | Path | None = None,
) -> RunReport:
    """Run one pass over *automations* and return what happened.

    State is read fresh from *state_path* and written after every success.
    With *dry_run* the handlers only print and the state file is untouched.
    """
    if context is None:
        context = HandlerContext(dry_run=dry_run)
    state = load_state(state_path)
    now = clock()
    report = RunReport(started_at=now)

    def emit(action: str, automation_id: str = "", status: str = "ok", details: str = "") -> None:
        if event_log is not None and not dry_run:
            log_event(event_log, action=action, status=status,
                      automation_id=automation_id, details=details)

    emit("pass_started", details=f"mode={mode.value}")

    for automation in automations:
        reason = select_reason(automation, mode, state, now)
        if reason is not None:
            logger.debug("Skipping '%s': %s", automation.id, reason)
            report.outcomes.append(AutomationOutcome(automation.id, SKIPPED, reason))
            continue

        logger.info("Running automation '%s' (%s)", automation.id, automation.type,
                    extra={"automation_id": automation.id, "automation_type": automation.type,
                           "mode": mode.value})
        try:
            ok = execute_automation(automation, handlers, context)
            detail = ""
        except AutomationError as exc:
            logger.warning("%s", exc)
            ok, detail = False, str(exc)
        except Exception as exc:
            logger.error("Automation '%s' raised: %s", automation.id, exc)
            ok, detail = False, f"{type(exc).__name__}: {exc}"

        if not ok:
            report.outcomes.append(AutomationOutcome(automation.id, FAILED, detail))
            emit("automation_failed", automation.id, status="failed", details=detail)
            continue

        if not dry_run:
            record_run(state_path, state, automation.id, now)
        report.outcomes.append(AutomationOutcome(automation.id, SUCCEEDED))
        emit("automation_succeeded", automation.id)

    emit("pass_completed",
         details=f"{len(report.succeeded)} succeeded, {len(report.failed)} failed")
    return report
