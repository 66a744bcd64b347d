"""Scheduler — fixed-interval tick loop around the due-now pass.

Runs one pass immediately, then one on every interval boundary.  Passes
never overlap: if a pass outlasts the interval, the next one starts as
soon as it finishes and the missed boundaries are dropped.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from automation.engine import RunReport

logger = logging.getLogger(__name__)

MIN_INTERVAL_SECONDS = 10


@dataclass
class SchedulerState:
    """Tracks tick-loop execution state."""
    last_tick: datetime | None = None
    ticks: int = 0
    runs_succeeded: int = 0
    runs_failed: int = 0
    errors: list[str] = field(default_factory=list)


def effective_interval(interval_seconds: float, floor: float = MIN_INTERVAL_SECONDS) -> float:
    return max(floor, interval_seconds)


def run_tick_loop(
    run_pass: Callable[[], RunReport],
    *,
    interval_seconds: float = 60,
    min_interval_seconds: float = MIN_INTERVAL_SECONDS,
    max_iterations: int = 0,
    sleep: Callable[[float], None] = time.sleep,
    monotonic: Callable[[], float] = time.monotonic,
) -> SchedulerState:
    """Run the tick loop.

    Args:
        run_pass: Runs one due-now pass and returns its report.
        interval_seconds: Seconds between tick boundaries (floored).
        min_interval_seconds: Floor applied to *interval_seconds*.
        max_iterations: Stop after N ticks (0 = run forever).
        sleep: Sleep function, replaceable in tests.
        monotonic: Clock used to find the next boundary.

    Returns:
        SchedulerState with execution summary.
    """
    interval = effective_interval(interval_seconds, min_interval_seconds)
    logger.info("Automation runner: tick every %ss", interval)

    state = SchedulerState()
    next_tick = monotonic()

    while True:
        state.ticks += 1
        state.last_tick = datetime.now().astimezone()
        try:
            report = run_pass()
            state.runs_succeeded += len(report.succeeded)
            state.runs_failed += len(report.failed)
        except OSError:
            raise
        except Exception as exc:
            err_msg = f"Tick {state.ticks} failed: {exc}"
            logger.error(err_msg)
            state.errors.append(err_msg)

        if max_iterations and state.ticks >= max_iterations:
            break

        next_tick += interval
        now = monotonic()
        if next_tick > now:
            sleep(next_tick - now)
        else:
            logger.debug("Pass overran the interval by %.1fs", now - next_tick)
            next_tick = now

    return state
