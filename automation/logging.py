"""Run event log for the automation runner.

Appends one JSON object per line to the configured event log (by default
``.automation-runner/events.log``).  Each entry carries: ``timestamp``,
``automation_id``, ``action``, ``status``, ``details``.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

# Recognised action verbs
ACTIONS = {
    "pass_started",
    "pass_completed",
    "automation_succeeded",
    "automation_failed",
}


def log_event(
    path: str | Path,
    *,
    action: str,
    status: str = "ok",
    automation_id: str = "",
    details: str = "",
) -> dict:
    """Append a structured log entry and return it.

    Args:
        path: Event log file; parent directories are created.
        action: One of the recognised action verbs.
        status: ``ok``, ``failed``, ``skipped``, etc.
        automation_id: Related automation ID (empty string if N/A).
        details: Free-text description.
    """
    if action not in ACTIONS:
        raise ValueError(f"Unknown event action: {action!r}")
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "automation_id": automation_id,
        "action": action,
        "status": status,
        "details": details,
    }
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(json.dumps(entry) + "\n")
    return entry


def read_log(path: str | Path) -> list[dict]:
    """Read all entries from an event log file."""
    path = Path(path)
    if not path.exists():
        return []
    entries = []
    for line in path.read_text(encoding="utf-8").strip().splitlines():
        if line:
            entries.append(json.loads(line))
    return entries
