"""Run state — JSON-persisted map of automation id to last successful run.

The file is re-read before every pass so external edits are honoured, and
rewritten after every success.  Writes go through a temporary file and
``os.replace()`` so a crash mid-write never corrupts the previous state.
One process per state file: concurrent writers race and the last one wins.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

RunState = dict[str, str]


def load_state(path: str | Path) -> RunState:
    """Load run state.  Missing, unreadable or malformed files give ``{}``."""
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable state file %s: %s", path, exc)
        return {}
    if not isinstance(raw, dict):
        logger.warning("Ignoring state file %s: expected a JSON object", path)
        return {}
    return {str(k): str(v) for k, v in raw.items()}


def ensure_state_dir(path: str | Path) -> None:
    """Create the state file's parent directory.  Errors propagate."""
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def save_state(path: str | Path, state: RunState) -> None:
    """Atomically persist run state to a JSON file."""
    path = Path(path)
    ensure_state_dir(path)
    tmp_path = path.with_name(path.name + ".tmp")
    tmp_path.write_text(json.dumps(state, indent=2), encoding="utf-8")
    os.replace(tmp_path, path)


def record_run(path: str | Path, state: RunState, automation_id: str, when: datetime) -> None:
    """Stamp *automation_id* with *when* and write the state immediately."""
    state[automation_id] = when.isoformat(timespec="seconds")
    save_state(path, state)
