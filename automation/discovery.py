"""Automation discovery — find definition files and build Automation records.

Definition files are named ``automation.<ext>`` or ``<anything>.automation.<ext>``
and may live anywhere below a root directory.  Unreadable directories and
files are skipped so one bad subtree never stops the scan.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from automation.definition import parse_definition
from automation.diagnostics import Diagnostics

logger = logging.getLogger(__name__)

DEFAULT_TYPE = "prompt"
DEFAULT_STATUS = "ACTIVE"


@dataclass(frozen=True)
class Automation:
    """One automation loaded from a definition file."""
    id: str
    name: str
    type: str
    status: str
    rrule: str | None
    working_directories: tuple[str, ...]
    raw_fields: dict[str, Any] = field(default_factory=dict, compare=False)
    source_path: str = ""

    @property
    def directory(self) -> str:
        """Directory holding the definition file."""
        return os.path.dirname(self.source_path)

    @property
    def is_active(self) -> bool:
        return self.status.upper() == "ACTIVE"


def discover(
    roots: Iterable[str],
    type_filter: Iterable[str] | None = None,
    *,
    extensions: Iterable[str] = ("toml",),
    skip_prefix: str = ".git",
    diagnostics: Diagnostics | None = None,
) -> list[Automation]:
    """Walk *roots* and return the automations found, in discovery order.

    If *type_filter* is non-empty, automations of other types are dropped.
    """
    wanted = {t for t in (type_filter or ()) if t}
    exts = {e.lstrip(".") for e in extensions}

    automations: list[Automation] = []
    seen: dict[str, str] = {}
    for root in roots:
        for path in _walk(os.path.abspath(root), skip_prefix, diagnostics):
            if not is_definition_file(os.path.basename(path), exts):
                continue
            automation = load_automation(path, diagnostics)
            if automation is None:
                continue
            if wanted and automation.type not in wanted:
                continue
            if automation.id in seen:
                logger.warning("Duplicate automation id %r: %s and %s share run state",
                               automation.id, seen[automation.id], path)
                if diagnostics is not None:
                    diagnostics.add("duplicate-id", path,
                                    f"id {automation.id!r} also defined in {seen[automation.id]}")
            else:
                seen[automation.id] = path
            automations.append(automation)

    logger.debug("Discovered %d automation(s)", len(automations))
    return automations


def is_definition_file(name: str, extensions: set[str]) -> bool:
    stem, dot, ext = name.rpartition(".")
    if not dot or ext not in extensions:
        return False
    return stem == "automation" or stem.endswith(".automation")


def load_automation(path: str, diagnostics: Diagnostics | None = None) -> Automation | None:
    """Read and parse one definition file.  Returns None if it cannot be read."""
    try:
        with open(path, encoding="utf-8", errors="replace") as f:
            text = f.read()
    except OSError as exc:
        logger.debug("Skipping unreadable definition %s: %s", path, exc)
        if diagnostics is not None:
            diagnostics.add("discovery", path, f"unreadable: {exc}")
        return None

    data = parse_definition(text, diagnostics, source=path)
    return build_automation(path, data)


def build_automation(path: str, data: dict[str, Any]) -> Automation:
    """Normalise parsed fields into an :class:`Automation`."""
    path = os.path.abspath(path)
    base_dir = os.path.dirname(path)
    rrule = data.get("rrule")

    return Automation(
        id=_text(data.get("id")) or os.path.basename(base_dir),
        name=_text(data.get("name")) or os.path.basename(path),
        type=_text(data.get("type")) or DEFAULT_TYPE,
        status=_text(data.get("status")) or DEFAULT_STATUS,
        rrule=_text(rrule) if rrule else None,
        working_directories=normalize_cwds(data, base_dir),
        raw_fields=data,
        source_path=path,
    )


def normalize_cwds(data: dict[str, Any], base_dir: str) -> tuple[str, ...]:
    """Resolve ``cwds`` (preferred) or ``cwd`` against *base_dir*."""
    cwds = data.get("cwds")
    if isinstance(cwds, list) and cwds:
        return tuple(resolve_path(base_dir, _text(c)) for c in cwds)
    cwd = data.get("cwd")
    if cwd:
        return (resolve_path(base_dir, _text(cwd)),)
    return (base_dir,)


def resolve_path(base_dir: str, target: str) -> str:
    if os.path.isabs(target):
        return target
    return os.path.normpath(os.path.join(base_dir, target))


def _walk(directory: str, skip_prefix: str, diagnostics: Diagnostics | None) -> Iterator[str]:
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as exc:
        logger.debug("Skipping unreadable directory %s: %s", directory, exc)
        if diagnostics is not None:
            diagnostics.add("discovery", directory, f"unreadable directory: {exc}")
        return

    for entry in entries:
        if skip_prefix and entry.name.startswith(skip_prefix):
            continue
        try:
            if entry.is_dir(follow_symlinks=False):
                yield from _walk(entry.path, skip_prefix, diagnostics)
            elif entry.is_file(follow_symlinks=False):
                yield entry.path
        except OSError as exc:
            if diagnostics is not None:
                diagnostics.add("discovery", entry.path, str(exc))


def _text(value: Any) -> str:
    """Stringify a parsed value the way it was written (``true``, ``3``)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
