"""Definition parser — the small TOML-like format used by automation files.

Supported subset::

    # comment (anywhere on a line, even inside quotes)
    key = "string"        # or 'string', no escape processing
    flag = true
    count = 3
    cwds = ["../a", "b"]

    [section.sub]
    key = value

Anything else (multi-line strings, inline tables, dates) is out of scope.
Malformed lines are ignored rather than rejected.
"""

from __future__ import annotations

import math
import re
from typing import Any

from automation.diagnostics import Diagnostics

_DECIMAL_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
_INT_RE = re.compile(r"^[+-]?\d+$")
_PREFIXED_RE = re.compile(r"^0([xXoObB])([0-9a-fA-F]+)$")
_BASES = {"x": 16, "o": 8, "b": 2}


def parse_definition(text: str, diagnostics: Diagnostics | None = None,
                     source: str = "<string>") -> dict[str, Any]:
    """Parse definition *text* into a nested dict."""
    result: dict[str, Any] = {}
    current = result

    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.split("#", 1)[0].strip()
        if not line:
            continue

        if line.startswith("[") and line.endswith("]"):
            current = _ensure_section(result, line[1:-1].strip())
            continue

        key, sep, value = line.partition("=")
        if not sep:
            if diagnostics is not None:
                diagnostics.add("parse", source, f"line {lineno} ignored: {line!r}")
            continue
        current[key.strip()] = parse_value(value.strip())

    return result


def parse_value(value: str) -> Any:
    """Parse a single scalar or bracketed list."""
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    if value.startswith("[") and value.endswith("]"):
        inner = value[1:-1].strip()
        if not inner:
            return []
        return [parse_value(part.strip()) for part in inner.split(",") if part.strip()]
    if value == "true":
        return True
    if value == "false":
        return False
    number = _coerce_number(value)
    if number is not None:
        return number
    return value


def _coerce_number(value: str) -> int | float | None:
    """Return the numeric value of a finite numeric literal, else ``None``."""
    m = _PREFIXED_RE.match(value)
    if m:
        try:
            return int(m.group(2), _BASES[m.group(1).lower()])
        except ValueError:
            return None
    if not _DECIMAL_RE.match(value):
        return None
    number = float(value)
    if not math.isfinite(number):
        return None
    if _INT_RE.match(value):
        try:
            return int(value)
        except ValueError:
            return None
    return number


def _ensure_section(root: dict[str, Any], section: str) -> dict[str, Any]:
    current = root
    for part in (p.strip() for p in section.split(".")):
        if not isinstance(current.get(part), dict):
            current[part] = {}
        current = current[part]
    return current
