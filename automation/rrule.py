"""Recurrence rules — a practical subset of RFC 5545 RRULE strings.

Recognised keys: ``FREQ`` (HOURLY, DAILY, WEEKLY), ``INTERVAL``, ``BYDAY``,
``BYHOUR``, ``BYMINUTE``.  Intervals are aligned to the Unix epoch rather
than to a start date, so "every 2 days" means "days whose epoch day number
is even".  Matching is done at minute resolution against the wall clock of
the ``now`` value passed in (naive datetimes are local time).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)

FREQUENCIES = {"HOURLY", "DAILY", "WEEKLY"}
WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")

DEFAULT_HOURS = (9,)
DEFAULT_MINUTES = (0,)

_HOUR_SECONDS = 3_600
_DAY_SECONDS = 86_400
_WEEK_SECONDS = 604_800


@dataclass(frozen=True)
class RecurrenceRule:
    """Structured form of an RRULE string."""
    frequency: str = "DAILY"
    interval: int = 1
    by_day: frozenset[str] = field(default_factory=frozenset)
    by_hour: tuple[int, ...] = ()
    by_minute: tuple[int, ...] = ()


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_rule(text: str) -> RecurrenceRule:
    """Parse an RRULE string.  Unknown keys and malformed parts are ignored."""
    frequency = "DAILY"
    interval = 1
    by_day: frozenset[str] = frozenset()
    by_hour: tuple[int, ...] = ()
    by_minute: tuple[int, ...] = ()

    for part in text.split(";"):
        key, sep, value = part.strip().partition("=")
        if not key or not sep:
            continue
        value = value.strip()
        key = key.strip().upper()

        if key == "FREQ":
            frequency = value.upper()
        elif key == "INTERVAL":
            interval = _parse_interval(value)
        elif key == "BYDAY":
            by_day = frozenset(d.strip().upper() for d in value.split(",") if d.strip())
        elif key == "BYHOUR":
            by_hour = _parse_int_list(value)
        elif key == "BYMINUTE":
            by_minute = _parse_int_list(value)

    return RecurrenceRule(
        frequency=frequency,
        interval=interval,
        by_day=by_day,
        by_hour=by_hour,
        by_minute=by_minute,
    )


def _parse_interval(value: str) -> int:
    try:
        return max(1, int(value))
    except ValueError:
        return 1


def _parse_int_list(value: str) -> tuple[int, ...]:
    items: list[int] = []
    for raw in value.split(","):
        try:
            items.append(int(raw.strip()))
        except ValueError:
            logger.debug("Ignoring non-numeric RRULE value %r", raw)
    return tuple(items)


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------


def is_due(
    rule: RecurrenceRule,
    now: datetime,
    last_run: datetime | str | None = None,
) -> bool:
    """Return True when *rule* fires at *now* and has not fired this minute."""
    last = _coerce_last_run(last_run)
    if last is not None and _same_minute(_in_timezone_of(last, now), now):
        return False

    weekday_ok = not rule.by_day or weekday_code(now) in rule.by_day

    if rule.frequency == "HOURLY":
        if int(now.timestamp() // _HOUR_SECONDS) % rule.interval != 0:
            return False
        if rule.by_minute and now.minute not in rule.by_minute:
            return False
        return weekday_ok

    if rule.frequency == "DAILY":
        if int(now.timestamp() // _DAY_SECONDS) % rule.interval != 0:
            return False
        return weekday_ok and _time_matches(rule, now)

    if rule.frequency == "WEEKLY":
        if week_index(now) % rule.interval != 0:
            return False
        return weekday_ok and _time_matches(rule, now)

    return False


def weekday_code(dt: datetime) -> str:
    return WEEKDAY_CODES[dt.weekday()]


def week_index(dt: datetime) -> int:
    """Number of whole weeks between the epoch and the Monday starting *dt*'s week."""
    start = dt.replace(hour=0, minute=0, second=0, microsecond=0) - timedelta(days=dt.weekday())
    return int(start.timestamp() // _WEEK_SECONDS)


def _time_matches(rule: RecurrenceRule, now: datetime) -> bool:
    hours = rule.by_hour or DEFAULT_HOURS
    minutes = rule.by_minute or DEFAULT_MINUTES
    return now.hour in hours and now.minute in minutes


def _coerce_last_run(value: datetime | str | None) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return parse_timestamp(value)


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z``."""
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _in_timezone_of(value: datetime, reference: datetime) -> datetime:
    """Express *value* on the same wall clock as *reference*."""
    if reference.tzinfo is None:
        if value.tzinfo is None:
            return value
        return value.astimezone().replace(tzinfo=None)
    return value.astimezone(reference.tzinfo)


def _same_minute(a: datetime, b: datetime) -> bool:
    return (a.year, a.month, a.day, a.hour, a.minute) == (
        b.year, b.month, b.day, b.hour, b.minute
    )


# ---------------------------------------------------------------------------
# Presentation helpers
# ---------------------------------------------------------------------------

_UNITS = {"HOURLY": "hour", "DAILY": "day", "WEEKLY": "week"}


def describe_rule(rule: RecurrenceRule) -> str:
    """Short human-readable summary, e.g. ``every 2 weeks on MO, FR at 09:00``."""
    unit = _UNITS.get(rule.frequency)
    if unit is None:
        return f"never (unsupported frequency {rule.frequency})"

    text = f"every {unit}" if rule.interval == 1 else f"every {rule.interval} {unit}s"
    if rule.by_day:
        days = [code for code in WEEKDAY_CODES if code in rule.by_day]
        days += sorted(rule.by_day - set(WEEKDAY_CODES))
        text += " on " + ", ".join(days)

    if rule.frequency == "HOURLY":
        if rule.by_minute:
            text += " at minute " + ", ".join(str(m) for m in sorted(set(rule.by_minute)))
        return text

    times = [
        f"{h:02d}:{m:02d}"
        for h in sorted(set(rule.by_hour or DEFAULT_HOURS))
        for m in sorted(set(rule.by_minute or DEFAULT_MINUTES))
    ]
    return text + " at " + ", ".join(times)


def next_occurrence(
    rule: RecurrenceRule,
    after: datetime,
    last_run: datetime | str | None = None,
    horizon_days: int | None = None,
) -> datetime | None:
    """Return the first minute strictly after *after* at which *rule* is due.

    Only candidate minutes are checked (the rule's hours and minutes on each
    day), so the search stays cheap.  Returns ``None`` when nothing fires
    within *horizon_days*.
    """
    if rule.frequency not in FREQUENCIES:
        return None
    if horizon_days is None:
        if rule.frequency == "HOURLY":
            horizon_days = 8 + rule.interval // 24
        else:
            horizon_days = 7 * rule.interval + 8

    if rule.frequency == "HOURLY":
        hours = list(range(24))
        minutes = sorted(set(rule.by_minute)) if rule.by_minute else list(range(60))
    else:
        hours = sorted(set(rule.by_hour or DEFAULT_HOURS))
        minutes = sorted(set(rule.by_minute or DEFAULT_MINUTES))

    first_day = after.replace(hour=0, minute=0, second=0, microsecond=0)
    for offset in range(horizon_days + 1):
        day = first_day + timedelta(days=offset)
        for hour in hours:
            for minute in minutes:
                try:
                    candidate = day.replace(hour=hour, minute=minute)
                except ValueError:
                    continue
                if candidate <= after:
                    continue
                if is_due(rule, candidate, last_run):
                    return candidate
    return None
