"""Date/time resolution for loosely formatted natural-language fragments.

The LLM is asked for ISO-8601 timestamps, but voice transcripts regularly come
back as "tomorrow 3pm" or "18th Jan at 10:30 a.m.". This module resolves those
fragments against a reference time using an explicit, ordered rule list:

Date rules (first match wins):
- tomorrow: reference date + 1 day
- next: "next <weekday|week>" advances NEXT_PHRASE_ADVANCE_DAYS
- ordinal_month: "18th Jan", "3rd February" in the reference year
- absolute: ISO-8601 or a handful of common locale formats

Time-of-day patterns are scanned independently of the date rules.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta, tzinfo

LOGGER = logging.getLogger(__name__)

DEFAULT_DURATION_MINUTES = 60
DEFAULT_HOUR = 14

# "next friday" only advances a single day; the named weekday is not honoured.
# Change this (and _next_phrase_rule) to compute the real next occurrence.
NEXT_PHRASE_ADVANCE_DAYS = 1

MONTH_ABBREVIATIONS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

_MONTH_NAMES = (
    "jan|january|feb|february|mar|march|apr|april|may|jun|june|jul|july|aug|august"
    "|sep|sept|september|oct|october|nov|november|dec|december"
)

_NEXT_PATTERN = re.compile(
    r"\bnext\s+(monday|tuesday|wednesday|thursday|friday|saturday|sunday|week)\b",
    re.IGNORECASE,
)

_ORDINAL_MONTH_PATTERN = re.compile(
    rf"\b(\d{{1,2}})(?:st|nd|rd|th)\s+(?:of\s+)?({_MONTH_NAMES})\b",
    re.IGNORECASE,
)

_ISO_DATE_FRAGMENT = re.compile(r"(?<!\d)(\d{4})-(\d{2})-(\d{2})(?!\d)")

_MERIDIEM = r"(a\.m\.|a\.?m|p\.m\.|p\.?m)(?![a-z])"

# Order matters: the most specific form is tried first.
TIME_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"(?<!\d)(\d{{1,2}}):(\d{{2}})\s*{_MERIDIEM}", re.IGNORECASE),
    re.compile(rf"(?<!\d)(\d{{1,2}})\s+{_MERIDIEM}", re.IGNORECASE),
    re.compile(rf"(?<!\d)(\d{{1,2}}){_MERIDIEM}", re.IGNORECASE),
)

_LOCALE_FORMATS = (
    "%Y-%m-%d %H:%M",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
)


class AmbiguousDate(ValueError):
    """Raised when text resolves to neither a date nor a time of day."""

    def __init__(self, text: str) -> None:
        super().__init__(f"Could not resolve a date or time from {text!r}")
        self.text = text


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError("TimeRange start must not be after end")

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


@dataclass(frozen=True)
class DateMatch:
    """Result of a date rule: the resolved value and whether it carries a time."""

    value: datetime
    has_time: bool = False


@dataclass(frozen=True)
class DateRule:
    name: str
    apply: Callable[[str, datetime], DateMatch | None]


def utc_now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(UTC)


def local_now(tz: tzinfo | None = None) -> datetime:
    """Get current datetime in the given timezone (system local when omitted)."""
    if tz is None:
        return datetime.now().astimezone()
    return datetime.now(tz)


def ensure_aware(dt: datetime, tz: tzinfo | None = None) -> datetime:
    """Attach `tz` (or the system local zone) to naive datetimes."""
    if dt.tzinfo is not None:
        return dt
    if tz is None:
        return dt.astimezone()
    return dt.replace(tzinfo=tz)


def format_offset_timestamp(dt: datetime) -> str:
    """ISO-8601 with a numeric UTC offset (never the 'Z' suffix)."""
    aware = ensure_aware(dt).replace(microsecond=0)
    return aware.isoformat()


def parse_iso_timestamp(value: str | None, tz: tzinfo | None = None) -> datetime | None:
    """Parse a strict ISO-8601 timestamp; naive values are placed in `tz`."""
    if not value:
        return None
    text = value.strip()
    if not text or not text[0].isdigit():
        return None
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return ensure_aware(parsed, tz)


def parse_absolute(value: str | None, tz: tzinfo | None = None) -> DateMatch | None:
    """Parse ISO-8601 or a common locale format into an aware datetime."""
    if not value:
        return None
    text = value.strip()
    if not text:
        return None
    parsed = parse_iso_timestamp(text, tz)
    if parsed is not None:
        has_time = "T" in text or ":" in text
        return DateMatch(parsed, has_time=has_time)
    for fmt in _LOCALE_FORMATS:
        try:
            candidate = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return DateMatch(ensure_aware(candidate, tz), has_time="%H" in fmt)
    return None


# ---------------------------------------------------------------------------
# Date rules
# ---------------------------------------------------------------------------


def _midnight(reference: datetime, day: date) -> datetime:
    return reference.replace(year=day.year, month=day.month, day=day.day, hour=0, minute=0, second=0, microsecond=0)


def _tomorrow_rule(text: str, now: datetime) -> DateMatch | None:
    if "tomorrow" not in text.lower():
        return None
    return DateMatch(_midnight(now, now.date() + timedelta(days=1)))


def _next_phrase_rule(text: str, now: datetime) -> DateMatch | None:
    if not _NEXT_PATTERN.search(text):
        return None
    return DateMatch(now + timedelta(days=NEXT_PHRASE_ADVANCE_DAYS))


def _ordinal_month_rule(text: str, now: datetime) -> DateMatch | None:
    match = _ORDINAL_MONTH_PATTERN.search(text)
    if not match:
        return None
    month = MONTH_ABBREVIATIONS.get(match.group(2).lower()[:3])
    if month is None:
        return None
    try:
        day = date(now.year, month, int(match.group(1)))
    except ValueError:
        return None
    return DateMatch(_midnight(now, day))


def _absolute_rule(text: str, now: datetime) -> DateMatch | None:
    parsed = parse_absolute(text, now.tzinfo)
    if parsed is not None:
        return parsed
    # "2026-01-18 at 3pm" is not ISO as a whole, but the date fragment is.
    fragment = _ISO_DATE_FRAGMENT.search(text)
    if not fragment:
        return None
    try:
        day = date(int(fragment.group(1)), int(fragment.group(2)), int(fragment.group(3)))
    except ValueError:
        return None
    return DateMatch(_midnight(now, day))


DATE_RULES: tuple[DateRule, ...] = (
    DateRule("tomorrow", _tomorrow_rule),
    DateRule("next", _next_phrase_rule),
    DateRule("ordinal_month", _ordinal_month_rule),
    DateRule("absolute", _absolute_rule),
)


def match_date(text: str, now: datetime) -> tuple[str, DateMatch] | None:
    """Return the first date rule that matches, with its name."""
    for rule in DATE_RULES:
        result = rule.apply(text, now)
        if result is not None:
            return rule.name, result
    return None


# ---------------------------------------------------------------------------
# Time of day
# ---------------------------------------------------------------------------


def to_24_hour(hour: int, meridiem: str) -> int:
    """Convert a 12-hour clock value to 24-hour using an am/pm variant."""
    marker = meridiem.lower()
    if "p" in marker and hour != 12:
        return hour + 12
    if "a" in marker and hour == 12:
        return 0
    return hour


def scan_time_of_day(text: str) -> tuple[int, int] | None:
    """Find the first 12-hour clock time in `text` and return (hour, minute)."""
    if not text:
        return None
    for pattern in TIME_PATTERNS:
        for match in pattern.finditer(text):
            groups = match.groups()
            hour = int(groups[0])
            minute = int(groups[1]) if len(groups) == 3 else 0
            meridiem = groups[-1]
            if not 1 <= hour <= 12 or minute >= 60:
                continue
            return to_24_hour(hour, meridiem), minute
    return None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def resolve(text: str | None, now: datetime) -> datetime:
    """Resolve a loose date/time phrase against `now`.

    Empty input returns `now`. Raises AmbiguousDate when neither a date rule
    nor a time-of-day pattern matches.
    """
    if not text or not text.strip():
        return now
    text = text.strip()
    matched = match_date(text, now)
    time_of_day = scan_time_of_day(text)
    if matched is None and time_of_day is None:
        raise AmbiguousDate(text)

    if matched is None:
        base = now
        has_time = False
    else:
        _, date_match = matched
        base = date_match.value
        has_time = date_match.has_time

    if time_of_day is not None:
        hour, minute = time_of_day
        return base.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if has_time:
        return base
    return base.replace(hour=DEFAULT_HOUR, minute=0, second=0, microsecond=0)


def resolve_end(end_text: str | None, start: datetime, duration_minutes: int = DEFAULT_DURATION_MINUTES) -> datetime:
    """Use `end_text` when it is an absolute timestamp, else start + duration."""
    parsed = parse_absolute(end_text, start.tzinfo) if end_text else None
    if parsed is not None and parsed.value >= start:
        return parsed.value
    return start + timedelta(minutes=duration_minutes)


def resolve_range(
    start_text: str | None,
    end_text: str | None,
    now: datetime,
    *,
    duration_minutes: int = DEFAULT_DURATION_MINUTES,
    logger: logging.Logger | None = None,
) -> TimeRange:
    """Resolve a start/end pair, falling back to `now` for ambiguous input."""
    log = logger or LOGGER
    try:
        start = resolve(start_text, now)
    except AmbiguousDate as exc:
        log.warning("Falling back to the current time: %s", exc)
        start = now
    end = resolve_end(end_text, start, duration_minutes)
    return TimeRange(start=start, end=end)


def parse_range_or_resolve(
    start_text: str | None,
    end_text: str | None,
    now: datetime,
    *,
    duration_minutes: int = DEFAULT_DURATION_MINUTES,
    logger: logging.Logger | None = None,
) -> TimeRange:
    """Pass well-formed ISO timestamps through untouched; resolve anything else.

    Only when the start is not a clean ISO-8601 value does the heuristic
    resolver run.
    """
    start = parse_iso_timestamp(start_text, now.tzinfo)
    if start is None:
        return resolve_range(start_text, end_text, now, duration_minutes=duration_minutes, logger=logger)
    end = parse_iso_timestamp(end_text, now.tzinfo)
    if end is None or end < start:
        end = start + timedelta(minutes=duration_minutes)
    return TimeRange(start=start, end=end)
