"""Availability schedules for parking spaces and the date/window resolver."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Mapping, Optional, Union

WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

REPEATING_SCAN_DAYS = 30
DATED_SCAN_DAYS = 365

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")
_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


@dataclass(frozen=True, order=True)
class TimeOfDay:
    hour: int
    minute: int

    def __post_init__(self) -> None:
        if not 0 <= self.hour <= 23 or not 0 <= self.minute <= 59:
            raise ValueError(f"time of day out of range: {self.hour}:{self.minute}")

    @classmethod
    def parse(cls, value: str) -> "TimeOfDay":
        match = _TIME_RE.match(value.strip())
        if match is None:
            raise ValueError(f"expected HH:MM, got {value!r}")
        return cls(int(match.group(1)), int(match.group(2)))

    @property
    def minutes(self) -> int:
        return self.hour * 60 + self.minute

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


@dataclass(frozen=True)
class TimeWindow:
    start: TimeOfDay
    end: TimeOfDay

    @classmethod
    def parse(cls, start: str, end: str) -> "TimeWindow":
        return cls(TimeOfDay.parse(start), TimeOfDay.parse(end))


FULL_DAY = TimeWindow(TimeOfDay(0, 0), TimeOfDay(23, 59))


@dataclass(frozen=True)
class LegacyFallback:
    """Old-style availability: a set of weekdays sharing one optional window."""

    days: frozenset[int]
    window: Optional[TimeWindow] = None


@dataclass(frozen=True)
class RepeatingSchedule:
    entries: Mapping[int, TimeWindow] = field(default_factory=dict)
    legacy: Optional[LegacyFallback] = None


@dataclass(frozen=True)
class DatedSchedule:
    entries: Mapping[date, TimeWindow] = field(default_factory=dict)


AvailabilitySchedule = Union[RepeatingSchedule, DatedSchedule]


def weekday_of(day: date) -> int:
    """Weekday number with Sunday as 0."""
    return day.isoweekday() % 7


def is_available(schedule: AvailabilitySchedule, day: date) -> bool:
    if isinstance(schedule, DatedSchedule):
        return day in schedule.entries
    weekday = weekday_of(day)
    if weekday in schedule.entries:
        return True
    if schedule.legacy is not None:
        return weekday in schedule.legacy.days
    return False


def resolve_window(schedule: AvailabilitySchedule, day: date) -> TimeWindow:
    """
    Bookable window for `day`.

    Falls back to FULL_DAY when nothing matches, so callers must check
    is_available() before trusting the result.
    """
    if isinstance(schedule, DatedSchedule):
        return schedule.entries.get(day, FULL_DAY)
    weekday = weekday_of(day)
    window = schedule.entries.get(weekday)
    if window is not None:
        return window
    legacy = schedule.legacy
    if legacy is not None and legacy.window is not None and weekday in legacy.days:
        return legacy.window
    return FULL_DAY


def scan_bound(schedule: AvailabilitySchedule) -> int:
    return DATED_SCAN_DAYS if isinstance(schedule, DatedSchedule) else REPEATING_SCAN_DAYS


def next_available(
    schedule: AvailabilitySchedule,
    from_inclusive: date,
    *,
    bound: int | None = None,
) -> date | None:
    limit = scan_bound(schedule) if bound is None else bound
    for offset in range(limit):
        candidate = from_inclusive + timedelta(days=offset)
        if is_available(schedule, candidate):
            return candidate
    return None


def previous_available(
    schedule: AvailabilitySchedule,
    before_exclusive: date,
    *,
    today: date,
    bound: int | None = None,
) -> date | None:
    limit = scan_bound(schedule) if bound is None else bound
    for offset in range(1, limit + 1):
        candidate = before_exclusive - timedelta(days=offset)
        if candidate < today:
            return None
        if is_available(schedule, candidate):
            return candidate
    return None


def describe_schedule(schedule: AvailabilitySchedule) -> list[tuple[str, Optional[TimeWindow]]]:
    """Per-day listing for display: weekday names Sunday-first, or ISO dates ascending."""
    if isinstance(schedule, DatedSchedule):
        return [(day.isoformat(), schedule.entries[day]) for day in sorted(schedule.entries)]
    rows: list[tuple[str, Optional[TimeWindow]]] = []
    legacy = schedule.legacy
    for weekday, name in enumerate(WEEKDAY_NAMES):
        if weekday in schedule.entries:
            rows.append((name, schedule.entries[weekday]))
        elif legacy is not None and weekday in legacy.days:
            rows.append((name, legacy.window))
    return rows


def _parse_window(raw: Any) -> TimeWindow:
    if not isinstance(raw, Mapping):
        raise ValueError(f"schedule entry must be an object, got {raw!r}")
    try:
        return TimeWindow.parse(raw["startTime"], raw["endTime"])
    except KeyError as exc:
        raise ValueError(f"schedule entry missing {exc.args[0]}") from exc


def _parse_weekday(key: Any) -> int:
    try:
        weekday = int(key)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"weekday key must be an integer 0-6, got {key!r}") from exc
    if not 0 <= weekday <= 6:
        raise ValueError(f"weekday key must be an integer 0-6, got {key!r}")
    return weekday


def _parse_date_key(key: Any) -> date:
    if not isinstance(key, str) or not _DATE_KEY_RE.match(key):
        raise ValueError(f"date key must be YYYY-MM-DD, got {key!r}")
    return date.fromisoformat(key)


def schedule_from_record(
    *,
    repeating: bool | None,
    entries: Mapping[Any, Any] | None,
    legacy_days: Iterable[int] | None = None,
    legacy_start: str | None = None,
    legacy_end: str | None = None,
) -> AvailabilitySchedule:
    """Build a schedule from the stored row shape. Records without the flag are repeating."""
    raw_entries = entries or {}
    if repeating is False:
        return DatedSchedule(
            entries={_parse_date_key(key): _parse_window(value) for key, value in raw_entries.items()}
        )

    legacy: LegacyFallback | None = None
    if legacy_days is not None:
        window = TimeWindow.parse(legacy_start, legacy_end) if legacy_start and legacy_end else None
        legacy = LegacyFallback(days=frozenset(_parse_weekday(d) for d in legacy_days), window=window)
    return RepeatingSchedule(
        entries={_parse_weekday(key): _parse_window(value) for key, value in raw_entries.items()},
        legacy=legacy,
    )


def schedule_to_record(schedule: AvailabilitySchedule) -> dict[str, Any]:
    """Inverse of schedule_from_record for the primary fields."""
    if isinstance(schedule, DatedSchedule):
        keyed = {day.isoformat(): window for day, window in schedule.entries.items()}
        repeating = False
    else:
        keyed = {str(weekday): window for weekday, window in schedule.entries.items()}
        repeating = True
    return {
        "repeating_weekly": repeating,
        "day_availability_schedule": {
            key: {"startTime": str(window.start), "endTime": str(window.end)} for key, window in keyed.items()
        },
    }


def schedule_for_space(space: Any) -> AvailabilitySchedule:
    return schedule_from_record(
        repeating=space.repeating_weekly,
        entries=space.day_availability_schedule,
        legacy_days=space.available_days,
        legacy_start=space.availability_start,
        legacy_end=space.availability_end,
    )
