"""Weekly recurrence expansion - pure functions, no I/O."""

from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from . import timeutil
from .errors import MalformedDateTime

# Single-letter weekday codes, Monday=0
WEEKDAY_CODES = {
    "M": 0,
    "T": 1,
    "W": 2,
    "R": 3,
    "F": 4,
    "S": 5,
    "U": 6,
}


def parse_weekdays(codes: str) -> list[int]:
    """
    Convert a code string like "MWF" to sorted weekday numbers.

    Case-insensitive. Unknown letters and repeats are ignored; validating
    them is the caller's job.
    """
    return sorted({WEEKDAY_CODES[c] for c in (codes or "").upper() if c in WEEKDAY_CODES})


def _occurrence(
    base_start: datetime,
    duration: timedelta | None,
    weekday: int,
    week_offset: int,
    zone: ZoneInfo,
) -> tuple[datetime, datetime]:
    try:
        local_start = timeutil.next_or_same(base_start, weekday) + timedelta(weeks=week_offset)
        if duration is None:
            local_end = datetime.combine(local_start.date(), timeutil.END_OF_DAY)
        else:
            local_end = local_start + duration
    except OverflowError as e:
        raise MalformedDateTime(f"Occurrence {week_offset} weeks after {base_start} is out of range") from e
    return timeutil.localize(local_start, zone), timeutil.localize(local_end, zone)


def _wall_clock(start: datetime, end: datetime | None, zone: ZoneInfo):
    local_start = timeutil.to_local(start, zone).replace(tzinfo=None)
    if end is None:
        return local_start, None
    local_end = timeutil.to_local(end, zone).replace(tzinfo=None)
    return local_start, local_end - local_start


def expand_count(
    start: datetime,
    end: datetime | None,
    weekdays: list[int],
    count: int,
    zone: ZoneInfo,
) -> list[tuple[datetime, datetime]]:
    """
    Expand a weekly rule for ``count`` weeks.

    Each occurrence starts at the base start advanced to the next-or-same
    selected weekday, then shifted by the week offset, keeping the base
    wall-clock time and duration in ``zone``. With no base end, each
    occurrence runs to the end of its local day.

    Returns (start, end) instant pairs ordered by week, then weekday.
    """
    local_start, duration = _wall_clock(start, end, zone)
    return [
        _occurrence(local_start, duration, day, week, zone)
        for week in range(count)
        for day in weekdays
    ]


def expand_until(
    start: datetime,
    end: datetime | None,
    weekdays: list[int],
    until: datetime,
    zone: ZoneInfo,
) -> list[tuple[datetime, datetime]]:
    """
    Expand a weekly rule until no selected weekday starts on/before ``until``.

    Occurrence ends past ``until`` are clamped to it.
    """
    local_start, duration = _wall_clock(start, end, zone)
    occurrences = []
    week = 0
    while True:
        added = False
        for day in weekdays:
            try:
                occ_start, occ_end = _occurrence(local_start, duration, day, week, zone)
            except MalformedDateTime:
                # Past the last representable date, so also past until
                continue
            if occ_start > until:
                continue
            occurrences.append((occ_start, min(occ_end, until)))
            added = True
        if not added:
            return occurrences
        week += 1
