"""Zone-explicit timestamp helpers - no I/O, no implicit zone.

Instants are timezone-aware datetimes normalised to UTC. Wall-clock work
(day boundaries, weekday stepping, day shifts) happens on naive local
datetimes and is converted back through ``localize``.
"""

import re
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import InvalidZone, MalformedDateTime

DATE_TIME_FORMAT = "%Y-%m-%dT%H:%M"

_DATE_ONLY = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")
_DATE_TIME = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}T[0-9]{2}:[0-9]{2}$")

START_OF_DAY = time(0, 0)
END_OF_DAY = time(23, 59, 59, 999000)


def resolve_zone(zone: ZoneInfo | str) -> ZoneInfo:
    """Turn an IANA identifier into a ZoneInfo, raising InvalidZone if unknown."""
    if isinstance(zone, ZoneInfo):
        return zone
    if not isinstance(zone, str) or not zone.strip():
        raise InvalidZone(f"Invalid time zone: {zone!r}")
    try:
        return ZoneInfo(zone.strip())
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise InvalidZone(f"Invalid time zone: {zone}") from e


def localize(local: datetime, zone: ZoneInfo) -> datetime:
    """Interpret a naive wall-clock datetime in ``zone`` and return the UTC instant.

    Times inside a DST gap resolve with the pre-transition offset, which
    moves them forward by the gap length.
    """
    try:
        return local.replace(tzinfo=zone).astimezone(timezone.utc)
    except OverflowError as e:
        raise MalformedDateTime(f"Date/time out of range in {zone}: {local}") from e


def to_local(instant: datetime, zone: ZoneInfo) -> datetime:
    """Wall-clock fields of an instant in ``zone`` (aware, tzinfo=zone)."""
    try:
        return instant.astimezone(zone)
    except OverflowError as e:
        raise MalformedDateTime(f"Date/time out of range in {zone}: {instant}") from e


def _naive_local(instant: datetime, zone: ZoneInfo) -> datetime:
    return to_local(instant, zone).replace(tzinfo=None)


def parse(text: str, zone: ZoneInfo) -> datetime:
    """Parse ``YYYY-MM-DD`` or ``YYYY-MM-DDThh:mm`` in ``zone``."""
    if not isinstance(text, str):
        raise MalformedDateTime(f"Invalid date/time: {text!r}")
    value = text.strip()
    if _DATE_ONLY.match(value):
        value += "T00:00"
    elif not _DATE_TIME.match(value):
        raise MalformedDateTime(
            f"Invalid date/time format: {text!r} (expected YYYY-MM-DD or YYYY-MM-DDThh:mm)"
        )
    try:
        local = datetime.strptime(value, DATE_TIME_FORMAT)
    except ValueError as e:
        raise MalformedDateTime(f"Invalid date/time: {text!r}") from e
    return localize(local, zone)


def parse_until(text: str, zone: ZoneInfo) -> datetime:
    """Like ``parse``, but a bare date means 23:59 of that day."""
    if isinstance(text, str) and _DATE_ONLY.match(text.strip()):
        return parse(f"{text.strip()}T23:59", zone)
    return parse(text, zone)


def coerce(value: datetime | str, zone: ZoneInfo) -> datetime:
    """Accept a date string, naive wall-clock datetime, or aware datetime."""
    if isinstance(value, str):
        return parse(value, zone)
    if isinstance(value, datetime):
        if value.tzinfo is None or value.utcoffset() is None:
            return localize(value, zone)
        try:
            return value.astimezone(timezone.utc)
        except OverflowError as e:
            raise MalformedDateTime(f"Date/time out of range: {value}") from e
    raise MalformedDateTime(f"Invalid date/time: {value!r}")


def format(instant: datetime, zone: ZoneInfo) -> str:
    """Render an instant as ``YYYY-MM-DDThh:mm`` in ``zone``."""
    return to_local(instant, zone).strftime(DATE_TIME_FORMAT)


def local_date(instant: datetime, zone: ZoneInfo) -> date:
    return to_local(instant, zone).date()


def start_of_day(instant: datetime, zone: ZoneInfo) -> datetime:
    return localize(datetime.combine(local_date(instant, zone), START_OF_DAY), zone)


def end_of_day(instant: datetime, zone: ZoneInfo) -> datetime:
    return localize(datetime.combine(local_date(instant, zone), END_OF_DAY), zone)


def is_full_day(start: datetime, end: datetime, zone: ZoneInfo) -> bool:
    """True when [start, end] is exactly one local day as synthesized for all-day events."""
    return start == start_of_day(start, zone) and end == end_of_day(start, zone)


def shift_days(instant: datetime, zone: ZoneInfo, days: int) -> datetime:
    """Move an instant by whole local days, keeping its wall-clock time in ``zone``."""
    try:
        shifted = _naive_local(instant, zone) + timedelta(days=days)
    except OverflowError as e:
        raise MalformedDateTime(f"Shifting {instant} by {days} days is out of range") from e
    return localize(shifted, zone)


def day_difference(
    source: datetime, source_zone: ZoneInfo, target: datetime, target_zone: ZoneInfo
) -> int:
    """Calendar days from the source's local date to the target's local date."""
    return (local_date(target, target_zone) - local_date(source, source_zone)).days


def next_or_same(local: datetime, weekday: int) -> datetime:
    """Advance a naive local datetime to the next-or-same weekday (Monday=0)."""
    try:
        return local + timedelta(days=(weekday - local.weekday()) % 7)
    except OverflowError as e:
        raise MalformedDateTime(f"No weekday {weekday} on or after {local}") from e


def now(zone: ZoneInfo) -> datetime:
    return datetime.now(zone)
