"""CSV row values <-> events.

File reading and writing belong to the caller; this module only turns
already-tokenized row fields into events and events into row fields.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from zoneinfo import ZoneInfo

from .core import timeutil
from .core.errors import CalendarError
from .core.event import Event, EventBuilder, EventStatus

logger = logging.getLogger(__name__)

EXPORT_HEADER = [
    "Subject",
    "Start Date",
    "Start Time",
    "End Date",
    "End Time",
    "All Day Event",
    "Description",
    "Location",
    "Private",
]

IMPORT_DATE_FORMAT = "%m/%d/%Y"
IMPORT_TIME_FORMAT = "%I:%M %p"
EXPORT_DATE_FORMAT = "%Y-%m-%d"
EXPORT_TIME_FORMAT = "%H:%M"


class RowError(CalendarError, ValueError):
    """A row could not be turned into an event."""

    pass


@dataclass
class ImportResult:
    """Events built from rows plus (row number, message) for each rejected row."""

    events: list[Event] = field(default_factory=list)
    errors: list[tuple[int, str]] = field(default_factory=list)


def _field(fields: list[str], i: int) -> str:
    return fields[i].strip() if i < len(fields) and fields[i] is not None else ""


def _parse_bool(value: str, label: str) -> bool | None:
    if not value:
        return None
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    raise RowError(f"Invalid {label} value: {value!r}")


def _parse_local(date_text: str, time_text: str, label: str) -> datetime:
    try:
        day = datetime.strptime(date_text, IMPORT_DATE_FORMAT).date()
        at = datetime.strptime(time_text, IMPORT_TIME_FORMAT).time() if time_text else None
    except ValueError:
        raise RowError(f"Invalid {label} format: {date_text} {time_text}".rstrip()) from None
    return datetime.combine(day, at) if at else datetime.combine(day, timeutil.START_OF_DAY)


def validate_header(header: list[str]) -> None:
    """Require "Subject,Start Date"; any further columns must follow EXPORT_HEADER order."""
    names = [h.strip() for h in header]
    if len(names) < 2:
        raise RowError("Header must have at least 2 columns: Subject and Start Date.")
    for i, name in enumerate(names[: len(EXPORT_HEADER)]):
        if name.lower() != EXPORT_HEADER[i].lower():
            raise RowError(f"Header column {i + 1} must be '{EXPORT_HEADER[i]}', got '{name}'.")


def event_from_row(fields: list[str], zone: ZoneInfo | str) -> Event:
    """
    Build an event from one tokenized row.

    Subject and Start Date are required. Start Time defaults to midnight;
    an end is set only when both End Date and End Time are given, so rows
    without one become all-day events once added to a calendar.

    Raises:
        RowError: missing or malformed field
    """
    subject = _field(fields, 0)
    start_date = _field(fields, 1)
    if not subject or not start_date:
        raise RowError("Required fields Subject and Start Date are empty.")

    start = _parse_local(start_date, _field(fields, 2), "Start Date/Time")
    end = None
    end_date, end_time = _field(fields, 3), _field(fields, 4)
    if end_date and end_time:
        end = _parse_local(end_date, end_time, "End Date/Time")

    _parse_bool(_field(fields, 5), "All Day Event")
    private = _parse_bool(_field(fields, 8), "Private")

    builder = (
        EventBuilder(subject, start.strftime(timeutil.DATE_TIME_FORMAT), zone)
        .description(_field(fields, 6))
        .location(_field(fields, 7))
        .status(EventStatus.PRIVATE if private else EventStatus.PUBLIC)
    )
    if end is not None:
        builder.end(end.strftime(timeutil.DATE_TIME_FORMAT))
    try:
        return builder.build()
    except CalendarError as e:
        raise RowError(str(e)) from e


def events_from_rows(rows: list[list[str]], zone: ZoneInfo | str) -> ImportResult:
    """
    Build events from data rows (header excluded), collecting per-row errors.

    Row numbers count the header as line 1.
    """
    result = ImportResult()
    for line_number, fields in enumerate(rows, start=2):
        try:
            result.events.append(event_from_row(fields, zone))
        except RowError as e:
            logger.warning(f"Row {line_number} skipped: {e}")
            result.errors.append((line_number, str(e)))
    return result


def event_to_row(event: Event, zone: ZoneInfo | str) -> list[str]:
    """Export values for one event, in EXPORT_HEADER order, local to ``zone``."""
    z = timeutil.resolve_zone(zone)
    start = timeutil.to_local(event.start, z)
    end = timeutil.to_local(event.effective_end, z)
    all_day = timeutil.is_full_day(event.start, event.effective_end, z)
    return [
        event.name.replace(",", " "),
        start.strftime(EXPORT_DATE_FORMAT),
        start.strftime(EXPORT_TIME_FORMAT),
        end.strftime(EXPORT_DATE_FORMAT),
        end.strftime(EXPORT_TIME_FORMAT),
        str(all_day),
        event.description or "",
        event.location or "",
        str(event.status is EventStatus.PRIVATE),
    ]
