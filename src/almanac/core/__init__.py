"""Functional core - event storage and scheduling logic with no I/O."""

from .calendar import Availability, Calendar
from .errors import (
    CalendarError,
    CalendarNotFound,
    ConflictDetected,
    DuplicateCalendarName,
    IndexDesync,
    InvalidPropertyValue,
    InvalidRange,
    InvalidRecurrenceCount,
    InvalidZone,
    MalformedDateTime,
    NoMatchingEvent,
)
from .event import Event, EventBuilder, EventStatus, sort_events_by_start
from .index import EventIndex
from .recurrence import WEEKDAY_CODES, parse_weekdays

__all__ = [
    # Events
    "Event",
    "EventBuilder",
    "EventStatus",
    "EventIndex",
    "sort_events_by_start",
    # Calendar
    "Availability",
    "Calendar",
    # Recurrence
    "WEEKDAY_CODES",
    "parse_weekdays",
    # Errors
    "CalendarError",
    "CalendarNotFound",
    "ConflictDetected",
    "DuplicateCalendarName",
    "IndexDesync",
    "InvalidPropertyValue",
    "InvalidRange",
    "InvalidRecurrenceCount",
    "InvalidZone",
    "MalformedDateTime",
    "NoMatchingEvent",
]
