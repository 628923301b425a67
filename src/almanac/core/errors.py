"""Error taxonomy for the scheduling engine."""


class CalendarError(Exception):
    """Base class for recoverable calendar failures."""

    pass


class MalformedDateTime(CalendarError, ValueError):
    """A date/time string has the wrong shape or an impossible value."""

    pass


class InvalidRange(CalendarError, ValueError):
    """An end date/time precedes its start."""

    pass


class ConflictDetected(CalendarError):
    """An event overlaps one already stored."""

    def __init__(self, message: str, conflicting=None):
        super().__init__(message)
        self.conflicting = conflicting


class InvalidRecurrenceCount(CalendarError, ValueError):
    """A recurrence was asked to repeat fewer than once."""

    pass


class NoMatchingEvent(CalendarError, LookupError):
    """No stored event matched the lookup or filter fields."""

    pass


class InvalidPropertyValue(CalendarError, ValueError):
    """Unknown property, unknown status literal, or blank name."""

    pass


class CalendarNotFound(CalendarError, LookupError):
    pass


class DuplicateCalendarName(CalendarError):
    pass


class InvalidZone(CalendarError, ValueError):
    """A time zone identifier is not in the zone database."""

    pass


class IndexDesync(AssertionError):
    """The event index disagrees with the event collection.

    This is a programming defect, not a user error.
    """

    pass
