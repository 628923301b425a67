"""Event value, builder and conflict rule - no I/O dependencies."""

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

from . import timeutil
from .errors import InvalidPropertyValue, InvalidRange


class EventStatus(Enum):
    """Event visibility."""

    PUBLIC = "public"
    PRIVATE = "private"

    @classmethod
    def parse(cls, text: str) -> "EventStatus":
        """Case-insensitive lookup by name."""
        try:
            return cls[text.strip().upper()]
        except (KeyError, AttributeError):
            raise InvalidPropertyValue(f"Invalid status value: {text!r}") from None


@dataclass(eq=False)
class Event:
    """A calendar event.

    ``start`` and ``end`` are UTC instants. Equality is identity: two
    events with the same fields are still distinct entries in a calendar.
    """

    name: str
    start: datetime
    end: datetime | None = None
    location: str | None = None
    description: str | None = None
    status: EventStatus = EventStatus.PUBLIC
    zone: ZoneInfo | None = None

    @property
    def effective_end(self) -> datetime:
        return self.end if self.end is not None else self.start

    @property
    def key(self) -> tuple[str, datetime]:
        """Composite lookup key: (lowercased name, start instant)."""
        return (self.name.lower(), self.start)

    def conflicts_with(self, other: "Event | None") -> bool:
        """Strict overlap of spans; touching endpoints do not conflict."""
        if other is None:
            return False
        return self.start < other.effective_end and self.effective_end > other.start

    def overlaps(self, start: datetime, end: datetime) -> bool:
        """Check if this event's span intersects [start, end)."""
        return self.start < end and self.effective_end > start

    def contains(self, instant: datetime) -> bool:
        """Check if an instant falls within this event, inclusive on both ends."""
        return self.start <= instant <= self.effective_end

    def duration(self) -> timedelta:
        """Absolute duration, zero if no end."""
        return self.effective_end - self.start

    def copy(self) -> "Event":
        return dataclasses.replace(self)

    def format(self, zone: ZoneInfo | None = None) -> str:
        """Format the event for display in ``zone`` (authoring zone, else UTC)."""
        z = zone or self.zone or ZoneInfo("UTC")
        return (
            f"Event: {self.name} | Start: {timeutil.format(self.start, z)} "
            f"| End: {timeutil.format(self.effective_end, z)} "
            f"| Location: {self.location} | Status: {self.status.name}"
        )

    def __str__(self) -> str:
        return self.format()


class EventBuilder:
    """
    Builds an Event from date strings interpreted in one zone.

    Date strings are parsed in ``build()``, so a failed build never
    yields a partly populated event.
    """

    def __init__(self, name: str, start: datetime | str, zone: ZoneInfo | str):
        self._name = name
        self._start = start
        self._zone = zone
        self._end: datetime | str | None = None
        self._location: str | None = None
        self._description: str | None = None
        self._status = EventStatus.PUBLIC

    def end(self, end: datetime | str | None) -> "EventBuilder":
        self._end = end
        return self

    def location(self, location: str | None) -> "EventBuilder":
        self._location = location
        return self

    def description(self, description: str | None) -> "EventBuilder":
        self._description = description
        return self

    def status(self, status: EventStatus | str) -> "EventBuilder":
        self._status = status if isinstance(status, EventStatus) else EventStatus.parse(status)
        return self

    def zone(self, zone: ZoneInfo | str) -> "EventBuilder":
        self._zone = zone
        return self

    def build(self) -> Event:
        """
        Parse dates and return the Event.

        Raises:
            InvalidZone: zone identifier unknown
            MalformedDateTime: start or end cannot be parsed
            InvalidRange: end precedes start
        """
        zone = timeutil.resolve_zone(self._zone)
        start = timeutil.coerce(self._start, zone)
        end = timeutil.coerce(self._end, zone) if self._end is not None else None
        if end is not None and end < start:
            raise InvalidRange(
                f"Event end ({timeutil.format(end, zone)}) cannot be before "
                f"start ({timeutil.format(start, zone)})."
            )
        return Event(
            name=self._name,
            start=start,
            end=end,
            location=self._location,
            description=self._description,
            status=self._status,
            zone=zone,
        )


def sort_events_by_start(events: list[Event]) -> list[Event]:
    """Sort events by start time."""
    return sorted(events, key=lambda e: e.start)
