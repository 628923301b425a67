"""A single time-zoned calendar: storage, conflicts, recurrence, search, edit and copy."""

import logging
from datetime import datetime
from enum import Enum
from zoneinfo import ZoneInfo

from . import timeutil
from .errors import (
    ConflictDetected,
    IndexDesync,
    InvalidPropertyValue,
    InvalidRange,
    InvalidRecurrenceCount,
    NoMatchingEvent,
)
from .event import Event, EventBuilder, EventStatus
from .index import EventIndex
from .recurrence import expand_count, expand_until, parse_weekdays

logger = logging.getLogger(__name__)


class Availability(Enum):
    """Result of a status query at one instant."""

    BUSY = "busy"
    AVAILABLE = "available"


# Editable properties and their accepted spellings
_PROPERTIES = {
    "name": "name",
    "eventname": "name",
    "location": "location",
    "description": "description",
    "status": "status",
    "start": "start",
    "startdatetime": "start",
    "end": "end",
    "enddatetime": "end",
}


def _resolve_property(prop: str) -> str:
    try:
        return _PROPERTIES[prop.strip().lower()]
    except (KeyError, AttributeError):
        raise InvalidPropertyValue(f"Invalid property: {prop!r}") from None


class Calendar:
    """
    An ordered collection of non-conflicting events in one time zone.

    Every stored event is also reachable through the calendar's EventIndex;
    all mutations go through methods here so the two stay in sync. Dates
    given as strings are parsed in the calendar's zone.
    """

    def __init__(self, name: str, zone: ZoneInfo | str, listeners: list | None = None):
        self.name = name
        self._zone = timeutil.resolve_zone(zone)
        self._events: list[Event] = []
        self._index = EventIndex()
        self._listeners = list(listeners or [])

        # UI cursor
        today = timeutil.now(self._zone)
        self.current_year = today.year
        self.current_month = today.month
        self.current_day = today.day

    def __repr__(self) -> str:
        return f"Calendar(name={self.name!r}, zone={self._zone.key!r}, events={len(self._events)})"

    def __len__(self) -> int:
        return len(self._events)

    @property
    def zone(self) -> ZoneInfo:
        return self._zone

    @property
    def events(self) -> list[Event]:
        """Stored events in insertion order (a copy of the list)."""
        return list(self._events)

    @property
    def index(self) -> EventIndex:
        return self._index

    def instant(self, value: datetime | str) -> datetime:
        """Parse a date string or wall-clock datetime in this calendar's zone."""
        return timeutil.coerce(value, self._zone)

    def new_event(self, name: str, start: datetime | str) -> EventBuilder:
        """Builder whose dates are interpreted in this calendar's zone."""
        return EventBuilder(name, start, self._zone)

    # ============== Insertion ==============

    def _prepare(self, source: Event) -> Event:
        # Stored events belong to exactly one calendar; the caller keeps its own
        event = source.copy()
        event.start = self.instant(event.start)
        if event.end is None:
            # All-day: the whole local day of the start
            event.end = timeutil.end_of_day(event.start, self._zone)
            event.start = timeutil.start_of_day(event.start, self._zone)
        else:
            event.end = self.instant(event.end)
        if event.end < event.start:
            raise InvalidRange(
                f"Event end ({timeutil.format(event.end, self._zone)}) cannot be before "
                f"start ({timeutil.format(event.start, self._zone)})."
            )
        event.zone = self._zone
        return event

    def _find_conflict(self, event: Event, pending: list[Event] = ()) -> Event | None:
        for existing in self._events:
            if existing.conflicts_with(event):
                return existing
        for existing in pending:
            if existing.conflicts_with(event):
                return existing
        return None

    def _declined(self, event: Event, conflict: Event) -> ConflictDetected:
        logger.warning(
            f"Declined '{event.name}' at {timeutil.format(event.start, self._zone)}: "
            f"conflicts with '{conflict.name}' in calendar '{self.name}'"
        )
        return ConflictDetected(
            f"'{event.name}' at {timeutil.format(event.start, self._zone)} conflicts with "
            f"'{conflict.name}' at {timeutil.format(conflict.start, self._zone)}",
            conflicting=conflict,
        )

    def _store(self, event: Event) -> None:
        self._events.append(event)
        self._index.add(event)

    def add_single(self, event: Event, auto_decline: bool = True) -> Event:
        """
        Insert a copy of one event and return the stored copy.

        The caller's event is never modified or shared. An event without
        an end becomes an all-day event spanning its start's local day.
        Conflicting events are always declined; ``auto_decline`` is
        accepted for callers that pass it.

        Raises:
            InvalidRange: end before start
            ConflictDetected: overlaps a stored event (calendar unchanged)
        """
        stored = self._prepare(event)
        conflict = self._find_conflict(stored)
        if conflict is not None:
            raise self._declined(stored, conflict)
        self._store(stored)
        logger.debug(f"Added '{stored.name}' to calendar '{self.name}'")
        return stored

    def add_all(self, events: list[Event]) -> list[Event]:
        """
        Insert copies of a batch all-or-nothing and return the stored copies.

        Each event is checked against stored events and the earlier events
        of the batch; on the first conflict nothing is stored.
        """
        accepted: list[Event] = []
        for event in events:
            stored = self._prepare(event)
            conflict = self._find_conflict(stored, accepted)
            if conflict is not None:
                raise self._declined(stored, conflict)
            accepted.append(stored)

        for event in accepted:
            self._store(event)
        logger.debug(f"Added {len(accepted)} events to calendar '{self.name}'")
        return accepted

    def _occurrences(self, base: Event, spans: list[tuple[datetime, datetime]]) -> list[Event]:
        return [
            Event(
                name=base.name,
                start=start,
                end=end,
                location=base.location,
                description=base.description,
                status=base.status,
                zone=self._zone,
            )
            for start, end in spans
        ]

    def add_recurring(
        self, base: Event, weekdays: str, count: int, auto_decline: bool = True
    ) -> list[Event]:
        """
        Add ``base`` on the given weekdays for ``count`` weeks.

        Args:
            base: template event; its own weekday is not added unless selected
            weekdays: codes from "MTWRFSU"
            count: number of weeks, at least 1

        Returns:
            The added occurrences (empty when no weekday is selected)
        """
        if count < 1:
            raise InvalidRecurrenceCount(f"Number of weeks must be >= 1, got {count}.")
        start = self.instant(base.start)
        end = self.instant(base.end) if base.end is not None else None
        spans = expand_count(start, end, parse_weekdays(weekdays), count, self._zone)
        return self.add_all(self._occurrences(base, spans))

    def add_recurring_until(
        self, base: Event, weekdays: str, until: datetime | str, auto_decline: bool = True
    ) -> list[Event]:
        """
        Add ``base`` on the given weekdays until ``until``.

        A date-only ``until`` means 23:59 of that day. Occurrence ends past
        ``until`` are clamped to it.
        """
        if isinstance(until, str):
            limit = timeutil.parse_until(until, self._zone)
        else:
            limit = self.instant(until)
        start = self.instant(base.start)
        end = self.instant(base.end) if base.end is not None else None
        spans = expand_until(start, end, parse_weekdays(weekdays), limit, self._zone)
        return self.add_all(self._occurrences(base, spans))

    def remove(self, event: Event) -> None:
        """Remove a stored event (matched by identity)."""
        for i, stored in enumerate(self._events):
            if stored is event:
                del self._events[i]
                self._index.remove(event)
                logger.debug(f"Removed '{event.name}' from calendar '{self.name}'")
                return
        raise NoMatchingEvent(f"Event '{event.name}' is not in calendar '{self.name}'.")

    # ============== Queries ==============

    def find(self, name: str, start: datetime | str) -> Event | None:
        """Exact lookup by (name, start)."""
        return self._index.get(name, self.instant(start))

    def find_by_name(self, name: str) -> list[Event]:
        return self._index.by_name(name)

    def search(self, start: datetime | str, end: datetime | str | None = None) -> list[Event]:
        """
        Events whose span intersects [start, end).

        With only ``start``, searches the day-long window beginning at it.
        """
        lo = self.instant(start)
        hi = self.instant(end) if end is not None else timeutil.shift_days(lo, self._zone, 1)
        return [e for e in self._events if e.overlaps(lo, hi)]

    def search_day(self, point: datetime | str) -> list[Event]:
        return self.search(point)

    def show_status(self, point: datetime | str) -> Availability:
        """BUSY if any event contains the instant (inclusive), else AVAILABLE."""
        instant = self.instant(point)
        if any(e.contains(instant) for e in self._events):
            return Availability.BUSY
        return Availability.AVAILABLE

    def check_consistency(self) -> None:
        """Raise IndexDesync unless events and index reference exactly the same objects."""
        if len(self._index) != len(self._events):
            raise IndexDesync(
                f"Index holds {len(self._index)} events, calendar holds {len(self._events)}"
            )
        stored = {id(e) for e in self._events}
        for event in self._events:
            if event not in self._index:
                raise IndexDesync(f"'{event.name}' missing from start-key index")
            if not any(e is event for e in self._index.by_name(event.name)):
                raise IndexDesync(f"'{event.name}' missing from name index")
        for event in self._index.iter_events():
            if id(event) not in stored:
                raise IndexDesync(f"Start-key index references unknown event '{event.name}'")
        for event in self._index.iter_named():
            if id(event) not in stored:
                raise IndexDesync(f"Name index references unknown event '{event.name}'")

    # ============== Editing ==============

    def _parse_value(self, event: Event, prop: str, value):
        if prop == "name":
            if not isinstance(value, str) or not value.strip():
                raise InvalidPropertyValue("Event name cannot be empty.")
            return value
        if prop == "status":
            return value if isinstance(value, EventStatus) else EventStatus.parse(value)
        if prop == "start":
            new_start = self.instant(value)
            if event.end is not None and new_start > event.end:
                raise InvalidRange("Start date/time cannot be after end date/time.")
            return new_start
        if prop == "end":
            new_end = self.instant(value)
            if new_end < event.start:
                raise InvalidRange("End date/time cannot be before start date/time.")
            return new_end
        return value

    def _apply(self, events: list[Event], prop: str, value) -> list[Event]:
        field = _resolve_property(prop)
        # Validate against every target before touching any
        updates = [(e, self._parse_value(e, field, value)) for e in events]
        for event, new_value in updates:
            old_name, old_start = event.name, event.start
            setattr(event, field, new_value)
            if (old_name.lower(), old_start) != event.key:
                self._index.reindex(event, old_name, old_start)
        logger.debug(f"Edited {field} on {len(updates)} events in calendar '{self.name}'")
        return events

    def edit_event(
        self,
        prop: str,
        name: str,
        start: datetime | str,
        end: datetime | str | None,
        new_value,
    ) -> Event:
        """
        Edit the one event with this (name, start).

        If ``end`` is given it must equal the stored end.
        """
        start_at = self.instant(start)
        end_at = self.instant(end) if end is not None else None
        if end_at is not None and end_at < start_at:
            raise InvalidRange("End date/time cannot be before start date/time.")

        target = self._index.get(name, start_at)
        if target is None:
            raise NoMatchingEvent(
                f"No event named '{name}' starting {timeutil.format(start_at, self._zone)}."
            )
        if end_at is not None and target.end != end_at:
            raise NoMatchingEvent(f"No event named '{name}' with matching end time.")
        self._apply([target], prop, new_value)
        return target

    def edit_events_from(
        self, prop: str, name: str, start_floor: datetime | str, new_value
    ) -> list[Event]:
        """Edit every event with this name starting at or after ``start_floor``."""
        floor = self.instant(start_floor)
        targets = [e for e in self._index.by_name(name) if e.start >= floor]
        if not targets:
            raise NoMatchingEvent(
                f"No events named '{name}' starting from {timeutil.format(floor, self._zone)}."
            )
        return self._apply(targets, prop, new_value)

    def edit_all_events(self, prop: str, name: str, new_value) -> list[Event]:
        """Edit every event with this name."""
        targets = self._index.by_name(name)
        if not targets:
            raise NoMatchingEvent(f"No events named '{name}'.")
        return self._apply(targets, prop, new_value)

    def set_zone(self, zone: ZoneInfo | str) -> None:
        """
        Move the calendar to another zone.

        Stored instants (and therefore durations) are unchanged; only the
        local wall-clock rendering of each event moves by the offset delta.
        """
        new_zone = timeutil.resolve_zone(zone)
        old_zone = self._zone
        self._zone = new_zone
        for event in self._events:
            event.zone = new_zone
        logger.info(f"Calendar '{self.name}' moved from {old_zone.key} to {new_zone.key}")

    # ============== Copying ==============

    def _copy_to(self, source: Event, target: "Calendar", start: datetime, end: datetime) -> Event:
        return Event(
            name=source.name,
            start=start,
            end=end,
            location=source.location,
            description=source.description,
            status=source.status,
            zone=target.zone,
        )

    def _shifted_copies(self, events: list[Event], target: "Calendar", days: int) -> list[Event]:
        return [
            self._copy_to(
                e,
                target,
                timeutil.shift_days(e.start, self._zone, days),
                timeutil.shift_days(e.effective_end, self._zone, days),
            )
            for e in events
        ]

    def copy_event(
        self,
        name: str,
        source_start: datetime | str,
        target: "Calendar",
        target_start: datetime | str,
    ) -> Event:
        """
        Copy one event to ``target`` at a new start, keeping its duration.

        ``target_start`` is interpreted in the target's zone.
        """
        source = self._index.get(name, self.instant(source_start))
        if source is None:
            raise NoMatchingEvent(f"No event named '{name}' at start time {source_start}.")
        start = target.instant(target_start)
        copied = self._copy_to(source, target, start, start + source.duration())
        return target.add_single(copied)

    def copy_events_on_day(
        self, source_day: datetime | str, target: "Calendar", target_day: datetime | str
    ) -> list[Event]:
        """
        Copy every event overlapping a local day of this calendar to another day.

        Each copy keeps its wall-clock time in this calendar's zone, moved by
        the number of days between the two local dates.
        """
        day_start = timeutil.start_of_day(self.instant(source_day), self._zone)
        day_end = timeutil.end_of_day(day_start, self._zone)
        matching = [e for e in self._events if e.overlaps(day_start, day_end)]
        days = timeutil.day_difference(day_start, self._zone, target.instant(target_day), target.zone)
        return target.add_all(self._shifted_copies(matching, target, days))

    def copy_events_between(
        self,
        start: datetime | str,
        end: datetime | str,
        target: "Calendar",
        target_base: datetime | str,
    ) -> list[Event]:
        """Copy events starting within [start, end], anchoring start's local date on target_base's."""
        lo = self.instant(start)
        hi = self.instant(end)
        matching = [e for e in self._events if lo <= e.start <= hi]
        days = timeutil.day_difference(lo, self._zone, target.instant(target_base), target.zone)
        return target.add_all(self._shifted_copies(matching, target, days))

    # ============== Cursor & listeners ==============

    def subscribe(self, listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify_month_changed(self) -> None:
        for listener in list(self._listeners):
            listener.month_changed(self, self.current_year, self.current_month)

    def set_current_month(self, month: int) -> None:
        if not 1 <= month <= 12:
            raise InvalidPropertyValue(f"Month must be 1-12, got {month}")
        self.current_month = month
        self._notify_month_changed()

    def set_current_year(self, year: int) -> None:
        self.current_year = year
        self._notify_month_changed()
