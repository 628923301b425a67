"""Named collection of calendars with a current-calendar selection."""

import logging
from zoneinfo import ZoneInfo

from .config import Config
from .core import timeutil
from .core.calendar import Calendar
from .core.errors import CalendarNotFound, DuplicateCalendarName, InvalidPropertyValue
from .core.event import EventBuilder
from .ports import CalendarListener

logger = logging.getLogger(__name__)


class CalendarManager:
    """
    Owns calendars keyed by case-insensitive name.

    The current calendar, when set, is always one still held here.
    Listeners subscribed to the manager are told about new calendars and
    are forwarded to every calendar for cursor changes.
    """

    def __init__(self, config: Config | None = None):
        self.config = config or Config()
        self._calendars: dict[str, Calendar] = {}
        self._current: Calendar | None = None
        self._listeners: list[CalendarListener] = []

    def __len__(self) -> int:
        return len(self._calendars)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._calendars

    @property
    def current(self) -> Calendar | None:
        return self._current

    def require_current(self) -> Calendar:
        if self._current is None:
            raise CalendarNotFound("No calendar in use.")
        return self._current

    def calendar_names(self) -> list[str]:
        """Display names of all calendars, in creation order."""
        return [c.name for c in self._calendars.values()]

    def create_calendar(self, name: str, zone: ZoneInfo | str) -> Calendar:
        """
        Create a calendar and make it current.

        Raises:
            InvalidPropertyValue: blank name
            DuplicateCalendarName: name already used (case-insensitive)
            InvalidZone: unknown zone identifier
        """
        if not name or not name.strip():
            raise InvalidPropertyValue("Calendar name cannot be empty.")
        key = name.lower()
        if key in self._calendars:
            raise DuplicateCalendarName(f"Calendar with name '{name}' already exists.")

        calendar = Calendar(name, timeutil.resolve_zone(zone), listeners=self._listeners)
        self._calendars[key] = calendar
        self._current = calendar
        logger.info(f"Created calendar '{name}' ({calendar.zone.key})")

        for listener in list(self._listeners):
            listener.calendar_added(calendar)
        return calendar

    def create_default_calendar(self) -> Calendar:
        return self.create_calendar(
            self.config.default_calendar_name, self.config.default_timezone
        )

    def find_calendar(self, name: str) -> Calendar | None:
        return self._calendars.get(name.lower())

    def get_calendar(self, name: str) -> Calendar:
        calendar = self.find_calendar(name)
        if calendar is None:
            raise CalendarNotFound(f"Calendar '{name}' does not exist.")
        return calendar

    def use_calendar(self, name: str) -> Calendar:
        self._current = self.get_calendar(name)
        return self._current

    def remove_calendar(self, name: str) -> bool:
        """Remove a calendar; clears the current selection if it was current."""
        removed = self._calendars.pop(name.lower(), None)
        if removed is None:
            return False
        if removed is self._current:
            self._current = None
        logger.info(f"Removed calendar '{removed.name}'")
        return True

    def edit_calendar(self, prop: str, name: str, value: str) -> Calendar:
        """
        Rename a calendar or change its time zone.

        Args:
            prop: "name" or "timezone"
            name: existing calendar name
            value: new name or zone identifier
        """
        calendar = self.get_calendar(name)
        new_value = (value or "").strip()

        match prop.strip().lower():
            case "name":
                self._rename(calendar, new_value)
            case "timezone" | "zone":
                calendar.set_zone(timeutil.resolve_zone(new_value))
            case _:
                raise InvalidPropertyValue(f"Invalid property: {prop!r}")
        return calendar

    def _rename(self, calendar: Calendar, new_name: str) -> None:
        if not new_name:
            raise InvalidPropertyValue("New name cannot be empty.")
        old_key, new_key = calendar.name.lower(), new_name.lower()
        if new_key != old_key and new_key in self._calendars:
            raise DuplicateCalendarName(f"Calendar with name '{new_name}' already exists.")

        old_name = calendar.name
        del self._calendars[old_key]
        calendar.name = new_name
        self._calendars[new_key] = calendar
        logger.info(f"Renamed calendar '{old_name}' to '{new_name}'")

    def new_event(
        self, name: str, start: str, zone: ZoneInfo | str | None = None
    ) -> EventBuilder:
        """Event builder in ``zone``, else the current calendar's zone, else the configured default."""
        if zone is None:
            zone = self._current.zone if self._current is not None else self.config.default_timezone
        return EventBuilder(name, start, zone)

    def subscribe(self, listener: CalendarListener) -> None:
        if listener in self._listeners:
            return
        self._listeners.append(listener)
        for calendar in self._calendars.values():
            calendar.subscribe(listener)

    def unsubscribe(self, listener: CalendarListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)
        for calendar in self._calendars.values():
            calendar.unsubscribe(listener)
