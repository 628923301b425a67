"""Calendar notification interface."""

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from almanac.core.calendar import Calendar


class CalendarListener(Protocol):
    """Interface for anything that wants to follow calendar cursor and directory changes."""

    def month_changed(self, calendar: "Calendar", year: int, month: int) -> None:
        """Called when a calendar's current month or year changes."""
        ...

    def calendar_added(self, calendar: "Calendar") -> None:
        """Called when a calendar is created in a manager."""
        ...
