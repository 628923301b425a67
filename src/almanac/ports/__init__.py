"""Ports - interfaces/protocols for collaborators of the core."""

from .listeners import CalendarListener

__all__ = [
    "CalendarListener",
]
