"""Secondary indexes over a calendar's events."""

from datetime import datetime

from .event import Event


def _remove_identity(bucket: list[Event], event: Event) -> bool:
    for i, candidate in enumerate(bucket):
        if candidate is event:
            del bucket[i]
            return True
    return False


class EventIndex:
    """
    Two lookup maps over events owned by a Calendar.

    - by start key: (lowercased name, start instant) -> events with that key
    - by name: lowercased name -> events with that name, insertion order

    Events sharing a (name, start) key are kept side by side in one bucket
    rather than overwriting each other; ``get`` returns the earliest one.
    The index holds references only and is kept in sync by the Calendar.
    """

    def __init__(self):
        self._by_start_key: dict[tuple[str, datetime], list[Event]] = {}
        self._by_name: dict[str, list[Event]] = {}

    def add(self, event: Event) -> None:
        self._by_start_key.setdefault(event.key, []).append(event)
        self._by_name.setdefault(event.name.lower(), []).append(event)

    def remove(self, event: Event) -> None:
        self._discard(event, event.key)

    def reindex(self, event: Event, old_name: str, old_start: datetime) -> None:
        """Move an event whose name or start changed from its old key to its current one."""
        self._discard(event, (old_name.lower(), old_start))
        self.add(event)

    def _discard(self, event: Event, key: tuple[str, datetime]) -> None:
        bucket = self._by_start_key.get(key)
        if bucket is not None and _remove_identity(bucket, event) and not bucket:
            del self._by_start_key[key]

        name_key = key[0]
        named = self._by_name.get(name_key)
        if named is not None and _remove_identity(named, event) and not named:
            del self._by_name[name_key]

    def get(self, name: str, start: datetime) -> Event | None:
        """Exact lookup by (name, start); case-insensitive name."""
        bucket = self._by_start_key.get((name.lower(), start))
        return bucket[0] if bucket else None

    def get_all(self, name: str, start: datetime) -> list[Event]:
        return list(self._by_start_key.get((name.lower(), start), []))

    def by_name(self, name: str) -> list[Event]:
        """All events with this name (case-insensitive), insertion order."""
        return list(self._by_name.get(name.lower(), []))

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._by_start_key.values())

    def __contains__(self, event: Event) -> bool:
        return any(e is event for e in self._by_start_key.get(event.key, []))

    def iter_events(self):
        for bucket in self._by_start_key.values():
            yield from bucket

    def iter_named(self):
        for bucket in self._by_name.values():
            yield from bucket
