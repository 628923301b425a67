"""Tests for calendar storage, recurrence, search, edit, re-basing and copy."""

from datetime import datetime, timedelta

import pytest

from almanac.core import timeutil
from almanac.core.calendar import Availability, Calendar
from almanac.core.errors import (
    ConflictDetected,
    IndexDesync,
    InvalidPropertyValue,
    InvalidRange,
    InvalidRecurrenceCount,
    InvalidZone,
    MalformedDateTime,
    NoMatchingEvent,
)
from almanac.core.event import Event, EventStatus


# Fixtures
@pytest.fixture
def work():
    return Calendar("Work", "America/New_York")


@pytest.fixture
def london():
    return Calendar("London", "Europe/London")


@pytest.fixture
def add(work):
    """Add a timed or all-day event to the work calendar."""
    def _add(name: str, start: str, end: str | None = None, calendar: Calendar | None = None) -> Event:
        cal = calendar if calendar is not None else work
        return cal.add_single(cal.new_event(name, start).end(end).build())
    return _add


def local(event_time: datetime, calendar: Calendar) -> str:
    return timeutil.format(event_time, calendar.zone)


def spans(events: list[Event], calendar: Calendar) -> list[tuple[str, str]]:
    return [(local(e.start, calendar), local(e.end, calendar)) for e in events]


class TestAddSingle:
    def test_stores_and_indexes(self, work, add):
        event = add("Standup", "2025-04-07T10:00", "2025-04-07T10:15")
        assert work.events == [event]
        assert work.find("standup", "2025-04-07T10:00") is event
        assert work.find_by_name("Standup") == [event]
        assert event.zone == work.zone
        work.check_consistency()

    def test_conflict_rejected_and_state_unchanged(self, work, add):
        first = add("A", "2025-04-07T10:00", "2025-04-07T11:00")
        with pytest.raises(ConflictDetected) as exc:
            add("B", "2025-04-07T10:30", "2025-04-07T11:30")
        assert exc.value.conflicting is first
        assert work.events == [first]
        assert work.find_by_name("B") == []
        work.check_consistency()

    def test_touching_spans_both_insert(self, work, add):
        add("A", "2025-04-07T09:00", "2025-04-07T10:00")
        add("B", "2025-04-07T10:00", "2025-04-07T11:00")
        assert len(work) == 2

    def test_missing_end_becomes_all_day(self, work, add):
        event = add("Holiday", "2025-04-07")
        assert local(event.start, work) == "2025-04-07T00:00"
        assert timeutil.to_local(event.end, work.zone).replace(tzinfo=None) == datetime(
            2025, 4, 7, 23, 59, 59, 999000
        )

    def test_all_day_truncates_timed_start(self, work, add):
        event = add("Offsite", "2025-04-07T15:00")
        assert local(event.start, work) == "2025-04-07T00:00"
        assert timeutil.is_full_day(event.start, event.end, work.zone)

    def test_all_day_blocks_timed_event_same_day(self, work, add):
        add("Holiday", "2025-04-07")
        with pytest.raises(ConflictDetected):
            add("Meeting", "2025-04-07T10:00", "2025-04-07T11:00")

    def test_end_before_start(self, work):
        start = work.instant("2025-04-07T10:00")
        event = Event("Backwards", start=start, end=start - timedelta(hours=1))
        with pytest.raises(InvalidRange):
            work.add_single(event)
        assert len(work) == 0

    def test_naive_datetimes_are_wall_clock(self, work):
        event = work.add_single(
            Event("Lunch", start=datetime(2025, 4, 7, 12, 0), end=datetime(2025, 4, 7, 13, 0))
        )
        assert local(event.start, work) == "2025-04-07T12:00"
        assert event.start.utcoffset() == timedelta(0)

    def test_remove(self, work, add):
        event = add("Standup", "2025-04-07T10:00", "2025-04-07T10:15")
        work.remove(event)
        assert len(work) == 0
        assert work.find("Standup", "2025-04-07T10:00") is None
        with pytest.raises(NoMatchingEvent):
            work.remove(event)

    def test_stores_a_copy(self, work):
        event = work.new_event("Holiday", "2025-04-07").build()
        start = event.start
        stored = work.add_single(event)
        assert stored is not event
        assert work.events == [stored]
        assert event.end is None
        assert event.start == start

    def test_rejected_event_left_untouched(self, work, add):
        add("Meeting", "2025-04-07T10:00", "2025-04-07T11:00")
        event = work.new_event("Holiday", "2025-04-07T15:00").build()
        start = event.start
        with pytest.raises(ConflictDetected):
            work.add_single(event)
        assert event.end is None
        assert event.start == start

    def test_same_event_into_two_calendars(self, work, london):
        event = work.new_event("Sync", "2025-04-07T10:00").end("2025-04-07T11:00").build()
        in_work = work.add_single(event)
        in_london = london.add_single(event)
        assert in_work is not in_london
        assert in_work.zone == work.zone
        assert in_london.zone == london.zone

        work.edit_all_events("name", "Sync", "Renamed")

        assert in_london.name == "Sync"
        assert london.find_by_name("Sync") == [in_london]
        london.check_consistency()
        work.check_consistency()

    def test_same_name_and_start_both_kept(self, work, add):
        # Zero-length events with the same key do not conflict; both stay reachable
        first = add("Ping", "2025-04-07T10:00", "2025-04-07T10:00")
        second = add("ping", "2025-04-07T10:00", "2025-04-07T10:00")
        assert len(work) == 2
        assert work.find("Ping", "2025-04-07T10:00") is first
        assert work.index.get_all("Ping", first.start) == [first, second]
        work.check_consistency()


class TestRecurrence:
    @pytest.fixture
    def standup(self, work):
        return work.new_event("Standup", "2025-04-07T10:00").end("2025-04-07T11:00").build()

    def test_count_monday_wednesday(self, work, standup):
        added = work.add_recurring(standup, "MW", 2)
        assert spans(added, work) == [
            ("2025-04-07T10:00", "2025-04-07T11:00"),
            ("2025-04-09T10:00", "2025-04-09T11:00"),
            ("2025-04-14T10:00", "2025-04-14T11:00"),
            ("2025-04-16T10:00", "2025-04-16T11:00"),
        ]
        assert work.events == added
        work.check_consistency()

    @pytest.mark.parametrize("count", [0, -1])
    def test_count_must_be_positive(self, work, standup, count):
        with pytest.raises(InvalidRecurrenceCount):
            work.add_recurring(standup, "MW", count)
        assert len(work) == 0

    @pytest.mark.parametrize("weekdays", ["", "XYZ"])
    def test_empty_weekday_set(self, work, standup, weekdays):
        assert work.add_recurring(standup, weekdays, 3) == []
        assert len(work) == 0

    def test_lowercase_and_repeated_codes(self, work, standup):
        assert len(work.add_recurring(standup, "mwm", 1)) == 2

    def test_base_weekday_not_selected(self, work, standup):
        added = work.add_recurring(standup, "F", 2)
        assert [local(e.start, work) for e in added] == ["2025-04-11T10:00", "2025-04-18T10:00"]

    def test_rolls_forward_never_backward(self, work):
        wednesday = work.new_event("Sync", "2025-04-09T10:00").end("2025-04-09T10:30").build()
        added = work.add_recurring(wednesday, "M", 1)
        assert [local(e.start, work) for e in added] == ["2025-04-14T10:00"]

    def test_without_end_each_occurrence_is_all_day(self, work):
        base = work.new_event("Gym", "2025-04-07").build()
        added = work.add_recurring(base, "MW", 1)
        assert [local(e.start, work) for e in added] == ["2025-04-07T00:00", "2025-04-09T00:00"]
        assert all(timeutil.is_full_day(e.start, e.end, work.zone) for e in added)

    def test_wall_clock_kept_across_dst(self, work):
        base = work.new_event("Standup", "2025-03-03T10:00").end("2025-03-03T11:00").build()
        added = work.add_recurring(base, "M", 2)
        assert [local(e.start, work) for e in added] == ["2025-03-03T10:00", "2025-03-10T10:00"]
        assert all(e.duration() == timedelta(hours=1) for e in added)

    def test_occurrences_copy_details(self, work):
        base = (
            work.new_event("Therapy", "2025-04-07T17:00")
            .end("2025-04-07T18:00")
            .location("Clinic")
            .status("private")
            .build()
        )
        added = work.add_recurring(base, "M", 2)
        assert all(e.location == "Clinic" for e in added)
        assert all(e.status is EventStatus.PRIVATE for e in added)
        assert all(e is not base for e in added)

    def test_conflict_is_all_or_nothing(self, work, standup, add):
        blocker = add("Dentist", "2025-04-14T10:30", "2025-04-14T11:30")
        with pytest.raises(ConflictDetected):
            work.add_recurring(standup, "MW", 2)
        assert work.events == [blocker]
        work.check_consistency()

    def test_until_date_is_inclusive(self, work, standup):
        added = work.add_recurring_until(standup, "MW", "2025-04-16")
        assert [local(e.start, work) for e in added] == [
            "2025-04-07T10:00",
            "2025-04-09T10:00",
            "2025-04-14T10:00",
            "2025-04-16T10:00",
        ]

    def test_until_clamps_end(self, work, standup):
        added = work.add_recurring_until(standup, "MW", "2025-04-16T10:30")
        assert len(added) == 4
        assert local(added[-1].end, work) == "2025-04-16T10:30"
        assert local(added[-2].end, work) == "2025-04-14T11:00"

    def test_until_accepts_datetime(self, work, standup):
        added = work.add_recurring_until(standup, "M", datetime(2025, 4, 21, 12, 0))
        assert len(added) == 3

    def test_until_before_base(self, work, standup):
        assert work.add_recurring_until(standup, "MW", "2025-04-01") == []

    def test_until_malformed(self, work, standup):
        with pytest.raises(MalformedDateTime):
            work.add_recurring_until(standup, "MW", "next week")

    def test_until_conflict_is_all_or_nothing(self, work, standup, add):
        add("Dentist", "2025-04-09T10:00", "2025-04-09T10:30")
        with pytest.raises(ConflictDetected):
            work.add_recurring_until(standup, "MW", "2025-04-16")
        assert len(work) == 1


class TestSearchAndStatus:
    def test_range_uses_half_open_overlap(self, work, add):
        morning = add("Morning", "2025-04-07T09:00", "2025-04-07T10:00")
        add("Lunch", "2025-04-07T12:00", "2025-04-07T13:00")
        assert work.search("2025-04-07T09:30", "2025-04-07T12:00") == [morning]

    def test_point_search_covers_one_day(self, work, add):
        a = add("A", "2025-04-07T09:00", "2025-04-07T10:00")
        b = add("B", "2025-04-07T22:00", "2025-04-07T23:00")
        assert work.search("2025-04-07") == [a, b]
        assert work.search_day("2025-04-08") == []

    def test_multi_day_event_found_on_later_day(self, work, add):
        trip = add("Trip", "2025-04-07T09:00", "2025-04-09T18:00")
        assert work.search("2025-04-08") == [trip]

    def test_round_trip(self, work, add):
        event = add("Standup", "2025-04-07T10:00", "2025-04-07T10:15")
        assert event in work.search("2025-04-07T10:05")
        work.remove(event)
        assert work.search("2025-04-07T10:05") == []

    def test_status_inclusive_on_both_ends(self, work, add):
        add("Standup", "2025-04-07T10:00", "2025-04-07T10:15")
        assert work.show_status("2025-04-07T10:00") is Availability.BUSY
        assert work.show_status("2025-04-07T10:15") is Availability.BUSY
        assert work.show_status("2025-04-07T10:16") is Availability.AVAILABLE
        assert work.show_status("2025-04-07T09:59") is Availability.AVAILABLE

    def test_status_malformed(self, work):
        with pytest.raises(MalformedDateTime):
            work.show_status("10am")


class TestEdit:
    @pytest.fixture
    def series(self, work):
        base = work.new_event("Standup", "2025-04-07T10:00").end("2025-04-07T11:00").build()
        return work.add_recurring(base, "MW", 2)

    def test_edit_single_location(self, work, add):
        event = add("Review", "2025-04-07T13:00", "2025-04-07T14:00")
        work.edit_event("location", "review", "2025-04-07T13:00", None, "Room B")
        assert event.location == "Room B"

    def test_edit_single_with_matching_end(self, work, add):
        event = add("Review", "2025-04-07T13:00", "2025-04-07T14:00")
        work.edit_event("description", "Review", "2025-04-07T13:00", "2025-04-07T14:00", "Q2")
        assert event.description == "Q2"

    def test_edit_single_end_mismatch(self, work, add):
        event = add("Review", "2025-04-07T13:00", "2025-04-07T14:00")
        with pytest.raises(NoMatchingEvent):
            work.edit_event("location", "Review", "2025-04-07T13:00", "2025-04-07T15:00", "Room B")
        assert event.location is None

    def test_edit_single_not_found(self, work, add):
        add("Review", "2025-04-07T13:00", "2025-04-07T14:00")
        with pytest.raises(NoMatchingEvent):
            work.edit_event("location", "Review", "2025-04-07T13:30", None, "Room B")

    def test_edit_single_inverted_filter(self, work, add):
        add("Review", "2025-04-07T13:00", "2025-04-07T14:00")
        with pytest.raises(InvalidRange):
            work.edit_event("location", "Review", "2025-04-07T13:00", "2025-04-07T12:00", "X")

    def test_rename_reindexes(self, work, add):
        event = add("Review", "2025-04-07T13:00", "2025-04-07T14:00")
        work.edit_event("name", "Review", "2025-04-07T13:00", None, "Retro")
        assert event.name == "Retro"
        assert work.find("Review", "2025-04-07T13:00") is None
        assert work.find("Retro", "2025-04-07T13:00") is event
        assert work.find_by_name("Review") == []
        work.check_consistency()

    def test_change_start_reindexes(self, work, add):
        event = add("Review", "2025-04-07T13:00", "2025-04-07T14:00")
        work.edit_event("startdatetime", "Review", "2025-04-07T13:00", None, "2025-04-07T12:30")
        assert local(event.start, work) == "2025-04-07T12:30"
        assert work.find("Review", "2025-04-07T13:00") is None
        assert work.find("Review", "2025-04-07T12:30") is event
        work.check_consistency()

    def test_start_after_end_rejected(self, work, add):
        event = add("Review", "2025-04-07T13:00", "2025-04-07T14:00")
        with pytest.raises(InvalidRange):
            work.edit_event("start", "Review", "2025-04-07T13:00", None, "2025-04-07T15:00")
        assert local(event.start, work) == "2025-04-07T13:00"

    def test_end_before_start_rejected(self, work, add):
        add("Review", "2025-04-07T13:00", "2025-04-07T14:00")
        with pytest.raises(InvalidRange):
            work.edit_event("end", "Review", "2025-04-07T13:00", None, "2025-04-07T12:00")

    def test_malformed_date_value(self, work, add):
        add("Review", "2025-04-07T13:00", "2025-04-07T14:00")
        with pytest.raises(MalformedDateTime):
            work.edit_event("end", "Review", "2025-04-07T13:00", None, "2pm")

    def test_status(self, work, add):
        event = add("Review", "2025-04-07T13:00", "2025-04-07T14:00")
        work.edit_event("status", "Review", "2025-04-07T13:00", None, "PRIVATE")
        assert event.status is EventStatus.PRIVATE

    def test_invalid_status(self, work, add):
        add("Review", "2025-04-07T13:00", "2025-04-07T14:00")
        with pytest.raises(InvalidPropertyValue):
            work.edit_event("status", "Review", "2025-04-07T13:00", None, "hidden")

    def test_empty_name(self, work, add):
        add("Review", "2025-04-07T13:00", "2025-04-07T14:00")
        with pytest.raises(InvalidPropertyValue):
            work.edit_event("eventname", "Review", "2025-04-07T13:00", None, "   ")

    def test_unknown_property(self, work, add):
        add("Review", "2025-04-07T13:00", "2025-04-07T14:00")
        with pytest.raises(InvalidPropertyValue):
            work.edit_event("color", "Review", "2025-04-07T13:00", None, "blue")

    def test_edit_from_start_floor(self, work, series):
        changed = work.edit_events_from("location", "standup", "2025-04-14T10:00", "Zoom")
        assert changed == series[2:]
        assert [e.location for e in series] == [None, None, "Zoom", "Zoom"]

    def test_edit_from_none_matched(self, work, series):
        with pytest.raises(NoMatchingEvent):
            work.edit_events_from("location", "Standup", "2025-05-01", "Zoom")

    def test_edit_all_rename(self, work, series):
        work.edit_all_events("name", "Standup", "Daily Sync")
        assert all(e.name == "Daily Sync" for e in series)
        assert work.find_by_name("Standup") == []
        assert work.find_by_name("daily sync") == series
        work.check_consistency()

    def test_edit_all_none_matched(self, work):
        with pytest.raises(NoMatchingEvent):
            work.edit_all_events("location", "Nothing", "Zoom")

    def test_edit_all_validates_every_target_first(self, work, series):
        # Valid for the first occurrence, inverted for the later ones
        with pytest.raises(InvalidRange):
            work.edit_all_events("end", "Standup", "2025-04-10T12:00")
        assert [local(e.end, work)[-5:] for e in series] == ["11:00"] * 4


class TestSetZone:
    def test_preserves_instant_and_duration(self, work, add):
        event = add("Lunch", "2025-04-07T12:00", "2025-04-07T13:00")
        start, end = event.start, event.end

        work.set_zone("Europe/London")

        assert event.start == start
        assert event.end - event.start == end - start
        assert local(event.start, work) == "2025-04-07T17:00"
        assert local(event.end, work) == "2025-04-07T18:00"
        assert event.zone.key == "Europe/London"
        assert work.zone.key == "Europe/London"

    def test_all_day_span_keeps_duration(self, work, add):
        event = add("Holiday", "2025-04-07")
        duration = event.duration()

        work.set_zone("Asia/Kolkata")

        assert event.duration() == duration
        assert local(event.start, work) == "2025-04-07T09:30"

    def test_lookup_still_works(self, work, add):
        event = add("Lunch", "2025-04-07T12:00", "2025-04-07T13:00")
        work.set_zone("Europe/London")
        assert work.find("Lunch", "2025-04-07T17:00") is event
        assert work.show_status("2025-04-07T17:30") is Availability.BUSY
        work.check_consistency()

    def test_invalid_zone(self, work):
        with pytest.raises(InvalidZone):
            work.set_zone("Atlantis/Capital")
        assert work.zone.key == "America/New_York"


class TestCopy:
    def test_copy_event_preserves_duration_across_zones(self, work, london, add):
        source = add("Workshop", "2025-04-07T10:00", "2025-04-07T12:00")
        source.location = "Lab"

        copied = work.copy_event("Workshop", "2025-04-07T10:00", london, "2025-04-08T09:00")

        assert copied is not source
        assert london.events == [copied]
        assert local(copied.start, london) == "2025-04-08T09:00"
        assert copied.end - copied.start == timedelta(hours=2)
        assert copied.location == "Lab"
        assert copied.zone == london.zone
        assert local(source.start, work) == "2025-04-07T10:00"

    def test_copy_event_missing(self, work, london):
        with pytest.raises(NoMatchingEvent):
            work.copy_event("Ghost", "2025-04-07T10:00", london, "2025-04-08T09:00")

    def test_copy_event_conflict_in_target(self, work, london, add):
        add("Workshop", "2025-04-07T10:00", "2025-04-07T12:00")
        add("Busy", "2025-04-08T09:30", "2025-04-08T10:00", calendar=london)
        with pytest.raises(ConflictDetected):
            work.copy_event("Workshop", "2025-04-07T10:00", london, "2025-04-08T09:00")
        assert len(london) == 1

    def test_copy_events_on_day(self, work, london, add):
        add("Standup", "2025-04-07T10:00", "2025-04-07T11:00")
        add("Review", "2025-04-07T14:00", "2025-04-07T15:00")
        add("Tomorrow", "2025-04-08T10:00", "2025-04-08T11:00")

        copied = work.copy_events_on_day("2025-04-07", london, "2025-04-10")

        assert [e.name for e in copied] == ["Standup", "Review"]
        assert spans(copied, london) == [
            ("2025-04-10T15:00", "2025-04-10T16:00"),
            ("2025-04-10T19:00", "2025-04-10T20:00"),
        ]
        assert all(e.zone == london.zone for e in copied)

    def test_copy_events_on_day_same_zone_keeps_wall_clock(self, work, add):
        home = Calendar("Home", "America/New_York")
        add("Standup", "2025-03-07T09:00", "2025-03-07T09:30")
        copied = work.copy_events_on_day("2025-03-07", home, "2025-03-10")
        # Crosses the spring-forward weekend; wall-clock time is kept
        assert spans(copied, home) == [("2025-03-10T09:00", "2025-03-10T09:30")]

    def test_copy_events_between(self, work, add):
        home = Calendar("Home", "America/New_York")
        add("A", "2025-04-07T10:00", "2025-04-07T11:00")
        add("B", "2025-04-08T10:00", "2025-04-08T11:00")
        add("C", "2025-04-09T10:00", "2025-04-09T11:00")

        copied = work.copy_events_between("2025-04-07", "2025-04-08T10:00", home, "2025-04-21")

        assert [e.name for e in copied] == ["A", "B"]
        assert [local(e.start, home) for e in copied] == ["2025-04-21T10:00", "2025-04-22T10:00"]

    def test_multi_copy_is_all_or_nothing(self, work, london, add):
        add("Standup", "2025-04-07T10:00", "2025-04-07T11:00")
        add("Review", "2025-04-07T14:00", "2025-04-07T15:00")
        blocker = add("Busy", "2025-04-10T19:30", "2025-04-10T20:30", calendar=london)

        with pytest.raises(ConflictDetected):
            work.copy_events_on_day("2025-04-07", london, "2025-04-10")
        assert london.events == [blocker]
        london.check_consistency()


class TestIndexConsistency:
    def test_after_mixed_operations(self, work, add):
        base = work.new_event("Standup", "2025-04-07T10:00").end("2025-04-07T10:15").build()
        series = work.add_recurring(base, "MTWRF", 2)
        review = add("Review", "2025-04-07T13:00", "2025-04-07T14:00")
        work.edit_all_events("name", "Standup", "Sync")
        work.edit_events_from("location", "Sync", "2025-04-14T10:00", "Zoom")
        work.edit_event("start", "Sync", "2025-04-15T10:00", None, "2025-04-15T09:30")
        work.remove(series[3])
        work.edit_event("name", "Review", "2025-04-07T13:00", None, "Retro")
        work.set_zone("Europe/Berlin")

        work.check_consistency()
        for event in work.events:
            assert event in work.index.get_all(event.name, event.start)
            assert any(e is event for e in work.index.by_name(event.name))
        assert series[3] not in work.index
        assert work.find("Retro", review.start) is review

    def test_detects_stray_index_entry(self, work, add):
        add("Standup", "2025-04-07T10:00", "2025-04-07T10:15")
        work.index.add(work.new_event("Ghost", "2025-04-08T10:00").build())
        with pytest.raises(IndexDesync):
            work.check_consistency()


class _Recorder:
    def __init__(self):
        self.months = []
        self.added = []

    def month_changed(self, calendar, year, month):
        self.months.append((calendar.name, year, month))

    def calendar_added(self, calendar):
        self.added.append(calendar.name)


class TestCursor:
    def test_starts_at_today(self, work):
        today = timeutil.now(work.zone)
        assert (work.current_year, work.current_month) == (today.year, today.month)
        assert 1 <= work.current_day <= 31

    def test_month_change_notifies(self, work):
        recorder = _Recorder()
        month = work.current_month
        work.subscribe(recorder)
        work.set_current_year(2030)
        work.set_current_month(2)
        assert recorder.months == [("Work", 2030, month), ("Work", 2030, 2)]

    def test_subscribe_twice_notifies_once(self, work):
        recorder = _Recorder()
        work.subscribe(recorder)
        work.subscribe(recorder)
        work.set_current_month(3)
        assert len(recorder.months) == 1

    def test_invalid_month(self, work):
        with pytest.raises(InvalidPropertyValue):
            work.set_current_month(13)

    def test_unsubscribe(self, work):
        recorder = _Recorder()
        work.subscribe(recorder)
        work.unsubscribe(recorder)
        work.set_current_month(5)
        assert recorder.months == []
