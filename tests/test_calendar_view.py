"""
Tests for calendar view composition.
"""

from datetime import date, datetime, timezone

import pytest

from timegrid.domain.models import Calendar, ExternalEvent, Project, TimeEntry, UserPreferences
from timegrid.services.calendar_view import (
    CalendarComposer, CalendarView, GridTime, all_day_events, filter_entries, filter_external,
    grid_instant, now_indicator, pixel_to_time, split_by_day, visible_days,
)

UTC = timezone.utc


def utc(*args):
    return datetime(*args, tzinfo=UTC)


def _event(event_id, start, end, calendar_id=None, **fields):
    return ExternalEvent(
        id=event_id, source="ical", source_event_id=event_id,
        calendar_id=calendar_id, title=event_id, start=start, end=end, **fields,
    )


@pytest.fixture
def composer():
    return CalendarComposer(UserPreferences(), tz=UTC)


class TestVisibleDays:

    def test_week_starts_on_sunday(self):
        days = visible_days(date(2024, 1, 3), CalendarView.WEEK)
        assert days[0] == date(2023, 12, 31)
        assert days[-1] == date(2024, 1, 6)
        assert len(days) == 7

    def test_workweek_drops_weekend(self):
        days = visible_days(date(2024, 1, 3), CalendarView.WORKWEEK)
        assert days == [date(2024, 1, d) for d in range(1, 6)]

    def test_day_view(self):
        assert visible_days(date(2024, 1, 3), "day") == [date(2024, 1, 3)]

    def test_monday_start(self):
        days = visible_days(date(2024, 1, 7), CalendarView.WEEK, week_starts_on=1)
        assert (days[0], days[-1]) == (date(2024, 1, 1), date(2024, 1, 7))


class TestFiltering:

    def test_entries_without_calendar_always_shown(self):
        entries = [
            TimeEntry(id="free", date=utc(2024, 1, 3)),
            TimeEntry(id="work", date=utc(2024, 1, 3), calendar_id="cal-work"),
            TimeEntry(id="home", date=utc(2024, 1, 3), calendar_id="cal-home"),
        ]
        shown = filter_entries(entries, {"cal-work"})
        assert [e.id for e in shown] == ["free", "work"]

    def test_no_selection_shows_everything(self):
        entries = [TimeEntry(id="home", date=utc(2024, 1, 3), calendar_id="cal-home")]
        assert filter_entries(entries, None) == entries

    def test_empty_selection_hides_calendar_entries(self):
        entries = [TimeEntry(id="home", date=utc(2024, 1, 3), calendar_id="cal-home")]
        assert filter_entries(entries, set()) == []

    def test_external_selection_is_independent(self):
        events = [
            _event("a", utc(2024, 1, 3, 9), utc(2024, 1, 3, 10), calendar_id="feed-1"),
            _event("b", utc(2024, 1, 3, 9), utc(2024, 1, 3, 10), calendar_id="feed-2"),
        ]
        assert [e.id for e in filter_external(events, {"feed-2"})] == ["b"]


class TestDaySplitting:

    def test_range_crossing_midnight(self):
        days = [date(2024, 1, 3), date(2024, 1, 4)]
        segments = split_by_day(utc(2024, 1, 3, 22), utc(2024, 1, 4, 2), days, UTC)
        assert [(s.day, s.start_minute, s.end_minute) for s in segments] == [
            (date(2024, 1, 3), 1320, 1440),
            (date(2024, 1, 4), 0, 120),
        ]

    def test_range_inside_one_day(self):
        [segment] = split_by_day(utc(2024, 1, 3, 9), utc(2024, 1, 3, 10, 30), [date(2024, 1, 3)], UTC)
        assert (segment.start_minute, segment.end_minute) == (540, 630)

    def test_range_outside_days(self):
        assert split_by_day(utc(2024, 1, 5, 9), utc(2024, 1, 5, 10), [date(2024, 1, 3)], UTC) == []


class TestGridHelpers:

    @pytest.mark.parametrize("pixel,expected", [
        (0, (0, 0)),
        (40, (0, 30)),
        (80, (1, 0)),
        (100, (1, 15)),
        (720, (9, 0)),
        (1919, (24, 0)),
        (5000, (24, 0)),
        (-20, (0, 0)),
    ])
    def test_pixel_to_time(self, pixel, expected):
        assert pixel_to_time(pixel) == expected

    def test_midnight_of_next_day(self):
        assert grid_instant(date(2024, 1, 3), GridTime(24, 0), UTC) == utc(2024, 1, 4)

    def test_now_indicator(self):
        assert now_indicator(utc(2024, 1, 3, 12), date(2024, 1, 3), UTC) == pytest.approx(50.0)
        assert now_indicator(utc(2024, 1, 3, 12), date(2024, 1, 4), UTC) is None

    def test_all_day_events(self):
        events = [
            _event("holiday", utc(2024, 1, 3), utc(2024, 1, 4), all_day=True),
            _event("meeting", utc(2024, 1, 3, 9), utc(2024, 1, 3, 10)),
        ]
        assert [e.id for e in all_day_events(events, date(2024, 1, 3), UTC)] == ["holiday"]


class TestCompose:

    def test_single_entry_end_to_end(self, composer):
        entry = TimeEntry.from_range(utc(2024, 1, 3, 9), utc(2024, 1, 3, 10, 30), id="e1", is_recurring=False)
        assert entry.duration == 5400

        days = composer.compose(date(2024, 1, 3), CalendarView.WEEK, [entry])

        assert len(days) == 7
        [item] = days[date(2024, 1, 3)]
        assert (item.col, item.cols) == (0, 1)
        assert item.top_percent == pytest.approx(540 / 1440 * 100)
        assert item.height_percent == pytest.approx(90 / 1440 * 100)
        assert item.source is entry
        assert not item.is_occurrence
        assert sum(len(items) for items in days.values()) == 1

    def test_local_sorted_before_external_on_equal_start(self, composer):
        entry = TimeEntry.from_range(utc(2024, 1, 3, 9), utc(2024, 1, 3, 10), id="e1")
        event = _event("ext", utc(2024, 1, 3, 9), utc(2024, 1, 3, 9, 30))

        items = composer.compose(date(2024, 1, 3), CalendarView.DAY, [entry], [event])[date(2024, 1, 3)]

        assert [i.kind for i in items] == ["local", "external"]
        assert {i.cols for i in items} == {2}
        assert sorted(i.col for i in items) == [0, 1]

    def test_midnight_crossing_entry_keeps_labels(self, composer):
        entry = TimeEntry.from_range(utc(2024, 1, 3, 22), utc(2024, 1, 4, 2), id="late")
        days = composer.compose(date(2024, 1, 3), CalendarView.WEEK, [entry])

        [first] = days[date(2024, 1, 3)]
        [second] = days[date(2024, 1, 4)]
        assert (first.start_minute, first.end_minute) == (1320, 1440)
        assert (second.start_minute, second.end_minute) == (0, 120)
        assert first.label_start == second.label_start == utc(2024, 1, 3, 22)
        assert first.label_end == second.label_end == utc(2024, 1, 4, 2)

    def test_recurring_entry_expanded_into_later_week(self, composer):
        entry = TimeEntry(
            id="weekly", date=utc(2024, 1, 3, 9), start_time=utc(2024, 1, 3, 9), duration=1800,
            is_recurring=True, recurrence_rule="FREQ=WEEKLY",
        )
        days = composer.compose(date(2024, 1, 10), CalendarView.WEEK, [entry])

        [item] = days[date(2024, 1, 10)]
        assert item.is_occurrence
        assert item.label_start == utc(2024, 1, 10, 9)
        assert (item.start_minute, item.end_minute) == (540, 570)

    def test_disabled_calendars_are_hidden(self, composer):
        entries = [
            TimeEntry.from_range(utc(2024, 1, 3, 9), utc(2024, 1, 3, 10), id="work", calendar_id="cal-work"),
            TimeEntry.from_range(utc(2024, 1, 3, 9), utc(2024, 1, 3, 10), id="home", calendar_id="cal-home"),
        ]
        events = [
            _event("feed", utc(2024, 1, 3, 11), utc(2024, 1, 3, 12), calendar_id="feed-1"),
            _event("allday", utc(2024, 1, 3), utc(2024, 1, 4), all_day=True),
        ]
        items = composer.compose(
            date(2024, 1, 3), CalendarView.DAY, entries, events,
            enabled_calendars={"cal-work"}, enabled_external_calendars=set(),
        )[date(2024, 1, 3)]

        assert [i.source.id for i in items] == ["work"]
        assert items[0].cols == 1

    def test_zero_length_entry_still_rendered(self, composer):
        entry = TimeEntry(id="blip", date=utc(2024, 1, 3, 9), duration=0)
        [item] = composer.compose(date(2024, 1, 3), CalendarView.DAY, [entry])[date(2024, 1, 3)]
        assert item.height_px == 16
        assert item.end_minute > item.start_minute

    def test_naive_wire_times_read_as_utc(self, composer):
        entry = TimeEntry.model_validate({"id": "e1", "date": "2024-01-03T09:00:00", "duration": 3600})
        event = ExternalEvent.model_validate({
            "id": "g1", "source": "google", "sourceEventId": "g1",
            "start": "2024-01-03T11:00:00", "end": "2024-01-03T11:30:00",
        })
        assert entry.date.tzinfo is not None

        items = composer.compose(date(2024, 1, 3), CalendarView.DAY, [entry], [event])[date(2024, 1, 3)]

        assert [(i.kind, i.start_minute, i.end_minute) for i in items] == [
            ("local", 540, 600), ("external", 660, 690),
        ]

    def test_naive_recurring_entry_expands(self, composer):
        entry = TimeEntry(
            id="weekly", date=datetime(2024, 1, 3, 9), duration=1800,
            is_recurring=True, recurrence_rule="FREQ=WEEKLY",
        )
        [item] = composer.compose(date(2024, 1, 10), CalendarView.DAY, [entry])[date(2024, 1, 10)]
        assert item.label_start == utc(2024, 1, 10, 9)

    def test_colors(self):
        composer = CalendarComposer(
            UserPreferences(), tz=UTC,
            calendars=[Calendar(id="cal-work", name="Work", color="#ff0000")],
            projects=[Project(id="p1", name="Website", color="#00ff00")],
        )
        entries = [
            TimeEntry.from_range(utc(2024, 1, 3, 9), utc(2024, 1, 3, 10), id="a",
                                 calendar_id="cal-work", project_id="p1"),
            TimeEntry.from_range(utc(2024, 1, 3, 11), utc(2024, 1, 3, 12), id="b", project_id="p1"),
            TimeEntry.from_range(utc(2024, 1, 3, 13), utc(2024, 1, 3, 14), id="c"),
        ]
        items = composer.compose(date(2024, 1, 3), CalendarView.DAY, entries)[date(2024, 1, 3)]
        assert [i.color for i in items] == ["#ff0000", "#00ff00", "#888888"]
        assert items[1].title == "Website"
