"""
Tests for the external event overlay store.
"""

from datetime import datetime, timezone

import pytest

from timegrid.domain.models import ExternalEvent
from timegrid.services.external_events import ExternalEventStore

UTC = timezone.utc


def utc(*args):
    return datetime(*args, tzinfo=UTC)


def _event(event_id, source="google", start=None, end=None, **fields):
    return ExternalEvent(
        id=event_id, source=source, source_event_id=event_id,
        start=start or utc(2024, 1, 3, 9), end=end or utc(2024, 1, 3, 10), **fields,
    )


@pytest.fixture
def store(tmp_path):
    return ExternalEventStore(tmp_path / "ical_calendars.json")


class TestEvents:

    def test_source_sync_replaces_only_that_source(self, store):
        store.set_events_for_source("google", [_event("g1"), _event("g2")])
        store.set_events_for_source("outlook", [_event("o1", source="outlook")])
        store.set_events_for_source("google", [_event("g3")])

        assert sorted(e.id for e in store.events) == ["g3", "o1"]
        assert store.last_sync("google") is not None
        assert store.last_sync("ical") is None

    def test_events_changed_signal(self, store):
        calls = []
        store.events_changed.connect(lambda: calls.append(True))
        store.add_events([_event("g1")])
        store.clear_source("google")
        assert len(calls) == 2

    def test_add_events_upserts_by_id(self, store):
        store.add_events([_event("g1", title="Old")])
        store.add_events([_event("g1", title="New")])
        [event] = store.events
        assert event.title == "New"

    def test_range_query_is_half_open(self, store):
        store.add_events([
            _event("before", end=utc(2024, 1, 3, 9)),
            _event("inside"),
            _event("after", start=utc(2024, 1, 3, 10), end=utc(2024, 1, 3, 11)),
        ])
        assert [e.id for e in store.get_in_range(utc(2024, 1, 3, 9), utc(2024, 1, 3, 10))] == ["inside"]

    def test_connection_flags(self, store):
        assert not store.is_connected("google")
        store.set_connected("google", True)
        assert store.is_connected("google")


class TestFeeds:

    def test_feeds_persist(self, store, tmp_path):
        feed = store.add_feed("https://example.com/team.ics", "Team", "#ff0000")

        reloaded = ExternalEventStore(tmp_path / "ical_calendars.json")

        assert [(f.id, f.name, f.color) for f in reloaded.feeds] == [(feed.id, "Team", "#ff0000")]

    def test_same_url_subscribed_once(self, store):
        first = store.add_feed("https://example.com/team.ics", "Team")
        second = store.add_feed("https://example.com/team.ics", "Again")
        assert first.id == second.id
        assert len(store.feeds) == 1

    def test_remove_feed_drops_its_events(self, store):
        feed = store.add_feed("https://example.com/team.ics", "Team")
        store.set_events_for_source("ical", store.tag_feed_events(feed, [_event("i1", source="ical")]))

        assert store.remove_feed(feed.id)
        assert store.events == []
        assert not store.remove_feed(feed.id)

    def test_update_feed(self, store):
        feed = store.add_feed("https://example.com/team.ics", "Team")
        updated = store.update_feed(feed.id, "Crew", "#00ff00")
        assert (updated.name, updated.color) == ("Crew", "#00ff00")
        assert store.update_feed("missing", "x", "#000000") is None

    def test_tagging_stamps_feed_details(self, store):
        feed = store.add_feed("https://example.com/team.ics", "Team", "#123456")
        [event] = store.tag_feed_events(feed, [_event("i1", source="ical")])
        assert (event.calendar_id, event.calendar_name, event.color) == (feed.id, "Team", "#123456")

    def test_damaged_feed_file(self, tmp_path, caplog):
        path = tmp_path / "ical_calendars.json"
        path.write_text("[{]", encoding="utf-8")
        assert ExternalEventStore(path).feeds == []
        assert "Failed to load iCal feeds" in caplog.text
