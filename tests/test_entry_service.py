"""
Tests for EntryService: online writes, offline fallback and list merging.
"""

import asyncio
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from timegrid.domain.models import Client, Project, Tag, TimeEntry
from timegrid.services.entry_service import EntryService, is_offline_id, wire_changes
from timegrid.services.gestures import CreateIntent
from timegrid.services.operation_queue import OperationQueue

UTC = timezone.utc


def utc(*args):
    return datetime(*args, tzinfo=UTC)


@pytest.fixture
def queue(offline_store, remote, connectivity):
    return OperationQueue(offline_store, remote, connectivity, operation_delay=0)


@pytest_asyncio.fixture
async def service(queue, remote, offline_store, connectivity, db_session):
    service = EntryService(queue, remote, offline_store, connectivity, session=db_session, user_id="u1")
    yield service
    await queue.stop()


def _entry(**fields):
    return TimeEntry.from_range(utc(2024, 1, 3, 9), utc(2024, 1, 3, 10, 30), **fields)


def test_wire_changes_uses_aliases():
    changes = wire_changes(TimeEntry, {"project_id": "p1", "startTime": utc(2024, 1, 3, 9), "duration": 60})
    assert changes == {"projectId": "p1", "startTime": "2024-01-03T09:00:00Z", "duration": 60}


def test_is_offline_id():
    assert is_offline_id("offline-1700000000000-abc")
    assert not is_offline_id("srv-1")
    assert not is_offline_id(None)


class TestOnline:

    @pytest.mark.asyncio
    async def test_add_goes_straight_to_server(self, service, remote, connectivity, queue):
        connectivity.set_online(True)
        created = await service.add_entry(_entry(description="Standup"))

        assert created.id == "srv-1"
        assert queue.size == 0
        [call] = remote.calls_of("add")
        payload = call[2]
        assert payload["userId"] == "u1"
        assert payload["duration"] == 5400
        assert "id" not in payload
        cached = await service.caches["entry"].get_by_id("srv-1")
        assert cached.description == "Standup"

    @pytest.mark.asyncio
    async def test_update_patches_cache(self, service, connectivity, remote):
        connectivity.set_online(True)
        created = await service.add_entry(_entry(description="Draft"))

        await service.update_entry(created.id, {"description": "Final"})

        assert remote.calls_of("update") == [("update", "entry", created.id, {"description": "Final"})]
        assert (await service.caches["entry"].get_by_id(created.id)).description == "Final"

    @pytest.mark.asyncio
    async def test_delete_removes_from_cache(self, service, connectivity, remote):
        connectivity.set_online(True)
        created = await service.add_project(Project(name="Website"))
        await service.delete_project(created.id)
        assert remote.calls_of("delete") == [("delete", "project", created.id)]
        assert await service.caches["project"].get_by_id(created.id) is None

    @pytest.mark.asyncio
    async def test_failure_falls_back_to_queue(self, service, remote, connectivity, queue, settle):
        connectivity.set_online(True)
        remote.fail = True

        placeholder = await service.add_client(Client(name="ACME"))

        assert is_offline_id(placeholder.id)
        assert queue.size == 1
        await settle()
        assert queue.size == 1
        assert queue.pending()[0].retries >= 1

    @pytest.mark.asyncio
    async def test_list_replaces_cache_with_server_rows(self, service, remote, connectivity):
        remote.rows["tag"] = [{"id": "t1", "name": "billable"}]
        await service.caches["tag"].upsert(Tag(id="stale", name="old"))
        connectivity.set_online(True)

        tags = await service.list_tags()

        assert [t.id for t in tags] == ["t1"]
        assert [t.id for t in await service.caches["tag"].get_all()] == ["t1"]


class TestOffline:

    @pytest.mark.asyncio
    async def test_add_returns_placeholder_and_syncs_later(self, service, queue, remote, connectivity,
                                                           offline_store, settle):
        placeholder = await service.add_entry(_entry(description="On the train"))

        assert is_offline_id(placeholder.id)
        assert placeholder.description == "On the train"
        assert remote.calls == []
        [listed] = await service.list_entries()
        assert listed.id == placeholder.id

        connectivity.set_online(True)
        await settle()

        assert queue.size == 0
        assert offline_store.get_placeholders("entry") == []
        [call] = remote.calls_of("add")
        assert call[2]["description"] == "On the train"

    @pytest.mark.asyncio
    async def test_update_queues_and_patches_cache(self, service, queue):
        await service.caches["entry"].upsert(_entry(id="e1", description="Old"))

        await service.update_entry("e1", {"description": "New"})

        [operation] = queue.pending()
        assert (operation.type, operation.record_id, operation.changes) == ("update", "e1", {"description": "New"})
        assert (await service.caches["entry"].get_by_id("e1")).description == "New"

    @pytest.mark.asyncio
    async def test_delete_queues_and_hides_record(self, service, queue):
        await service.caches["entry"].upsert(_entry(id="e1"))

        await service.delete_entry("e1")

        assert queue.pending()[0].type == "delete"
        assert await service.list_entries() == []

    @pytest.mark.asyncio
    async def test_editing_placeholder_amends_queued_add(self, service, queue, offline_store):
        placeholder = await service.add_entry(_entry(description="Draft"))

        await service.update_entry(placeholder.id, {"description": "Final"})

        [operation] = queue.pending()
        assert operation.type == "add"
        assert operation.payload["description"] == "Final"
        assert offline_store.get_placeholders("entry")[0].data["description"] == "Final"

    @pytest.mark.asyncio
    async def test_editing_unknown_placeholder_raises(self, service):
        with pytest.raises(KeyError):
            await service.update_entry("offline-missing", {"description": "x"})

    @pytest.mark.asyncio
    async def test_deleting_placeholder_cancels_add(self, service, queue, offline_store, remote):
        placeholder = await service.add_entry(_entry())

        await service.delete_entry(placeholder.id)

        assert queue.size == 0
        assert offline_store.get_placeholders("entry") == []
        assert remote.calls == []

    @pytest.mark.asyncio
    async def test_deleting_placeholder_during_sync(self, service, queue, offline_store, remote, connectivity):
        await service.add_project(Project(name="Website"))
        doomed = await service.add_project(Project(name="Scrapped"))
        deletions = []

        def delete_while_syncing(call):
            if not deletions:
                deletions.append(asyncio.ensure_future(service.delete_project(doomed.id)))

        remote.on_call = delete_while_syncing
        connectivity.blockSignals(True)
        connectivity.set_online(True)
        await queue.drain()
        await asyncio.gather(*deletions)

        assert [c[2]["name"] for c in remote.calls_of("add")] == ["Website"]
        assert offline_store.get_placeholders("project") == []
        assert queue.size == 0

    @pytest.mark.asyncio
    async def test_list_uses_cache(self, service, remote):
        await service.caches["project"].upsert(Project(id="p1", name="Website"))
        projects = await service.list_projects()
        assert [p.name for p in projects] == ["Website"]
        assert remote.calls == []


class TestListEntries:

    @pytest_asyncio.fixture
    async def cached(self, service):
        await service.caches["entry"].upsert(_entry(id="in-range"))
        await service.caches["entry"].upsert(
            TimeEntry.from_range(utc(2024, 2, 1, 9), utc(2024, 2, 1, 10), id="later"))
        await service.caches["entry"].upsert(TimeEntry(
            id="weekly", date=utc(2023, 6, 7, 9), duration=1800,
            is_recurring=True, recurrence_rule="FREQ=WEEKLY",
        ))

    @pytest.mark.asyncio
    async def test_range_keeps_recurring_entries(self, service, cached):
        entries = await service.list_entries(utc(2024, 1, 1), utc(2024, 1, 8))
        assert sorted(e.id for e in entries) == ["in-range", "weekly"]

    @pytest.mark.asyncio
    async def test_no_range_returns_everything(self, service, cached):
        assert len(await service.list_entries()) == 3

    @pytest.mark.asyncio
    async def test_cached_datetimes_are_utc(self, service, cached):
        entry = next(e for e in await service.list_entries() if e.id == "in-range")
        assert entry.anchor == utc(2024, 1, 3, 9)
        assert entry.anchor.tzinfo is not None


@pytest.mark.asyncio
async def test_create_intent_becomes_entry(service, remote, connectivity):
    connectivity.set_online(True)
    intent = CreateIntent(utc(2024, 1, 3, 9), utc(2024, 1, 3, 9, 15), calendar_id="cal-work")

    created = await service.handle_create_intent(intent, description="Quick note")

    assert created.duration == 900
    assert created.calendar_id == "cal-work"
    assert remote.calls_of("add")[0][2]["calendarId"] == "cal-work"
