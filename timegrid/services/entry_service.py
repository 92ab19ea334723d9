"""
Entry Service - create, update, delete and list records with offline fallback.

Architecture Decision: One write path per connectivity state
Online, a mutation goes straight to the remote store and the local cache is
refreshed from the server's answer. Offline (or when the remote call fails) the
mutation is queued and the UI gets immediate feedback from local state:
a placeholder for adds, a patched cache row for updates, a removed cache row
for deletes. The queue replays the mutation later.

Reads merge placeholders with fresh server rows, or with the cache when the
server cannot be reached.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Type

from pydantic_core import to_jsonable_python

from timegrid.domain.models import Client, Project, Tag, TimeEntry, WireModel
from timegrid.infra.api_client import RemoteStoreError
from timegrid.infra.repository import (
    ClientCacheRepository, ProjectCacheRepository, TagCacheRepository, TimeEntryCacheRepository,
)

logger = logging.getLogger(__name__)

OFFLINE_ID_PREFIX = "offline-"

ENTITY_MODELS: Dict[str, Type[WireModel]] = {
    "entry": TimeEntry,
    "project": Project,
    "client": Client,
    "tag": Tag,
}


def wire_changes(model: Type[WireModel], changes: Dict[str, Any]) -> Dict[str, Any]:
    """Partial changes (snake_case or camelCase) in wire form"""
    fields = model.model_fields
    return {
        (fields[key].alias or key) if key in fields else key: value
        for key, value in to_jsonable_python(changes).items()
    }


def is_offline_id(record_id: Optional[str]) -> bool:
    return bool(record_id) and record_id.startswith(OFFLINE_ID_PREFIX)


class EntryService:
    """
    Persistence collaborator for calendar intents and list screens.

    Args:
        queue: OperationQueue for mutations that cannot be sent now
        remote: RemoteStore
        store: OfflineStore holding placeholders
        connectivity: ConnectivityMonitor
        session: Optional AsyncSession for the cache repositories (tests)
        user_id: Owner stamped on new entries
    """

    def __init__(self, queue, remote, store, connectivity, session=None, user_id: Optional[str] = None):
        self.queue = queue
        self.remote = remote
        self.store = store
        self.connectivity = connectivity
        self.user_id = user_id
        self.caches = {
            "entry": TimeEntryCacheRepository(session),
            "project": ProjectCacheRepository(session),
            "client": ClientCacheRepository(session),
            "tag": TagCacheRepository(session),
        }

    # ========== generic operations ==========

    async def add(self, entity: str, record: WireModel) -> WireModel:
        """
        Create a record.

        Returns:
            The server record, or a placeholder (id 'offline-...') when queued
        """
        model = ENTITY_MODELS[entity]
        payload = record.to_wire()
        payload.pop("id", None)
        if entity == "entry" and self.user_id:
            payload.setdefault("userId", self.user_id)

        if self.connectivity.is_online():
            try:
                row = await self.remote.add(entity, payload)
            except RemoteStoreError as e:
                logger.warning("Creating %s failed, queueing for later: %s", entity, e)
            else:
                created = model.model_validate(row)
                await self.caches[entity].upsert(created)
                return created

        queue_id = self.queue.enqueue(entity, "add", payload)
        placeholder = self.store.add_placeholder(entity, payload, queue_id)
        logger.info("Stored offline %s %s", entity, placeholder.id)
        return model.model_validate(placeholder.as_record())

    async def update(self, entity: str, record_id: str, changes: Dict[str, Any]) -> None:
        """Apply partial changes to a record (placeholders are edited in place)"""
        model = ENTITY_MODELS[entity]
        wire = wire_changes(model, changes)

        if is_offline_id(record_id):
            placeholder = self.store.update_placeholder(entity, record_id, wire)
            if placeholder is None:
                raise KeyError(f"Unknown offline {entity}: {record_id}")
            self.queue.amend_add(placeholder.queue_id, wire)
            return

        if self.connectivity.is_online():
            try:
                await self.remote.update(entity, record_id, wire)
            except RemoteStoreError as e:
                logger.warning("Updating %s %s failed, queueing for later: %s", entity, record_id, e)
            else:
                await self.caches[entity].patch(record_id, wire)
                return

        self.queue.enqueue(entity, "update", {"id": record_id, "updates": wire})
        await self.caches[entity].patch(record_id, wire)

    async def delete(self, entity: str, record_id: str) -> None:
        """Delete a record; deleting a placeholder cancels its queued add"""
        if is_offline_id(record_id):
            placeholder = self.store.find_placeholder(entity, record_id)
            if placeholder is not None:
                self.queue.discard(placeholder.queue_id)
                self.store.remove_placeholder(entity, placeholder.queue_id)
            return

        if self.connectivity.is_online():
            try:
                await self.remote.delete(entity, record_id)
            except RemoteStoreError as e:
                logger.warning("Deleting %s %s failed, queueing for later: %s", entity, record_id, e)
            else:
                await self.caches[entity].delete(record_id)
                return

        self.queue.enqueue(entity, "delete", {"id": record_id})
        await self.caches[entity].delete(record_id)

    async def list_records(self, entity: str) -> List[WireModel]:
        """
        Placeholders followed by server rows.

        Server rows replace the cache when the read succeeds; otherwise the
        cached rows are returned.
        """
        model = ENTITY_MODELS[entity]
        placeholders = [model.model_validate(p.as_record()) for p in self.store.get_placeholders(entity)]

        if self.connectivity.is_online():
            try:
                rows = await self.remote.select(entity)
            except RemoteStoreError as e:
                logger.warning("Loading %s list failed, using cache: %s", entity, e)
            else:
                records = [model.model_validate(row) for row in rows]
                await self.caches[entity].replace_all(records)
                return placeholders + records

        return placeholders + await self.caches[entity].get_all()

    # ========== entries ==========

    async def add_entry(self, entry: TimeEntry) -> TimeEntry:
        return await self.add("entry", entry)

    async def update_entry(self, entry_id: str, changes: Dict[str, Any]) -> None:
        await self.update("entry", entry_id, changes)

    async def delete_entry(self, entry_id: str) -> None:
        await self.delete("entry", entry_id)

    async def list_entries(self, start: Optional[datetime] = None,
                           end: Optional[datetime] = None) -> List[TimeEntry]:
        """
        Entries for the calendar.

        With a range, non-recurring entries whose span misses [start, end) are
        left out; recurring entries are always kept for expansion.
        """
        entries = await self.list_records("entry")
        if start is None or end is None:
            return entries
        return [e for e in entries if e.is_recurring or (e.anchor < end and e.end > start) or e.anchor == start]

    async def handle_create_intent(self, intent, **fields) -> TimeEntry:
        """Slot for CalendarGestureController.create_requested"""
        return await self.add_entry(intent.to_entry(**fields))

    # ========== projects, clients, tags ==========

    async def add_project(self, project: Project) -> Project:
        return await self.add("project", project)

    async def update_project(self, project_id: str, changes: Dict[str, Any]) -> None:
        await self.update("project", project_id, changes)

    async def delete_project(self, project_id: str) -> None:
        await self.delete("project", project_id)

    async def list_projects(self) -> List[Project]:
        return await self.list_records("project")

    async def add_client(self, client: Client) -> Client:
        return await self.add("client", client)

    async def update_client(self, client_id: str, changes: Dict[str, Any]) -> None:
        await self.update("client", client_id, changes)

    async def delete_client(self, client_id: str) -> None:
        await self.delete("client", client_id)

    async def list_clients(self) -> List[Client]:
        return await self.list_records("client")

    async def add_tag(self, tag: Tag) -> Tag:
        return await self.add("tag", tag)

    async def delete_tag(self, tag_id: str) -> None:
        await self.delete("tag", tag_id)

    async def list_tags(self) -> List[Tag]:
        return await self.list_records("tag")
