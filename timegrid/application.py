"""
Application composition root.

Architecture Decision: One explicitly constructed object graph
The operation queue, the offline store and the remote client exist once per
process. They are built here and handed to every collaborator that needs them
instead of living in module-level globals. Tests build the same graph with
fakes injected through the constructor.
"""

import asyncio
import logging
from datetime import date
from typing import Dict, List, Optional, Set

from timegrid.i18n import set_language
from timegrid.infra.api_client import ApiClient
from timegrid.infra.config import Settings, get_settings
from timegrid.infra.connectivity import HttpConnectivityMonitor
from timegrid.infra.db import DatabaseEngine, init_db
from timegrid.infra.offline_store import OfflineStore
from timegrid.services.calendar_view import CalendarComposer, CalendarView, RenderItem, day_bounds, visible_days
from timegrid.services.entry_service import EntryService
from timegrid.services.external_events import ExternalEventStore
from timegrid.services.gestures import CalendarGestureController
from timegrid.services.notifications import SyncNotifier
from timegrid.services.operation_queue import DrainResult, OperationQueue

logger = logging.getLogger(__name__)


class Application:
    """
    Builds and owns the long-lived services.

    Args:
        settings: Defaults to the process-wide settings
        remote: RemoteStore; defaults to an ApiClient for settings.api_url
        connectivity: Defaults to an HttpConnectivityMonitor polling the API
        store: Defaults to an OfflineStore in settings.offline_dir
        session: AsyncSession for the cache (tests); None uses the cache database
    """

    def __init__(self, settings: Optional[Settings] = None, remote=None, connectivity=None,
                 store: Optional[OfflineStore] = None, session=None):
        self.settings = settings or get_settings()
        prefs = self.settings.preferences
        set_language(prefs.language)

        self.session = session
        self.store = store or OfflineStore(self.settings.offline_dir)
        self.remote = remote or ApiClient(
            self.settings.api_url,
            token=self.settings.api_token,
            timeout=self.settings.request_timeout_seconds,
        )
        self.connectivity = connectivity or HttpConnectivityMonitor(
            self.remote, interval_seconds=prefs.connectivity_poll_seconds
        )

        self.queue = OperationQueue(
            self.store, self.remote, self.connectivity,
            max_retries=prefs.sync_max_retries,
            operation_delay=prefs.sync_operation_delay_ms / 1000,
        )
        self.notifier = SyncNotifier(self.queue, self.connectivity)
        self.entries = EntryService(
            self.queue, self.remote, self.store, self.connectivity,
            session=session, user_id=self.settings.user_id,
        )
        self.external_events = ExternalEventStore(self.settings.data_dir / "ical_calendars.json")
        self.composer = CalendarComposer(prefs)
        self.gestures = CalendarGestureController(prefs, tz=self.composer.tz)

        self._tasks: Set[asyncio.Task] = set()
        self.gestures.create_requested.connect(self._on_create_requested)
        self.gestures.delete_requested.connect(self._on_delete_requested)

    # ========== lifecycle ==========

    async def start(self):
        """Open the cache, restore the queue and begin monitoring"""
        if self.session is None:
            await init_db(self.settings.get_db_url())
        self.queue.load()

        if isinstance(self.connectivity, HttpConnectivityMonitor):
            await self.connectivity.probe()
        self.connectivity.start_monitoring()
        self.gestures.start()

        if self.connectivity.is_online():
            await self.queue.drain()
        logger.info("TimeGrid started (%d operations pending)", self.queue.size)

    async def sync_once(self) -> DrainResult:
        """Refresh connectivity and run one drain pass"""
        if isinstance(self.connectivity, HttpConnectivityMonitor):
            await self.connectivity.probe()
        return await self.queue.drain()

    async def shutdown(self):
        self.gestures.teardown()
        self.connectivity.stop_monitoring()
        await self.queue.stop()
        for task in list(self._tasks):
            task.cancel()
        if hasattr(self.remote, "aclose"):
            await self.remote.aclose()
        if self.session is None:
            await DatabaseEngine.reset_instance()
        logger.info("TimeGrid stopped")

    # ========== calendar ==========

    async def compose_view(self, anchor: date, view: Optional[CalendarView] = None,
                           enabled_calendars: Optional[Set[str]] = None,
                           enabled_external_calendars: Optional[Set[str]] = None) -> Dict[date, List[RenderItem]]:
        """Load entries for the visible days and lay them out"""
        view = CalendarView(view or self.settings.preferences.default_view)
        days = visible_days(anchor, view, self.settings.preferences.week_starts_on)
        start, _ = day_bounds(days[0], self.composer.tz)
        _, end = day_bounds(days[-1], self.composer.tz)

        entries = await self.entries.list_entries(start, end)
        self.composer.set_projects(await self.entries.list_projects())
        events = self.external_events.get_in_range(start, end)
        return self.composer.compose(
            anchor, view, entries, events,
            enabled_calendars=enabled_calendars,
            enabled_external_calendars=enabled_external_calendars,
        )

    # ========== intent slots ==========

    def _spawn(self, coro):
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop; intent dropped")
            return None
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _on_create_requested(self, intent):
        self._spawn(self.entries.handle_create_intent(intent))

    def _on_delete_requested(self, entry):
        if entry is not None and entry.id:
            self._spawn(self.entries.delete_entry(entry.id))
