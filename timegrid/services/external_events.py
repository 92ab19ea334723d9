"""
External Event Store - read-only overlay events and subscribed feeds.

Events from Google, Outlook or iCal feeds are held per source and replaced as a
whole when a source re-syncs. They are never modified or written back; the
only thing persisted is the list of subscribed iCal feeds.
"""

import json
import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from PySide6.QtCore import QObject, Signal

from timegrid.domain.models import ExternalEvent, IcalCalendar, utc_now

logger = logging.getLogger(__name__)


class ExternalEventStore(QObject):
    """
    In-memory event cache keyed by source.

    Args:
        feeds_path: JSON file holding subscribed iCal feeds (None keeps them in memory)
    """

    events_changed = Signal()
    feeds_changed = Signal()

    def __init__(self, feeds_path: Optional[Path] = None):
        super().__init__()
        self.feeds_path = Path(feeds_path) if feeds_path else None
        self._events: List[ExternalEvent] = []
        self._last_sync: Dict[str, datetime] = {}
        self._connected: Dict[str, bool] = {}
        self._feeds: List[IcalCalendar] = self._load_feeds()

    # ========== events ==========

    @property
    def events(self) -> List[ExternalEvent]:
        return list(self._events)

    def set_events_for_source(self, source: str, events: Iterable[ExternalEvent],
                              synced_at: Optional[datetime] = None):
        """Replace every event of one source"""
        events = list(events)
        self._events = [e for e in self._events if e.source != source] + events
        self._last_sync[source] = synced_at or utc_now()
        logger.info("Loaded %d %s events", len(events), source)
        self.events_changed.emit()

    def add_events(self, events: Iterable[ExternalEvent]):
        """Upsert by id"""
        by_id = {e.id: e for e in self._events}
        for event in events:
            by_id[event.id] = event
        self._events = list(by_id.values())
        self.events_changed.emit()

    def clear_source(self, source: str):
        self._events = [e for e in self._events if e.source != source]
        self._last_sync.pop(source, None)
        self.events_changed.emit()

    def get_in_range(self, start: datetime, end: datetime) -> List[ExternalEvent]:
        """Events overlapping [start, end)"""
        return [e for e in self._events if e.end > start and e.start < end]

    def last_sync(self, source: str) -> Optional[datetime]:
        return self._last_sync.get(source)

    def set_connected(self, source: str, connected: bool):
        self._connected[source] = connected

    def is_connected(self, source: str) -> bool:
        return self._connected.get(source, False)

    # ========== subscribed iCal feeds ==========

    @property
    def feeds(self) -> List[IcalCalendar]:
        return list(self._feeds)

    def add_feed(self, url: str, name: str, color: str = "#9CA3AF") -> IcalCalendar:
        """Subscribe to a feed; subscribing to a known URL returns the existing feed"""
        for feed in self._feeds:
            if feed.url == url:
                return feed
        feed = IcalCalendar(id=str(uuid.uuid4()), url=url, name=name, color=color)
        self._feeds.append(feed)
        self._save_feeds()
        return feed

    def remove_feed(self, feed_id: str) -> bool:
        kept = [f for f in self._feeds if f.id != feed_id]
        if len(kept) == len(self._feeds):
            return False
        self._feeds = kept
        self._events = [e for e in self._events if e.calendar_id != feed_id]
        self._save_feeds()
        self.events_changed.emit()
        return True

    def update_feed(self, feed_id: str, name: str, color: str) -> Optional[IcalCalendar]:
        for index, feed in enumerate(self._feeds):
            if feed.id == feed_id:
                self._feeds[index] = feed.model_copy(update={"name": name, "color": color})
                self._save_feeds()
                return self._feeds[index]
        return None

    def tag_feed_events(self, feed: IcalCalendar, events: Iterable[ExternalEvent]) -> List[ExternalEvent]:
        """Stamp fetched events with the feed's id, name and color"""
        return [
            e.model_copy(update={"calendar_id": feed.id, "calendar_name": feed.name, "color": feed.color})
            for e in events
        ]

    def _load_feeds(self) -> List[IcalCalendar]:
        if not self.feeds_path or not self.feeds_path.exists():
            return []
        try:
            with open(self.feeds_path, 'r', encoding='utf-8') as f:
                return [IcalCalendar.model_validate(raw) for raw in json.load(f)]
        except (OSError, ValueError) as e:
            logger.error("Failed to load iCal feeds from %s: %s", self.feeds_path, e)
            return []

    def _save_feeds(self):
        self.feeds_changed.emit()
        if not self.feeds_path:
            return
        try:
            self.feeds_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.feeds_path, 'w', encoding='utf-8') as f:
                json.dump([feed.to_wire() for feed in self._feeds], f, indent=2)
        except OSError as e:
            logger.error("Failed to save iCal feeds to %s: %s", self.feeds_path, e)
