"""Services layer - Layout, recurrence, offline sync and calendar composition"""

from .layout import LayoutItem, Placement, assign_columns, layout_day
from .recurrence import RecurrenceFrequency, Occurrence, expand_entry, expand_occurrences
from .operation_queue import OperationQueue, SyncStatus, DrainResult
from .calendar_view import CalendarComposer, CalendarView, RenderItem
from .gestures import CalendarGestureController, CreateIntent, ContextMenu
from .entry_service import EntryService
from .external_events import ExternalEventStore
from .notifications import SyncNotifier

__all__ = [
    "LayoutItem", "Placement", "assign_columns", "layout_day",
    "RecurrenceFrequency", "Occurrence", "expand_entry", "expand_occurrences",
    "OperationQueue", "SyncStatus", "DrainResult",
    "CalendarComposer", "CalendarView", "RenderItem",
    "CalendarGestureController", "CreateIntent", "ContextMenu",
    "EntryService", "ExternalEventStore", "SyncNotifier",
]
