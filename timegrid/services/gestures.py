"""
Calendar gesture handling - pointer input to create/edit/delete intents.

Architecture Decision: Observer Pattern (Qt Signals)
The controller only translates gestures into intents and emits them. Whoever
owns persistence (EntryService) connects to the signals and performs the
mutation; the controller never touches entries itself.

It also owns the per-minute QTimer that drives the current-time indicator,
which must be stopped with teardown() when the grid goes away.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, tzinfo
from typing import Callable, List, Literal, Optional

from PySide6.QtCore import QObject, QTimer, Signal

from timegrid.domain.models import TimeEntry, UserPreferences, utc_now
from timegrid.i18n import tr
from timegrid.services.calendar_view import GridTime, grid_instant, pixel_to_time, resolve_timezone

logger = logging.getLogger(__name__)

ACTION_EDIT = "edit"
ACTION_DELETE = "delete"
ACTION_CREATE_QUICK = "create_quick"


@dataclass(frozen=True)
class CreateIntent:
    """Request to create an entry over [start, end)"""
    start: datetime
    end: datetime
    calendar_id: Optional[str] = None

    @property
    def duration(self) -> int:
        return int((self.end - self.start).total_seconds())

    def to_entry(self, **fields) -> TimeEntry:
        """Unsaved TimeEntry for this range"""
        fields.setdefault("calendar_id", self.calendar_id)
        return TimeEntry.from_range(self.start, self.end, **fields)


@dataclass(frozen=True)
class ContextMenu:
    """An open action menu: on an existing entry or on empty grid space"""
    target: Literal["item", "grid"]
    actions: List[str] = field(default_factory=list)
    entry: Optional[TimeEntry] = None
    anchor: Optional[datetime] = None
    quick_create_minutes: int = 30

    def label(self, action: str) -> str:
        if action == ACTION_CREATE_QUICK:
            return tr("menu.create_quick", minutes=self.quick_create_minutes)
        return tr(f"menu.{action}")


@dataclass
class _Drag:
    day: date
    start: datetime
    end: datetime


class CalendarGestureController(QObject):
    """
    Gesture state machine of the calendar grid.

    Args:
        preferences: Snap size, quick-create length, grid scale and refresh cadence
        tz: Zone of the displayed days
        default_calendar_id: Calendar assigned to newly created entries
        clock: Source of the current time (tests pass a fixed clock)
    """

    create_requested = Signal(object)  # CreateIntent
    edit_requested = Signal(object)  # TimeEntry
    delete_requested = Signal(object)  # TimeEntry
    menu_opened = Signal(object)  # ContextMenu
    drag_changed = Signal(object)  # (start, end) tuple or None
    now_changed = Signal(object)  # datetime

    def __init__(self, preferences: Optional[UserPreferences] = None, tz: Optional[tzinfo] = None,
                 default_calendar_id: Optional[str] = None,
                 clock: Callable[[], datetime] = utc_now):
        super().__init__()
        self.preferences = preferences or UserPreferences()
        self.tz = tz or resolve_timezone(self.preferences.timezone)
        self.default_calendar_id = default_calendar_id
        self.clock = clock

        self._drag: Optional[_Drag] = None
        self._menu: Optional[ContextMenu] = None

        self.timer = QTimer()
        self.timer.setInterval(self.preferences.now_refresh_seconds * 1000)
        self.timer.timeout.connect(self._on_tick)

    # ========== now indicator ==========

    def start(self):
        """Emit the current time now and then on every refresh interval"""
        self._on_tick()
        if not self.timer.isActive():
            self.timer.start()

    def teardown(self):
        self.timer.stop()
        self._drag = None
        self._menu = None

    def _on_tick(self):
        self.now_changed.emit(self.clock())

    # ========== drag to create ==========

    @property
    def is_dragging(self) -> bool:
        return self._drag is not None

    @property
    def open_menu(self) -> Optional[ContextMenu]:
        return self._menu

    def _time_at(self, day: date, pixel: float) -> datetime:
        grid_time = pixel_to_time(pixel, self.preferences.pixels_per_hour, self.preferences.snap_minutes)
        return grid_instant(day, grid_time, self.tz)

    def pointer_down(self, day: date, pixel: float):
        """Begin a drag on empty grid space with a one-snap tentative block"""
        self._menu = None
        start = self._time_at(day, pixel)
        end_of_day = grid_instant(day, GridTime(24, 0), self.tz)
        end = min(start + timedelta(minutes=self.preferences.snap_minutes), end_of_day)
        self._drag = _Drag(day=day, start=start, end=end)
        self.drag_changed.emit((start, end))

    def pointer_move(self, day: date, pixel: float):
        """Extend the tentative end; positions at or before the start are ignored"""
        if self._drag is None:
            return
        end = self._time_at(day, pixel)
        if end > self._drag.start:
            self._drag.end = end
            self.drag_changed.emit((self._drag.start, end))

    def pointer_up(self) -> Optional[CreateIntent]:
        """
        Finish the drag.

        Returns:
            The emitted CreateIntent, or None when the span is shorter than
            one snap increment (cancelled gesture)
        """
        drag, self._drag = self._drag, None
        self.drag_changed.emit(None)
        if drag is None:
            return None

        if drag.end - drag.start < timedelta(minutes=self.preferences.snap_minutes):
            logger.debug("Drag shorter than %d minutes ignored", self.preferences.snap_minutes)
            return None

        intent = CreateIntent(start=drag.start, end=drag.end, calendar_id=self.default_calendar_id)
        self.create_requested.emit(intent)
        return intent

    def cancel(self):
        """Drop an in-progress drag (pointer went down on a control)"""
        if self._drag is not None:
            self._drag = None
            self.drag_changed.emit(None)

    # ========== context menus ==========

    def context_menu_on_item(self, entry: TimeEntry) -> ContextMenu:
        self.cancel()
        self._menu = ContextMenu(target="item", actions=[ACTION_EDIT, ACTION_DELETE], entry=entry)
        self.menu_opened.emit(self._menu)
        return self._menu

    def context_menu_on_grid(self, day: date, pixel: float) -> ContextMenu:
        self.cancel()
        self._menu = ContextMenu(
            target="grid",
            actions=[ACTION_CREATE_QUICK],
            anchor=self._time_at(day, pixel),
            quick_create_minutes=self.preferences.quick_create_minutes,
        )
        self.menu_opened.emit(self._menu)
        return self._menu

    def close_menu(self):
        self._menu = None

    def choose_action(self, action: str) -> bool:
        """
        Run an action of the open menu and close it.

        Returns:
            False when no menu is open

        Raises:
            ValueError: The action is not offered by the open menu
        """
        menu = self._menu
        if menu is None:
            return False
        if action not in menu.actions:
            raise ValueError(f"Action {action!r} is not available in this menu")
        self._menu = None

        if action == ACTION_EDIT:
            self.edit_requested.emit(menu.entry)
        elif action == ACTION_DELETE:
            self.delete_requested.emit(menu.entry)
        else:
            start = menu.anchor
            end = start + timedelta(minutes=menu.quick_create_minutes)
            self.create_requested.emit(CreateIntent(start=start, end=end, calendar_id=self.default_calendar_id))
        return True
