"""
Calendar View Composition - turns entries and external events into per-day render items.

Architecture Decision: Pipeline of pure steps
compose() runs recurrence expansion, calendar filtering, day splitting, the
local/external merge and the overlap layout in that order. Each step is a
module-level function so the grid widget, the tests and the scripts can reuse
them on their own.

Time model: positions inside a day are wall-clock minutes in the view's
timezone; durations are elapsed time.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any, Dict, Iterable, List, Literal, NamedTuple, Optional, Sequence, Set
from zoneinfo import ZoneInfo

from timegrid.domain.models import Calendar, ExternalEvent, Project, TimeEntry, UserPreferences
from timegrid.services.layout import (
    MINUTES_PER_DAY, LayoutItem, layout_day, validate_layout_items,
)
from timegrid.services.recurrence import expand_entry

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_COLOR = "#888888"
DEFAULT_EXTERNAL_COLOR = "#3b82f6"

# Zero-length items still get a sliver so they render at the minimum height
MIN_SPAN_MINUTES = 0.25


class CalendarView(str, enum.Enum):
    DAY = "day"
    WORKWEEK = "workweek"
    WEEK = "week"


def resolve_timezone(name: Optional[str] = None) -> tzinfo:
    """IANA zone by name, or the system local zone when name is None"""
    if name:
        return ZoneInfo(name)
    return datetime.now().astimezone().tzinfo


def week_start(day: date, week_starts_on: int = 0) -> date:
    """First day of the week containing `day` (week_starts_on: 0=Sunday ... 6=Saturday)"""
    sunday_based = (day.weekday() + 1) % 7
    return day - timedelta(days=(sunday_based - week_starts_on) % 7)


def visible_days(anchor: date, view: CalendarView, week_starts_on: int = 0) -> List[date]:
    """
    Days shown by a view.

    Args:
        anchor: Any day inside the period to show
        view: DAY shows the anchor only; WEEK the whole week; WORKWEEK drops Saturday and Sunday
        week_starts_on: 0=Sunday ... 6=Saturday
    """
    view = CalendarView(view)
    if view is CalendarView.DAY:
        return [anchor]
    first = week_start(anchor, week_starts_on)
    days = [first + timedelta(days=i) for i in range(7)]
    if view is CalendarView.WORKWEEK:
        days = [d for d in days if d.weekday() < 5]
    return days


def day_bounds(day: date, tz: tzinfo):
    """[00:00, 24:00) of a day in the given zone"""
    return (
        datetime.combine(day, time(0), tzinfo=tz),
        datetime.combine(day + timedelta(days=1), time(0), tzinfo=tz),
    )


def _is_visible(calendar_id: Optional[str], enabled: Optional[Set[str]]) -> bool:
    if enabled is None or not calendar_id:
        return True
    return calendar_id in enabled


def filter_entries(entries: Iterable[TimeEntry], enabled_calendars: Optional[Set[str]]) -> List[TimeEntry]:
    """
    Keep entries without a calendar and entries whose calendar is enabled.

    `None` means no selection has been made yet: everything is shown.
    """
    return [e for e in entries if _is_visible(e.calendar_id, enabled_calendars)]


def filter_external(events: Iterable[ExternalEvent],
                    enabled_external_calendars: Optional[Set[str]]) -> List[ExternalEvent]:
    """Same rule as filter_entries(), against the subscribed-calendar selection"""
    return [ev for ev in events if _is_visible(ev.calendar_id, enabled_external_calendars)]


@dataclass(frozen=True)
class DaySegment:
    """Part of an instant range that falls on one displayed day"""
    day: date
    start_minute: float
    end_minute: float


def _wall_minutes(value: datetime, tz: tzinfo) -> float:
    local = value.astimezone(tz)
    return local.hour * 60 + local.minute + local.second / 60


def split_by_day(start: datetime, end: datetime, days: Sequence[date], tz: tzinfo) -> List[DaySegment]:
    """
    Clip [start, end) to each day's [00:00, 24:00) window.

    A zero-length range yields one zero-length segment on the day containing it.
    """
    segments = []
    for day in days:
        day_start, day_end = day_bounds(day, tz)
        if start == end:
            if day_start <= start < day_end:
                minute = _wall_minutes(start, tz)
                segments.append(DaySegment(day, minute, minute))
            continue
        if end <= day_start or start >= day_end:
            continue
        start_minute = 0.0 if start <= day_start else _wall_minutes(start, tz)
        end_minute = float(MINUTES_PER_DAY) if end >= day_end else _wall_minutes(end, tz)
        segments.append(DaySegment(day, start_minute, end_minute))
    return segments


def now_indicator(now: datetime, day: date, tz: tzinfo) -> Optional[float]:
    """Top offset in percent of the current-time line, or None when `now` is not on `day`"""
    local = now.astimezone(tz)
    if local.date() != day:
        return None
    return _wall_minutes(local, tz) / MINUTES_PER_DAY * 100.0


class GridTime(NamedTuple):
    hour: int
    minute: int


def pixel_to_time(pixel: float, pixels_per_hour: float = 80.0, snap_minutes: int = 15) -> GridTime:
    """
    Vertical grid offset to a snapped time of day.

    The hour may reach 24 (midnight of the next day) but not beyond.
    """
    total = pixel / pixels_per_hour * 60
    hour = int(total // 60)
    minute = int(round((total % 60) / snap_minutes) * snap_minutes)
    if minute >= 60:
        hour += 1
        minute = 0
    if hour >= 24:
        return GridTime(24, 0)
    if hour < 0:
        return GridTime(0, 0)
    return GridTime(hour, minute)


def grid_instant(day: date, grid_time: GridTime, tz: tzinfo) -> datetime:
    """Instant of a grid position; 24:00 is midnight of the next day"""
    day_start, _ = day_bounds(day, tz)
    local = day_start + timedelta(hours=grid_time.hour, minutes=grid_time.minute)
    # Normalize the offset after wall-clock arithmetic
    return local.astimezone(tz)


def all_day_events(events: Iterable[ExternalEvent], day: date, tz: tzinfo) -> List[ExternalEvent]:
    """All-day external events covering a day; the timed grid leaves them out"""
    day_start, day_end = day_bounds(day, tz)
    return [ev for ev in events if ev.all_day and ev.start < day_end and ev.end > day_start]


@dataclass(frozen=True)
class RenderItem:
    """One positioned block on one day of the grid"""
    id: str
    kind: Literal["local", "external"]
    day: date
    start_minute: float
    end_minute: float
    col: int
    cols: int
    top_px: float
    height_px: float
    top_percent: float
    height_percent: float
    left_percent: float
    width_percent: float
    color: str
    title: str
    label_start: datetime
    label_end: datetime
    source: Any = field(compare=False)

    @property
    def is_external(self) -> bool:
        return self.kind == "external"

    @property
    def is_occurrence(self) -> bool:
        """True for synthetic instances of a recurring entry"""
        return self.kind == "local" and self.label_start != self.source.anchor


@dataclass(frozen=True)
class _Pending:
    id: str
    kind: str
    segment: DaySegment
    color: str
    title: str
    label_start: datetime
    label_end: datetime
    source: Any

    def sort_key(self):
        return (self.segment.start_minute, 0 if self.kind == "local" else 1, self.id)


class CalendarComposer:
    """
    Builds the per-day render items of a calendar view.

    Args:
        preferences: Grid geometry and week layout
        tz: Display zone; defaults to preferences.timezone or the system zone
        calendars: Native calendars, used for entry colors
        projects: Projects, used for entry colors and titles
    """

    def __init__(self, preferences: Optional[UserPreferences] = None, tz: Optional[tzinfo] = None,
                 calendars: Iterable[Calendar] = (), projects: Iterable[Project] = ()):
        self.preferences = preferences or UserPreferences()
        self.tz = tz or resolve_timezone(self.preferences.timezone)
        self.set_calendars(calendars)
        self.set_projects(projects)

    def set_calendars(self, calendars: Iterable[Calendar]):
        self._calendar_colors = {c.id: c.color for c in calendars if c.color}

    def set_projects(self, projects: Iterable[Project]):
        self._projects = {p.id: p for p in projects if p.id}

    @property
    def pixels_per_minute(self) -> float:
        return self.preferences.pixels_per_hour / 60

    def _entry_color(self, entry: TimeEntry) -> str:
        project = self._projects.get(entry.project_id) if entry.project_id else None
        return (
            self._calendar_colors.get(entry.calendar_id or "")
            or (project.color if project else None)
            or DEFAULT_LOCAL_COLOR
        )

    def _entry_title(self, entry: TimeEntry) -> str:
        if entry.description:
            return entry.description
        project = self._projects.get(entry.project_id) if entry.project_id else None
        return project.name if project else ""

    def compose(self, window_start: date, view: CalendarView,
                entries: Iterable[TimeEntry], external_events: Iterable[ExternalEvent] = (),
                enabled_calendars: Optional[Set[str]] = None,
                enabled_external_calendars: Optional[Set[str]] = None) -> Dict[date, List[RenderItem]]:
        """
        Render items for every visible day of a view.

        Args:
            window_start: Any day inside the period to show
            view: DAY, WORKWEEK or WEEK
            entries: Stored entries (recurring ones are expanded here)
            external_events: Read-only overlay events
            enabled_calendars: Native calendar ids to show, None for all
            enabled_external_calendars: Subscribed calendar ids to show, None for all

        Returns:
            Day -> render items ordered by start, local before external on equal start
        """
        days = visible_days(window_start, view, self.preferences.week_starts_on)
        range_start, _ = day_bounds(days[0], self.tz)
        _, range_end = day_bounds(days[-1], self.tz)

        pending: Dict[date, List[_Pending]] = {day: [] for day in days}

        for index, entry in enumerate(filter_entries(entries, enabled_calendars)):
            base_id = entry.id or f"unsaved-{index}"
            for occurrence in expand_entry(entry, range_start, range_end, self.tz):
                for segment in split_by_day(occurrence.start, occurrence.end, days, self.tz):
                    pending[segment.day].append(_Pending(
                        id=f"local:{base_id}:{occurrence.start.isoformat()}",
                        kind="local",
                        segment=segment,
                        color=self._entry_color(entry),
                        title=self._entry_title(entry),
                        label_start=occurrence.start,
                        label_end=occurrence.end,
                        source=entry,
                    ))

        for event in filter_external(external_events, enabled_external_calendars):
            if event.all_day:
                continue
            for segment in split_by_day(event.start, event.end, days, self.tz):
                pending[segment.day].append(_Pending(
                    id=f"ext:{event.id}:{segment.day.isoformat()}",
                    kind="external",
                    segment=segment,
                    color=event.color or DEFAULT_EXTERNAL_COLOR,
                    title=event.title,
                    label_start=event.start,
                    label_end=event.end,
                    source=event,
                ))

        return {day: self._layout(day, items) for day, items in pending.items()}

    def _layout(self, day: date, items: List[_Pending]) -> List[RenderItem]:
        merged = sorted(items, key=_Pending.sort_key)
        layout_items = validate_layout_items(
            LayoutItem(
                id=item.id,
                start_minute=item.segment.start_minute,
                end_minute=max(item.segment.end_minute, item.segment.start_minute + MIN_SPAN_MINUTES),
                payload=item,
            )
            for item in merged
        )
        laid_out = {
            result.placement.id: result
            for result in layout_day(layout_items, self.pixels_per_minute, self.preferences.min_block_height_px)
        }

        rendered = []
        for layout_item in layout_items:
            result = laid_out[layout_item.id]
            item = layout_item.payload
            geometry = result.geometry
            rendered.append(RenderItem(
                id=item.id,
                kind=item.kind,
                day=day,
                start_minute=layout_item.start_minute,
                end_minute=layout_item.end_minute,
                col=result.col,
                cols=result.cols,
                top_px=geometry.top_px,
                height_px=geometry.height_px,
                top_percent=geometry.top_percent,
                height_percent=geometry.height_percent,
                left_percent=geometry.left_percent,
                width_percent=geometry.width_percent,
                color=item.color,
                title=item.title,
                label_start=item.label_start,
                label_end=item.label_end,
                source=item.source,
            ))
        return rendered
