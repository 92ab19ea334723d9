"""
Domain Models using Pydantic for validation.

Architecture Decision: Why Pydantic?
Entities arrive from three places: the remote table API (camelCase JSON), the local
offline store (JSON files) and the SQLite cache (ORM rows). Pydantic validates all of
them the same way and serializes back with the wire aliases.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def assume_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes from the wire or the offline store are UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class WireModel(BaseModel):
    """
    Base for entities exchanged with the table API.

    Accepts both snake_case and camelCase keys, dumps camelCase with by_alias=True.
    """
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_wire(self) -> dict:
        """Serialize for the table API / offline store"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TimeEntry(WireModel):
    """
    A tracked block of time.

    `date` is the anchor instant; `start_time`/`end_time` are optional explicit
    bounds. The rendered span is always anchor + duration.
    """

    id: Optional[str] = None
    project_id: Optional[str] = None
    calendar_id: Optional[str] = None
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    duration: int = Field(default=0, ge=0, description="Duration in seconds")
    date: datetime
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    is_billable: bool = True
    is_recurring: bool = False
    recurrence_rule: Optional[str] = None
    parent_entry_id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("date", "start_time", "end_time", "created_at")
    @classmethod
    def utc_times(cls, value: Optional[datetime]) -> Optional[datetime]:
        return assume_utc(value)

    @classmethod
    def from_range(cls, start: datetime, end: datetime, **fields) -> "TimeEntry":
        """
        Build an entry from an explicit start/end pair.

        Args:
            start: Start instant
            end: End instant (must not precede start)
            **fields: Any other TimeEntry field

        Returns:
            TimeEntry with duration in whole seconds
        """
        if end < start:
            raise ValueError("end must not be before start")
        duration = int((end - start).total_seconds())
        return cls(date=start, start_time=start, end_time=end, duration=duration, **fields)

    @property
    def anchor(self) -> datetime:
        return self.start_time or self.date

    @property
    def end(self) -> datetime:
        return self.anchor + timedelta(seconds=self.duration)


class Project(WireModel):
    """A project entries are booked against"""

    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=200)
    color: str = "#3B82F6"
    hourly_rate: Optional[float] = None
    client_id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None


class Client(WireModel):
    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=200)
    email: Optional[str] = None
    company: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None


class Tag(WireModel):
    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=100)
    created_at: Optional[datetime] = None


class Calendar(WireModel):
    """
    A native calendar. Entries reference at most one calendar; it is used
    for grouping and visibility filtering only.
    """

    id: str
    name: str
    color: Optional[str] = None
    user_id: Optional[str] = None


ExternalSource = Literal["google", "outlook", "ical"]


class ExternalEvent(WireModel):
    """
    Read-only overlay event from an external provider.

    Never mutated or written back by this application.
    """

    id: str
    source: ExternalSource
    source_event_id: str
    calendar_id: Optional[str] = None
    calendar_name: Optional[str] = None
    title: str = "Untitled"
    description: Optional[str] = None
    start: datetime
    end: datetime
    all_day: bool = False
    location: Optional[str] = None
    url: Optional[str] = None
    color: Optional[str] = None
    status: Optional[Literal["confirmed", "tentative", "cancelled"]] = None
    recurrence_rule: Optional[str] = None

    @field_validator("start", "end")
    @classmethod
    def utc_times(cls, value: datetime) -> datetime:
        return assume_utc(value)

class IcalCalendar(WireModel):
    """A subscribed iCal feed"""

    id: str
    url: str
    name: str
    color: str = "#9CA3AF"


class UserPreferences(BaseModel):
    """
    User configuration and preferences.

    Calendar grid geometry, sync behaviour and display settings.
    """
    model_config = ConfigDict(from_attributes=True)

    # Calendar grid
    pixels_per_hour: float = Field(default=80.0, gt=0, description="Height of one hour row in pixels")
    min_block_height_px: float = Field(default=16.0, ge=0, description="Minimum rendered block height")
    snap_minutes: int = Field(default=15, ge=1, le=60, description="Drag snapping increment")
    quick_create_minutes: int = Field(default=30, ge=1, description="Length of context-menu quick entries")
    now_refresh_seconds: int = Field(default=60, ge=1, description="Now indicator refresh cadence")
    week_starts_on: int = Field(default=0, ge=0, le=6, description="0=Sunday ... 6=Saturday")
    default_view: Literal["day", "workweek", "week"] = "week"
    time_format: Literal["12h", "24h"] = "12h"
    timezone: Optional[str] = Field(default=None, description="IANA zone, None follows the system")

    # Offline sync
    sync_max_retries: int = Field(default=3, ge=1, description="Attempts before a queued operation is dropped")
    sync_operation_delay_ms: int = Field(default=100, ge=0, description="Pause between replayed operations")
    connectivity_poll_seconds: int = Field(default=30, ge=1, description="Health check interval")

    # UI settings
    language: str = Field(default="auto", description="UI language: 'en', 'de', or 'auto' (detect from system)")
