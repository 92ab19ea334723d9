"""
Recurrence expansion for recurring time entries.

Only the FREQ part of an RFC 5545 rule is interpreted (DAILY, WEEKLY, MONTHLY).
Occurrences are synthetic display instances: they carry the stored entry's
duration and are never written back.
"""

import enum
import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import List, Optional

from timegrid.domain.models import TimeEntry

logger = logging.getLogger(__name__)

_FREQ_RE = re.compile(r"FREQ=(DAILY|WEEKLY|MONTHLY)\b")


class RecurrenceFrequency(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


@dataclass(frozen=True)
class Occurrence:
    """One displayed instance of an entry"""
    entry: TimeEntry
    start: datetime
    end: datetime

    @property
    def is_synthetic(self) -> bool:
        return self.start != self.entry.anchor


def parse_frequency(rule: Optional[str]) -> Optional[RecurrenceFrequency]:
    """
    Extract the frequency of a rule string.

    Returns:
        The frequency, or None when the rule is empty or has no supported FREQ
    """
    if not rule:
        return None
    match = _FREQ_RE.search(rule.upper())
    return RecurrenceFrequency(match.group(1)) if match else None


def _overlaps(start: datetime, end: datetime, window_start: datetime, window_end: datetime) -> bool:
    if start == end:
        return window_start <= start < window_end
    return start < window_end and end > window_start


def _matches(frequency: RecurrenceFrequency, day: date, anchor_day: date) -> bool:
    if frequency is RecurrenceFrequency.DAILY:
        return True
    if frequency is RecurrenceFrequency.WEEKLY:
        return day.weekday() == anchor_day.weekday()
    return day.day == anchor_day.day


def expand_occurrences(anchor: datetime, frequency: RecurrenceFrequency,
                       window_start: datetime, window_end: datetime,
                       duration: int = 0, tz: Optional[tzinfo] = None) -> List[datetime]:
    """
    Occurrence start instants of a recurring series inside a window.

    Args:
        anchor: First start instant of the series
        frequency: DAILY, WEEKLY or MONTHLY
        window_start: Inclusive window start
        window_end: Exclusive window end
        duration: Seconds; occurrences that started before the window but
                  still run into it are included
        tz: Zone whose wall clock defines days and time-of-day
            (defaults to the anchor's zone)

    Returns:
        Sorted occurrence starts at the anchor's time-of-day. A MONTHLY anchor on
        the 29th-31st produces nothing in months lacking that day.
    """
    zone = tz or anchor.tzinfo
    local_anchor = anchor.astimezone(zone) if zone is not None and anchor.tzinfo is not None else anchor
    time_of_day = local_anchor.time().replace(tzinfo=None)
    span = timedelta(seconds=duration)

    def local_day(value: datetime) -> date:
        if zone is not None and value.tzinfo is not None:
            return value.astimezone(zone).date()
        return value.date()

    lookback = math.ceil(duration / 86400) if duration > 0 else 0
    day = local_day(window_start) - timedelta(days=lookback)
    last_day = local_day(window_end)

    occurrences = []
    while day <= last_day:
        if _matches(frequency, day, local_anchor.date()):
            start = datetime.combine(day, time_of_day, tzinfo=zone if anchor.tzinfo else None)
            end = (start.astimezone(timezone.utc) + span) if start.tzinfo else start + span
            if _overlaps(start, end, window_start, window_end):
                occurrences.append(start)
        day += timedelta(days=1)

    if frequency is RecurrenceFrequency.MONTHLY and local_anchor.day > 28:
        logger.debug("Monthly series anchored on day %d skips months without that day", local_anchor.day)

    return occurrences


def expand_entry(entry: TimeEntry, window_start: datetime, window_end: datetime,
                 tz: Optional[tzinfo] = None) -> List[Occurrence]:
    """
    Display occurrences of one stored entry inside a window.

    Entries without recurrence (or with a rule that cannot be interpreted)
    yield the anchor itself when it overlaps the window.
    """
    anchor = entry.anchor
    span = timedelta(seconds=entry.duration)

    frequency = None
    if entry.is_recurring:
        frequency = parse_frequency(entry.recurrence_rule)
        if frequency is None:
            logger.warning(
                "Entry %s has unsupported recurrence rule %r; showing it once",
                entry.id, entry.recurrence_rule,
            )

    if frequency is None:
        if _overlaps(anchor, anchor + span, window_start, window_end):
            return [Occurrence(entry=entry, start=anchor, end=anchor + span)]
        return []

    return [
        Occurrence(entry=entry, start=start, end=start + span)
        for start in expand_occurrences(anchor, frequency, window_start, window_end, entry.duration, tz)
    ]
