from datetime import datetime, tzinfo
from typing import Optional


def format_duration(seconds: int) -> str:
    """
    Clock-style duration.

    Returns:
        'H:MM:SS' when at least one hour, else 'MM:SS'
    """
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_duration_short(seconds: int) -> str:
    """'1h 5m' or '5m'"""
    seconds = max(0, int(seconds))
    hours, rest = divmod(seconds, 3600)
    minutes = rest // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_clock(value: datetime, time_format: str = "12h", tz: Optional[tzinfo] = None) -> str:
    """Time label for grid blocks and the now indicator ('9:05 AM' or '09:05')"""
    if tz is not None:
        value = value.astimezone(tz)
    if time_format == "24h":
        return value.strftime("%H:%M")
    hour = value.hour % 12 or 12
    return f"{hour}:{value.minute:02d} {'AM' if value.hour < 12 else 'PM'}"


def format_range(start: datetime, end: datetime, time_format: str = "12h", tz: Optional[tzinfo] = None) -> str:
    return f"{format_clock(start, time_format, tz)} - {format_clock(end, time_format, tz)}"
