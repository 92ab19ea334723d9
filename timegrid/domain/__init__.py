"""Domain layer - Pure business entities and logic"""

from .models import (
    TimeEntry, Project, Client, Tag, Calendar, ExternalEvent, IcalCalendar, UserPreferences,
)
from .operations import (
    AddOperation, UpdateOperation, DeleteOperation, QueuedOperation, Placeholder, build_operation,
)

__all__ = [
    "TimeEntry", "Project", "Client", "Tag", "Calendar", "ExternalEvent", "IcalCalendar",
    "UserPreferences", "AddOperation", "UpdateOperation", "DeleteOperation", "QueuedOperation",
    "Placeholder", "build_operation",
]
