"""Journal module for splicebench provenance tracking."""

from .events import CommandName, EventType, JournalEvent
from .journal import Journal

__all__ = [
    "CommandName",
    "EventType",
    "Journal",
    "JournalEvent",
]
