"""Services package.

Keep this module lightweight: importing `dicehouse.services` only pulls in
the event bus and the logging setup.
"""

from __future__ import annotations

from .event_bus import EventBus, Events, event_bus
from .logger import PerformanceLogger, cleanup_logging, get_logger, setup_logging

__all__ = [
    "EventBus",
    "Events",
    "PerformanceLogger",
    "cleanup_logging",
    "event_bus",
    "get_logger",
    "setup_logging",
]
