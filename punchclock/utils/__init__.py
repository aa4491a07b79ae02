"""
Utilities for punchclock.
"""

from .errors import (
    PunchClockError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    SyncError,
    ParseError,
    ValidationError,
)
from .timeparse import (
    ParseResult,
    parse_timestamp,
    format_timestamp,
    display_time,
)
from .lateness import (
    is_night_window,
    is_late,
    late_minutes,
)

__all__ = [
    'PunchClockError',
    'ConflictError',
    'NotFoundError',
    'PersistenceError',
    'SyncError',
    'ParseError',
    'ValidationError',
    'ParseResult',
    'parse_timestamp',
    'format_timestamp',
    'display_time',
    'is_night_window',
    'is_late',
    'late_minutes',
]
