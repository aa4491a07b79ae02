"""
Error handling utilities for punchclock.
"""


class PunchClockError(Exception):
    """Base exception for punchclock"""
    pass


class ConflictError(PunchClockError):
    """Raised when a clock action is illegal for the employee's current state"""

    def __init__(self, message, current_status=None, clock_in=None):
        super().__init__(message)
        self.current_status = current_status
        self.clock_in = clock_in


class NotFoundError(PunchClockError):
    """Raised when a record or employee is not found"""
    pass


class PersistenceError(PunchClockError):
    """Raised when a local database write fails"""
    pass


class SyncError(PunchClockError):
    """Raised when a remote store call fails"""
    pass


class ParseError(PunchClockError):
    """Raised when a timestamp matches none of the accepted formats"""
    pass


class ValidationError(PunchClockError):
    """Raised when validation fails"""
    pass
