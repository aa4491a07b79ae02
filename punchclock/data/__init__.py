"""
Data layer for punchclock.

Contains the peewee models and the store functions that own all persisted
state: employees, time records, open-shift markers and the night-shift roster.
"""

# Models and functions are imported as needed
# from .database import Employee, TimeRecord, etc.

__all__ = []
