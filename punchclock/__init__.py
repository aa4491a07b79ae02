"""
punchclock - shift punch tracking with a local SQLite store kept
eventually consistent with a remote system of record.
"""

__version__ = "1.0.0"
