"""
Remote layer for punchclock.

Contains the remote system-of-record interface and its row schema.
"""

from .sheet import RemoteRow, RemoteStore, InMemoryRemoteStore, get_remote_store, parse_rows

__all__ = [
    'RemoteRow',
    'RemoteStore',
    'InMemoryRemoteStore',
    'get_remote_store',
    'parse_rows',
]
