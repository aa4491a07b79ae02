"""
Remote system of record.

The remote side is a human-reviewable sheet with one row per punch. Rows are
positional; ``RemoteRow`` is the typed form used everywhere past the sync
boundary.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from ..utils.errors import SyncError

logger = logging.getLogger(__name__)

ROW_WIDTH = 11
IMAGE_PREFIX = '=IMAGE("'
IMAGE_SUFFIX = '")'


def wrap_avatar(url: str) -> str:
    return f'{IMAGE_PREFIX}{url}{IMAGE_SUFFIX}' if url else ''


def unwrap_avatar(value: str) -> str:
    value = (value or '').strip()
    if value.startswith(IMAGE_PREFIX) and value.endswith(IMAGE_SUFFIX):
        return value[len(IMAGE_PREFIX):-len(IMAGE_SUFFIX)]
    return value


def _text(value) -> str:
    if value is None:
        return ''
    return str(value).strip()


@dataclass
class RemoteRow:
    """One punch row as stored in the remote sheet"""
    employee_name: str
    clock_in: str
    source_display_name: str = ''
    source_avatar: str = ''
    note: str = ''
    clock_out: str = ''
    location_in: str = ''
    location_in_name: str = ''
    location_out: str = ''
    location_out_name: str = ''
    working_hours: float = 0.0

    @classmethod
    def from_values(cls, values: Sequence) -> "RemoteRow":
        """
        Build a row from positional sheet values.

        Raises:
            ValueError: The values do not have the shape of a punch row
        """
        if not isinstance(values, (list, tuple)):
            raise ValueError(f"expected a sequence of cells, got {type(values).__name__}")
        cells = list(values)[:ROW_WIDTH] + [''] * max(0, ROW_WIDTH - len(values))

        employee_name = _text(cells[0])
        clock_in = _text(cells[3])
        if not employee_name or not clock_in:
            raise ValueError("employee name and clock-in are required")

        hours_text = _text(cells[10])
        try:
            working_hours = float(hours_text) if hours_text else 0.0
        except ValueError:
            raise ValueError(f"working hours {hours_text!r} is not a number")

        return cls(
            employee_name=employee_name,
            source_display_name=_text(cells[1]),
            source_avatar=unwrap_avatar(_text(cells[2])),
            clock_in=clock_in,
            note=_text(cells[4]),
            clock_out=_text(cells[5]),
            location_in=_text(cells[6]),
            location_in_name=_text(cells[7]),
            location_out=_text(cells[8]),
            location_out_name=_text(cells[9]),
            working_hours=max(0.0, working_hours),
        )

    @classmethod
    def from_record(cls, record) -> "RemoteRow":
        return cls(
            employee_name=record.employee_name,
            source_display_name=record.source_display_name or '',
            source_avatar=record.source_avatar or '',
            clock_in=record.clock_in,
            note=record.note or '',
            clock_out=record.clock_out or '',
            location_in=record.location_in or '',
            location_in_name=record.location_in_name or '',
            location_out=record.location_out or '',
            location_out_name=record.location_out_name or '',
            working_hours=record.working_hours or 0.0,
        )

    def to_values(self) -> List[str]:
        return [
            self.employee_name,
            self.source_display_name,
            wrap_avatar(self.source_avatar),
            self.clock_in,
            self.note,
            self.clock_out,
            self.location_in,
            self.location_in_name,
            self.location_out,
            self.location_out_name,
            f"{self.working_hours:.2f}" if self.working_hours else '',
        ]

    def to_record_fields(self) -> dict:
        """Keyword arguments for a local TimeRecord"""
        return {
            'employee_name': self.employee_name,
            'source_display_name': self.source_display_name,
            'source_avatar': self.source_avatar,
            'clock_in': self.clock_in,
            'clock_out': self.clock_out or None,
            'note': self.note,
            'location_in': self.location_in,
            'location_in_name': self.location_in_name,
            'location_out': self.location_out,
            'location_out_name': self.location_out_name,
            'working_hours': self.working_hours,
        }


def parse_rows(rows) -> List[RemoteRow]:
    """Parse raw sheet rows, skipping and logging any that are malformed"""
    parsed = []
    for index, values in enumerate(rows or []):
        try:
            parsed.append(RemoteRow.from_values(values))
        except ValueError as e:
            logger.warning(f"Skipping malformed remote row {index}: {e}")
    return parsed


class RemoteStore:
    """
    Remote sheet collaborator.

    Implementations talk to the real system of record; every method may
    raise SyncError on a network or API failure.
    """

    def get_employees(self) -> List[str]:
        raise NotImplementedError

    def fetch_rows(self) -> List[list]:
        """All punch rows, possibly served from a read cache"""
        raise NotImplementedError

    def clear_cache(self):
        pass

    def append_row(self, values: List[str]):
        raise NotImplementedError

    def replace_on_work(self, rows: List[list]):
        """Replace the remote on-work sheet with the given rows"""
        raise NotImplementedError


class InMemoryRemoteStore(RemoteStore):
    """Remote store kept in process memory, for development and tests"""

    def __init__(self, employees=None, rows=None):
        self.employees: List[str] = list(employees or [])
        self.rows: List[list] = [list(r) for r in (rows or [])]
        self.on_work: List[list] = []
        self.fail_on_append: set = set()
        self.fail_reads = False
        self.append_calls = 0
        self.fetch_calls = 0
        self._cache: Optional[List[list]] = None

    def get_employees(self):
        if self.fail_reads:
            raise SyncError("remote read failed")
        return list(self.employees)

    def fetch_rows(self):
        self.fetch_calls += 1
        if self.fail_reads:
            raise SyncError("remote read failed")
        if self._cache is None:
            self._cache = [list(r) for r in self.rows]
        return list(self._cache)

    def clear_cache(self):
        self._cache = None

    def append_row(self, values):
        self.append_calls += 1
        if values and values[0] in self.fail_on_append:
            raise SyncError(f"append rejected for {values[0]}")
        self.rows.append(list(values))
        logger.debug(f"Remote append: {values[0]} @ {values[3]}")

    def replace_on_work(self, rows):
        self.on_work = [list(r) for r in rows]


def get_remote_store(remote=None):
    """Return the configured remote store, or an in-memory one with a warning"""
    if remote is not None:
        return remote
    logger.warning("No remote store configured, falling back to in-memory store. "
                   "Punches will NOT reach the system of record!")
    return InMemoryRemoteStore()
