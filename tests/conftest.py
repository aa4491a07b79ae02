import datetime
from zoneinfo import ZoneInfo

import pytest

from punchclock.data.database import initialize_db, close_db
from punchclock.remote.sheet import InMemoryRemoteStore
from punchclock.services.clock_service import ClockService, PunchRequest
from punchclock.services.report_service import ReportService
from punchclock.services.sync_service import SyncService

TZ = ZoneInfo("Asia/Bangkok")
# A Wednesday
NOW = datetime.datetime(2025, 1, 15, 9, 0, tzinfo=TZ)


class FrozenClock:
    def __init__(self, current):
        self.current = current

    def __call__(self):
        return self.current


def at(hour, minute=0, day=15):
    return datetime.datetime(2025, 1, day, hour, minute, tzinfo=TZ)


def punch(employee, when, **kwargs):
    return PunchRequest(employee=employee, mock_time=when, **kwargs)


@pytest.fixture
def store(tmp_path):
    initialize_db(str(tmp_path / "timetracker.db"))
    yield
    close_db()


@pytest.fixture
def clock():
    return FrozenClock(NOW)


@pytest.fixture
def clock_service(store, clock):
    return ClockService(tz=TZ, now=clock, admin_name="Admin", admin_location="HQ")


@pytest.fixture
def report_service(store, clock):
    return ReportService(tz=TZ, now=clock)


@pytest.fixture
def remote():
    return InMemoryRemoteStore(employees=["Alice", "Bob", "Carol"])


@pytest.fixture
def sync_service(store, clock, remote):
    service = SyncService(remote=remote, tz=TZ, now=clock)
    yield service
    service.close()
