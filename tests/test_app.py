from punchclock.config import Settings, DEFAULT_SYNC_INTERVAL
from punchclock.data.database import (
    bulk_insert_time_records, get_employees, get_night_shift_exemptions, get_open_shift,
)
from punchclock.main import PunchClockApp
from punchclock.remote.sheet import InMemoryRemoteStore

from tests.conftest import FrozenClock, NOW


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("PUNCHCLOCK_DB_PATH", "/tmp/clock.db")
    monkeypatch.setenv("PUNCHCLOCK_SYNC_INTERVAL", "60")
    monkeypatch.setenv("PUNCHCLOCK_NIGHT_SHIFT_EMPLOYEES", "Bob, Carol,,")
    monkeypatch.setenv("PUNCHCLOCK_LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.db_path == "/tmp/clock.db"
    assert settings.sync_interval == 60
    assert settings.night_shift_employees == ("Bob", "Carol")
    assert settings.log_level == "DEBUG"
    assert settings.tz.key == "Asia/Bangkok"


def test_invalid_interval_falls_back(monkeypatch):
    monkeypatch.setenv("PUNCHCLOCK_SYNC_INTERVAL", "often")

    assert Settings.from_env().sync_interval == DEFAULT_SYNC_INTERVAL


def test_app_startup_and_shutdown(tmp_path):
    settings = Settings(db_path=str(tmp_path / "data" / "clock.db"), night_shift_employees=("Bob",))
    remote = InMemoryRemoteStore(employees=["Alice", "Bob"])
    app = PunchClockApp(settings, remote=remote, now=FrozenClock(NOW))

    app.start(periodic_sync=False)
    try:
        assert get_employees() == ["Alice", "Bob"]
        assert get_night_shift_exemptions() == ["Bob"]
        bulk_insert_time_records([{'employee_name': "Alice", 'clock_in': "15/01/2025 08:00:00"}])
        assert app.sync.repair_open_shifts()['repaired_count'] == 1
        assert get_open_shift("Alice") is not None
    finally:
        app.stop()

    assert not app.running
