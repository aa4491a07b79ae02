from punchclock.data.database import (
    TimeRecord, bulk_insert_time_records, get_employees, get_open_shift, get_unsynced_records,
)
from punchclock.remote.sheet import InMemoryRemoteStore, RemoteRow
from punchclock.services.sync_service import SyncService

from tests.conftest import TZ, at, punch


def _remote_row(name, clock_in, clock_out='', hours=0.0):
    return RemoteRow(employee_name=name, clock_in=clock_in, clock_out=clock_out,
                     working_hours=hours).to_values()


def test_nothing_pending_makes_no_remote_call(sync_service, remote):
    result = sync_service.push_unsynced()

    assert result == {'success': True, 'synced': 0, 'failed': 0}
    assert remote.append_calls == 0


def test_push_appends_rows_and_marks_synced(clock_service, sync_service, remote):
    clock_service.clock_in(punch("Alice", at(8, 0), source_avatar_url="https://img/alice.png"))

    result = sync_service.push_unsynced()

    assert result == {'success': True, 'synced': 1, 'failed': 0}
    assert remote.rows[0][0] == "Alice"
    assert remote.rows[0][2] == '=IMAGE("https://img/alice.png")'
    assert remote.rows[0][3] == "15/01/2025 08:00:00"
    assert get_unsynced_records() == []
    assert sync_service.last_sync_time is not None


def test_failed_row_stays_pending(clock_service, sync_service, remote):
    clock_service.clock_in(punch("Alice", at(8, 0)))
    clock_service.clock_in(punch("Bob", at(8, 5)))
    remote.fail_on_append = {"Bob"}

    result = sync_service.push_unsynced()

    assert result == {'success': False, 'synced': 1, 'failed': 1}
    assert [r.employee_name for r in get_unsynced_records()] == ["Bob"]

    remote.fail_on_append = set()
    assert sync_service.push_unsynced()['synced'] == 1
    assert get_unsynced_records() == []


def test_concurrent_sync_is_rejected(clock_service, sync_service, remote):
    clock_service.clock_in(punch("Alice", at(8, 0)))
    sync_service.is_syncing = True

    assert sync_service.push_unsynced() == {'success': False, 'reason': 'already_syncing'}
    assert sync_service.sync_current_day() == {'success': False, 'reason': 'already_syncing'}
    assert remote.append_calls == 0


def test_load_from_remote_imports_employees_only(sync_service, remote):
    remote.rows = [_remote_row("Alice", "15/01/2025 08:00:00")]

    result = sync_service.load_from_remote()

    assert result == {'success': True, 'employees': 3}
    assert get_employees() == ["Alice", "Bob", "Carol"]
    assert TimeRecord.select().count() == 0


def test_load_from_remote_failure_is_reported(sync_service, remote):
    remote.fail_reads = True

    result = sync_service.load_from_remote()

    assert not result['success']
    assert get_employees() == []


def test_empty_remote_leaves_local_untouched(clock_service, sync_service, remote):
    clock_service.clock_in(punch("Alice", at(8, 0)))
    sync_service.push_unsynced()
    remote.rows = []

    result = sync_service.sync_current_day()

    assert result['success']
    assert result['inserted'] == result['replaced'] == 0
    assert TimeRecord.select().count() == 1
    assert get_open_shift("Alice") is not None


def test_same_day_rows_are_reconciled(sync_service, remote):
    remote.rows = [
        _remote_row("Alice", "15/01/2025 08:00:00", "15/01/2025 17:00:00", 9.0),
        _remote_row("Bob", "2025-01-15 07:30:00"),
        _remote_row("Carol", "14/01/2025 08:00:00"),
        ["", "broken"],
    ]

    result = sync_service.sync_current_day()

    assert result['success']
    assert result['inserted'] == 2
    bob = TimeRecord.get(TimeRecord.employee_name == "Bob")
    assert bob.clock_in == "15/01/2025 07:30:00"
    assert bob.synced == 1
    assert TimeRecord.select().where(TimeRecord.employee_name == "Carol").count() == 0


def test_pending_local_record_wins_over_remote(clock_service, sync_service, remote):
    clock_service.clock_in(punch("Alice", at(8, 0)))
    remote.rows = [_remote_row("Alice", "15/01/2025 08:00:00", "15/01/2025 17:00:00", 9.0)]

    result = sync_service.sync_current_day()

    assert result['skipped'] == 1
    assert TimeRecord.get(TimeRecord.employee_name == "Alice").clock_out is None
    assert get_open_shift("Alice") is not None


def test_remote_clock_out_closes_pushed_open_record(clock_service, sync_service, remote):
    clock_service.clock_in(punch("Alice", at(8, 0)))
    sync_service.push_unsynced()
    remote.rows = [_remote_row("Alice", "15/01/2025 08:00:00", "15/01/2025 17:00:00", 9.0)]

    result = sync_service.sync_current_day()

    assert result['replaced'] == 1
    record = TimeRecord.get(TimeRecord.employee_name == "Alice")
    assert record.clock_out == "15/01/2025 17:00:00"
    assert record.working_hours == 9.0
    assert get_open_shift("Alice") is None


def test_remote_read_failure_is_reported(sync_service, remote):
    remote.fail_reads = True

    result = sync_service.sync_current_day()

    assert not result['success']
    assert sync_service.is_syncing is False


def test_on_work_mirror_skipped_when_nobody_is_working(clock_service, sync_service, remote):
    remote.on_work = [["Someone"]]

    assert sync_service.sync_on_work_to_remote()['skipped'] is True
    assert remote.on_work == [["Someone"]]

    clock_service.clock_in(punch("Alice", at(8, 0)))
    result = sync_service.sync_on_work_to_remote()

    assert result['count'] == 1
    assert remote.on_work[0][0] == "Alice"


def test_force_sync_and_status(clock_service, sync_service, remote):
    clock_service.clock_in(punch("Alice", at(8, 0)))

    result = sync_service.force_sync()

    assert result['success']
    assert result['stats']['unsynced'] == 0
    status = sync_service.get_status()
    assert status['is_syncing'] is False
    assert status['periodic_sync_active'] is False
    assert status['last_sync_time'] == result['last_sync_time']


def test_periodic_sync_start_and_stop(sync_service):
    sync_service.start_periodic_sync(interval=3600)
    assert sync_service.periodic_sync_active

    sync_service.stop_periodic_sync()
    assert not sync_service.periodic_sync_active

    sync_service.start_periodic_sync(interval=3600)
    assert sync_service.periodic_sync_active


def test_repair_open_shifts(sync_service):
    bulk_insert_time_records([{'employee_name': "Alice", 'clock_in': "15/01/2025 08:00:00"}])

    result = sync_service.repair_open_shifts()

    assert result['repaired_employees'] == ["Alice"]
    assert get_open_shift("Alice") is not None


def test_repeated_remote_rows_take_the_latest(sync_service, remote):
    remote.rows = [
        _remote_row("Alice", "15/01/2025 08:00:00"),
        _remote_row("Alice", "15/01/2025 08:00:00", "15/01/2025 17:00:00", 9.0),
    ]

    result = sync_service.sync_current_day()

    assert result['inserted'] == 1
    assert TimeRecord.get(TimeRecord.employee_name == "Alice").clock_out == "15/01/2025 17:00:00"


class ClockOutDuringAppend(InMemoryRemoteStore):
    """Remote whose first append lets a clock-out land mid-push"""

    def __init__(self, on_append):
        super().__init__()
        self.on_append = on_append

    def append_row(self, values):
        super().append_row(values)
        if self.on_append is not None:
            callback, self.on_append = self.on_append, None
            callback()


def test_change_during_push_stays_pending(store, clock, clock_service):
    clock_service.clock_in(punch("Alice", at(8, 0)))
    remote = ClockOutDuringAppend(lambda: clock_service.clock_out(punch("Alice", at(17, 0))))
    service = SyncService(remote=remote, tz=TZ, now=clock)

    assert service.push_unsynced()['synced'] == 1
    assert remote.rows[0][5] == ''
    assert len(get_unsynced_records()) == 1

    service.push_unsynced()

    assert remote.rows[-1][5] == "15/01/2025 17:00:00"
    assert get_unsynced_records() == []


def test_remote_open_shift_blocks_second_clock_in(clock_service, sync_service, remote):
    remote.rows = [_remote_row("Alice", "15/01/2025 07:00:00")]

    sync_service.sync_current_day()
    result = clock_service.clock_in(punch("Alice", at(8, 0)))

    assert not result.success
    assert result.time == "15/01/2025 07:00:00"
    assert TimeRecord.select().where(TimeRecord.clock_out.is_null()).count() == 1


def test_unparseable_remote_clock_out_is_skipped(sync_service, remote):
    remote.rows = [
        _remote_row("Alice", "15/01/2025 08:00:00"),
        _remote_row("Alice", "15/01/2025 08:00:00", "around five"),
        _remote_row("Bob", "15/01/2025 08:10:00", "15/01/2025 17:00:00", 8.83),
    ]

    result = sync_service.sync_current_day()

    assert result['inserted'] == 1
    assert TimeRecord.select().where(TimeRecord.employee_name == "Alice").count() == 0
    assert get_open_shift("Alice") is None
