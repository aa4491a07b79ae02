import datetime

import pytest

from punchclock.data.database import (
    OpenShiftMarker, TimeRecord,
    add_employee, bulk_insert_employees, bulk_insert_time_records, get_employees,
    get_employees_with_details, get_open_shift, get_records_on, get_stats,
    get_time_records_for_edit, get_unsynced_records, open_shift, close_shift,
    reconcile_remote_records, repair_open_shift_markers, seed_night_shift_exemptions,
    get_night_shift_exemptions, is_night_shift_exempt, mark_as_synced,
)
from punchclock.utils.errors import ConflictError

DAY = datetime.date(2025, 1, 15)


def _record(name, clock_in, clock_out=None, **extra):
    return dict({
        'employee_name': name,
        'clock_in': clock_in,
        'clock_out': clock_out,
        'working_hours': 0.0,
    }, **extra)


def test_employee_import_is_idempotent(store):
    bulk_insert_employees(["Alice", "Bob", " ", "Alice"])
    bulk_insert_employees(["Bob", "Carol"])

    assert get_employees() == ["Alice", "Bob", "Carol"]
    assert add_employee("Dave") is True
    assert add_employee("Dave") is False


def test_add_employee_rejects_blank_name(store):
    with pytest.raises(ValueError):
        add_employee("   ")


def test_open_shift_twice_conflicts(store):
    open_shift("Alice", "15/01/2025 08:00:00")

    with pytest.raises(ConflictError) as exc:
        open_shift("Alice", "15/01/2025 08:05:00")

    assert exc.value.clock_in == "15/01/2025 08:00:00"
    assert TimeRecord.select().count() == 1
    assert "Alice" in get_employees()


def test_close_shift_on_stale_marker_conflicts(store):
    open_shift("Alice", "15/01/2025 08:00:00")
    marker = get_open_shift("Alice")
    close_shift(marker, "15/01/2025 17:00:00", 9.0)

    with pytest.raises(ConflictError):
        close_shift(marker, "15/01/2025 17:05:00", 9.1)


def test_employee_details_show_who_is_working(store):
    bulk_insert_employees(["Alice", "Bob"])
    open_shift("Bob", "15/01/2025 08:00:00")

    details = {d['name']: d['is_working'] for d in get_employees_with_details()}

    assert details == {"Alice": False, "Bob": True}


def test_imported_records_are_pushed_and_deduplicated(store):
    rows = [_record("Alice", "15/01/2025 08:00:00", "15/01/2025 17:00:00")]

    bulk_insert_time_records(rows)
    bulk_insert_time_records(rows)

    assert TimeRecord.select().count() == 1
    assert get_unsynced_records() == []


def test_records_on_day_match_both_formats(store):
    bulk_insert_time_records([
        _record("Alice", "15/01/2025 08:00:00"),
        _record("Bob", "2025-01-15 08:10:00"),
        _record("Carol", "14/01/2025 08:00:00"),
    ])

    assert [r.employee_name for r in get_records_on(DAY)] == ["Alice", "Bob"]
    assert len(get_time_records_for_edit("Carol", datetime.date(2025, 1, 14))) == 1


def test_repair_recreates_missing_markers(store):
    bulk_insert_time_records([
        _record("Alice", "15/01/2025 08:00:00"),
        _record("Bob", "15/01/2025 08:10:00", "15/01/2025 17:00:00"),
        _record("Carol", "14/01/2025 08:00:00"),
    ])
    open_shift("Dave", "15/01/2025 08:20:00")

    result = repair_open_shift_markers(DAY)

    assert result == {
        'success': True,
        'total_open': 2,
        'repaired_count': 1,
        'repaired_employees': ["Alice"],
    }
    assert get_open_shift("Alice").clock_in == "15/01/2025 08:00:00"
    assert get_open_shift("Bob") is None
    assert repair_open_shift_markers(DAY)['repaired_count'] == 0


def test_reconcile_replaces_only_pushed_open_records(store):
    bulk_insert_time_records([_record("Alice", "15/01/2025 08:00:00")])
    repair_open_shift_markers(DAY)
    pending = open_shift("Bob", "15/01/2025 08:10:00")

    result = reconcile_remote_records([
        _record("Alice", "15/01/2025 08:00:00", note="from sheet"),
        _record("Bob", "15/01/2025 08:10:00", "15/01/2025 17:00:00"),
        _record("Carol", "15/01/2025 08:20:00", "15/01/2025 17:00:00"),
    ])

    assert result == {'inserted': 1, 'replaced': 1, 'kept': 1}
    alice = TimeRecord.get(TimeRecord.employee_name == "Alice")
    assert alice.note == "from sheet"
    assert get_open_shift("Alice").record_id == alice.id
    assert TimeRecord.get_by_id(pending.id).clock_out is None
    assert OpenShiftMarker.select().count() == 2


def test_mark_as_synced_and_stats(store):
    first = open_shift("Alice", "15/01/2025 08:00:00")
    open_shift("Bob", "15/01/2025 08:10:00")

    assert mark_as_synced([first.id]) == 1
    assert get_stats() == {'employees': 2, 'time_records': 2, 'on_work': 2, 'unsynced': 1}
    assert mark_as_synced([]) == 0


def test_night_shift_seed_only_when_empty(store):
    assert seed_night_shift_exemptions(["Bob", " Carol "]) == 2
    assert seed_night_shift_exemptions(["Dave"]) == 0

    assert get_night_shift_exemptions() == ["Bob", "Carol"]
    assert is_night_shift_exempt("Carol")
    assert not is_night_shift_exempt("Dave")


def test_mark_as_synced_skips_records_changed_since_read(store):
    record = open_shift("Alice", "15/01/2025 08:00:00")
    close_shift(get_open_shift("Alice"), "15/01/2025 17:00:00", 9.0)

    assert mark_as_synced([record]) == 0
    assert [r.id for r in get_unsynced_records()] == [record.id]

    current = get_unsynced_records()[0]
    assert mark_as_synced([current]) == 1
    assert get_unsynced_records() == []


def test_reconcile_open_remote_record_gets_marker(store):
    result = reconcile_remote_records([_record("Alice", "15/01/2025 07:00:00")])

    assert result['inserted'] == 1
    assert get_open_shift("Alice").clock_in == "15/01/2025 07:00:00"


def test_reconcile_keeps_local_shift_over_other_remote_open_record(store):
    local = open_shift("Alice", "15/01/2025 08:00:00")

    result = reconcile_remote_records([_record("Alice", "15/01/2025 07:00:00")])

    assert result == {'inserted': 0, 'replaced': 0, 'kept': 1}
    assert get_open_shift("Alice").record_id == local.id
    assert TimeRecord.select().where(TimeRecord.clock_out.is_null()).count() == 1
