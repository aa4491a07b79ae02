"""
Database module for punchclock.

The local SQLite store is authoritative for recent operational state: who is
clocked in right now and every punch not yet pushed to the remote sheet.
"""
import datetime
import logging
import os

from peewee import (
    Model, SqliteDatabase, CharField, DateTimeField, FloatField, IntegerField, TextField,
    ForeignKeyField, IntegrityError, chunked, fn
)

from ..utils.errors import ConflictError, NotFoundError, PersistenceError
from ..utils.timeparse import date_prefixes

logger = logging.getLogger(__name__)

DB_FILE = "./data/timetracker.db"

SYNC_PENDING = 0
SYNC_PUSHED = 1

# Deferred until initialize_db() knows the path
db = SqliteDatabase(None)


class BaseModel(Model):
    class Meta:
        database = db


class Employee(BaseModel):
    name = CharField(max_length=200, unique=True, null=False)
    created_at = DateTimeField(default=datetime.datetime.now, null=False)

    class Meta:
        table_name = 'employees'

    def __str__(self):
        return self.name


class TimeRecord(BaseModel):
    employee_name = CharField(max_length=200, null=False, index=True)
    source_display_name = CharField(default='')
    source_avatar = TextField(default='')
    clock_in = CharField(null=False, index=True)
    clock_out = CharField(null=True)
    note = TextField(default='')
    location_in = CharField(default='')
    location_in_name = CharField(default='')
    location_out = CharField(default='')
    location_out_name = CharField(default='')
    working_hours = FloatField(default=0)
    synced = IntegerField(default=SYNC_PENDING, column_name='sync_flag', index=True)
    created_at = DateTimeField(default=datetime.datetime.now, null=False)

    class Meta:
        table_name = 'time_records'
        indexes = (
            (('employee_name', 'clock_in'), True),  # One punch per employee per timestamp
        )

    def __str__(self):
        return f"{self.employee_name} IN {self.clock_in} OUT {self.clock_out or '-'}"

    @property
    def is_open(self):
        return not (self.clock_out or '').strip()


class OpenShiftMarker(BaseModel):
    employee_name = CharField(max_length=200, unique=True, null=False)
    clock_in = CharField(null=False)
    record = ForeignKeyField(TimeRecord, backref='open_markers', column_name='record_id',
                             on_delete='CASCADE', null=False)

    class Meta:
        table_name = 'open_shift_markers'

    def __str__(self):
        return f"{self.employee_name} on shift since {self.clock_in}"


class NightShiftExemption(BaseModel):
    employee_name = CharField(max_length=200, unique=True, null=False)
    created_at = DateTimeField(default=datetime.datetime.now, null=False)

    class Meta:
        table_name = 'night_shift_exemptions'


MODELS = [Employee, TimeRecord, OpenShiftMarker, NightShiftExemption]


def ensure_db_connection():
    """Ensure database connection is open"""
    if db.is_closed():
        try:
            db.connect(reuse_if_open=True)
            logger.debug("Database connection opened")
        except Exception as e:
            logger.error(f"Failed to open database connection: {e}")
            raise


def initialize_db(path=None):
    """Initialize database connection and create tables"""
    path = path or DB_FILE
    try:
        if not db.is_closed():
            db.close()
        if path != ':memory:':
            db_dir = os.path.dirname(path)
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)
        db.init(path, pragmas={
            'journal_mode': 'wal',
            'foreign_keys': 1,
        })
        ensure_db_connection()
        db.create_tables(MODELS, safe=True)
        logger.info(f"Database initialized successfully: {path}")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


def close_db():
    """Close database connection"""
    try:
        if not db.is_closed():
            db.close()
            logger.info("Database connection closed")
    except Exception as e:
        logger.error(f"Error closing database: {e}")


# --- Employees ---

def add_employee(name):
    """Register an employee. Returns True if the name was new."""
    if not name or not name.strip():
        raise ValueError("Employee name cannot be empty")
    ensure_db_connection()
    _, created = Employee.get_or_create(name=name.strip())
    return created


def get_employee(name):
    ensure_db_connection()
    return Employee.get_or_none(Employee.name == name)


def get_employees():
    """All employee names, sorted"""
    ensure_db_connection()
    return [e.name for e in Employee.select(Employee.name).order_by(Employee.name)]


def get_employees_with_details():
    ensure_db_connection()
    working = {m.employee_name for m in OpenShiftMarker.select(OpenShiftMarker.employee_name)}
    return [
        {
            'id': e.id,
            'name': e.name,
            'created_at': e.created_at,
            'is_working': e.name in working,
        }
        for e in Employee.select().order_by(Employee.name)
    ]


def delete_employee(name):
    """Delete an employee and any open-shift marker they hold"""
    ensure_db_connection()
    with db.atomic():
        OpenShiftMarker.delete().where(OpenShiftMarker.employee_name == name).execute()
        deleted = Employee.delete().where(Employee.name == name).execute()
    if deleted:
        logger.info(f"Deleted employee: {name}")
    return deleted > 0


def bulk_insert_employees(names):
    """Import employee names; existing names are ignored"""
    names = [n.strip() for n in names if n and n.strip()]
    if not names:
        return 0
    ensure_db_connection()
    with db.atomic():
        for batch in chunked(names, 100):
            Employee.insert_many([{'name': n} for n in batch]).on_conflict_ignore().execute()
    logger.info(f"Imported {len(names)} employees")
    return len(names)


# --- Open shifts ---

def get_open_shift(employee_name):
    """The employee's open-shift marker, or None when not clocked in"""
    ensure_db_connection()
    return OpenShiftMarker.get_or_none(OpenShiftMarker.employee_name == employee_name)


def get_open_shifts():
    ensure_db_connection()
    return list(OpenShiftMarker.select().order_by(OpenShiftMarker.clock_in.desc()))


def open_shift(employee_name, clock_in, source_display_name='', source_avatar='',
               location_in='', location_in_name='', note=''):
    """
    Create a time record and its open-shift marker as one unit.

    Args:
        employee_name: Employee clocking in (registered if unseen)
        clock_in: Clock-in time in storage format

    Returns:
        The created TimeRecord

    Raises:
        ConflictError: The employee already has an open shift
        PersistenceError: The write failed (e.g. duplicate timestamp)
    """
    ensure_db_connection()
    with db.atomic():
        existing = OpenShiftMarker.get_or_none(OpenShiftMarker.employee_name == employee_name)
        if existing is not None:
            raise ConflictError(
                f"{employee_name} already clocked in since {existing.clock_in}",
                current_status='clocked_in',
                clock_in=existing.clock_in,
            )
        try:
            record = TimeRecord.create(
                employee_name=employee_name,
                source_display_name=source_display_name or '',
                source_avatar=source_avatar or '',
                clock_in=clock_in,
                location_in=location_in or '',
                location_in_name=location_in_name or '',
                note=note or '',
                synced=SYNC_PENDING,
            )
            OpenShiftMarker.create(employee_name=employee_name, clock_in=clock_in, record=record)
            Employee.insert(name=employee_name).on_conflict_ignore().execute()
        except IntegrityError as e:
            logger.error(f"Failed to open shift for {employee_name} (integrity error): {e}")
            raise PersistenceError(f"Could not record clock-in for {employee_name}: {e}") from e
    logger.info(f"Shift opened: {employee_name} @ {clock_in}")
    return record


def close_shift(marker, clock_out, working_hours, location_out='', location_out_name='',
                note_suffix=''):
    """
    Close the shift a marker points at and remove the marker.

    The record's sync flag is reset so the change is pushed again.

    Raises:
        ConflictError: The marker no longer exists (already clocked out)
    """
    ensure_db_connection()
    with db.atomic():
        current = OpenShiftMarker.get_or_none(OpenShiftMarker.id == marker.id)
        if current is None:
            raise ConflictError(f"{marker.employee_name} is not clocked in",
                                current_status='not_clocked_in')
        record = TimeRecord.get_or_none(TimeRecord.id == current.record_id)
        if record is None:
            current.delete_instance()
            raise NotFoundError(f"Time record {current.record_id} for {marker.employee_name} not found")

        record.clock_out = clock_out
        record.working_hours = working_hours
        record.location_out = location_out or ''
        record.location_out_name = location_out_name or ''
        record.note = (record.note or '') + note_suffix
        record.synced = SYNC_PENDING
        record.save()
        current.delete_instance()
    logger.info(f"Shift closed: {record.employee_name} @ {clock_out} ({working_hours:.2f}h)")
    return record


# --- Time records ---

def get_time_record(record_id):
    ensure_db_connection()
    record = TimeRecord.get_or_none(TimeRecord.id == record_id)
    if record is None:
        raise NotFoundError(f"Time record {record_id} not found")
    return record


def update_time_record(record_id, **kwargs):
    """
    Update an existing time record.

    Args:
        record_id: ID of the record to update
        **kwargs: Fields to update (clock_in, clock_out, working_hours, note)

    Returns:
        Updated TimeRecord

    The open-shift marker follows the record: its clock-in moves with the
    record, and it is removed when the update closes the shift. The sync flag
    is always reset.
    """
    ensure_db_connection()
    allowed_fields = ['clock_in', 'clock_out', 'working_hours', 'note']
    try:
        with db.atomic():
            record = get_time_record(record_id)
            for field, value in kwargs.items():
                if field in allowed_fields:
                    setattr(record, field, value)
            record.synced = SYNC_PENDING
            record.save()

            marker = OpenShiftMarker.get_or_none(OpenShiftMarker.record == record.id)
            if marker is not None:
                if record.is_open:
                    marker.clock_in = record.clock_in
                    marker.save()
                else:
                    marker.delete_instance()
    except IntegrityError as e:
        logger.error(f"Failed to update time record {record_id} (integrity error): {e}")
        raise PersistenceError(f"Could not update time record {record_id}: {e}") from e
    logger.info(f"Updated time record {record_id}")
    return record


def delete_time_record(record_id):
    """Delete a time record and its open-shift marker, if any"""
    ensure_db_connection()
    with db.atomic():
        record = get_time_record(record_id)
        OpenShiftMarker.delete().where(OpenShiftMarker.record == record.id).execute()
        record.delete_instance()
    logger.info(f"Deleted time record {record_id}: {record.employee_name}")
    return record


def get_time_records_for_edit(employee_name, day):
    """An employee's records for one day, newest first"""
    ensure_db_connection()
    return list(
        TimeRecord.select()
        .where(TimeRecord.employee_name == employee_name, _on_day(day))
        .order_by(TimeRecord.clock_in.desc())
    )


def _on_day(day):
    dmy, ymd = date_prefixes(day)
    return TimeRecord.clock_in.startswith(dmy) | TimeRecord.clock_in.startswith(ymd)


def _is_open():
    return TimeRecord.clock_out.is_null() | (fn.TRIM(TimeRecord.clock_out) == '')


def get_records_on(day):
    """All records whose clock-in falls on ``day``, in insertion order"""
    ensure_db_connection()
    return list(TimeRecord.select().where(_on_day(day)).order_by(TimeRecord.id))


def get_records_touching(day):
    """Records clocked in or clocked out on ``day``"""
    ensure_db_connection()
    dmy, ymd = date_prefixes(day)
    clocked_out = TimeRecord.clock_out.startswith(dmy) | TimeRecord.clock_out.startswith(ymd)
    return list(TimeRecord.select().where(_on_day(day) | clocked_out).order_by(TimeRecord.id))


def search_records(name_fragment, day, limit=50):
    """Records on ``day`` whose employee name contains ``name_fragment``, newest first"""
    ensure_db_connection()
    return list(
        TimeRecord.select()
        .where(TimeRecord.employee_name.contains(name_fragment), _on_day(day))
        .order_by(TimeRecord.id.desc())
        .limit(limit)
    )


def get_employee_records(employee_name):
    ensure_db_connection()
    return list(TimeRecord.select().where(TimeRecord.employee_name == employee_name).order_by(TimeRecord.id))


def get_all_time_records():
    ensure_db_connection()
    return list(TimeRecord.select().order_by(TimeRecord.id))


# --- Sync helpers ---

def get_unsynced_records():
    """Records not yet pushed since their last change, oldest first"""
    ensure_db_connection()
    return list(TimeRecord.select().where(TimeRecord.synced == SYNC_PENDING).order_by(TimeRecord.id))


PUSHED_FIELDS = ('clock_in', 'clock_out', 'note', 'working_hours', 'location_out', 'location_out_name')


def _unchanged_since(record):
    """Condition matching the row only while its pushed fields still equal ``record``'s"""
    condition = TimeRecord.id == record.id
    for name in PUSHED_FIELDS:
        field = getattr(TimeRecord, name)
        value = getattr(record, name)
        condition &= field.is_null() if value is None else field == value
    return condition


def mark_as_synced(items):
    """
    Mark a batch of records as pushed in one transaction.

    Args:
        items: Record ids, or the TimeRecord instances that were pushed. An
            instance is only marked while the stored row still matches it, so
            a change made during the push stays pending.

    Returns:
        Number of rows marked
    """
    if not items:
        return 0
    ensure_db_connection()
    updated = 0
    with db.atomic():
        ids = [i for i in items if not isinstance(i, TimeRecord)]
        for batch in chunked(ids, 100):
            updated += TimeRecord.update(synced=SYNC_PUSHED).where(TimeRecord.id.in_(batch)).execute()
        for record in items:
            if isinstance(record, TimeRecord):
                changed = TimeRecord.update(synced=SYNC_PUSHED).where(_unchanged_since(record)).execute()
                if not changed:
                    logger.info(f"Record {record.id} changed during push, leaving it pending")
                updated += changed
    return updated


def bulk_insert_time_records(records):
    """
    Import time records that already exist remotely.

    Duplicates on (employee_name, clock_in) are ignored. Imported rows are
    flagged as pushed.
    """
    rows = [dict(r, synced=SYNC_PUSHED) for r in records if r.get('employee_name') and r.get('clock_in')]
    if not rows:
        return 0
    ensure_db_connection()
    with db.atomic():
        for batch in chunked(rows, 50):
            TimeRecord.insert_many(batch).on_conflict_ignore().execute()
    logger.info(f"Imported {len(rows)} time records")
    return len(rows)


def reconcile_remote_records(records):
    """
    Adopt remote versions of records, one transaction for the batch.

    A local record with the same (employee_name, clock_in) is replaced only
    when it was already pushed and is still open. Pending or closed local
    records win. An open remote record gets the employee's open-shift marker;
    when the employee is already on a different local shift, the local shift
    wins and the remote record is not taken, so no employee ends up with two
    open records.

    Returns:
        dict with inserted, replaced and kept counts
    """
    inserted = replaced = kept = 0
    ensure_db_connection()
    with db.atomic():
        for data in records:
            existing = TimeRecord.get_or_none(
                TimeRecord.employee_name == data['employee_name'],
                TimeRecord.clock_in == data['clock_in'],
            )
            if existing is not None and (existing.synced != SYNC_PUSHED or not existing.is_open):
                kept += 1
                continue

            incoming_open = not (data.get('clock_out') or '').strip()
            marker = OpenShiftMarker.get_or_none(OpenShiftMarker.employee_name == data['employee_name'])
            if incoming_open and marker is not None and (existing is None or marker.record_id != existing.id):
                logger.warning(f"Remote open shift {data['employee_name']} @ {data['clock_in']} ignored, "
                               f"employee is on shift since {marker.clock_in}")
                kept += 1
                continue

            if existing is not None:
                OpenShiftMarker.delete().where(OpenShiftMarker.record == existing.id).execute()
                existing.delete_instance()
                replaced += 1
            else:
                inserted += 1

            record = TimeRecord.create(**dict(data, synced=SYNC_PUSHED))
            if record.is_open:
                OpenShiftMarker.create(employee_name=record.employee_name,
                                       clock_in=record.clock_in, record=record)
    return {'inserted': inserted, 'replaced': replaced, 'kept': kept}


def repair_open_shift_markers(today):
    """
    Recreate missing open-shift markers from today's open records.

    Only employees with no marker at all get one, so an employee never ends
    up with two. Durable time records are not modified.
    """
    ensure_db_connection()
    try:
        open_records = list(
            TimeRecord.select().where(_on_day(today), _is_open()).order_by(TimeRecord.id)
        )
        logger.info(f"Repair: found {len(open_records)} open records for {today}")

        repaired = []
        with db.atomic():
            for record in open_records:
                if OpenShiftMarker.get_or_none(OpenShiftMarker.employee_name == record.employee_name):
                    continue
                logger.info(f"Repairing open shift for: {record.employee_name}")
                OpenShiftMarker.create(employee_name=record.employee_name,
                                       clock_in=record.clock_in, record=record)
                repaired.append(record.employee_name)

        return {
            'success': True,
            'total_open': len(open_records),
            'repaired_count': len(repaired),
            'repaired_employees': repaired,
        }
    except Exception as e:
        logger.error(f"Repair error: {e}")
        return {'success': False, 'error': str(e)}


def get_stats():
    ensure_db_connection()
    return {
        'employees': Employee.select().count(),
        'time_records': TimeRecord.select().count(),
        'on_work': OpenShiftMarker.select().count(),
        'unsynced': TimeRecord.select().where(TimeRecord.synced == SYNC_PENDING).count(),
    }


# --- Night shift roster ---

def seed_night_shift_exemptions(names):
    """Import the configured roster, only while the table is still empty"""
    ensure_db_connection()
    names = [n.strip() for n in names if n and n.strip()]
    if not names or NightShiftExemption.select().count() > 0:
        return 0
    with db.atomic():
        NightShiftExemption.insert_many(
            [{'employee_name': n} for n in names]
        ).on_conflict_ignore().execute()
    logger.info(f"Imported {len(names)} night shift employees from config")
    return len(names)


def get_night_shift_exemptions():
    ensure_db_connection()
    return [n.employee_name for n in NightShiftExemption.select().order_by(NightShiftExemption.employee_name)]


def add_night_shift_exemption(employee_name):
    """Returns True if the employee was added, False if already listed"""
    ensure_db_connection()
    _, added = NightShiftExemption.get_or_create(employee_name=employee_name)
    if added:
        logger.info(f"Added night shift employee: {employee_name}")
    return added


def remove_night_shift_exemption(employee_name):
    ensure_db_connection()
    removed = NightShiftExemption.delete().where(
        NightShiftExemption.employee_name == employee_name
    ).execute() > 0
    if removed:
        logger.info(f"Removed night shift employee: {employee_name}")
    return removed


def is_night_shift_exempt(employee_name):
    ensure_db_connection()
    return NightShiftExemption.select().where(
        NightShiftExemption.employee_name == employee_name
    ).exists()
