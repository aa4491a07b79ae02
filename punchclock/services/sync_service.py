"""
Sync service between the local store and the remote sheet.

Outbound pushes are at-least-once: a record is only flagged as pushed after
the remote accepted it, so a failure leaves it pending for the next cycle.
Inbound reads never delete local data.
"""
import datetime
import logging
import threading
from zoneinfo import ZoneInfo

from ..config import DEFAULT_SYNC_INTERVAL, DEFAULT_TIMEZONE
from ..data.database import (
    bulk_insert_employees, get_unsynced_records, mark_as_synced, get_open_shifts,
    reconcile_remote_records, repair_open_shift_markers, get_stats,
)
from ..remote.sheet import RemoteRow, get_remote_store, parse_rows
from ..utils.errors import SyncError
from ..utils.timeparse import parse_timestamp, format_timestamp

logger = logging.getLogger(__name__)

ALREADY_SYNCING = {'success': False, 'reason': 'already_syncing'}


class SyncService:
    """Moves punches between the local store and the remote sheet"""

    def __init__(self, remote=None, tz=None, now=None, interval=DEFAULT_SYNC_INTERVAL):
        """
        Args:
            remote: RemoteStore implementation
            tz: Timezone used to decide what "today" is
            now: Callable returning the current aware datetime
            interval: Seconds between periodic sync cycles
        """
        self.remote = get_remote_store(remote)
        self.tz = tz or ZoneInfo(DEFAULT_TIMEZONE)
        self._now = now or (lambda: datetime.datetime.now(self.tz))
        self.interval = interval

        self.is_syncing = False
        self.last_sync_time = None
        self._guard = threading.Lock()
        self._stop_event = threading.Event()
        self.thread = None

    def now(self) -> datetime.datetime:
        return self._now()

    def _begin(self):
        """Claim the sync slot; False when another sync is running"""
        with self._guard:
            if self.is_syncing:
                return False
            self.is_syncing = True
            return True

    def _end(self):
        with self._guard:
            self.is_syncing = False

    # --- Startup ---

    def load_from_remote(self):
        """
        Import the employee list from the remote sheet.

        Time records are not imported at startup; they arrive
        through the same-day reconciliation.
        """
        try:
            logger.info("Loading employees from remote...")
            employees = self.remote.get_employees()
            count = bulk_insert_employees(employees)
            logger.info(f"Loaded {count} employees")
            return {'success': True, 'employees': count}
        except SyncError as e:
            logger.error(f"Error loading from remote: {e}")
            return {'success': False, 'error': str(e)}

    def repair_open_shifts(self):
        today = self.now().date()
        logger.info("Checking for missing open shift markers...")
        result = repair_open_shift_markers(today)
        if result['success'] and result['repaired_count']:
            logger.info(f"Repaired {result['repaired_count']} open shift(s): "
                        f"{', '.join(result['repaired_employees'])}")
        return result

    # --- Outbound ---

    def push_unsynced(self):
        """
        Append every pending record to the remote sheet.

        Returns:
            dict with success, synced and failed counts, or the
            already-syncing rejection
        """
        if not self._begin():
            logger.info("Sync already in progress, skipping")
            return dict(ALREADY_SYNCING)
        try:
            records = get_unsynced_records()
            if not records:
                return {'success': True, 'synced': 0, 'failed': 0}

            logger.info(f"Pushing {len(records)} records to remote...")
            pushed, failed = [], 0
            for record in records:
                try:
                    self.remote.append_row(RemoteRow.from_record(record).to_values())
                    pushed.append(record)
                except SyncError as e:
                    failed += 1
                    logger.error(f"Failed to push record {record.id} ({record.employee_name}): {e}")

            marked = mark_as_synced(pushed)
            self.remote.clear_cache()
            self.last_sync_time = self.now()
            logger.info(f"Pushed {len(pushed)} records ({marked} unchanged since read), {failed} failed")
            return {'success': failed == 0, 'synced': len(pushed), 'failed': failed}
        except Exception as e:
            logger.error(f"Push error: {e}")
            return {'success': False, 'error': str(e)}
        finally:
            self._end()

    def sync_on_work_to_remote(self):
        """Mirror the set of currently clocked-in employees to the remote sheet"""
        try:
            markers = get_open_shifts()
            if not markers:
                logger.info("No one on work locally, leaving remote on-work sheet untouched")
                return {'success': True, 'skipped': True, 'count': 0}
            rows = [RemoteRow.from_record(marker.record).to_values() for marker in markers]
            self.remote.replace_on_work(rows)
            return {'success': True, 'skipped': False, 'count': len(rows)}
        except SyncError as e:
            logger.error(f"Error syncing on-work status: {e}")
            return {'success': False, 'error': str(e)}

    # --- Inbound ---

    def sync_current_day(self):
        """
        Reconcile today's remote rows into the local store.

        Rows that collide with a pending local record are skipped. An empty
        remote read changes nothing locally.
        """
        if not self._begin():
            logger.info("Sync already in progress, skipping")
            return dict(ALREADY_SYNCING)
        try:
            today = self.now().date()
            self.remote.clear_cache()
            rows = parse_rows(self.remote.fetch_rows())

            todays = []
            for row in rows:
                parsed = parse_timestamp(row.clock_in, self.tz)
                if parsed.ok and parsed.value.date() == today:
                    todays.append(row)

            if not todays:
                logger.warning(f"Remote returned no rows for {today}, keeping local data")
                return {'success': True, 'inserted': 0, 'replaced': 0, 'kept': 0, 'skipped': 0}

            pending = {
                (r.employee_name, r.clock_in) for r in get_unsynced_records()
            }
            # Pushes append, so a record can appear once per push; the last row is the newest
            accepted, skipped = {}, 0
            for row in todays:
                fields = row.to_record_fields()
                parsed = parse_timestamp(row.clock_in, self.tz).value
                fields['clock_in'] = format_timestamp(parsed)
                if fields['clock_out']:
                    out = parse_timestamp(fields['clock_out'], self.tz)
                    if not out.ok:
                        logger.warning(f"Skipping remote row {row.employee_name} @ {row.clock_in}: {out.error}")
                        accepted.pop((fields['employee_name'], fields['clock_in']), None)
                        continue
                    fields['clock_out'] = format_timestamp(out.value)
                if (fields['employee_name'], fields['clock_in']) in pending:
                    skipped += 1
                    continue
                accepted[(fields['employee_name'], fields['clock_in'])] = fields

            result = reconcile_remote_records(list(accepted.values()))
            self.last_sync_time = self.now()
            logger.info(f"Same-day sync: {result['inserted']} new, {result['replaced']} updated, "
                        f"{result['kept']} kept local, {skipped} pending locally")
            return dict(result, success=True, skipped=skipped)
        except Exception as e:
            logger.error(f"Same-day sync error: {e}")
            return {'success': False, 'error': str(e)}
        finally:
            self._end()

    # --- Periodic ---

    def run_cycle(self):
        push = self.push_unsynced()
        on_work = self.sync_on_work_to_remote()
        return {'push': push, 'on_work': on_work}

    def _loop(self):
        while not self._stop_event.wait(self.interval):
            try:
                self.run_cycle()
            except Exception as e:
                logger.error(f"Periodic sync error: {e}")

    def start_periodic_sync(self, interval=None):
        if interval is not None:
            self.interval = interval
        if self.thread and self.thread.is_alive():
            self.stop_periodic_sync()

        self._stop_event.clear()
        self.thread = threading.Thread(target=self._loop, name="punchclock-sync", daemon=True)
        self.thread.start()
        logger.info(f"Periodic sync started (every {self.interval}s)")

    def stop_periodic_sync(self):
        self._stop_event.set()
        if self.thread:
            self.thread.join(timeout=5)
            self.thread = None
            logger.info("Periodic sync stopped")

    @property
    def periodic_sync_active(self):
        return self.thread is not None and self.thread.is_alive()

    def force_sync(self):
        result = self.push_unsynced()
        if not result.get('success') and result.get('reason') == 'already_syncing':
            return result
        self.sync_on_work_to_remote()
        return {
            'success': result.get('success', False),
            'last_sync_time': self.last_sync_time,
            'stats': get_stats(),
        }

    def get_status(self):
        return {
            'is_syncing': self.is_syncing,
            'last_sync_time': self.last_sync_time,
            'periodic_sync_active': self.periodic_sync_active,
            'stats': get_stats(),
        }

    def close(self):
        self.stop_periodic_sync()
