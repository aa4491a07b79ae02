"""
Clock service for handling clock in/out business logic.

Each employee is either not clocked in or clocked in; the open-shift marker
in the database is the state. Illegal transitions come back as unsuccessful
results carrying the current state, never as exceptions.
"""
import datetime
import logging
from dataclasses import dataclass, field
from typing import Optional, Union
from zoneinfo import ZoneInfo

from ..config import DEFAULT_ADMIN_NAME, DEFAULT_TIMEZONE
from ..data.database import (
    open_shift, close_shift, get_open_shift, get_open_shifts, get_time_record,
    update_time_record as store_update_time_record,
    delete_time_record as store_delete_time_record,
    delete_employee as store_delete_employee,
    add_night_shift_exemption, remove_night_shift_exemption, is_night_shift_exempt,
)
from ..utils.errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from ..utils.lateness import late_minutes
from ..utils.timeparse import parse_timestamp, format_timestamp, display_time

logger = logging.getLogger(__name__)

NOT_CLOCKED_IN = 'not_clocked_in'
CLOCKED_IN = 'clocked_in'
CLOCKED_OUT = 'clocked_out'

AUTO_CHECKOUT_NOTE = "forgot to clock out (auto checkout)"


@dataclass
class PunchRequest:
    """Punch coming from the messaging front end"""
    employee: str
    source_user_info: str = ''
    lat: Optional[float] = None
    lon: Optional[float] = None
    source_display_name: str = ''
    source_avatar_url: str = ''
    mock_time: Optional[Union[str, datetime.datetime]] = None

    @property
    def location(self) -> str:
        if self.lat is None or self.lon is None:
            return ''
        return f"{self.lat},{self.lon}"


@dataclass
class ClockResult:
    """Result of a clock action"""
    success: bool
    employee: str
    message: str
    current_status: Optional[str] = None
    time: Optional[str] = None
    hours_worked: Optional[float] = None
    is_late: Optional[bool] = None
    late_by: Optional[int] = None
    record_id: Optional[int] = None

    def to_dict(self):
        result = {
            'success': self.success,
            'message': self.message,
            'employee': self.employee,
            'current_status': self.current_status,
        }
        if self.time is not None:
            result['time'] = self.time
        if self.hours_worked is not None:
            result['hours_worked'] = f"{self.hours_worked:.2f}"
        if self.is_late is not None:
            result['is_late'] = self.is_late
            result['late_by'] = self.late_by
        return result


@dataclass
class AdminResult:
    """Result of an administrator operation"""
    success: bool
    message: str = ''
    error: Optional[str] = None
    data: dict = field(default_factory=dict)

    def to_dict(self):
        result = {'success': self.success}
        if self.success:
            result['message'] = self.message
        else:
            result['error'] = self.error
        result.update(self.data)
        return result


def _note_suffix(text):
    return f" | {text}" if text else ''


class ClockService:
    """Handles clock in/out business logic"""

    def __init__(self, tz=None, now=None, admin_name=DEFAULT_ADMIN_NAME, admin_location=''):
        """
        Initialize clock service.

        Args:
            tz: Timezone punches are recorded in
            now: Callable returning the current aware datetime (injectable for tests)
            admin_name: Display name stamped on administrator punches
            admin_location: Location stamped on administrator punches
        """
        self.tz = tz or ZoneInfo(DEFAULT_TIMEZONE)
        self._now = now or (lambda: datetime.datetime.now(self.tz))
        self.admin_name = admin_name
        self.admin_location = admin_location

    def now(self) -> datetime.datetime:
        return self._now()

    def _resolve_time(self, value) -> datetime.datetime:
        """The override when given, otherwise the current time"""
        if value is None:
            return self.now()
        result = parse_timestamp(value, self.tz)
        if not result.ok:
            raise ValidationError(str(result.error))
        return result.value

    def calculate_working_hours(self, clock_in, clock_out) -> float:
        """Decimal hours between two punches, clamped at zero"""
        start = parse_timestamp(clock_in, self.tz)
        end = parse_timestamp(clock_out, self.tz)
        if not start.ok or not end.ok:
            logger.warning(f"Cannot compute working hours from {clock_in!r} to {clock_out!r}")
            return 0.0
        hours = (end.value - start.value).total_seconds() / 3600.0
        return round(max(0.0, hours), 2)

    def get_status(self, employee):
        marker = get_open_shift(employee)
        if marker is None:
            return {'employee': employee, 'current_status': NOT_CLOCKED_IN,
                    'clock_in': None, 'record_id': None}
        return {'employee': employee, 'current_status': CLOCKED_IN,
                'clock_in': marker.clock_in, 'record_id': marker.record_id}

    # --- Punches ---

    def clock_in(self, request: PunchRequest) -> ClockResult:
        """
        Clock an employee in.

        Args:
            request: Punch details

        Returns:
            ClockResult; unsuccessful with the existing shift's time if
            the employee is already clocked in
        """
        employee = (request.employee or '').strip()
        try:
            if not employee:
                raise ValidationError("Employee name is required")
            timestamp = self._resolve_time(request.mock_time)
            stamp = format_timestamp(timestamp)

            record = open_shift(
                employee,
                stamp,
                source_display_name=request.source_display_name,
                source_avatar=request.source_avatar_url,
                location_in=request.location,
                note=request.source_user_info,
            )
            late = late_minutes(timestamp)
            logger.info(f"Clocked IN - {employee} at {stamp}")

            return ClockResult(
                success=True,
                employee=employee,
                message="Clock-in recorded",
                current_status=CLOCKED_IN,
                time=stamp,
                is_late=late > 0,
                late_by=late,
                record_id=record.id,
            )

        except ConflictError as e:
            logger.info(f"Rejected clock-in for {employee}: {e}")
            return ClockResult(
                success=False,
                employee=employee,
                message=f"Already clocked in since {display_time(e.clock_in, self.tz)[:5]}, clock out first",
                current_status=CLOCKED_IN,
                time=e.clock_in,
            )
        except Exception as e:
            logger.error(f"Error performing clock-in for {employee}: {e}")
            return ClockResult(success=False, employee=employee, message=f"Error: {e}")

    def clock_out(self, request: PunchRequest) -> ClockResult:
        """
        Clock an employee out and compute the hours worked.

        Returns:
            ClockResult; unsuccessful if the employee is not clocked in
        """
        employee = (request.employee or '').strip()
        try:
            marker = get_open_shift(employee)
            if marker is None:
                raise ConflictError(f"{employee} is not clocked in", current_status=NOT_CLOCKED_IN)

            timestamp = self._resolve_time(request.mock_time)
            stamp = format_timestamp(timestamp)
            hours = self.calculate_working_hours(marker.clock_in, timestamp)

            close_shift(marker, stamp, hours, location_out=request.location)
            logger.info(f"Clocked OUT - {employee} at {stamp} ({hours:.1f}h)")

            return ClockResult(
                success=True,
                employee=employee,
                message="Clock-out recorded",
                current_status=CLOCKED_OUT,
                time=stamp,
                hours_worked=hours,
            )

        except ConflictError as e:
            logger.info(f"Rejected clock-out for {employee}: {e}")
            return ClockResult(
                success=False,
                employee=employee,
                message="Not clocked in, clock in first",
                current_status=NOT_CLOCKED_IN,
            )
        except Exception as e:
            logger.error(f"Error performing clock-out for {employee}: {e}")
            return ClockResult(success=False, employee=employee, message=f"Error: {e}")

    # --- Administrator operations ---

    def manual_clock_in(self, employee, clock_in_time, admin_note=None) -> AdminResult:
        """Clock an employee in at an administrator-chosen time"""
        try:
            employee = (employee or '').strip()
            if not employee:
                raise ValidationError("Employee name is required")
            stamp = format_timestamp(self._resolve_time(clock_in_time))
            record = open_shift(
                employee,
                stamp,
                source_display_name=self.admin_name,
                location_in=self.admin_location,
                note=admin_note or '',
            )
            logger.info(f"Manual clock-in: {employee} at {stamp} by admin")
            return AdminResult(
                success=True,
                message=f"Clocked in {employee} at {stamp}",
                data={'record_id': record.id},
            )
        except ConflictError:
            return AdminResult(success=False, error=f"{employee} is still clocked in, clock out first")
        except (PersistenceError, ValidationError) as e:
            logger.error(f"Error in manual clock-in: {e}")
            return AdminResult(success=False, error=str(e))

    def manual_clock_out(self, employee, clock_out_time, admin_note=None) -> AdminResult:
        """Clock an employee out at an administrator-chosen time"""
        try:
            employee = (employee or '').strip()
            marker = get_open_shift(employee)
            if marker is None:
                return AdminResult(success=False, error=f"{employee} is not clocked in")

            stamp = format_timestamp(self._resolve_time(clock_out_time))
            hours = self.calculate_working_hours(marker.clock_in, stamp)
            close_shift(marker, stamp, hours, location_out=self.admin_location,
                        note_suffix=_note_suffix(admin_note))
            logger.info(f"Manual clock-out: {employee} at {stamp} ({hours:.1f}h) by admin")
            return AdminResult(
                success=True,
                message=f"Clocked out {employee} at {stamp} ({hours:.1f}h)",
                data={'hours_worked': f"{hours:.2f}"},
            )
        except ConflictError:
            return AdminResult(success=False, error=f"{employee} is not clocked in")
        except (PersistenceError, NotFoundError, ValidationError) as e:
            logger.error(f"Error in manual clock-out: {e}")
            return AdminResult(success=False, error=str(e))

    def update_time_record(self, record_id, new_clock_in=None, new_clock_out=None,
                           admin_note=None) -> AdminResult:
        """Edit a record's punch times; hours are recomputed when both ends are known"""
        try:
            record = get_time_record(record_id)
            clock_in = format_timestamp(self._resolve_time(new_clock_in)) if new_clock_in else record.clock_in
            clock_out = format_timestamp(self._resolve_time(new_clock_out)) if new_clock_out else record.clock_out

            working_hours = record.working_hours
            if clock_in and clock_out:
                working_hours = self.calculate_working_hours(clock_in, clock_out)

            note = (record.note or '') + (f" | [edited] {admin_note}" if admin_note else " | [time edited]")
            record = store_update_time_record(
                record_id,
                clock_in=clock_in,
                clock_out=clock_out,
                working_hours=working_hours,
                note=note,
            )
            logger.info(f"Updated time record #{record_id}: {record.employee_name}")
            return AdminResult(
                success=True,
                message="Time record updated",
                data={
                    'record_id': record_id,
                    'clock_in': record.clock_in,
                    'clock_out': record.clock_out,
                    'working_hours': f"{record.working_hours:.2f}" if record.clock_out else None,
                },
            )
        except (NotFoundError, PersistenceError, ValidationError) as e:
            logger.error(f"Error updating time record {record_id}: {e}")
            return AdminResult(success=False, error=str(e))

    def delete_time_record(self, record_id) -> AdminResult:
        try:
            record = store_delete_time_record(record_id)
            return AdminResult(success=True, message=f"Deleted time record of {record.employee_name}")
        except NotFoundError as e:
            return AdminResult(success=False, error=str(e))

    def delete_employee(self, employee) -> AdminResult:
        if store_delete_employee(employee):
            return AdminResult(success=True, message=f"Deleted employee {employee}")
        return AdminResult(success=False, error=f"Employee {employee} not found")

    def add_night_shift_employee(self, employee) -> AdminResult:
        if add_night_shift_exemption(employee):
            return AdminResult(success=True, message=f"{employee} added to night shift")
        return AdminResult(success=False, error=f"{employee} is already on night shift")

    def remove_night_shift_employee(self, employee) -> AdminResult:
        if remove_night_shift_exemption(employee):
            return AdminResult(success=True, message=f"{employee} removed from night shift")
        return AdminResult(success=False, error=f"{employee} is not on night shift")

    def auto_checkout(self, at=None):
        """
        Close every open shift except those of night-shift employees.

        Closed records get AUTO_CHECKOUT_NOTE appended so reports can flag
        the missed clock-out.
        """
        at = at or self.now()
        stamp = format_timestamp(at)
        closed, skipped = [], []

        for marker in get_open_shifts():
            if is_night_shift_exempt(marker.employee_name):
                skipped.append(marker.employee_name)
                continue
            hours = self.calculate_working_hours(marker.clock_in, at)
            try:
                close_shift(marker, stamp, hours, note_suffix=_note_suffix(AUTO_CHECKOUT_NOTE))
                closed.append(marker.employee_name)
            except (ConflictError, NotFoundError) as e:
                logger.warning(f"Auto checkout skipped {marker.employee_name}: {e}")

        logger.info(f"Auto checkout at {stamp}: closed {len(closed)}, night shift {len(skipped)}")
        return {'success': True, 'closed': closed, 'skipped': skipped}
